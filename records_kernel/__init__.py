"""
Finance Records Kernel

Organization-defined finance records (expenses and revenues) with:
- Tenant-defined typed field schemas, including formula fields
- Sandboxed arithmetic evaluation of derived fields
- Condition-based multi-approver workflow
- All-or-nothing validated writes with optimistic concurrency
"""

__version__ = "0.1.0"
