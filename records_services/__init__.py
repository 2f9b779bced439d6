"""
Services layer: stateful orchestration over the kernel and engines.

May import records_engines and records_kernel.  The kernel never imports
this package.
"""

from records_services.record_service import LifecycleSettings, RecordService

__all__ = ["LifecycleSettings", "RecordService"]
