"""Read-only selectors over finance records."""

from records_kernel.selectors.record_selector import (
    RecordFilter,
    RecordPage,
    RecordSelector,
)

__all__ = ["RecordFilter", "RecordPage", "RecordSelector"]
