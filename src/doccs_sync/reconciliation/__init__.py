"""Record reconciliation and batch scheduling."""

from doccs_sync.reconciliation.engine import (
    IDENTIFIER_FIELD,
    ReconciliationEngine,
    RecordWriter,
)
from doccs_sync.reconciliation.scheduler import BatchScheduler

__all__ = [
    "IDENTIFIER_FIELD",
    "ReconciliationEngine",
    "RecordWriter",
    "BatchScheduler",
]
