"""Core utilities shared by every part of the DOCCS sync."""

from doccs_sync.core.logging import get_logger, configure_logging, record_context
from doccs_sync.core.errors import (
    DoccsSyncError,
    ConfigurationError,
    FieldMappingNotFound,
    DataTypeError,
    InvalidOutcome,
    RetryableError,
    LookupTransportError,
    EmptyResponseError,
    StoreError,
    StoreUnavailableError,
    StorageError,
    NotificationError,
)
from doccs_sync.core.resilience import (
    AttemptRecord,
    AttemptStatus,
    RetryExecutor,
    RetryOutcome,
    RetryPolicy,
    classify_attempt_error,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "record_context",
    # Errors
    "DoccsSyncError",
    "ConfigurationError",
    "FieldMappingNotFound",
    "DataTypeError",
    "InvalidOutcome",
    "RetryableError",
    "LookupTransportError",
    "EmptyResponseError",
    "StoreError",
    "StoreUnavailableError",
    "StorageError",
    "NotificationError",
    # Resilience
    "AttemptRecord",
    "AttemptStatus",
    "RetryExecutor",
    "RetryOutcome",
    "RetryPolicy",
    "classify_attempt_error",
]
