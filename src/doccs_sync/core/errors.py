"""Custom exception classes for the DOCCS sync."""

from typing import Any, Optional


class DoccsSyncError(Exception):
    """Base exception for all DOCCS sync errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(DoccsSyncError):
    """Missing or invalid configuration. Always fatal for the run."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CONFIGURATION", **kwargs)
        self.setting = setting
        self.details.update({"setting": setting})


class FieldMappingNotFound(DoccsSyncError):
    """A mapped field id is absent from the live Airtable schema."""

    def __init__(
        self,
        message: str,
        field_id: Optional[str] = None,
        logical_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="FIELD_MAPPING", **kwargs)
        self.field_id = field_id
        self.logical_key = logical_key
        self.details.update({
            "field_id": field_id,
            "logical_key": logical_key,
        })


class DataTypeError(DoccsSyncError):
    """A transformed value does not match the declared Airtable field type."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="DATA_TYPE", **kwargs)
        self.field = field
        self.value = value
        self.expected_type = expected_type
        self.details.update({
            "field": field,
            "value": repr(value),
            "expected_type": expected_type,
        })


class InvalidOutcome(DoccsSyncError):
    """An outcome outside the closed set of record outcomes."""

    def __init__(self, outcome: Any, **kwargs):
        super().__init__(f"Invalid outcome: {outcome}", error_code="INVALID_OUTCOME", **kwargs)
        self.outcome = outcome
        self.details.update({"outcome": repr(outcome)})


class RetryableError(DoccsSyncError):
    """Error that can be retried with exponential backoff."""

    def __init__(self, message: str, error_code: str = "RETRYABLE", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class LookupTransportError(DoccsSyncError):
    """Non-retryable failure talking to the DOCCS lookup service."""

    def __init__(
        self,
        message: str,
        din: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="LOOKUP_TRANSPORT", **kwargs)
        self.din = din
        self.status = status
        self.details.update({"din": din, "status": status})


class EmptyResponseError(RetryableError):
    """The DOCCS lookup answered with an empty body."""

    def __init__(self, message: str, din: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="EMPTY_RESPONSE", **kwargs)
        self.din = din
        self.details.update({"din": din})


class StoreError(DoccsSyncError):
    """Error returned by the Airtable API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        record_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="STORE", **kwargs)
        self.status = status
        self.record_id = record_id
        self.details.update({"status": status, "record_id": record_id})


class StoreUnavailableError(RetryableError):
    """Airtable rate limited the request or failed server-side."""

    def __init__(self, message: str, status: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="STORE_UNAVAILABLE", **kwargs)
        self.status = status
        self.details.update({"status": status})


class StorageError(DoccsSyncError):
    """Error writing a report to blob storage."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="STORAGE", **kwargs)
        self.path = path
        self.details.update({"path": path})


class NotificationError(DoccsSyncError):
    """Error sending the staff report email."""

    def __init__(self, message: str, recipient: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="NOTIFICATION", **kwargs)
        self.recipient = recipient
        self.details.update({"recipient": recipient})
