"""DOCCS lookup service access."""

from doccs_sync.lookup.client import (
    DIN_PATTERN,
    EMPTY_RESPONSE_ERROR,
    RESPONSE_ERROR,
    LookupClient,
    LookupFailure,
    LookupTransport,
    validate_identifier,
)
from doccs_sync.lookup.transport import (
    DOCCS_LOOKUP_URL,
    DoccsLookupTransport,
    LookupTransportConfig,
)

__all__ = [
    "DIN_PATTERN",
    "EMPTY_RESPONSE_ERROR",
    "RESPONSE_ERROR",
    "LookupClient",
    "LookupFailure",
    "LookupTransport",
    "validate_identifier",
    "DOCCS_LOOKUP_URL",
    "DoccsLookupTransport",
    "LookupTransportConfig",
]
