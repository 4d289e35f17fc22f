"""Airtable record store."""

from doccs_sync.store.airtable import (
    AIRTABLE_API_URL,
    AirtableClient,
    AirtableConfig,
    StoreRecord,
)

__all__ = [
    "AIRTABLE_API_URL",
    "AirtableClient",
    "AirtableConfig",
    "StoreRecord",
]
