"""Per-record reconciliation of Airtable against DOCCS.

Each record ends in exactly one ``RecordOutcome``:

    invalid DIN                      -> INVALID_IDENTIFIER
    lookup failed                    -> EMPTY_RESPONSE | ERROR_RESPONSE
    diffing raised                   -> PROCESSING_ERROR
    no differences                   -> NO_CHANGE
    update raised                    -> UPDATE_FAILED
    updated, or updates disabled     -> CHANGED
"""

from typing import Any, Mapping, Optional, Protocol

from doccs_sync.core import get_logger, record_context
from doccs_sync.lookup.client import LookupClient, LookupFailure, validate_identifier
from doccs_sync.mapping.normalizers import is_empty
from doccs_sync.mapping.registry import FieldMappingRegistry
from doccs_sync.reporting.report import Change, RecordOutcome, Report, ReportEntry
from doccs_sync.store.airtable import StoreRecord

logger = get_logger(__name__)

IDENTIFIER_FIELD = "DIN"


class RecordWriter(Protocol):
    async def update_record(
        self, record_id: str, fields: dict[str, Any], typecast: bool = False
    ) -> Any: ...


class ReconciliationEngine:
    """Diffs one Airtable record against its DOCCS lookup and applies the changes."""

    def __init__(
        self,
        registry: FieldMappingRegistry,
        lookup: LookupClient,
        store: RecordWriter,
        update_records: bool = False,
        typecast: bool = False,
        identifier_field: str = IDENTIFIER_FIELD,
    ):
        """Initialize the engine.

        Args:
            registry: Resolved field mappings.
            lookup: DOCCS lookup client.
            store: Airtable client used for writes.
            update_records: Write changes; when False changes are only reported.
            typecast: Ask Airtable to coerce written values.
            identifier_field: Airtable field holding the DIN.
        """
        self.registry = registry
        self.lookup = lookup
        self.store = store
        self.update_records = update_records
        self.typecast = typecast
        self.identifier_field = identifier_field

    def compute_changes(
        self,
        record: StoreRecord,
        data: Mapping[str, Any],
        din: Optional[str] = None,
    ) -> list[Change]:
        """Differences between the stored record and the DOCCS data.

        Empty DOCCS values are skipped so missing data never erases a stored
        value. A failure on one field is logged and that field skipped.
        """
        changes: list[Change] = []

        for key, mapping in self.registry.all_mappings():
            try:
                field_name = self.registry.field_name(key)
                stored = record.get(field_name)
                source = mapping.source_value(data)
                if is_empty(source):
                    continue
                if mapping.test(stored, source):
                    continue

                new_value = mapping.update(source)
                self.registry.validate_type(field_name, new_value)
                changes.append(Change(
                    field=field_name,
                    old_value=stored,
                    new_value=new_value,
                    cause_alert=mapping.cause_alert,
                ))
            except Exception as e:
                logger.error(
                    "field_processing_failed",
                    field=key,
                    din=din,
                    error_type=type(e).__name__,
                    error=str(e),
                )

        return changes

    async def reconcile(self, record: StoreRecord, report: Report) -> ReportEntry:
        """Reconcile one record and add its outcome to ``report``."""
        din = record.get(self.identifier_field)

        with record_context(record.id, din):
            if not validate_identifier(din):
                return report.add_record(
                    record.id, din, RecordOutcome.INVALID_IDENTIFIER,
                    message=f"Invalid DIN: {din!r}",
                )

            result = await self.lookup.fetch_external(din, report)

            if isinstance(result, LookupFailure):
                outcome = (
                    RecordOutcome.EMPTY_RESPONSE if result.is_empty_response
                    else RecordOutcome.ERROR_RESPONSE
                )
                return report.add_record(
                    record.id, din, outcome, message=result.user_displayable_message
                )
            if not result:
                return report.add_record(
                    record.id, din, RecordOutcome.EMPTY_RESPONSE,
                    message="Lookup returned no data",
                )
            if not isinstance(result, Mapping):
                return report.add_record(
                    record.id, din, RecordOutcome.ERROR_RESPONSE,
                    message=f"Unexpected lookup response: {str(result)[:100]}",
                )

            try:
                changes = self.compute_changes(record, result, din)
            except Exception as e:
                logger.error("record_processing_failed", error_type=type(e).__name__, error=str(e))
                return report.add_record(
                    record.id, din, RecordOutcome.PROCESSING_ERROR, message=str(e)
                )

            if not changes:
                return report.add_record(record.id, din, RecordOutcome.NO_CHANGE)

            if not self.update_records:
                logger.info("record_changes_not_written", changes=len(changes))
                return report.add_record(
                    record.id, din, RecordOutcome.CHANGED,
                    message=f"Dry run: {len(changes)} field(s) not written",
                    changes=changes,
                )

            try:
                await self.store.update_record(
                    record.id,
                    {c.field: c.new_value for c in changes},
                    typecast=self.typecast,
                )
            except Exception as e:
                logger.error("record_update_failed", error_type=type(e).__name__, error=str(e))
                return report.add_record(
                    record.id, din, RecordOutcome.UPDATE_FAILED,
                    message=str(e),
                    changes=changes,
                )

            logger.info("record_updated", changes=len(changes))
            return report.add_record(
                record.id, din, RecordOutcome.CHANGED,
                message=f"Updated {len(changes)} field(s)",
                changes=changes,
            )
