"""One end-to-end sync run."""

import random
from typing import Any, Awaitable, Callable, Optional

from doccs_sync.config import SyncConfig
from doccs_sync.core import get_logger
from doccs_sync.core.errors import NotificationError, StorageError
from doccs_sync.core.resilience import RetryExecutor
from doccs_sync.lookup.client import LookupClient
from doccs_sync.lookup.transport import DoccsLookupTransport
from doccs_sync.mapping.registry import FieldMappingRegistry
from doccs_sync.reconciliation.engine import ReconciliationEngine
from doccs_sync.reconciliation.scheduler import BatchScheduler
from doccs_sync.reporting.notifier import EmailNotifier
from doccs_sync.reporting.report import Report
from doccs_sync.reporting.storage import ReportStorage
from doccs_sync.store.airtable import AirtableClient, StoreRecord

logger = get_logger(__name__)


def select_records(
    records: list[StoreRecord],
    record_limit: Optional[int] = None,
    shuffle: bool = False,
    rng: Optional[random.Random] = None,
) -> list[StoreRecord]:
    """Apply the shuffle toggle, then the record cap."""
    selected = list(records)
    if shuffle:
        (rng or random).shuffle(selected)
    if record_limit is not None:
        selected = selected[:record_limit]
    return selected


async def run_sync(
    config: SyncConfig,
    store: Optional[AirtableClient] = None,
    transport: Optional[DoccsLookupTransport] = None,
    storage: Optional[ReportStorage] = None,
    notifier: Optional[EmailNotifier] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> Report:
    """Reconcile every selected Airtable record against DOCCS.

    Schema and field mapping problems raise before any record is touched.
    Failures persisting or emailing the finished report are logged and do not
    fail the run.

    Args:
        config: Run configuration.
        store: Airtable client; created from ``config`` when omitted.
        transport: DOCCS transport; created from ``config`` when omitted.
        storage: Report storage; created when ``config.report_bucket`` is set.
        notifier: Email notifier; created when ``config.email`` is set.
        sleep: Replacement for ``asyncio.sleep`` (tests).

    Returns:
        The report of this run.
    """
    store = store or AirtableClient(config.airtable)
    transport = transport or DoccsLookupTransport(config.lookup)
    if storage is None and config.report_bucket:
        storage = ReportStorage(config.report_bucket)
    if notifier is None and config.email:
        notifier = EmailNotifier(config.email)
    sleep_kwargs = {"sleep": sleep} if sleep else {}

    logger.info(
        "sync_started",
        environment=config.environment.value,
        update_records=config.enable_update_records,
        typecast=config.enable_typecast,
        batch_size=config.batch_size,
        batch_delay_ms=config.batch_delay_ms,
    )

    async with store, transport:
        schema = await store.fetch_schema()
        registry = FieldMappingRegistry.from_schema(
            schema, config.airtable.table_id, config.field_ids
        )

        records = select_records(
            await store.list_records(config.airtable.view),
            record_limit=config.record_limit,
            shuffle=config.shuffle_records,
        )

        report = Report(environment=config.environment.value)
        lookup = LookupClient(
            transport,
            executor=RetryExecutor(config.retry_policy(), **sleep_kwargs),
        )
        engine = ReconciliationEngine(
            registry,
            lookup,
            store,
            update_records=config.enable_update_records,
            typecast=config.enable_typecast,
        )
        scheduler = BatchScheduler(
            engine,
            batch_size=config.batch_size,
            batch_delay_ms=config.batch_delay_ms,
            **sleep_kwargs,
        )
        await scheduler.run(records, report)

    logger.info("sync_completed", summary=report.get_summary())
    logger.info("sync_network_analysis", analysis=report.get_network_analysis())

    if storage:
        try:
            storage.save_reports(report, config.environment.value)
        except StorageError as e:
            logger.error("report_persistence_failed", error=str(e))

    if notifier:
        try:
            notifier.send_preconfigured(report.get_text_report())
        except NotificationError as e:
            logger.error("report_email_failed", error=str(e))

    return report
