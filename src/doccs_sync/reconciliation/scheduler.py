"""Fixed-size batches of concurrent reconciliations, paced by a delay."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence

from doccs_sync.core import get_logger
from doccs_sync.reconciliation.engine import ReconciliationEngine
from doccs_sync.reporting.report import RecordOutcome, Report
from doccs_sync.store.airtable import StoreRecord

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BatchScheduler:
    """Runs the engine over records one batch at a time.

    Records within a batch are reconciled concurrently and the whole batch is
    awaited before the next one starts. The delay is applied between batches,
    never after the last.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        batch_size: int = 50,
        batch_delay_ms: int = 10000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _now,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if batch_delay_ms < 0:
            raise ValueError("batch_delay_ms must not be negative")
        self.engine = engine
        self.batch_size = batch_size
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep
        self._clock = clock

    def partition(self, records: Sequence[StoreRecord]) -> list[Sequence[StoreRecord]]:
        return [
            records[start:start + self.batch_size]
            for start in range(0, len(records), self.batch_size)
        ]

    async def _reconcile_one(self, record: StoreRecord, report: Report) -> None:
        try:
            await self.engine.reconcile(record, report)
        except Exception as e:
            logger.error(
                "reconcile_failed",
                record_id=record.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            if record.id not in report.records:
                report.add_record(
                    record.id,
                    record.get(self.engine.identifier_field),
                    RecordOutcome.PROCESSING_ERROR,
                    message=str(e),
                )

    async def run(self, records: Sequence[StoreRecord], report: Report) -> Report:
        """Reconcile every record, recording batch timings into ``report``."""
        batches = self.partition(records)
        logger.info(
            "sync_batches_planned",
            records=len(records),
            batches=len(batches),
            batch_size=self.batch_size,
        )

        for index, batch in enumerate(batches):
            logger.info(
                "batch_started",
                batch_index=index,
                start_index=index * self.batch_size,
                size=len(batch),
            )
            started = self._clock()
            await asyncio.gather(*(self._reconcile_one(r, report) for r in batch))
            finished = self._clock()

            timing = report.add_batch_time(index, started, finished, size=len(batch))
            logger.info(
                "batch_completed",
                batch_index=index,
                processing_seconds=round(timing.processing_seconds, 2),
            )

            if index < len(batches) - 1 and self.batch_delay_ms:
                logger.debug("batch_delay", delay_ms=self.batch_delay_ms)
                await self._sleep(self.batch_delay_ms / 1000)

        return report
