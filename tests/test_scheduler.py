"""Tests for batch scheduling of reconciliations."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from doccs_sync.reconciliation.scheduler import BatchScheduler
from doccs_sync.reporting.report import RecordOutcome, Report

from conftest import make_record


class RecordingEngine:
    """Engine stand-in that logs when each reconciliation starts and ends."""

    identifier_field = "DIN"

    def __init__(self, fail_ids=(), fail_after_report_ids=()):
        self.events = []
        self.fail_ids = set(fail_ids)
        self.fail_after_report_ids = set(fail_after_report_ids)

    async def reconcile(self, record, report):
        self.events.append(("start", record.id))
        await asyncio.sleep(0)
        if record.id in self.fail_ids:
            raise RuntimeError(f"boom {record.id}")
        entry = report.add_record(record.id, record.get("DIN"), RecordOutcome.NO_CHANGE)
        if record.id in self.fail_after_report_ids:
            raise RuntimeError("late failure")
        self.events.append(("end", record.id))
        return entry


def make_records(count):
    return [make_record(f"rec{i}", f"{i % 100:02d}A{i:04d}") for i in range(count)]


def ticking_clock():
    now = [datetime(2025, 1, 1, tzinfo=timezone.utc)]

    def clock():
        now[0] += timedelta(seconds=1)
        return now[0]

    return clock


class TestBatchScheduler:
    """Tests for BatchScheduler."""

    def test_rejects_bad_settings(self):
        with pytest.raises(ValueError):
            BatchScheduler(RecordingEngine(), batch_size=0)
        with pytest.raises(ValueError):
            BatchScheduler(RecordingEngine(), batch_delay_ms=-1)

    def test_partition(self):
        scheduler = BatchScheduler(RecordingEngine(), batch_size=50)
        batches = scheduler.partition(make_records(120))
        assert [len(b) for b in batches] == [50, 50, 20]

    def test_partition_empty(self):
        assert BatchScheduler(RecordingEngine()).partition([]) == []

    @pytest.mark.asyncio
    async def test_batches_and_delays(self, sleep):
        """Test 120 records at size 50: three batches and two 10s pauses."""
        engine = RecordingEngine()
        scheduler = BatchScheduler(engine, batch_size=50, batch_delay_ms=10000, sleep=sleep)
        report = Report()

        result = await scheduler.run(make_records(120), report)

        assert result is report
        assert [b.size for b in report.batches] == [50, 50, 20]
        assert [b.batch_index for b in report.batches] == [0, 1, 2]
        assert sleep.delays == [10.0, 10.0]
        assert report.get_summary()["total"] == 120

    @pytest.mark.asyncio
    async def test_batch_barrier(self, sleep):
        """Test that no record of a batch starts before the previous batch ends."""
        engine = RecordingEngine()
        scheduler = BatchScheduler(engine, batch_size=4, batch_delay_ms=0, sleep=sleep)

        await scheduler.run(make_records(10), Report())

        position = {event: i for i, event in enumerate(engine.events)}
        batches = [range(0, 4), range(4, 8), range(8, 10)]
        for earlier, later in zip(batches, batches[1:]):
            last_end = max(position[("end", f"rec{i}")] for i in earlier)
            first_start = min(position[("start", f"rec{i}")] for i in later)
            assert last_end < first_start

    @pytest.mark.asyncio
    async def test_batch_runs_concurrently(self, sleep):
        engine = RecordingEngine()
        scheduler = BatchScheduler(engine, batch_size=3, batch_delay_ms=0, sleep=sleep)

        await scheduler.run(make_records(3), Report())

        assert [kind for kind, _ in engine.events[:3]] == ["start", "start", "start"]

    @pytest.mark.asyncio
    async def test_zero_delay_does_not_sleep(self, sleep):
        scheduler = BatchScheduler(RecordingEngine(), batch_size=2, batch_delay_ms=0, sleep=sleep)
        await scheduler.run(make_records(5), Report())
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_single_batch_does_not_sleep(self, sleep):
        scheduler = BatchScheduler(RecordingEngine(), batch_size=50, sleep=sleep)
        await scheduler.run(make_records(50), Report())
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_processing_error(self, sleep):
        """Test that a crash in one reconciliation does not stop its batch."""
        engine = RecordingEngine(fail_ids={"rec1"})
        scheduler = BatchScheduler(engine, batch_size=3, batch_delay_ms=0, sleep=sleep)
        report = Report()

        await scheduler.run(make_records(3), report)

        assert report.records["rec1"].outcome == RecordOutcome.PROCESSING_ERROR
        assert report.records["rec1"].message == "boom rec1"
        assert report.get_summary()["by_outcome"] == {"PROCESSING_ERROR": 1, "NO_CHANGE": 2}

    @pytest.mark.asyncio
    async def test_failure_after_reporting_not_counted_twice(self, sleep):
        engine = RecordingEngine(fail_after_report_ids={"rec0"})
        scheduler = BatchScheduler(engine, batch_size=2, batch_delay_ms=0, sleep=sleep)
        report = Report()

        await scheduler.run(make_records(2), report)

        assert report.get_summary()["total"] == 2
        assert report.records["rec0"].outcome == RecordOutcome.NO_CHANGE

    @pytest.mark.asyncio
    async def test_batch_timing_uses_clock(self, sleep):
        scheduler = BatchScheduler(
            RecordingEngine(), batch_size=2, batch_delay_ms=0, sleep=sleep, clock=ticking_clock(),
        )
        report = Report()

        await scheduler.run(make_records(4), report)

        assert [b.processing_seconds for b in report.batches] == [1.0, 1.0]
        assert report.get_summary()["processing_time"]["total_seconds"] == 2.0
