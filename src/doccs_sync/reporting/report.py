"""Per-run report of record outcomes, field changes and network health.

One ``Report`` is created for each sync run and handed to every component that
records into it. All mutation happens on the event loop thread, so concurrent
reconciliations within a batch can record without locking.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from doccs_sync.core import get_logger
from doccs_sync.core.errors import InvalidOutcome

logger = get_logger(__name__)

# Network analysis thresholds
EMPTY_RATE_THRESHOLD = 0.05
CONSECUTIVE_FAILURE_THRESHOLD = 3
SLOW_REQUEST_MS = 2000

PERCENTILES = {"p50": 0.5, "p75": 0.75, "p90": 0.9, "p95": 0.95, "p99": 0.99}


class RecordOutcome(str, Enum):
    """Terminal classification of one record in one run."""

    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    ERROR_RESPONSE = "ERROR_RESPONSE"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    NO_CHANGE = "NO_CHANGE"
    CHANGED = "CHANGED"
    UPDATE_FAILED = "UPDATE_FAILED"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Change:
    """A field whose stored value disagrees with DOCCS."""

    field: str
    old_value: Any
    new_value: Any
    cause_alert: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "cause_alert": self.cause_alert,
        }


@dataclass
class ReportEntry:
    record_id: str
    din: Optional[str]
    outcome: RecordOutcome
    message: str = ""
    changes: list[Change] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "din": self.din,
            "outcome": self.outcome.value,
            "message": self.message,
            "changes": [c.to_dict() for c in self.changes],
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class NetworkMetricSample:
    """One DOCCS request attempt."""

    duration_ms: float
    success: bool = True
    error_type: Optional[str] = None
    is_empty: bool = False
    retry_attempt: int = 0
    backoff_delay_ms: float = 0
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
            "success": self.success,
            "error_type": self.error_type,
            "is_empty": self.is_empty,
            "retry_attempt": self.retry_attempt,
            "backoff_delay_ms": self.backoff_delay_ms,
        }


@dataclass
class BatchTiming:
    batch_index: int
    start_time: datetime
    end_time: datetime
    size: int = 0

    @property
    def processing_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "size": self.size,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "processing_seconds": round(self.processing_seconds, 3),
        }


@dataclass
class NetworkMetrics:
    """Running totals over every ``NetworkMetricSample`` of a run."""

    total_requests: int = 0
    failed_requests: int = 0
    empty_responses: int = 0
    total_request_time: float = 0.0
    retry_attempts: int = 0
    total_backoff_time: float = 0.0
    successful_retries: int = 0
    consecutive_failures_current: int = 0
    consecutive_failures_max: int = 0
    errors_by_type: dict[str, int] = field(default_factory=dict)
    samples: list[NetworkMetricSample] = field(default_factory=list)

    @property
    def average_request_time(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_request_time / self.total_requests

    def add(self, sample: NetworkMetricSample) -> None:
        self.total_requests += 1
        self.total_request_time += sample.duration_ms
        self.samples.append(sample)

        # a backoff delay means the attempt was followed by a retry
        if sample.backoff_delay_ms:
            self.retry_attempts += 1
            self.total_backoff_time += sample.backoff_delay_ms

        if sample.success:
            if sample.retry_attempt > 0:
                self.successful_retries += 1
            self.consecutive_failures_current = 0
        else:
            self.failed_requests += 1
            self.consecutive_failures_current += 1
            self.consecutive_failures_max = max(
                self.consecutive_failures_max,
                self.consecutive_failures_current,
            )
            if sample.error_type:
                self.errors_by_type[sample.error_type] = (
                    self.errors_by_type.get(sample.error_type, 0) + 1
                )

        if sample.is_empty:
            self.empty_responses += 1

    def to_dict(self, include_samples: bool = False) -> dict[str, Any]:
        data = {
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "empty_responses": self.empty_responses,
            "total_request_time": round(self.total_request_time, 2),
            "average_request_time": round(self.average_request_time, 2),
            "retry_attempts": self.retry_attempts,
            "total_backoff_time": self.total_backoff_time,
            "successful_retries": self.successful_retries,
            "consecutive_failures": {
                "current": self.consecutive_failures_current,
                "max": self.consecutive_failures_max,
            },
            "errors_by_type": dict(self.errors_by_type),
        }
        if include_samples:
            data["request_times"] = [s.to_dict() for s in self.samples]
        return data


class Report:
    """Outcomes, changes, batch timings and network metrics of one sync run.

    ``add_record`` must be called at most once per record: a second call for
    the same record id replaces the entry but counts it again in the summary.
    """

    def __init__(self, environment: Optional[str] = None):
        self.environment = environment
        self.created_at = _now()
        self.records: dict[str, ReportEntry] = {}
        self.batches: list[BatchTiming] = []
        self.network = NetworkMetrics()
        self._total = 0
        self._by_outcome: dict[RecordOutcome, int] = {}
        self._by_field_change: dict[str, int] = {}

    # ==================== Recording ====================

    def add_record(
        self,
        record_id: str,
        din: Optional[str],
        outcome: Union[RecordOutcome, str],
        message: str = "",
        changes: Optional[list[Change]] = None,
    ) -> ReportEntry:
        """Record the outcome of one record.

        Raises:
            InvalidOutcome: If ``outcome`` is not a RecordOutcome.
        """
        try:
            outcome = RecordOutcome(outcome)
        except ValueError:
            raise InvalidOutcome(outcome) from None

        entry = ReportEntry(
            record_id=record_id,
            din=din,
            outcome=outcome,
            message=message,
            changes=list(changes or []),
        )
        self.records[record_id] = entry

        self._total += 1
        self._by_outcome[outcome] = self._by_outcome.get(outcome, 0) + 1
        if outcome == RecordOutcome.CHANGED:
            for change in entry.changes:
                self._by_field_change[change.field] = (
                    self._by_field_change.get(change.field, 0) + 1
                )

        logger.debug(
            "record_reported",
            record_id=record_id,
            din=din,
            outcome=outcome.value,
            message=message,
            changes=len(entry.changes),
        )
        return entry

    def add_batch_time(
        self,
        batch_index: int,
        start_time: datetime,
        end_time: datetime,
        size: int = 0,
    ) -> BatchTiming:
        timing = BatchTiming(
            batch_index=batch_index,
            start_time=start_time,
            end_time=end_time,
            size=size,
        )
        self.batches.append(timing)
        return timing

    def add_network_metric(self, sample: NetworkMetricSample) -> None:
        self.network.add(sample)

    # ==================== Queries ====================

    def get_records_by_outcome(self, outcome: Union[RecordOutcome, str]) -> list[ReportEntry]:
        outcome = RecordOutcome(outcome)
        return [r for r in self.records.values() if r.outcome == outcome]

    def get_records_by_field_change(self, field_name: str) -> list[ReportEntry]:
        return [
            r for r in self.records.values()
            if any(c.field == field_name for c in r.changes)
        ]

    def get_alerts(self) -> list[dict[str, Any]]:
        """Changes to alerting fields on records that were changed."""
        alerts = []
        for entry in self.get_records_by_outcome(RecordOutcome.CHANGED):
            for change in entry.changes:
                if change.cause_alert:
                    alerts.append({"din": entry.din, **change.to_dict()})
        return alerts

    def get_summary(self) -> dict[str, Any]:
        """Snapshot of the counts, without per-batch or per-request detail."""
        total_seconds = sum(b.processing_seconds for b in self.batches)
        batch_count = len(self.batches)
        return {
            "total": self._total,
            "by_outcome": {
                o.value: self._by_outcome[o]
                for o in RecordOutcome
                if o in self._by_outcome
            },
            "by_field_change": dict(self._by_field_change),
            "alerts": len(self.get_alerts()),
            "processing_time": {
                "total_seconds": round(total_seconds, 3),
                "batch_count": batch_count,
                "average_seconds": round(total_seconds / batch_count, 3) if batch_count else 0.0,
            },
            "network_metrics": self.network.to_dict(),
        }

    # ==================== Network analysis ====================

    @staticmethod
    def calculate_percentiles(times: list[float]) -> dict[str, Optional[float]]:
        """Nearest-rank percentiles by sorted index, without interpolation."""
        ordered = sorted(times)
        if not ordered:
            return {name: None for name in PERCENTILES}
        return {
            name: ordered[min(int(len(ordered) * q), len(ordered) - 1)]
            for name, q in PERCENTILES.items()
        }

    def generate_recommendations(self) -> list[str]:
        m = self.network
        recommendations = []
        if not m.total_requests:
            return recommendations

        if m.empty_responses / m.total_requests > EMPTY_RATE_THRESHOLD:
            recommendations.append(
                "High rate of empty responses - consider increasing delay between requests"
            )
        if m.consecutive_failures_max > CONSECUTIVE_FAILURE_THRESHOLD:
            recommendations.append(
                "Consider implementing exponential backoff due to consecutive failures"
            )
        if m.average_request_time > SLOW_REQUEST_MS:
            recommendations.append(
                "High average request time detected - may need to reduce concurrent requests"
            )
        return recommendations

    def get_network_analysis(self) -> dict[str, Any]:
        m = self.network
        total = m.total_requests
        return {
            **m.to_dict(),
            "failure_rate": m.failed_requests / total if total else 0.0,
            "empty_response_rate": m.empty_responses / total if total else 0.0,
            "request_time_percentiles": self.calculate_percentiles(
                [s.duration_ms for s in m.samples]
            ),
            "recommendations": self.generate_recommendations(),
        }

    # ==================== Rendering ====================

    def get_text_report(self, generated_at: Optional[datetime] = None) -> str:
        """Plain-text staff report."""
        generated_at = generated_at or _now()
        summary = self.get_summary()
        lines = [
            "DOCCS SYNC REPORT",
            generated_at.strftime("%B %d, %Y %I:%M %p %Z").strip(),
            "",
            "SUMMARY",
            f"- Total Records: {summary['total']}",
            "- By Outcome:",
        ]
        for outcome, count in summary["by_outcome"].items():
            lines.append(f"    - {outcome}: {count}")

        if summary["by_field_change"]:
            lines.append("- By Field Change:")
            for field_name, count in summary["by_field_change"].items():
                lines.append(f"    - {field_name}: {count}")
        lines.append("")

        changed = self.get_records_by_outcome(RecordOutcome.CHANGED)
        if changed:
            lines.append(RecordOutcome.CHANGED.value)
            by_field: dict[str, list[tuple[ReportEntry, Change]]] = {}
            for entry in changed:
                for change in entry.changes:
                    by_field.setdefault(change.field, []).append((entry, change))

            for field_name, items in by_field.items():
                lines.append(f"Field: {field_name}")
                for entry, change in items:
                    lines.append(
                        f"- {_render(entry.din)}: {_render(change.new_value)}, "
                        f"previously {_render(change.old_value)}"
                    )
                lines.append("")

        for outcome in RecordOutcome:
            if outcome == RecordOutcome.CHANGED:
                continue
            entries = self.get_records_by_outcome(outcome)
            if entries:
                lines.append(outcome.value)
                lines.append(", ".join(_render(e.din) for e in entries))
                lines.append("")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        summary = self.get_summary()
        summary["processing_time"]["by_batch"] = [b.to_dict() for b in self.batches]
        return {
            "environment": self.environment,
            "created_at": self.created_at.isoformat(),
            "records": {rid: e.to_dict() for rid, e in self.records.items()},
            "summary": summary,
            "network_analysis": {
                **self.get_network_analysis(),
                "request_times": [s.to_dict() for s in self.network.samples],
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)
