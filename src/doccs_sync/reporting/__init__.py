"""Run reports: aggregation, persistence and notification."""

from doccs_sync.reporting.report import (
    BatchTiming,
    Change,
    NetworkMetrics,
    NetworkMetricSample,
    RecordOutcome,
    Report,
    ReportEntry,
)
from doccs_sync.reporting.storage import ReportStorage
from doccs_sync.reporting.notifier import EmailConfig, EmailNotifier

__all__ = [
    "BatchTiming",
    "Change",
    "NetworkMetrics",
    "NetworkMetricSample",
    "RecordOutcome",
    "Report",
    "ReportEntry",
    "ReportStorage",
    "EmailConfig",
    "EmailNotifier",
]
