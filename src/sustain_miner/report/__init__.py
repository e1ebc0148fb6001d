"""Mining reports and the sinks that persist them."""

from .models import COMMIT_COLUMNS, MiningReport
from .sink import CsvReportSink, MemoryReportSink, ReportSink, safe_name

__all__ = [
    "MiningReport",
    "COMMIT_COLUMNS",
    "ReportSink",
    "CsvReportSink",
    "MemoryReportSink",
    "safe_name",
]
