"""Report sinks: durable, retrievable run records."""

from pipewright.reporting.directory import DirectoryReportSink
from pipewright.reporting.memory import InMemoryReportSink
from pipewright.reporting.sink import ReportHandle, ReportSink, artifact_to_record, run_to_record
from pipewright.reporting.sqlite import SqliteReportSink

__all__ = [
    "DirectoryReportSink",
    "InMemoryReportSink",
    "ReportHandle",
    "ReportSink",
    "SqliteReportSink",
    "artifact_to_record",
    "run_to_record",
]
