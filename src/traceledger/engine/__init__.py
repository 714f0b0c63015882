"""Engine domain — report ingestion and historical queries."""

from traceledger.engine.ingestion import IngestionResult
from traceledger.engine.ingestion import ReportIngestionEngine
from traceledger.engine.query import format_docker_time
from traceledger.engine.query import QueryEngine
from traceledger.engine.query import QueryMode

__all__ = [
    "IngestionResult",
    "QueryEngine",
    "QueryMode",
    "ReportIngestionEngine",
    "format_docker_time",
]
