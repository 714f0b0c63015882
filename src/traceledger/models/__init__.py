"""Models domain — event types, traceability reports and API shapes."""

from traceledger.models.events import EventType
from traceledger.models.report import ContainerSnapshot
from traceledger.models.report import DockerEvent
from traceledger.models.report import fix_empty
from traceledger.models.report import HostInfo
from traceledger.models.report import ImageSnapshot
from traceledger.models.report import TraceabilityReport

__all__ = [
    "ContainerSnapshot",
    "DockerEvent",
    "EventType",
    "HostInfo",
    "ImageSnapshot",
    "TraceabilityReport",
    "fix_empty",
]
