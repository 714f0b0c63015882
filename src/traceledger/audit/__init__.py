"""Audit subsystem — async JSONL trail of ledger activity."""

from traceledger.audit.schemas import AuditEvent
from traceledger.audit.schemas import AuditEventType
from traceledger.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
