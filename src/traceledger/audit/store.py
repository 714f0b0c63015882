"""JSONL audit trail of ledger activity."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from traceledger.audit.schemas import AuditEvent
from traceledger.audit.schemas import AuditEventType
from traceledger.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """Appends audit events to a JSONL file and reads them back.

    Writes happen in a worker thread under an ``asyncio.Lock``, so the
    events of one ingestion land in the file as one contiguous block.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        await self.log_many((event,))

    async def log_many(self, events: Iterable[AuditEvent]) -> None:
        """Append *events* in order with a single write."""
        if not self.config.enabled:
            return
        block = "".join(event.model_dump_json() + "\n" for event in events)
        if not block:
            return
        async with self._lock:
            await asyncio.to_thread(partial(_append, self.config.file_path, block))

    async def record(
        self,
        event_type: AuditEventType,
        *,
        container_id: str | None = None,
        **payload: object,
    ) -> None:
        """Build and append one event."""
        await self.log(
            AuditEvent(event_type=event_type, container_id=container_id, payload=payload)
        )

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        since: float | None = None,
        container_id: str | None = None,
    ) -> list[AuditEvent]:
        """Return recorded events, oldest first.

        Lines that do not parse are skipped with a warning.
        """
        path = Path(self.config.file_path)
        async with self._lock:
            lines = await asyncio.to_thread(partial(_read_lines, path))
        return [
            event
            for event in _parse(lines, path)
            if (event_type is None or event.event_type == event_type)
            and (since is None or event.timestamp >= since)
            and (container_id is None or event.container_id == container_id)
        ]


def _append(path: str, block: str) -> None:
    with open(path, "a") as fh:
        fh.write(block)


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text().splitlines()


def _parse(lines: list[str], path: Path) -> Iterable[AuditEvent]:
    for line_no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            yield AuditEvent.model_validate_json(line)
        except ValidationError:
            logger.warning(
                "Skipping malformed audit event line %d in %s", line_no, path
            )
