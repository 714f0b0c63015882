"""Read path over container deployment histories and image identities.

Unlike ingestion, queries are strict: a missing identity raises
``NotFound`` and identity-store failures propagate to the caller.
"""

from __future__ import annotations

from datetime import datetime
from datetime import UTC
from enum import Enum
from typing import Any

from pydantic import BaseModel

from traceledger.errors import NotFound
from traceledger.identity.hashing import container_hash
from traceledger.identity.hashing import image_hash
from traceledger.identity.records import DeploymentHistory
from traceledger.identity.records import DeploymentRecord
from traceledger.identity.records import IdentityRecord
from traceledger.identity.records import ImageInspectionCache
from traceledger.identity.store import IdentityStore
from traceledger.models.events import EventType
from traceledger.models.report import TraceabilityReport
from traceledger.models.schemas import ContainerState
from traceledger.models.schemas import ContainerSummary
from traceledger.models.schemas import ContainerSummaryItem
from traceledger.models.schemas import HostSummary
from traceledger.models.schemas import ImageDeployment
from traceledger.models.schemas import ImageSummaryItem


class QueryMode(str, Enum):
    """Projection applied to each record returned by a container query."""

    inspect_container = "inspectContainer"
    inspect_image = "inspectImage"
    events = "events"
    host_info = "hostInfo"
    all = "all"

    @classmethod
    def from_string(cls, value: str | None) -> QueryMode:
        """Parse a mode name; missing or unknown names use ``inspectContainer``."""
        if value is None:
            return cls.inspect_container
        try:
            return cls(value)
        except ValueError:
            return cls.inspect_container


def _wire(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


def format_docker_time(seconds: int) -> str:
    """Format Unix seconds the way Docker does (nanosecond precision)."""
    moment = datetime.fromtimestamp(seconds, tz=UTC)
    millis = moment.microsecond // 1000
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}000000Z"


def _project(report: TraceabilityReport, mode: QueryMode) -> dict[str, Any] | None:
    if mode is QueryMode.all:
        return _wire(report)
    if mode is QueryMode.events:
        return _wire(report.event)
    if mode is QueryMode.inspect_container:
        return _wire(report.container) if report.container is not None else None
    if mode is QueryMode.inspect_image:
        return _wire(report.image) if report.image is not None else None
    if mode is QueryMode.host_info:
        return _wire(report.host_info)
    msg = f"Unsupported query mode: {mode!r}"
    raise ValueError(msg)


class QueryEngine:
    """Time- and mode-filtered reads over the identity store."""

    def __init__(self, store: IdentityStore) -> None:
        self._store = store

    # -- containers --

    async def container_record(self, container_id: str) -> IdentityRecord:
        record = await self._store.get(container_hash(container_id))
        if record is None or record.deployment is None:
            raise NotFound("container", container_id)
        return record

    async def history(self, container_id: str) -> DeploymentHistory:
        record = await self.container_record(container_id)
        assert record.deployment is not None
        return record.deployment

    async def query(
        self,
        container_id: str,
        mode: QueryMode = QueryMode.all,
        since: int | None = None,
        until: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return projected records with ``since <= time <= until``, oldest first."""
        history = await self.history(container_id)
        results: list[dict[str, Any]] = []
        for record in history.records:
            if since is not None and record.event_time < since:
                continue
            if until is not None and record.event_time > until:
                continue
            item = _project(record.report, mode)
            if item is not None:
                results.append(item)
        return results

    async def last_record(self, container_id: str) -> DeploymentRecord | None:
        try:
            history = await self.history(container_id)
        except NotFound:
            return None
        return history.latest()

    async def last_report(self, container_id: str) -> TraceabilityReport | None:
        record = await self.last_record(container_id)
        return record.report if record is not None else None

    async def last_status(self, container_id: str) -> str:
        try:
            history = await self.history(container_id)
        except NotFound:
            return EventType.UNKNOWN.value
        return history.last_status()

    # -- images --

    async def image_record(self, image_id: str) -> IdentityRecord:
        record = await self._store.get(image_hash(image_id))
        if record is None:
            raise NotFound("image", image_id)
        return record

    async def image_inspection(self, image_id: str) -> ImageInspectionCache:
        record = await self.image_record(image_id)
        if record.inspection is None:
            raise NotFound("image", image_id)
        return record.inspection

    async def image_deployments(self, image_id: str) -> list[ImageDeployment]:
        """List containers deployed from *image_id* with their last status."""
        record = await self.image_record(image_id)
        container_ids = record.references.container_ids if record.references else []
        return [
            ImageDeployment(
                container_id=container_id,
                last_status=await self.last_status(container_id),
            )
            for container_id in container_ids
        ]

    # -- summaries --

    async def summary(self, container_id: str) -> ContainerSummary | None:
        """Summarize the latest known state of one container.

        Returns ``None`` when the container has no usable history.
        """
        try:
            record = await self.container_record(container_id)
        except NotFound:
            return None
        assert record.deployment is not None
        latest = record.deployment.latest()
        if latest is None:
            return None
        report = latest.report
        container = report.container
        if container is None:
            return None

        image_id = report.image_id
        image_fingerprint: str | None = None
        if image_id is not None:
            image = await self._store.get(image_hash(image_id))
            image_fingerprint = image.fingerprint if image is not None else None

        state = container.state or {}
        return ContainerSummary(
            last_update=format_docker_time(report.event.time),
            container=ContainerSummaryItem(
                id=container.id,
                name=container.name,
                created=container.created,
                fingerprint=record.fingerprint,
                state=ContainerState(
                    last_status=record.deployment.last_status(),
                    started_at=state.get("StartedAt"),
                    finished_at=state.get("FinishedAt"),
                    running=bool(state.get("Running", False)),
                    paused=bool(state.get("Paused", False)),
                    pid=int(state.get("Pid") or 0),
                    exit_code=int(state.get("ExitCode") or 0),
                ),
            ),
            image=ImageSummaryItem(
                id=image_id,
                name=report.image_name,
                created=report.image.created if report.image is not None else "N/A",
                fingerprint=image_fingerprint,
            ),
            environment=report.environment,
            host=HostSummary(id=report.host_info.id, name=report.host_info.name),
            parents=list(report.parents),
        )
