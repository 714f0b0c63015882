"""TraceabilityService — the operations exposed to hosting transports.

``build_service()`` is the startup sequence: it creates the identity store,
loads the container registry, wires the notification bus and returns a
ready service.  Nothing is looked up through module globals.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from traceledger.audit import AuditEvent
from traceledger.audit import AuditEventType
from traceledger.audit import AuditLogger
from traceledger.config import AuditConfig
from traceledger.config import RegistryConfig
from traceledger.config import StoreConfig
from traceledger.config import TraceabilityConfig
from traceledger.engine.ingestion import ReportIngestionEngine
from traceledger.engine.query import QueryEngine
from traceledger.engine.query import QueryMode
from traceledger.errors import MalformedReport
from traceledger.errors import NotFound
from traceledger.identity.hashing import image_hash
from traceledger.identity.records import IdentityRecord
from traceledger.identity.store import IdentityStore
from traceledger.identity.store import InMemoryIdentityStore
from traceledger.identity.store import RedisIdentityStore
from traceledger.models.events import EventType
from traceledger.models.report import ContainerSnapshot
from traceledger.models.report import DockerEvent
from traceledger.models.report import fix_empty
from traceledger.models.report import HostInfo
from traceledger.models.report import TraceabilityReport
from traceledger.models.schemas import ContainerSummary
from traceledger.models.schemas import ImageDeployment
from traceledger.notifications import NotificationBus
from traceledger.observability import track_latency
from traceledger.registry import ContainerRegistry

logger = logging.getLogger(__name__)

_UNKNOWN_HOST = "unknown"


def _wire(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


def _parse_inspect_data(
    inspect_data: str | Sequence[Mapping[str, Any] | ContainerSnapshot],
) -> list[ContainerSnapshot]:
    """Parse ``docker inspect`` output (an array of container snapshots)."""
    if isinstance(inspect_data, (str, bytes)):
        try:
            inspect_data = json.loads(inspect_data)
        except ValueError as exc:
            raise MalformedReport(f"Invalid JSON: {exc}") from exc
    if not isinstance(inspect_data, Sequence) or isinstance(inspect_data, (str, bytes)):
        raise MalformedReport("inspect_data must be an array of container snapshots")
    snapshots: list[ContainerSnapshot] = []
    for index, item in enumerate(inspect_data):
        if isinstance(item, ContainerSnapshot):
            snapshots.append(item)
            continue
        try:
            snapshots.append(ContainerSnapshot.model_validate(item))
        except ValidationError as exc:
            err = exc.errors()[0] if exc.errors() else {}
            msg = f"inspect_data[{index}]: {err.get('msg', 'Invalid container snapshot')}"
            raise MalformedReport(msg) from exc
    return snapshots


class TraceabilityService:
    """Submission and query operations over one ledger."""

    def __init__(
        self,
        *,
        store: IdentityStore,
        registry: ContainerRegistry,
        bus: NotificationBus,
        ingestion: ReportIngestionEngine,
        queries: QueryEngine,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.bus = bus
        self.ingestion = ingestion
        self.queries = queries
        self.audit_logger = audit_logger

        bus.on_report(self._log_report)
        bus.on_report(self._ingest)
        bus.on_new_deployment(self._register_container)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    async def _log_report(self, report: TraceabilityReport) -> None:
        logger.info("%s", report.event.describe())
        if self.audit_logger is not None:
            await self.audit_logger.record(
                AuditEventType.REPORT_RECEIVED,
                container_id=report.container_id,
                status=report.event.status,
                time=report.event.time,
                host_id=report.host_info.id,
            )

    async def _ingest(self, report: TraceabilityReport) -> None:
        async with track_latency("ingestion.report") as timer:
            result = await self.ingestion.ingest(report)
            timer.ok = result.ok
        if self.audit_logger is None:
            return
        events: list[AuditEvent] = []
        if result.image_created:
            events.append(
                AuditEvent(
                    event_type=AuditEventType.IMAGE_IDENTITY_CREATED,
                    payload={"image_id": result.image_id, "image_name": report.image_name},
                )
            )
        if result.record_added:
            events.append(
                AuditEvent(
                    event_type=AuditEventType.DEPLOYMENT_RECORDED,
                    container_id=result.container_id,
                    payload={
                        "image_id": result.image_id,
                        "status": report.event.status,
                        "time": report.event.time,
                    },
                )
            )
        await self.audit_logger.log_many(events)

    async def _register_container(self, container_id: str) -> None:
        added = await self.registry.add(container_id)
        if added and self.audit_logger is not None:
            await self.audit_logger.record(
                AuditEventType.CONTAINER_REGISTERED, container_id=container_id
            )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_report(
        self, submission: str | bytes | Mapping[str, Any] | TraceabilityReport
    ) -> TraceabilityReport:
        """Parse one report and dispatch it; raises ``MalformedReport``."""
        if isinstance(submission, TraceabilityReport):
            report = submission
        elif isinstance(submission, (str, bytes)):
            report = TraceabilityReport.from_json(submission)
        else:
            report = TraceabilityReport.from_payload(submission)
        await self.bus.fire(report)
        return report

    async def submit_container_status(
        self,
        inspect_data: str | Sequence[Mapping[str, Any] | ContainerSnapshot],
        *,
        host_id: str | None = None,
        host_name: str | None = None,
        status: str | None = None,
        time_seconds: int | None = None,
        environment: str | None = None,
        image_name: str | None = None,
    ) -> list[TraceabilityReport]:
        """Dispatch one synthetic report per submitted container snapshot.

        Missing host fields default to ``"unknown"``, a missing status to
        the synthetic ``NONE`` event and a missing (or zero) time to now.
        """
        snapshots = _parse_inspect_data(inspect_data)
        event_time = time_seconds if time_seconds else int(time.time())
        effective_host_id = fix_empty(host_id) or _UNKNOWN_HOST
        effective_host_name = fix_empty(host_name) or _UNKNOWN_HOST
        normalized_status = fix_empty(status)
        effective_status = (
            normalized_status.upper() if normalized_status else EventType.NONE.value
        )
        effective_image_name = fix_empty(image_name)
        effective_environment = fix_empty(environment)

        reports: list[TraceabilityReport] = []
        for snapshot in snapshots:
            report = TraceabilityReport(
                event=DockerEvent(
                    status=effective_status,
                    id=snapshot.image,
                    from_=effective_host_id,
                    time=event_time,
                ),
                host_info=HostInfo(id=effective_host_id, name=effective_host_name),
                container=snapshot,
                image=None,
                explicit_image_id=snapshot.image,
                image_name=effective_image_name,
                environment=effective_environment,
                parents=(),
            )
            await self.bus.fire(report)
            reports.append(report)
        return reports

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query_container(
        self,
        container_id: str,
        mode: str | QueryMode | None = None,
        since: int | None = None,
        until: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query a container history; zero ``since``/``until`` mean no bound."""
        query_mode = mode if isinstance(mode, QueryMode) else QueryMode.from_string(mode)
        async with track_latency("query.container"):
            return await self.queries.query(
                container_id,
                query_mode,
                since=since or None,
                until=until or None,
            )

    def get_container_ids(self) -> list[str]:
        return sorted(self.registry.list_ids())

    async def get_last_report(self, container_id: str) -> TraceabilityReport | None:
        return await self.queries.last_report(container_id)

    async def raw_container_info(self, container_id: str) -> dict[str, Any]:
        """Return the container snapshot of the latest report."""
        report = await self.queries.last_report(container_id)
        if report is None or report.container is None:
            raise NotFound("container", container_id)
        return _wire(report.container)

    async def raw_image_info(self, image_id: str) -> dict[str, Any]:
        """Return the most recent inspection snapshot of an image."""
        inspection = await self.queries.image_inspection(image_id)
        return _wire(inspection.snapshot)

    async def register_image(
        self,
        image_id: str,
        name: str | None = None,
        time_seconds: int | None = None,
    ) -> IdentityRecord:
        """Get or create the identity of an image produced by a build.

        Reports mentioning a registered image are ingested even when
        automatic image identity creation is disabled.
        """
        event_time = time_seconds if time_seconds else int(time.time())
        async with self.store.edit(
            image_hash(image_id),
            seed=lambda: IdentityRecord.for_image(image_id, name, event_time),
        ) as record:
            assert record is not None
        if record.created and self.audit_logger is not None:
            await self.audit_logger.record(
                AuditEventType.IMAGE_IDENTITY_CREATED,
                image_id=image_id,
                image_name=record.name,
            )
        return record

    async def image_deployments(self, image_id: str) -> list[ImageDeployment]:
        return await self.queries.image_deployments(image_id)

    async def container_summaries(self) -> list[ContainerSummary]:
        """Summarize every registered container that has a history."""
        summaries: list[ContainerSummary] = []
        for container_id in self.get_container_ids():
            summary = await self.queries.summary(container_id)
            if summary is not None:
                summaries.append(summary)
        return summaries

    async def delete_container(self, container_id: str) -> bool:
        """Remove a container from the registry; its history is kept."""
        removed = await self.registry.remove(container_id)
        if removed and self.audit_logger is not None:
            await self.audit_logger.record(
                AuditEventType.CONTAINER_REMOVED, container_id=container_id
            )
        return removed

    async def close(self) -> None:
        await self.store.close()


async def build_service(
    *,
    traceability_config: TraceabilityConfig | None = None,
    store_config: StoreConfig | None = None,
    registry_config: RegistryConfig | None = None,
    audit_config: AuditConfig | None = None,
    store: IdentityStore | None = None,
) -> TraceabilityService:
    """Create and wire every component of the ledger.

    An explicit *store* takes precedence over ``store_config``.
    """
    if store is None:
        cfg = store_config or StoreConfig()
        if cfg.backend == "redis":
            store = RedisIdentityStore.from_url(cfg.redis_url, key_prefix=cfg.key_prefix)
        elif cfg.backend == "memory":
            store = InMemoryIdentityStore()
        else:
            raise ValueError(f"Unknown identity store backend: {cfg.backend!r}")

    registry = await ContainerRegistry.open(registry_config or RegistryConfig())
    bus = NotificationBus()
    ingestion = ReportIngestionEngine(store, bus, traceability_config)
    return TraceabilityService(
        store=store,
        registry=registry,
        bus=bus,
        ingestion=ingestion,
        queries=QueryEngine(store),
        audit_logger=AuditLogger(audit_config or AuditConfig()),
    )
