"""Report ingestion — correlate a report with container and image identities.

Ingestion is best effort: a report that cannot be stored is logged and
dropped, never raised back to the reporting host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from traceledger.config import TraceabilityConfig
from traceledger.identity.hashing import container_hash
from traceledger.identity.hashing import image_hash
from traceledger.identity.records import IdentityRecord
from traceledger.identity.store import IdentityStore
from traceledger.models.report import fix_empty
from traceledger.models.report import TraceabilityReport
from traceledger.notifications import NotificationBus

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """What one ingestion call changed."""

    image_id: str | None = None
    container_id: str | None = None
    image_created: bool = False
    container_created: bool = False
    record_added: bool = False
    reference_added: bool = False
    inspection_updated: bool = False
    notified: bool = False
    skipped_reason: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReportIngestionEngine:
    """Applies traceability reports to the identity store."""

    def __init__(
        self,
        store: IdentityStore,
        bus: NotificationBus,
        config: TraceabilityConfig | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self.config = config or TraceabilityConfig()

    async def ingest(self, report: TraceabilityReport) -> IngestionResult:
        """Ingest *report*; failures are logged and reported in the result."""
        result = IngestionResult()
        logger.debug("Got an event for image %s", report.image_id)
        try:
            await self._process(report, result)
        except Exception as exc:
            logger.warning(
                "Cannot process the report for containerId=%s",
                report.container_id,
                exc_info=True,
            )
            result.error = f"{type(exc).__name__}: {exc}"
        return result

    async def _resolve_image_id(self, report: TraceabilityReport) -> str | None:
        image_id = report.image_id
        if image_id is not None:
            return image_id

        # Try to restore the image ID from the container's earlier reports
        container_id = report.container_id
        if container_id is None:
            return None
        container = await self._store.get(container_hash(container_id))
        if container is None or container.deployment is None:
            return None
        return container.deployment.resolved_image_id()

    async def _process(
        self, report: TraceabilityReport, result: IngestionResult
    ) -> None:
        event_time = report.event.time
        image_id = await self._resolve_image_id(report)
        result.image_id = image_id

        image_fp: str | None = None
        if image_id is not None:
            image_fp = image_hash(image_id)
            image = await self._store.get(image_fp)
            if image is None and self.config.auto_create_image_identity:
                logger.debug("Creating a new identity for image %s", image_id)
                async with self._store.edit(
                    image_fp,
                    seed=lambda: IdentityRecord.for_image(
                        image_id, report.image_name, event_time
                    ),
                ) as image:
                    result.image_created = image is not None and image.created
            if image is None:
                logger.debug(
                    "Cannot get or create an identity for image %s. "
                    "Most probably, the image has not been registered. "
                    "Report will be ignored",
                    image_id,
                )
                result.skipped_reason = "image_not_registered"
                return
        else:
            logger.debug(
                "Cannot retrieve the imageId for container %s. "
                "Image identities won't be updated",
                report.container_id,
            )

        container = report.container
        if container is not None:
            container_id = container.id
            result.container_id = container_id
            container_name = fix_empty(container.name)
            async with self._store.edit(
                container_hash(container_id),
                seed=lambda: IdentityRecord.for_container(
                    container_id, container_name, event_time
                ),
            ) as record:
                assert record is not None
                result.container_created = record.created
                result.record_added = record.add_deployment(report)

            if image_fp is not None:
                async with self._store.edit(image_fp) as image_record:
                    if image_record is not None:
                        result.reference_added = image_record.add_reference(
                            container_id
                        )

            if result.container_created or not self.config.notify_first_sighting_only:
                await self._bus.fire_new_deployment(container_id)
                result.notified = True

        if report.image is not None and image_fp is not None:
            async with self._store.edit(image_fp) as image_record:
                if image_record is not None:
                    result.inspection_updated = image_record.update_inspection(
                        event_time, report.image, report.image_name
                    )
