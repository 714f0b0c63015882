"""Unit tests for ``ReportIngestionEngine``.

Tests exercise the engine directly (no service, no MCP client) over an
in-memory identity store.
"""

from __future__ import annotations

import logging

import pytest

from tests.helpers.reports import CONTAINER_ID
from tests.helpers.reports import IMAGE_ID
from tests.helpers.reports import make_report
from tests.helpers.reports import OTHER_CONTAINER_ID
from traceledger.config import TraceabilityConfig
from traceledger.engine.ingestion import ReportIngestionEngine
from traceledger.errors import IdentityStoreError
from traceledger.identity.hashing import container_hash
from traceledger.identity.hashing import image_hash
from traceledger.identity.records import IdentityRecord
from traceledger.identity.store import InMemoryIdentityStore
from traceledger.notifications import NotificationBus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Deployments:
    """Collects new-deployment notifications."""

    def __init__(self, bus: NotificationBus) -> None:
        self.container_ids: list[str] = []
        bus.on_new_deployment(self._record)

    async def _record(self, container_id: str) -> None:
        self.container_ids.append(container_id)


async def _register_image(store: InMemoryIdentityStore, image_id: str = IMAGE_ID) -> None:
    async with store.edit(
        image_hash(image_id),
        seed=lambda: IdentityRecord.for_image(image_id, "acme/web", 1),
    ):
        pass


@pytest.fixture()
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture()
def deployments(bus) -> _Deployments:
    return _Deployments(bus)


@pytest.fixture()
def engine(store, bus) -> ReportIngestionEngine:
    return ReportIngestionEngine(store, bus, TraceabilityConfig())


# ---------------------------------------------------------------------------
# Image resolution
# ---------------------------------------------------------------------------


class TestImageRegistration:
    async def test_unregistered_image_skips_report(self, engine, store, deployments):
        result = await engine.ingest(make_report())
        assert result.ok
        assert result.skipped_reason == "image_not_registered"
        assert await store.get(container_hash(CONTAINER_ID)) is None
        assert deployments.container_ids == []

    async def test_auto_create_image_identity(self, store, bus, deployments):
        engine = ReportIngestionEngine(
            store, bus, TraceabilityConfig(auto_create_image_identity=True)
        )
        result = await engine.ingest(make_report(time=77))
        assert result.image_created
        image = await store.get(image_hash(IMAGE_ID))
        assert image is not None
        assert image.name == "acme/web:1.0"
        assert image.timestamp == 77
        assert CONTAINER_ID in image.references

    async def test_auto_create_happens_once(self, store, bus):
        engine = ReportIngestionEngine(
            store, bus, TraceabilityConfig(auto_create_image_identity=True)
        )
        first = await engine.ingest(make_report(time=1))
        second = await engine.ingest(make_report(time=2))
        assert first.image_created
        assert not second.image_created

    async def test_report_without_any_image_still_records_container(
        self, engine, store
    ):
        result = await engine.ingest(make_report(image_id=None))
        assert result.image_id is None
        assert result.record_added
        container = await store.get(container_hash(CONTAINER_ID))
        assert len(container.deployment) == 1

    async def test_image_id_is_recovered_from_history(self, engine, store):
        await _register_image(store)
        await engine.ingest(make_report(status="RUN", time=10, image_id=IMAGE_ID))
        result = await engine.ingest(make_report(status="DIE", time=20, image_id=None))

        assert result.image_id == IMAGE_ID
        container = await store.get(container_hash(CONTAINER_ID))
        assert len(container.deployment) == 2
        assert container.deployment.resolved_image_id() == IMAGE_ID

    async def test_blank_image_id_is_recovered_from_history(self, engine, store):
        await _register_image(store)
        await engine.ingest(make_report(status="RUN", time=10, image_id=IMAGE_ID))
        result = await engine.ingest(
            make_report(status="DIE", time=20, image_id=None, imageId="")
        )

        assert result.error is None
        assert result.image_id == IMAGE_ID
        container = await store.get(container_hash(CONTAINER_ID))
        assert [r.status for r in container.deployment.records] == ["RUN", "DIE"]


# ---------------------------------------------------------------------------
# Deployment history
# ---------------------------------------------------------------------------


class TestDeploymentHistory:
    async def test_creates_container_identity(self, engine, store):
        await _register_image(store)
        result = await engine.ingest(make_report())
        assert result.container_created
        assert result.record_added
        assert result.reference_added
        container = await store.get(container_hash(CONTAINER_ID))
        assert container.name == "/web-frontend"
        assert container.deployment.last_status() == "START"

    async def test_same_report_twice_is_recorded_once(self, engine, store):
        await _register_image(store)
        report = make_report()
        await engine.ingest(report)
        second = await engine.ingest(report)
        assert not second.record_added
        assert not second.reference_added
        container = await store.get(container_hash(CONTAINER_ID))
        assert len(container.deployment) == 1

    async def test_image_references_every_container(self, engine, store):
        await _register_image(store)
        await engine.ingest(make_report(container_id=CONTAINER_ID))
        await engine.ingest(make_report(container_id=OTHER_CONTAINER_ID))
        image = await store.get(image_hash(IMAGE_ID))
        assert image.references.container_ids == [CONTAINER_ID, OTHER_CONTAINER_ID]

    async def test_report_without_container_leaves_history_alone(self, engine, store):
        await _register_image(store)
        result = await engine.ingest(make_report(container_id=None))
        assert result.container_id is None
        assert not result.record_added


# ---------------------------------------------------------------------------
# Inspection cache
# ---------------------------------------------------------------------------


class TestInspectionCache:
    async def test_image_snapshot_is_cached(self, engine, store):
        await _register_image(store)
        result = await engine.ingest(make_report(time=100, with_image=True))
        assert result.inspection_updated
        image = await store.get(image_hash(IMAGE_ID))
        assert image.inspection.report_time == 100
        assert image.inspection.snapshot.id == IMAGE_ID

    async def test_older_snapshot_keeps_newer_data(self, engine, store):
        await _register_image(store)
        await engine.ingest(make_report(time=100, with_image=True))
        await engine.ingest(
            make_report(time=50, with_image=True, image_name="acme/web:old")
        )
        image = await store.get(image_hash(IMAGE_ID))
        assert image.inspection.report_time == 100
        assert image.inspection.image_name == "acme/web:old"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotifications:
    async def test_fires_on_every_ingestion_by_default(
        self, engine, store, deployments
    ):
        await _register_image(store)
        report = make_report()
        await engine.ingest(report)
        await engine.ingest(report)
        assert deployments.container_ids == [CONTAINER_ID, CONTAINER_ID]

    async def test_first_sighting_only(self, store, bus, deployments):
        await _register_image(store)
        engine = ReportIngestionEngine(
            store, bus, TraceabilityConfig(notify_first_sighting_only=True)
        )
        await engine.ingest(make_report(time=1))
        await engine.ingest(make_report(status="die", time=2))
        assert deployments.container_ids == [CONTAINER_ID]

    async def test_failing_observer_does_not_break_ingestion(
        self, engine, store, bus, deployments
    ):
        async def broken(container_id: str) -> None:
            raise RuntimeError("listener down")

        bus.on_new_deployment(broken)
        await _register_image(store)
        result = await engine.ingest(make_report())
        assert result.ok
        assert result.notified
        assert deployments.container_ids == [CONTAINER_ID]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class _BrokenStore(InMemoryIdentityStore):
    async def _read(self, fingerprint: str) -> str | None:
        raise IdentityStoreError("backend unavailable")


class TestFailures:
    async def test_store_failure_is_logged_not_raised(self, bus, caplog):
        engine = ReportIngestionEngine(_BrokenStore(), bus)
        with caplog.at_level(logging.WARNING, logger="traceledger.engine.ingestion"):
            result = await engine.ingest(make_report())
        assert not result.ok
        assert "backend unavailable" in result.error
        assert "Cannot process the report" in caplog.text

    async def test_invalid_container_id_is_logged_not_raised(self, engine, store):
        await _register_image(store)
        result = await engine.ingest(make_report(container_id="short"))
        assert not result.ok
        assert "InvalidIdentifier" in result.error
