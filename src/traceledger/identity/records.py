"""Identity records and the facets attached to them.

One ``IdentityRecord`` exists per fingerprint hash.  Container records
carry a ``DeploymentHistory``; image records carry an
``ImageReferenceIndex`` and an ``ImageInspectionCache``.  Records are
plain data: locking and persistence belong to the identity store, which
hands out a record only while holding that record's lock.
"""

from __future__ import annotations

from bisect import bisect_left
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_serializer
from pydantic import PrivateAttr

from traceledger.identity.hashing import container_hash
from traceledger.identity.hashing import fingerprint_hash
from traceledger.identity.hashing import image_hash
from traceledger.models.events import EventType
from traceledger.models.report import fix_empty
from traceledger.models.report import ImageSnapshot
from traceledger.models.report import TraceabilityReport


def _wire_dump(model: BaseModel) -> dict[str, Any]:
    # Keep opaque inspection payloads exactly as submitted.
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ---------------------------------------------------------------------------
# Deployment records
# ---------------------------------------------------------------------------


class DeploymentRecord(BaseModel):
    """One report stored in a container's deployment history."""

    model_config = {"frozen": True}

    report: TraceabilityReport

    @field_serializer("report")
    def _serialize_report(self, report: TraceabilityReport) -> dict[str, Any]:
        return _wire_dump(report)

    @property
    def event_time(self) -> int:
        return self.report.event.time

    @property
    def status(self) -> str:
        return self.report.event.status

    @property
    def sort_key(self) -> tuple[int, str]:
        """Event time first, status string as tie-break."""
        return (self.report.event.time, self.report.event.status)

    @property
    def container_id(self) -> str | None:
        return self.report.container_id

    @property
    def container_fingerprint_hash(self) -> str | None:
        container_id = self.report.container_id
        return container_hash(container_id) if container_id is not None else None

    @property
    def image_fingerprint_hash(self) -> str | None:
        image_id = self.report.image_id
        return image_hash(image_id) if image_id is not None else None


class DeploymentHistory(BaseModel):
    """Time-ordered, deduplicated deployment records of one container."""

    records: list[DeploymentRecord] = Field(default_factory=list)

    def add(self, record: DeploymentRecord) -> bool:
        """Insert *record* in order; return ``False`` if it is already known.

        A record is a duplicate only when an existing record carries an
        equal report.  Distinct reports sharing a (time, status) key are
        all kept, in submission order.
        """
        keys = [existing.sort_key for existing in self.records]
        index = bisect_left(keys, record.sort_key)
        while index < len(keys) and keys[index] == record.sort_key:
            if self.records[index].report == record.report:
                return False
            index += 1
        self.records.insert(index, record)
        return True

    def latest(self) -> DeploymentRecord | None:
        return self.records[-1] if self.records else None

    def last_status(self) -> str:
        """Return the most recent status, ignoring synthetic ``NONE`` events.

        Unknown statuses are accepted since newer Docker versions may
        introduce new event types.
        """
        last_status: str | None = None
        for record in self.records:
            if EventType.from_string(record.status) is not EventType.NONE:
                last_status = record.status.upper()
        return last_status if last_status is not None else EventType.UNKNOWN.value

    def resolved_image_id(self) -> str | None:
        """Return the first image ID known for this container.

        Later events (e.g. ``die`` after the image was deleted) may arrive
        without image linkage, so the earliest record wins.
        """
        for record in self.records:
            image_id = record.report.image_id
            if image_id is not None:
                return image_id
        return None

    def __len__(self) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# Image facets
# ---------------------------------------------------------------------------


class ImageReferenceIndex(BaseModel):
    """Sorted set of container IDs deployed from one image."""

    container_ids: list[str] = Field(default_factory=list)

    def add(self, container_id: str) -> bool:
        index = bisect_left(self.container_ids, container_id)
        if (
            index < len(self.container_ids)
            and self.container_ids[index] == container_id
        ):
            return False
        self.container_ids.insert(index, container_id)
        return True

    def __contains__(self, container_id: object) -> bool:
        return container_id in self.container_ids

    def __len__(self) -> int:
        return len(self.container_ids)


class ImageInspectionCache(BaseModel):
    """Most recent ``docker inspect`` output submitted for one image."""

    report_time: int = Field(description="Unix time of the stored snapshot.")
    image_name: str | None = None
    snapshot: ImageSnapshot

    @field_serializer("snapshot")
    def _serialize_snapshot(self, snapshot: ImageSnapshot) -> dict[str, Any]:
        return _wire_dump(snapshot)

    def update(
        self,
        report_time: int,
        snapshot: ImageSnapshot,
        image_name: str | None,
    ) -> bool:
        """Apply a newer snapshot; return whether anything changed.

        The snapshot is replaced only by a strictly newer report, while
        the image name always takes the latest submitted value.
        """
        changed = False
        if report_time > self.report_time:
            self.snapshot = snapshot
            self.report_time = report_time
            changed = True
        name = fix_empty(image_name)
        if name != self.image_name:
            self.image_name = name
            changed = True
        return changed


# ---------------------------------------------------------------------------
# IdentityRecord
# ---------------------------------------------------------------------------


class IdentityKind(str, Enum):
    container = "container"
    image = "image"


class IdentityRecord(BaseModel):
    """Durable record of one container or image identity."""

    fingerprint: str = Field(description="Fingerprint hash, the storage key.")
    identifier: str = Field(description="Full 64-character Docker ID.")
    kind: IdentityKind
    name: str | None = Field(default=None, description="Human-readable name.")
    timestamp: int = Field(description="Unix time of the first sighting.")
    deployment: DeploymentHistory | None = None
    references: ImageReferenceIndex | None = None
    inspection: ImageInspectionCache | None = None

    _dirty: bool = PrivateAttr(default=False)
    _created: bool = PrivateAttr(default=False)

    @classmethod
    def for_container(
        cls, container_id: str, name: str | None, timestamp: int
    ) -> IdentityRecord:
        return cls(
            fingerprint=fingerprint_hash(container_id),
            identifier=container_id,
            kind=IdentityKind.container,
            name=fix_empty(name),
            timestamp=timestamp,
        )

    @classmethod
    def for_image(
        cls, image_id: str, name: str | None, timestamp: int
    ) -> IdentityRecord:
        return cls(
            fingerprint=fingerprint_hash(image_id),
            identifier=image_id,
            kind=IdentityKind.image,
            name=fix_empty(name),
            timestamp=timestamp,
        )

    @property
    def display_name(self) -> str:
        label = "Container" if self.kind is IdentityKind.container else "Image"
        return f"{label} {self.name or self.identifier}"

    # -- change tracking --

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def created(self) -> bool:
        """Whether this record was created by the current edit."""
        return self._created

    def mark_created(self) -> None:
        self._created = True
        self._dirty = True

    def mark_clean(self) -> None:
        self._dirty = False

    # -- mutations --

    def add_deployment(self, report: TraceabilityReport) -> bool:
        if self.deployment is None:
            self.deployment = DeploymentHistory()
            self._dirty = True
        added = self.deployment.add(DeploymentRecord(report=report))
        self._dirty = self._dirty or added
        return added

    def add_reference(self, container_id: str) -> bool:
        if self.references is None:
            self.references = ImageReferenceIndex()
            self._dirty = True
        added = self.references.add(container_id)
        self._dirty = self._dirty or added
        return added

    def update_inspection(
        self,
        report_time: int,
        snapshot: ImageSnapshot,
        image_name: str | None,
    ) -> bool:
        if self.inspection is None:
            self.inspection = ImageInspectionCache(
                report_time=report_time,
                image_name=fix_empty(image_name),
                snapshot=snapshot,
            )
            self._dirty = True
            return True
        updated = self.inspection.update(report_time, snapshot, image_name)
        self._dirty = self._dirty or updated
        return updated
