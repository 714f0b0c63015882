"""Traceability report — the unit of data submitted by reporting hosts.

Field names follow the JSON produced by the Docker remote API and by the
reporting clients (``hostInfo``, ``imageId``, ``Id``, ``Name``...).  The
container and image inspection snapshots are opaque: only the handful of
fields the ledger needs are typed, everything else is kept as-is and
written back unchanged.
"""

from __future__ import annotations

import json
from datetime import datetime
from datetime import UTC
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from traceledger.errors import MalformedReport
from traceledger.models.events import EventType


def fix_empty(value: str | None) -> str | None:
    """Return ``None`` for blank strings, the stripped value otherwise."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class DockerEvent(BaseModel):
    """One Docker event as reported by ``docker events``."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    status: str = Field(description="Raw event status, e.g. 'start' or 'die'.")
    id: str | None = Field(
        default=None,
        description="Subject of the event (container or image ID).",
    )
    from_: str | None = Field(
        default=None,
        alias="from",
        description="Origin of the event (image or reporting host).",
    )
    time: int = Field(description="Unix time of the event, in seconds.")

    @property
    def event_type(self) -> EventType:
        return EventType.from_string(self.status)

    @property
    def event_type_str(self) -> str:
        return self.status.upper()

    def describe(self) -> str:
        when = datetime.fromtimestamp(self.time, tz=UTC).isoformat()
        return f"{when} {self.id} {self.event_type_str} @ {self.from_}"


class HostInfo(BaseModel):
    """Identity of the Docker host that produced the report."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="ID")
    name: str | None = Field(default=None, alias="Name")


class ContainerSnapshot(BaseModel):
    """Output of ``docker inspect <container>``; unknown fields pass through."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str = Field(alias="Id")
    name: str | None = Field(default=None, alias="Name")
    image: str | None = Field(
        default=None,
        alias="Image",
        description="Full ID of the image the container runs.",
    )
    created: str | None = Field(default=None, alias="Created")
    state: dict[str, Any] | None = Field(default=None, alias="State")


class ImageSnapshot(BaseModel):
    """Output of ``docker inspect <image>``; unknown fields pass through."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str = Field(alias="Id")
    created: str | None = Field(default=None, alias="Created")
    parent: str | None = Field(default=None, alias="Parent")


class TraceabilityReport(BaseModel):
    """An event plus the container/image state observed alongside it."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    event: DockerEvent
    host_info: HostInfo = Field(alias="hostInfo")
    container: ContainerSnapshot | None = None
    image: ImageSnapshot | None = None
    explicit_image_id: str | None = Field(
        default=None,
        alias="imageId",
        description="Image ID override; takes precedence over the snapshots.",
    )
    image_name: str | None = Field(default=None, alias="imageName")
    environment: str | None = None
    parents: tuple[str, ...] = Field(
        default=(),
        description="Ancestor image IDs, nearest parent first.",
    )

    # -- derived --

    @property
    def image_id(self) -> str | None:
        """Resolve the image ID: explicit field, image snapshot, container."""
        if fix_empty(self.explicit_image_id):
            return self.explicit_image_id
        if self.image is not None and fix_empty(self.image.id):
            return self.image.id
        if self.container is not None and fix_empty(self.container.image):
            return self.container.image
        return None

    @property
    def container_id(self) -> str | None:
        if self.container is not None and fix_empty(self.container.id):
            return self.container.id
        return None

    # -- (de)serialization --

    def to_json(self) -> str:
        """Serialize using the wire field names, omitting unset fields."""
        return self.model_dump_json(by_alias=True, exclude_unset=True)

    @classmethod
    def from_payload(cls, payload: Any) -> TraceabilityReport:
        """Validate a deserialized submission, raising ``MalformedReport``."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise MalformedReport(_first_error(exc)) from exc

    @classmethod
    def from_json(cls, raw: str | bytes) -> TraceabilityReport:
        """Parse a serialized submission, raising ``MalformedReport``."""
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedReport(f"Invalid JSON: {exc}") from exc
        return cls.from_payload(payload)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid report"
    err = errors[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    message = str(err.get("msg", "Invalid report"))
    return f"{location}: {message}" if location else message


__all__ = [
    "ContainerSnapshot",
    "DockerEvent",
    "HostInfo",
    "ImageSnapshot",
    "TraceabilityReport",
]
