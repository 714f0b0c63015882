"""Pydantic models for the MCP interface.

Output models shape tool responses; FastMCP v2 serializes them
automatically.  Every result carries a ``status`` plus an optional
``error_code``/``message`` pair instead of raising to the client.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class ContainerState(BaseModel):
    """Runtime state of a container as last reported."""

    last_status: str = Field(description="Last non-NONE event status.")
    started_at: str | None = None
    finished_at: str | None = None
    running: bool = False
    paused: bool = False
    pid: int = 0
    exit_code: int = 0


class ContainerSummaryItem(BaseModel):
    id: str
    name: str | None = None
    created: str | None = None
    fingerprint: str | None = Field(
        default=None,
        description="Fingerprint hash of the container identity.",
    )
    state: ContainerState


class ImageSummaryItem(BaseModel):
    id: str | None = None
    name: str | None = None
    created: str | None = None
    fingerprint: str | None = Field(
        default=None,
        description="Fingerprint hash of the image identity, if registered.",
    )


class HostSummary(BaseModel):
    id: str | None = None
    name: str | None = None


class ContainerSummary(BaseModel):
    """Latest known deployment of one container."""

    last_update: str = Field(description="Time of the latest report, Docker format.")
    container: ContainerSummaryItem
    image: ImageSummaryItem
    environment: str | None = None
    host: HostSummary
    parents: list[str] = Field(default_factory=list)


class ImageDeployment(BaseModel):
    """One container deployed from an image."""

    container_id: str
    last_status: str


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


class SubmitResult(BaseModel):
    """Output of submit_report / submit_container_status."""

    status: str = Field(
        default="accepted",
        description="'accepted' or 'rejected'.",
    )
    reports: int = Field(default=0, description="Number of reports dispatched.")
    error_code: str | None = None
    message: str | None = None


class QueryContainerResult(BaseModel):
    """Output of query_container."""

    status: str = Field(default="ok", description="'ok', 'not_found' or 'error'.")
    container_id: str
    mode: str
    items: list[dict[str, Any]] = Field(default_factory=list)
    error_code: str | None = None
    message: str | None = None


class ContainerIdsResult(BaseModel):
    """Output of get_container_ids."""

    container_ids: list[str] = Field(default_factory=list)


class LastReportResult(BaseModel):
    """Output of get_last_report."""

    status: str = Field(default="ok", description="'ok', 'not_found' or 'error'.")
    container_id: str
    report: dict[str, Any] | None = None
    error_code: str | None = None
    message: str | None = None


class RawInfoResult(BaseModel):
    """Output of raw_container_info / raw_image_info (docker inspect shape)."""

    status: str = Field(default="ok", description="'ok', 'not_found' or 'error'.")
    id: str
    items: list[dict[str, Any]] = Field(default_factory=list)
    error_code: str | None = None
    message: str | None = None


class DeleteContainerResult(BaseModel):
    """Output of delete_container."""

    status: str = Field(default="ok", description="'ok' or 'error'.")
    container_id: str
    removed: bool = False
    error_code: str | None = None
    message: str | None = None


class ContainerSummariesResult(BaseModel):
    """Output of container_summaries."""

    status: str = Field(default="ok", description="'ok' or 'error'.")
    summaries: list[ContainerSummary] = Field(default_factory=list)
    error_code: str | None = None
    message: str | None = None


class ImageDeploymentsResult(BaseModel):
    """Output of image_deployments."""

    status: str = Field(default="ok", description="'ok', 'not_found' or 'error'.")
    image_id: str
    deployments: list[ImageDeployment] = Field(default_factory=list)
    error_code: str | None = None
    message: str | None = None


class RegisterImageResult(BaseModel):
    """Output of register_image."""

    status: str = Field(default="ok", description="'ok', 'rejected' or 'error'.")
    image_id: str
    fingerprint: str | None = None
    created: bool = False
    error_code: str | None = None
    message: str | None = None
