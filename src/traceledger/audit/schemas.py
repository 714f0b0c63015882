"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable ledger activity."""

    REPORT_RECEIVED = "REPORT_RECEIVED"
    DEPLOYMENT_RECORDED = "DEPLOYMENT_RECORDED"
    IMAGE_IDENTITY_CREATED = "IMAGE_IDENTITY_CREATED"
    CONTAINER_REGISTERED = "CONTAINER_REGISTERED"
    CONTAINER_REMOVED = "CONTAINER_REMOVED"


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the activity was recorded.",
    )
    event_type: AuditEventType = Field(
        description="Category of the audited activity.",
    )
    container_id: str | None = Field(
        default=None,
        description="Container the activity concerns, if any.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Activity-specific data.",
    )
