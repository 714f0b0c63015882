"""Ledger configuration.

One frozen dataclass per subsystem.  Values are passed in by the caller
(see ``traceledger.server.configure``); nothing is read from the
environment here.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TraceabilityConfig:
    """Behaviour switches for report ingestion."""

    # Create image identities for images that were never registered
    auto_create_image_identity: bool = False
    # Fire "new deployment" only when the container identity is created
    notify_first_sighting_only: bool = False


@dataclass(frozen=True)
class StoreConfig:
    """Identity store backend selection."""

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "traceledger"


@dataclass(frozen=True)
class RegistryConfig:
    """Location of the durable container registry."""

    file_path: str = "traceledger_containers.json"


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "traceledger_audit.jsonl"
    enabled: bool = True
