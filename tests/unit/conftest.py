"""Unit test fixtures — in-memory ledger service and FastMCP client."""

from __future__ import annotations

import pytest
from fastmcp import Client

from traceledger.config import AuditConfig
from traceledger.config import RegistryConfig
from traceledger.config import TraceabilityConfig
from traceledger.identity.store import InMemoryIdentityStore
from traceledger.observability import reset_latency_metrics
from traceledger.server import create_server
from traceledger.service import build_service


@pytest.fixture()
def registry_config(tmp_path) -> RegistryConfig:
    return RegistryConfig(file_path=str(tmp_path / "containers.json"))


@pytest.fixture()
def audit_config(tmp_path) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "audit.jsonl"))


@pytest.fixture()
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture()
async def service(store, registry_config, audit_config):
    """Yield a service wired to an in-memory identity store."""
    svc = await build_service(
        traceability_config=TraceabilityConfig(),
        registry_config=registry_config,
        audit_config=audit_config,
        store=store,
    )
    yield svc
    await svc.close()


@pytest.fixture()
async def mcp_client(service):
    """Yield a FastMCP Client wired to a server over ``service``."""
    async with Client(create_server(service)) as client:
        yield client


@pytest.fixture(autouse=True)
def clean_latency_metrics():
    reset_latency_metrics()
    yield
    reset_latency_metrics()
