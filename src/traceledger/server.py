"""TraceLedger — FastMCP v2 server exposing the traceability operations.

``create_server(service)`` registers one tool per service operation on a
fresh ``FastMCP`` app.  Tools never raise to the client: parse errors,
unknown identities and store failures come back as result models with a
``status`` and ``error_code``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

from fastmcp import FastMCP

from traceledger.config import AuditConfig
from traceledger.config import RegistryConfig
from traceledger.config import StoreConfig
from traceledger.config import TraceabilityConfig
from traceledger.engine.query import QueryMode
from traceledger.errors import IdentityStoreError
from traceledger.errors import InvalidIdentifier
from traceledger.errors import MalformedReport
from traceledger.errors import NotFound
from traceledger.models.schemas import ContainerIdsResult
from traceledger.models.schemas import ContainerSummariesResult
from traceledger.models.schemas import DeleteContainerResult
from traceledger.models.schemas import ImageDeploymentsResult
from traceledger.models.schemas import LastReportResult
from traceledger.models.schemas import QueryContainerResult
from traceledger.models.schemas import RawInfoResult
from traceledger.models.schemas import RegisterImageResult
from traceledger.models.schemas import SubmitResult
from traceledger.observability import track_latency
from traceledger.service import build_service
from traceledger.service import TraceabilityService

logger = logging.getLogger(__name__)


def _submit_rejected(error_code: str, message: str) -> SubmitResult:
    return SubmitResult(status="rejected", error_code=error_code, message=message)


def _error_fields(exc: Exception) -> dict[str, str]:
    """Map a core exception onto ``status``/``error_code``/``message``."""
    if isinstance(exc, NotFound):
        return {"status": "not_found", "error_code": "not_found", "message": str(exc)}
    if isinstance(exc, InvalidIdentifier):
        return {
            "status": "rejected",
            "error_code": "invalid_identifier",
            "message": str(exc),
        }
    return {
        "status": "error",
        "error_code": "identity_store_error",
        "message": str(exc),
    }


def create_server(service: TraceabilityService, name: str = "TraceLedger") -> FastMCP:
    """Build a FastMCP app whose tools delegate to *service*."""
    mcp = FastMCP(name)

    @mcp.tool
    async def submit_report(report: str | dict[str, Any]) -> SubmitResult:
        """Submit one traceability report sent by a monitored host.

        Args:
            report: The report as a JSON document (string or object).
        """
        async with track_latency("mcp.submit_report") as timer:
            try:
                await service.submit_report(report)
            except MalformedReport as exc:
                timer.ok = False
                return _submit_rejected("malformed_report", str(exc))
            return SubmitResult(reports=1)

    @mcp.tool
    async def submit_container_status(
        inspect_data: str | list[dict[str, Any]],
        host_id: str | None = None,
        host_name: str | None = None,
        status: str | None = None,
        time: int | None = None,
        environment: str | None = None,
        image_name: str | None = None,
    ) -> SubmitResult:
        """Submit ``docker inspect`` output for one or more containers.

        Args:
            inspect_data: Array of container snapshots (JSON string or list).
            host_id: Reporting host ID; defaults to "unknown".
            host_name: Reporting host name; defaults to "unknown".
            status: Event status; defaults to NONE.
            time: Event time in epoch seconds; defaults to now.
            environment: Deployment environment label.
            image_name: Human-readable image name.
        """
        async with track_latency("mcp.submit_container_status") as timer:
            try:
                reports = await service.submit_container_status(
                    inspect_data,
                    host_id=host_id,
                    host_name=host_name,
                    status=status,
                    time_seconds=time,
                    environment=environment,
                    image_name=image_name,
                )
            except MalformedReport as exc:
                timer.ok = False
                return _submit_rejected("malformed_report", str(exc))
            return SubmitResult(reports=len(reports))

    @mcp.tool
    async def query_container(
        container_id: str,
        mode: str | None = None,
        since: int | None = None,
        until: int | None = None,
    ) -> QueryContainerResult:
        """Return the deployment history of a container.

        Args:
            container_id: Full 64-character container ID.
            mode: inspectContainer (default), inspectImage, events, hostInfo or all.
            since: Earliest event time, inclusive; 0 means no bound.
            until: Latest event time, inclusive; 0 means no bound.
        """
        query_mode = QueryMode.from_string(mode)
        async with track_latency("mcp.query_container") as timer:
            try:
                items = await service.query_container(
                    container_id, query_mode, since=since, until=until
                )
            except (NotFound, InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return QueryContainerResult(
                    container_id=container_id,
                    mode=query_mode.value,
                    **_error_fields(exc),
                )
            return QueryContainerResult(
                container_id=container_id, mode=query_mode.value, items=items
            )

    @mcp.tool
    async def get_container_ids() -> ContainerIdsResult:
        """List every container ID known to the registry."""
        async with track_latency("mcp.get_container_ids"):
            return ContainerIdsResult(container_ids=service.get_container_ids())

    @mcp.tool
    async def get_last_report(container_id: str) -> LastReportResult:
        """Return the latest report stored for a container.

        Args:
            container_id: Full 64-character container ID.
        """
        async with track_latency("mcp.get_last_report") as timer:
            try:
                report = await service.get_last_report(container_id)
            except (InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return LastReportResult(container_id=container_id, **_error_fields(exc))
            if report is None:
                return LastReportResult(
                    container_id=container_id,
                    status="not_found",
                    error_code="not_found",
                    message=str(NotFound("container", container_id)),
                )
            return LastReportResult(
                container_id=container_id,
                report=report.model_dump(
                    mode="json", by_alias=True, exclude_unset=True
                ),
            )

    @mcp.tool
    async def raw_container_info(container_id: str) -> RawInfoResult:
        """Return the container snapshot of the latest report (inspect shape).

        Args:
            container_id: Full 64-character container ID.
        """
        async with track_latency("mcp.raw_container_info") as timer:
            try:
                snapshot = await service.raw_container_info(container_id)
            except (NotFound, InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return RawInfoResult(id=container_id, **_error_fields(exc))
            return RawInfoResult(id=container_id, items=[snapshot])

    @mcp.tool
    async def raw_image_info(image_id: str) -> RawInfoResult:
        """Return the latest inspection snapshot of an image (inspect shape).

        Args:
            image_id: Full 64-character image ID.
        """
        async with track_latency("mcp.raw_image_info") as timer:
            try:
                snapshot = await service.raw_image_info(image_id)
            except (NotFound, InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return RawInfoResult(id=image_id, **_error_fields(exc))
            return RawInfoResult(id=image_id, items=[snapshot])

    @mcp.tool
    async def delete_container(container_id: str) -> DeleteContainerResult:
        """Forget a container in the registry; its history is kept.

        Args:
            container_id: Container ID as listed by get_container_ids.
        """
        async with track_latency("mcp.delete_container") as timer:
            try:
                removed = await service.delete_container(container_id)
            except OSError as exc:
                timer.ok = False
                return DeleteContainerResult(
                    container_id=container_id,
                    status="error",
                    error_code="registry_error",
                    message=str(exc),
                )
            return DeleteContainerResult(container_id=container_id, removed=removed)

    @mcp.tool
    async def container_summaries() -> ContainerSummariesResult:
        """Summarize the latest deployment of every registered container."""
        async with track_latency("mcp.container_summaries") as timer:
            try:
                summaries = await service.container_summaries()
            except IdentityStoreError as exc:
                timer.ok = False
                return ContainerSummariesResult(**_error_fields(exc))
            return ContainerSummariesResult(summaries=summaries)

    @mcp.tool
    async def register_image(
        image_id: str,
        name: str | None = None,
        time: int | None = None,
    ) -> RegisterImageResult:
        """Register an image so that reports about it are recorded.

        Args:
            image_id: Full 64-character image ID.
            name: Human-readable image name.
            time: Registration time in epoch seconds; defaults to now.
        """
        async with track_latency("mcp.register_image") as timer:
            try:
                record = await service.register_image(
                    image_id, name=name, time_seconds=time
                )
            except (InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return RegisterImageResult(image_id=image_id, **_error_fields(exc))
            return RegisterImageResult(
                image_id=image_id,
                fingerprint=record.fingerprint,
                created=record.created,
            )

    @mcp.tool
    async def image_deployments(image_id: str) -> ImageDeploymentsResult:
        """List the containers deployed from an image with their last status.

        Args:
            image_id: Full 64-character image ID.
        """
        async with track_latency("mcp.image_deployments") as timer:
            try:
                deployments = await service.image_deployments(image_id)
            except (NotFound, InvalidIdentifier, IdentityStoreError) as exc:
                timer.ok = False
                return ImageDeploymentsResult(image_id=image_id, **_error_fields(exc))
            return ImageDeploymentsResult(image_id=image_id, deployments=deployments)

    return mcp


async def configure(
    *,
    store_backend: str = "memory",
    redis_url: str = "redis://localhost:6379",
    key_prefix: str = "traceledger",
    registry_path: str = "traceledger_containers.json",
    audit_path: str = "traceledger_audit.jsonl",
    audit_enabled: bool = True,
    auto_create_image_identity: bool = False,
    notify_first_sighting_only: bool = False,
) -> tuple[TraceabilityService, FastMCP]:
    """Build the service from plain settings and wrap it in an MCP app."""
    service = await build_service(
        traceability_config=TraceabilityConfig(
            auto_create_image_identity=auto_create_image_identity,
            notify_first_sighting_only=notify_first_sighting_only,
        ),
        store_config=StoreConfig(
            backend=store_backend, redis_url=redis_url, key_prefix=key_prefix
        ),
        registry_config=RegistryConfig(file_path=registry_path),
        audit_config=AuditConfig(file_path=audit_path, enabled=audit_enabled),
    )
    return service, create_server(service)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="traceledger")
    parser.add_argument("--store", choices=("memory", "redis"), default="memory")
    parser.add_argument("--redis-url", default="redis://localhost:6379")
    parser.add_argument("--key-prefix", default="traceledger")
    parser.add_argument("--registry", default="traceledger_containers.json")
    parser.add_argument("--audit", default="traceledger_audit.jsonl")
    parser.add_argument("--no-audit", action="store_true")
    parser.add_argument("--auto-create-images", action="store_true")
    parser.add_argument("--notify-first-sighting-only", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> int:
    service, mcp = await configure(
        store_backend=args.store,
        redis_url=args.redis_url,
        key_prefix=args.key_prefix,
        registry_path=args.registry,
        audit_path=args.audit,
        audit_enabled=not args.no_audit,
        auto_create_image_identity=args.auto_create_images,
        notify_first_sighting_only=args.notify_first_sighting_only,
    )
    try:
        await mcp.run_async()
    finally:
        await service.close()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    logger.info("Starting TraceLedger with the %s identity store", args.store)
    raise SystemExit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
