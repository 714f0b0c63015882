"""Durable registry of known container IDs.

The registry is a JSON file holding a sorted list of container IDs.  It is
loaded once by :meth:`ContainerRegistry.open` and rewritten on every call
that actually changes membership.  File I/O runs through
``asyncio.to_thread`` under an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from functools import partial
from pathlib import Path

from traceledger.config import RegistryConfig

logger = logging.getLogger(__name__)


class ContainerRegistry:
    """Set of container IDs available for listing."""

    def __init__(
        self, config: RegistryConfig, container_ids: set[str] | None = None
    ) -> None:
        self.config = config
        self._container_ids: set[str] = set(container_ids or ())
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, config: RegistryConfig) -> ContainerRegistry:
        """Load the registry from disk; a missing file is an empty registry."""
        container_ids = await asyncio.to_thread(partial(cls._load, config.file_path))
        return cls(config, container_ids)

    @staticmethod
    def _load(path: str) -> set[str]:
        file = Path(path)
        if not file.exists():
            return set()
        try:
            data = json.loads(file.read_text())
        except (OSError, ValueError):
            logger.error(
                "Failed to load the container registry from %s", path, exc_info=True
            )
            return set()
        if not isinstance(data, dict):
            logger.error("Unexpected container registry layout in %s", path)
            return set()
        return {str(container_id) for container_id in data.get("container_ids", [])}

    @staticmethod
    def _write(path: str, container_ids: list[str]) -> None:
        file = Path(path)
        tmp = file.with_name(file.name + ".tmp")
        tmp.write_text(json.dumps({"container_ids": container_ids}, indent=2) + "\n")
        os.replace(tmp, file)

    async def _save(self) -> None:
        await asyncio.to_thread(
            partial(self._write, self.config.file_path, sorted(self._container_ids))
        )

    # -- mutations --

    async def add(self, container_id: str) -> bool:
        """Register *container_id*; return ``True`` if it was new."""
        async with self._lock:
            if container_id in self._container_ids:
                return False
            self._container_ids.add(container_id)
            try:
                await self._save()
            except OSError:
                self._container_ids.discard(container_id)
                raise
        logger.debug("Registered containerId=%s", container_id)
        return True

    async def remove(self, container_id: str) -> bool:
        """Unregister *container_id*; return ``True`` if it was present."""
        async with self._lock:
            if container_id not in self._container_ids:
                return False
            self._container_ids.discard(container_id)
            try:
                await self._save()
            except OSError:
                self._container_ids.add(container_id)
                raise
        logger.debug("Removed containerId=%s", container_id)
        return True

    # -- read --

    def list_ids(self) -> set[str]:
        """Return a snapshot copy of the registered container IDs."""
        return set(self._container_ids)

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._container_ids

    def __len__(self) -> int:
        return len(self._container_ids)
