"""In-process latency metrics for ingestion, queries and MCP tools."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class LatencySummary:
    """Aggregated latency metrics for one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, duration_ms: float, ok: bool) -> None:
        self.count += 1
        if not ok:
            self.error_count += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if self.count == 1:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.count if self.count else 0.0, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class _LatencyRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, LatencySummary] = {}

    def record(self, *, operation: str, duration_ms: float, ok: bool) -> None:
        normalized = max(float(duration_ms), 0.0)
        with self._lock:
            self._stats.setdefault(operation, LatencySummary()).add(normalized, ok)
        logger.info(
            "latency operation=%s duration_ms=%.3f ok=%s",
            operation,
            normalized,
            ok,
        )

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                operation: summary.as_dict()
                for operation, summary in sorted(self._stats.items())
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_RECORDER = _LatencyRecorder()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _RECORDER.record(operation=operation, duration_ms=duration_ms, ok=ok)


class LatencyTimer:
    """Handle yielded by :func:`track_latency`; set ``ok`` to flag failures."""

    def __init__(self) -> None:
        self.ok = True


@asynccontextmanager
async def track_latency(operation: str) -> AsyncIterator[LatencyTimer]:
    """Time the enclosed block; exceptions count as failed samples."""
    timer = LatencyTimer()
    start = perf_counter()
    try:
        yield timer
    except BaseException:
        timer.ok = False
        raise
    finally:
        record_latency(
            operation=operation,
            duration_ms=(perf_counter() - start) * 1000,
            ok=timer.ok,
        )


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current in-process latency aggregates."""
    return _RECORDER.snapshot()


def reset_latency_metrics() -> None:
    """Clear all latency aggregates (test helper)."""
    _RECORDER.reset()
