"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from traceledger.observability import latency_metrics_snapshot
from traceledger.observability import record_latency
from traceledger.observability import reset_latency_metrics
from traceledger.observability import track_latency


class TestObservabilityLatency:
    def test_records_latency_aggregates(self):
        record_latency(operation="mcp.submit_report", duration_ms=10.0, ok=True)
        record_latency(operation="mcp.submit_report", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["mcp.submit_report"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_reset_clears_all_metrics(self):
        record_latency(operation="ingestion.report", duration_ms=12.0, ok=True)
        assert "ingestion.report" in latency_metrics_snapshot()
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}


class TestTrackLatency:
    async def test_successful_block(self):
        async with track_latency("query.container"):
            pass
        metrics = latency_metrics_snapshot()["query.container"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    async def test_flagged_failure(self):
        async with track_latency("ingestion.report") as timer:
            timer.ok = False
        assert latency_metrics_snapshot()["ingestion.report"]["error_count"] == 1

    async def test_exception_counts_as_failure(self):
        with pytest.raises(KeyError):
            async with track_latency("query.container"):
                raise KeyError("missing")
        assert latency_metrics_snapshot()["query.container"]["error_count"] == 1
