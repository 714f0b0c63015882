"""Notification bus for submitted reports and newly observed deployments.

Observers are registered explicitly.  Every observer runs even when an
earlier one fails: failures are logged and returned to the caller as
``ObserverFailure`` values instead of being raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass

from traceledger.models.report import TraceabilityReport

logger = logging.getLogger(__name__)

ReportObserver = Callable[[TraceabilityReport], Awaitable[None]]
DeploymentObserver = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class ObserverFailure:
    """One observer invocation that raised."""

    observer: str
    error: Exception


def _observer_name(observer: Callable) -> str:
    return getattr(observer, "__qualname__", None) or repr(observer)


class NotificationBus:
    """Broadcasts reports and deployments to registered observers."""

    def __init__(self) -> None:
        self._report_observers: list[ReportObserver] = []
        self._deployment_observers: list[DeploymentObserver] = []

    # -- registration --

    def on_report(self, observer: ReportObserver) -> ReportObserver:
        self._report_observers.append(observer)
        return observer

    def on_new_deployment(self, observer: DeploymentObserver) -> DeploymentObserver:
        self._deployment_observers.append(observer)
        return observer

    # -- broadcast --

    async def fire(self, report: TraceabilityReport) -> list[ObserverFailure]:
        """Deliver *report* to every report observer."""
        failures: list[ObserverFailure] = []
        for observer in list(self._report_observers):
            try:
                await observer(report)
            except Exception as exc:
                logger.exception(
                    "Report observer %s failed", _observer_name(observer)
                )
                failures.append(ObserverFailure(_observer_name(observer), exc))
        return failures

    async def fire_new_deployment(self, container_id: str) -> list[ObserverFailure]:
        """Announce that *container_id* was seen in an ingested report."""
        failures: list[ObserverFailure] = []
        for observer in list(self._deployment_observers):
            try:
                await observer(container_id)
            except Exception as exc:
                logger.exception(
                    "Deployment observer %s failed for containerId=%s",
                    _observer_name(observer),
                    container_id,
                )
                failures.append(ObserverFailure(_observer_name(observer), exc))
        return failures
