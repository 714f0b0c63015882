"""Exception types raised by the traceability core."""

from __future__ import annotations


class TraceLedgerError(Exception):
    """Base class for all TraceLedger errors."""


class InvalidIdentifier(TraceLedgerError, ValueError):
    """A container or image identifier is not a full 64-character ID."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Expecting 64char full ID, but got {identifier!r}")
        self.identifier = identifier


class NotFound(TraceLedgerError, LookupError):
    """No stored history exists for the requested identity."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"No info available for the {kind}Id={identifier}")
        self.kind = kind
        self.identifier = identifier


class IdentityStoreError(TraceLedgerError):
    """The identity store failed to load or persist a record."""


class MalformedReport(TraceLedgerError, ValueError):
    """A submission cannot be parsed into a ``TraceabilityReport``."""
