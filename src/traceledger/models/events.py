"""Docker event classification."""

from __future__ import annotations

from enum import Enum


class EventType(str, Enum):
    """Categories of Docker events known to the ledger."""

    CREATE = "CREATE"
    START = "START"
    DIE = "DIE"
    INSPECT_CONTAINER = "INSPECT_CONTAINER"
    DESTROY = "DESTROY"
    EXPORT = "EXPORT"
    KILL = "KILL"
    PAUSE = "PAUSE"
    RESTART = "RESTART"
    STOP = "STOP"
    UNPAUSE = "UNPAUSE"

    # Image events
    UNTAG = "UNTAG"
    DELETE = "DELETE"

    # Synthetic refresh, not a lifecycle transition
    NONE = "NONE"

    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str | None) -> EventType:
        """Map a raw status string to a category, case-insensitively.

        Blank and unrecognized strings map to ``UNKNOWN`` so that statuses
        introduced by newer Docker versions are still accepted.
        """
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_container_event(self) -> bool:
        return self not in (EventType.UNTAG, EventType.DELETE)

    @property
    def is_image_event(self) -> bool:
        return self in (
            EventType.UNTAG,
            EventType.DELETE,
            EventType.UNKNOWN,
            EventType.NONE,
        )
