"""Fingerprint hashes for container and image identifiers.

Docker IDs are 64-character content hashes, so the first half is already
a high-entropy key.  Short IDs are rejected rather than padded.
"""

from __future__ import annotations

from traceledger.errors import InvalidIdentifier

ID_LENGTH = 64
HASH_LENGTH = 32


def fingerprint_hash(identifier: str) -> str:
    """Return the storage key for a full 64-character identifier."""
    if len(identifier) != ID_LENGTH:
        raise InvalidIdentifier(identifier)
    return identifier[:HASH_LENGTH]


def container_hash(container_id: str) -> str:
    return fingerprint_hash(container_id)


def image_hash(image_id: str) -> str:
    return fingerprint_hash(image_id)
