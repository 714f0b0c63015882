"""Identity domain — fingerprint hashes, identity records and their stores."""

from traceledger.identity.hashing import container_hash
from traceledger.identity.hashing import fingerprint_hash
from traceledger.identity.hashing import image_hash
from traceledger.identity.records import DeploymentHistory
from traceledger.identity.records import DeploymentRecord
from traceledger.identity.records import IdentityKind
from traceledger.identity.records import IdentityRecord
from traceledger.identity.records import ImageInspectionCache
from traceledger.identity.records import ImageReferenceIndex
from traceledger.identity.store import IdentityStore
from traceledger.identity.store import InMemoryIdentityStore
from traceledger.identity.store import RedisIdentityStore

__all__ = [
    "DeploymentHistory",
    "DeploymentRecord",
    "IdentityKind",
    "IdentityRecord",
    "IdentityStore",
    "ImageInspectionCache",
    "ImageReferenceIndex",
    "InMemoryIdentityStore",
    "RedisIdentityStore",
    "container_hash",
    "fingerprint_hash",
    "image_hash",
]
