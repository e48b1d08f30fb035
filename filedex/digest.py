"""Content digests over an in-memory buffer.

Primary digest is xxHash64: fast, advisory, never used to decide equality.
Secondary digest is BLAKE3-256: fast and collision resistant; it is the only
digest used for change detection and duplicate grouping.
"""

from typing import NamedTuple

import blake3
import xxhash

# Digest value of records whose content was never read (symlinks, devices, no-hash runs)
PLACEHOLDER_DIGEST = ""


class Digests(NamedTuple):
    primary: str
    secondary: str


def primary_digest(body: bytes) -> str:
    """xxHash64 lowercase hex digest of body."""
    return xxhash.xxh64(body).hexdigest()


def secondary_digest(body: bytes) -> str:
    """BLAKE3 (256 bit) lowercase hex digest of body."""
    return blake3.blake3(body).hexdigest()


def compute_digests(body: bytes) -> Digests:
    """Both digests over the same buffer."""
    return Digests(primary_digest(body), secondary_digest(body))


def placeholder_digests() -> Digests:
    return Digests(PLACEHOLDER_DIGEST, PLACEHOLDER_DIGEST)
