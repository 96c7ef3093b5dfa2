"""Float32 vector packing for the ``embeddings.vector`` BLOB column."""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

from sqlite_vec import serialize_float32


def to_blob(vector: Sequence[float]) -> bytes:
    """Pack *vector* into the little-endian float32 layout sqlite-vec expects."""
    return serialize_float32(list(vector))


def from_blob(blob: bytes) -> list[float]:
    """Unpack a float32 BLOB written by to_blob()."""
    count = len(blob) // 4
    return list(struct.unpack(f"{count}f", blob))


def is_valid_vector(vector: Sequence[float], dimensions: int) -> bool:
    """True if *vector* has exactly *dimensions* finite components."""
    if len(vector) != dimensions:
        return False
    return all(isinstance(x, (int, float)) and math.isfinite(x) for x in vector)


def is_zero_vector(vector: Sequence[float]) -> bool:
    """True if every component is 0 (cosine similarity is undefined)."""
    return not any(vector)
