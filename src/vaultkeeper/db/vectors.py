"""Embedding vector encoding for the embedding_chunks table.

Vectors are stored as native-order float32 BLOBs in the sqlite-vec wire
format, so the table stays readable by sqlite-vec's SQL functions
(``vec_length``, ``vec_distance_cosine``) even though search itself is
brute force in Python.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence

from sqlite_vec import serialize_float32

_FLOAT32_SIZE = 4


def encode_vector(vector: Sequence[float]) -> bytes:
    """Serialize *vector* to a float32 BLOB.

    Raises:
        ValueError: If *vector* is empty.
    """
    if len(vector) == 0:
        raise ValueError("Cannot store an empty embedding vector.")
    return serialize_float32(list(vector))


def decode_vector(blob: bytes) -> list[float]:
    """Deserialize a float32 BLOB produced by encode_vector()."""
    if len(blob) % _FLOAT32_SIZE:
        raise ValueError(f"Vector BLOB length {len(blob)} is not a multiple of 4.")
    return list(struct.unpack(f"{len(blob) // _FLOAT32_SIZE}f", blob))


def blob_dimensions(blob: bytes) -> int:
    """Return the number of float32 components stored in *blob*."""
    return len(blob) // _FLOAT32_SIZE
