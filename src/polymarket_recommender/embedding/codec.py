"""Decoding and encoding of stored embedding vectors.

Vectors reach us in two shapes: a native sequence of numbers (drivers that
understand pgvector, in-memory fixtures) or the pgvector text literal
``[v1,v2,...,vn]`` (plain drivers, SQLite). Every read boundary decodes
through :func:`decode_vector`; nothing else should assume a shape.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np


def _to_float(token: Any) -> float:
    try:
        return float(token)
    except (TypeError, ValueError):
        return math.nan


def decode_vector(value: Any) -> list[float]:
    """Decode a stored vector into a list of floats.

    Unknown shapes (``None``, numbers, mappings) decode to an empty list, which
    callers treat as "no vector available". Tokens that do not parse become
    NaN so positions are preserved; consumers decide how to skip them.
    """
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    if isinstance(value, str):
        clean = value.replace("[", "").replace("]", "").strip()
        if not clean:
            return []
        return [_to_float(tok.strip()) for tok in clean.split(",")]
    if isinstance(value, np.ndarray):
        return [_to_float(x) for x in value.ravel().tolist()]
    if isinstance(value, Sequence):
        return [_to_float(x) for x in value]
    return []


def encode_vector(values: Sequence[float]) -> list[float]:
    """Encode a vector into the native list form used for storage."""
    return [float(x) for x in values]


def to_vector_literal(values: Sequence[float]) -> str:
    """Render a vector as a pgvector text literal."""
    return "[" + ",".join(str(float(x)) for x in values) + "]"
