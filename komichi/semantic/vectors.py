# komichi/semantic/vectors.py
"""Cosine similarity helpers for dense embedding vectors."""
from __future__ import annotations

from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray

from ..core.errors import DimensionMismatch

ArrayLike = Union[Sequence[float], NDArray[np.floating]]


def as_vector(values: ArrayLike) -> NDArray[np.float32]:
    """Coerce ``values`` into a 1-D float32 array."""
    vec = np.asarray(values, dtype=np.float32)
    if vec.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {vec.shape}")
    return vec


def cosine_similarity(a: ArrayLike, b: ArrayLike) -> float:
    """
    Cosine of the angle between ``a`` and ``b``.

    A zero-norm input has no direction; its similarity to anything is 0.

    Raises:
        DimensionMismatch: if the vectors have different lengths
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])

    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_distance(a: ArrayLike, b: ArrayLike) -> float:
    return 1.0 - cosine_similarity(a, b)
