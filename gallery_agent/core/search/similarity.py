# gallery_agent/core/search/similarity.py
from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def _as_vector(v: Sequence[float] | np.ndarray) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {arr.shape}")
    return arr


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    sim(a, b) = a·b / (|a| |b|), clipped to [-1, 1].

    Returns 0.0 when either vector has zero norm. Vectors of different length raise ValueError.
    """
    va = _as_vector(a)
    vb = _as_vector(b)
    if va.shape != vb.shape:
        raise ValueError(f"Vector length mismatch: {va.shape[0]} != {vb.shape[0]}")
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (na * nb), -1.0, 1.0))


def cosine_similarities(query: Sequence[float] | np.ndarray, matrix: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    """Vectorized cosine of `query` against each row of `matrix` (zero-norm rows score 0)."""
    q = _as_vector(query)
    m = np.asarray(matrix, dtype=np.float64)
    if m.size == 0:
        return np.zeros(0, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValueError(f"Matrix shape {m.shape} incompatible with query length {q.shape[0]}")
    qn = float(np.linalg.norm(q))
    if qn == 0.0:
        return np.zeros(m.shape[0], dtype=np.float64)
    row_norms = np.linalg.norm(m, axis=1)
    denom = row_norms * qn
    out = np.zeros(m.shape[0], dtype=np.float64)
    nz = denom > 0
    out[nz] = (m[nz] @ q) / denom[nz]
    return np.clip(out, -1.0, 1.0)


__all__ = ["cosine_similarity", "cosine_similarities"]
