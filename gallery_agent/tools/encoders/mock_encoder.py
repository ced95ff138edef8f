# gallery_agent/tools/encoders/mock_encoder.py
"""
Hashing Text Encoder

Purpose
-------
Provide a deterministic, model-free encoder so search, indexing and tests run
without the on-device CLIP weights:
  - Each token maps to a fixed pseudo-random unit vector seeded from its SHA-256.
  - A text is the normalized sum of its token vectors (bag of words).
  - Texts sharing words therefore score a positive cosine; unrelated texts score ~0.

Public API
----------
class HashingTextEncoder(TextEncoder):
    def encode(self, text: str) -> list[float]

tokenize(text) -> list[str]

Notes
-----
- The same encoder must build the index and answer queries; vectors from
  different `dim` values are not comparable.
"""

from __future__ import annotations

import hashlib
import re
from functools import lru_cache

import numpy as np

from .provider_base import TextEncoder

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric tokens; filename separators (_ - .) split words."""
    return _TOKEN_RE.findall((text or "").lower())


@lru_cache(maxsize=4096)
def _token_vector(token: str, dim: int) -> np.ndarray:
    seed = int.from_bytes(hashlib.sha256(token.encode("utf-8")).digest()[:8], "big")
    rng = np.random.default_rng(seed)
    v = rng.standard_normal(dim)
    return v / np.linalg.norm(v)


class HashingTextEncoder(TextEncoder):
    """Deterministic bag-of-words encoder."""

    def __init__(self, dim: int = 64) -> None:
        if dim < 2:
            raise ValueError("dim must be >= 2")
        self.dim = dim

    def encode(self, text: str) -> list[float]:
        tokens = tokenize(text)
        if not tokens:
            return [0.0] * self.dim
        acc = np.zeros(self.dim, dtype=np.float64)
        for tok in tokens:
            acc += _token_vector(tok, self.dim)
        norm = float(np.linalg.norm(acc))
        if norm == 0.0:
            return [0.0] * self.dim
        return (acc / norm).tolist()
