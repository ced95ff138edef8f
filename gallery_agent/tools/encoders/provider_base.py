# gallery_agent/tools/encoders/provider_base.py
"""
Text Encoder Interface

Purpose
-------
Define a minimal, model-agnostic contract for turning a search query into an
embedding comparable with the image embeddings stored in the index. The real
encoder (tokenizer + text tower) lives outside this package; anything that
implements `encode` can be injected.

Public API
----------
class TextEncoder(Protocol):
    def encode(self, text: str) -> Sequence[float]

def encode_batch(encoder: TextEncoder, texts: Sequence[str]) -> list[list[float]]

Invariants & Guardrails
-----------------------
- Output of `encode_batch` aligns 1:1 with `texts` order.
- Encoders are deterministic for a given input; search ranking relies on it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class TextEncoder(Protocol):
    def encode(self, text: str) -> Sequence[float]: ...


def encode_batch(encoder: TextEncoder, texts: Sequence[str]) -> list[list[float]]:
    """
    Encode several texts, preserving input order.
    If the encoder exposes `encode_batch`, use it; otherwise loop over `encode`.
    """
    native = getattr(encoder, "encode_batch", None)
    if callable(native):
        out = native(list(texts))
        if not isinstance(out, list) or len(out) != len(texts):
            raise ValueError("Encoder encode_batch returned invalid shape.")
        return [list(map(float, v)) for v in out]
    return [list(map(float, encoder.encode(t))) for t in texts]
