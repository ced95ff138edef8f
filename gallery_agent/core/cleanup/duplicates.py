# gallery_agent/core/cleanup/duplicates.py
"""
Near-duplicate clustering over image embeddings.

Algorithm (greedy, single pass, O(n²))
--------------------------------------
For each record in store order that has not been claimed yet (the anchor):
  - every *later* unclaimed record whose cosine similarity with the anchor is
    strictly above `threshold` joins the anchor's group and is claimed;
  - if the group is non-empty it is emitted as DuplicateGroup(anchor, members)
    and the anchor is claimed too.

Properties
----------
- Deterministic for a fixed input order (order-dependent by construction).
- No id appears in more than one group, as primary or duplicate.
- Anchors without members emit nothing (singletons are not groups).
- Deleted records and records without an embedding are ignored.

No spatial index: suitable for personal libraries, not millions of photos.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from gallery_agent.schemas.models import DuplicateGroup, ImageRecord

_log = logging.getLogger(__name__)

DEFAULT_DUPLICATE_THRESHOLD = 0.985


def _normalized_matrix(records: Sequence[ImageRecord]) -> np.ndarray:
    m = np.asarray([r.embedding for r in records], dtype=np.float64)
    norms = np.linalg.norm(m, axis=1, keepdims=True)
    # zero vectors stay zero and score 0 against everything
    return np.divide(m, norms, out=np.zeros_like(m), where=norms > 0)


def find_duplicates(
    records: Sequence[ImageRecord], *, threshold: float = DEFAULT_DUPLICATE_THRESHOLD
) -> list[DuplicateGroup]:
    live = [r for r in records if not r.is_deleted and r.embedding]
    if len(live) < 2:
        return []

    dim = len(live[0].embedding)
    mismatched = [r.uri for r in live if len(r.embedding) != dim]
    if mismatched:
        _log.warning("Excluding %d record(s) with embedding length != %d from cleanup", len(mismatched), dim)
        live = [r for r in live if len(r.embedding) == dim]

    unit = _normalized_matrix(live)
    visited = [False] * len(live)
    groups: list[DuplicateGroup] = []

    for i, anchor in enumerate(live):
        if visited[i]:
            continue
        # similarities of the anchor against every later record
        sims = unit[i + 1 :] @ unit[i] if i + 1 < len(live) else np.zeros(0)
        members: list[str] = []
        for offset, sim in enumerate(sims):
            j = i + 1 + offset
            if not visited[j] and sim > threshold:
                members.append(live[j].uri)
                visited[j] = True
        if members:
            visited[i] = True
            groups.append(DuplicateGroup(primary_uri=anchor.uri, duplicate_uris=members))

    _log.info("Duplicate scan: %d record(s), %d group(s)", len(live), len(groups))
    return groups


__all__ = ["DEFAULT_DUPLICATE_THRESHOLD", "find_duplicates"]
