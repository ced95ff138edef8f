# gallery_agent/core/search/engine.py
"""
Similarity search over indexed photos.

Purpose
-------
Turn a free-text query plus optional filters into an ordered list of photo ids:

  1) Candidates = all non-deleted records, narrowed by
       - date window [start 00:00:00, end 23:59:59] (local time unless `tz` is given),
       - case-insensitive location substring,
       - an allow-list of ids (people filter, resolved by the caller).
  2) Non-blank query → embed, score with cosine similarity, keep scores strictly
     above the threshold, sort descending (stable on ties).
  3) Blank query → filtered candidates in store order, capped.

Design
------
- Pure function over a record list; the store and the text encoder are injected.
- The outcome says *why* it is empty so callers can word the reply:
    "no_candidates"      filters matched nothing
    "no_semantic_match"  candidates existed, none cleared the threshold
- A malformed date is logged and that bound is ignored (the search still runs).

Public API
----------
- SearchFilters
- SearchOutcome
- date_window_ms(start_date, end_date, tz=None) -> tuple[int | None, int | None]
- search_records(records, query, encoder, filters=None, *, threshold, max_unranked, tz) -> SearchOutcome
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Literal

import numpy as np

from gallery_agent.core.search.similarity import cosine_similarities
from gallery_agent.schemas.models import ImageRecord
from gallery_agent.tools.encoders.provider_base import TextEncoder

_log = logging.getLogger(__name__)

OutcomeReason = Literal["matched", "no_candidates", "no_semantic_match"]

DEFAULT_SIMILARITY_THRESHOLD = 0.2
DEFAULT_MAX_UNRANKED = 100


@dataclass(frozen=True)
class SearchFilters:
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    allowed_uris: frozenset[str] | None = None  # None = no people filter


@dataclass(frozen=True)
class SearchOutcome:
    uris: tuple[str, ...] = ()
    scores: tuple[float, ...] | None = None  # None for unranked (blank query) results
    reason: OutcomeReason = "matched"
    candidates: int = 0

    @property
    def found(self) -> bool:
        return bool(self.uris)


def _parse_day(raw: str | None, errors: list[str]) -> date | None:
    if raw is None or not str(raw).strip():
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        errors.append(str(raw))
        return None


def _epoch_ms(d: date, t: time, tz: tzinfo | None) -> int:
    if tz is None:
        moment = datetime.combine(d, t).astimezone()  # naive → system local time
    else:
        moment = datetime.combine(d, t, tzinfo=tz)
    return int(moment.timestamp() * 1000)


def date_window_ms(
    start_date: str | None, end_date: str | None, tz: tzinfo | None = None
) -> tuple[int | None, int | None]:
    """
    Inclusive epoch-millisecond bounds for ISO dates (YYYY-MM-DD).

    Start maps to 00:00:00, end to 23:59:59 of that day. Unparseable dates are
    logged and yield None for that bound.
    """
    errors: list[str] = []
    start = _parse_day(start_date, errors)
    end = _parse_day(end_date, errors)
    for bad in errors:
        _log.warning("Ignoring unparseable date filter %r", bad)
    start_ms = _epoch_ms(start, time(0, 0, 0), tz) if start is not None else None
    end_ms = _epoch_ms(end, time(23, 59, 59), tz) if end is not None else None
    return start_ms, end_ms


def _filter_candidates(
    records: Iterable[ImageRecord], filters: SearchFilters, tz: tzinfo | None
) -> list[ImageRecord]:
    start_ms, end_ms = date_window_ms(filters.start_date, filters.end_date, tz)
    needle = (filters.location or "").strip().lower()

    out: list[ImageRecord] = []
    for rec in records:
        if rec.is_deleted:
            continue
        if start_ms is not None and rec.date_taken < start_ms:
            continue
        if end_ms is not None and rec.date_taken > end_ms:
            continue
        if needle and needle not in (rec.location or "").lower():
            continue
        if filters.allowed_uris is not None and rec.uri not in filters.allowed_uris:
            continue
        out.append(rec)
    return out


def rank_by_similarity(
    query_vec: Sequence[float], candidates: Sequence[ImageRecord], *, threshold: float = DEFAULT_SIMILARITY_THRESHOLD
) -> list[tuple[str, float]]:
    """Score candidates against `query_vec`; keep sim > threshold, best first, stable on ties."""
    dim = len(query_vec)
    usable = [r for r in candidates if len(r.embedding) == dim and dim > 0]
    skipped = len(candidates) - len(usable)
    if skipped:
        _log.warning("Skipped %d record(s) whose embedding length differs from the query (%d)", skipped, dim)
    if not usable:
        return []

    matrix = np.asarray([r.embedding for r in usable], dtype=np.float64)
    sims = cosine_similarities(query_vec, matrix)
    hits = [(r.uri, float(s)) for r, s in zip(usable, sims, strict=True) if s > threshold]
    # sorted() is stable, so equal scores keep store order
    return sorted(hits, key=lambda p: -p[1])


def search_records(
    records: Iterable[ImageRecord],
    query: str,
    encoder: TextEncoder,
    filters: SearchFilters | None = None,
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    max_unranked: int = DEFAULT_MAX_UNRANKED,
    tz: tzinfo | None = None,
) -> SearchOutcome:
    filters = filters or SearchFilters()
    candidates = _filter_candidates(records, filters, tz)
    _log.debug("Search %r: %d candidate(s) after filters", query, len(candidates))

    if not candidates:
        return SearchOutcome(reason="no_candidates")

    if not (query or "").strip():
        uris = tuple(r.uri for r in candidates[:max_unranked])
        return SearchOutcome(uris=uris, reason="matched", candidates=len(candidates))

    query_vec = list(encoder.encode(query))
    ranked = rank_by_similarity(query_vec, candidates, threshold=threshold)
    if not ranked:
        return SearchOutcome(reason="no_semantic_match", candidates=len(candidates))
    return SearchOutcome(
        uris=tuple(u for u, _ in ranked),
        scores=tuple(s for _, s in ranked),
        reason="matched",
        candidates=len(candidates),
    )


__all__ = [
    "OutcomeReason",
    "DEFAULT_SIMILARITY_THRESHOLD",
    "DEFAULT_MAX_UNRANKED",
    "SearchFilters",
    "SearchOutcome",
    "date_window_ms",
    "rank_by_similarity",
    "search_records",
]
