# gallery_agent/core/search/__init__.py

from .engine import SearchFilters, SearchOutcome, date_window_ms, rank_by_similarity, search_records
from .similarity import cosine_similarities, cosine_similarity

__all__ = [
    "cosine_similarity",
    "cosine_similarities",
    "SearchFilters",
    "SearchOutcome",
    "date_window_ms",
    "rank_by_similarity",
    "search_records",
]
