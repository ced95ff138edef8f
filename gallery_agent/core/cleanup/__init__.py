# gallery_agent/core/cleanup/__init__.py

from .duplicates import DEFAULT_DUPLICATE_THRESHOLD, find_duplicates

__all__ = ["DEFAULT_DUPLICATE_THRESHOLD", "find_duplicates"]
