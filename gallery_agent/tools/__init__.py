# gallery_agent/tools/__init__.py
"""
Gallery agent — tools package

Exports the host-facing contracts that live under `gallery_agent/tools`:
  - ConsentBroker / InteractiveConsentBroker / ConsentHandle  (from .consent)
  - MediaOperations / LocalGallery                            (from .gallery)
  - encoders (subpackage)                                     (from .encoders)

The dispatcher is imported from `gallery_agent.tools.dispatcher` directly; it
depends on the search engine, which itself imports from this package.
"""

from __future__ import annotations

from .consent import ConsentBroker, ConsentHandle, InteractiveConsentBroker
from .gallery import LocalGallery, MediaOperations

__all__ = [
    "ConsentBroker",
    "ConsentHandle",
    "InteractiveConsentBroker",
    "MediaOperations",
    "LocalGallery",
]
