# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_record, make_store, ScriptedPlanner
"""

from .utils import ScriptedPlanner, make_record, make_store

__all__ = ["make_record", "make_store", "ScriptedPlanner"]
