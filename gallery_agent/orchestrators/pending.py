# gallery_agent/orchestrators/pending.py
from __future__ import annotations

import logging
import threading
from typing import Any

from gallery_agent.core.errors import PendingMutationConflictError
from gallery_agent.schemas.models import PendingMutation, PermissionType

_log = logging.getLogger(__name__)


class PendingMutationTracker:
    """
    Holds the single consent-gated mutation awaiting a decision.

    States: empty → awaiting(tool_call_id, kind, args) → empty. `take()` consumes
    the pending entry exactly once; a second `take()` (a stale consent result)
    returns None. Nothing is persisted: a pending mutation dies with the process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: PendingMutation | None = None

    @property
    def pending(self) -> PendingMutation | None:
        with self._lock:
            return self._pending

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    def begin(self, tool_call_id: str, kind: PermissionType, args: dict[str, Any], handle: Any = None) -> PendingMutation:
        with self._lock:
            if self._pending is not None:
                raise PendingMutationConflictError(
                    f"Mutation {self._pending.tool_call_id!r} is still awaiting consent; "
                    f"cannot start {tool_call_id!r}."
                )
            self._pending = PendingMutation(tool_call_id=tool_call_id, kind=kind, args=dict(args), handle=handle)
            _log.info("Awaiting %s consent for tool call %s", kind, tool_call_id)
            return self._pending

    def take(self) -> PendingMutation | None:
        with self._lock:
            pending, self._pending = self._pending, None
            return pending

    def clear(self) -> None:
        with self._lock:
            self._pending = None


__all__ = ["PendingMutationTracker"]
