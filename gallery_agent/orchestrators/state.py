# gallery_agent/orchestrators/state.py
"""
Conversation State Publisher.

Purpose
-------
Hold the transcript, session status, live selection, selection caches and
cleanup groups as one immutable `ConversationState` snapshot, and publish every
new snapshot to subscribers (the presentation layer).

Design
------
- Single writer: every mutation goes through this object under one re-entrant lock.
- Snapshots are frozen pydantic models; subscribers can keep them safely.
- A separate "gallery changed" channel tells views to re-read the library.
- Subscriber failures are logged and never propagate into the engine.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from gallery_agent.schemas.models import (
    AgentStatus,
    ChatMessage,
    ConversationState,
    DuplicateGroup,
    IdleStatus,
)

_log = logging.getLogger(__name__)

StateListener = Callable[[ConversationState], None]
GalleryListener = Callable[[], None]


def _dedupe(uris: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(uris))


class ConversationStore:
    def __init__(self, initial: ConversationState | None = None) -> None:
        self._lock = threading.RLock()
        self._state = initial or ConversationState()
        self._listeners: list[StateListener] = []
        self._gallery_listeners: list[GalleryListener] = []

    @property
    def state(self) -> ConversationState:
        with self._lock:
            return self._state

    # ---------- Subscriptions ----------

    def subscribe(self, listener: StateListener, *, replay: bool = True) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)
            snapshot = self._state
        if replay:
            self._safe_call(listener, snapshot)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def on_gallery_changed(self, listener: GalleryListener) -> Callable[[], None]:
        with self._lock:
            self._gallery_listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._gallery_listeners:
                    self._gallery_listeners.remove(listener)

        return _unsubscribe

    def emit_gallery_changed(self) -> None:
        with self._lock:
            listeners = list(self._gallery_listeners)
        for fn in listeners:
            self._safe_call(fn)

    # ---------- Writes ----------

    def add_message(self, message: ChatMessage) -> None:
        with self._lock:
            self._update(messages=(*self._state.messages, message))

    def set_status(self, status: AgentStatus) -> None:
        self._update(status=status)

    def set_idle(self) -> None:
        self._update(status=IdleStatus())

    def toggle_selection(self, uri: str) -> None:
        with self._lock:
            current = self._state.selected_uris
            if uri in current:
                self._update(selected_uris=tuple(u for u in current if u != uri))
            else:
                self._update(selected_uris=(*current, uri))

    def set_selection(self, uris: Sequence[str]) -> None:
        self._update(selected_uris=_dedupe(uris))

    def clear_selection(self) -> None:
        self._update(selected_uris=())

    def capture_selection(self) -> tuple[str, ...]:
        """
        Take the live selection for a new turn: clears it, and when non-empty
        stores it as the manual-selection cache.
        """
        with self._lock:
            captured = self._state.selected_uris
            changes: dict[str, Any] = {"selected_uris": ()}
            if captured:
                changes["last_manual_selection"] = captured
            self._update(**changes)
            return captured

    def set_last_search_results(self, uris: Sequence[str]) -> None:
        self._update(last_search_results=_dedupe(uris))

    def set_cleanup_groups(self, groups: Sequence[DuplicateGroup]) -> None:
        self._update(cleanup_groups=tuple(groups))

    def remove_uris(self, uris: Iterable[str]) -> None:
        """Drop ids from the live selection, both selection caches and the cleanup groups."""
        gone = set(uris)
        if not gone:
            return
        with self._lock:
            s = self._state
            groups: list[DuplicateGroup] = []
            for g in s.cleanup_groups:
                members = [u for u in (g.primary_uri, *g.duplicate_uris) if u not in gone]
                if len(members) >= 2:
                    groups.append(DuplicateGroup(primary_uri=members[0], duplicate_uris=members[1:]))
            self._update(
                selected_uris=tuple(u for u in s.selected_uris if u not in gone),
                last_search_results=tuple(u for u in s.last_search_results if u not in gone),
                last_manual_selection=tuple(u for u in s.last_manual_selection if u not in gone),
                cleanup_groups=tuple(groups),
            )

    def rename_uris(self, mapping: Mapping[str, str]) -> None:
        """Follow moved photos: rewrite ids in the live selection, both caches and the cleanup groups."""
        if not mapping:
            return

        def _swap(uris: Iterable[str]) -> tuple[str, ...]:
            return _dedupe(mapping.get(u, u) for u in uris)

        with self._lock:
            s = self._state
            groups: list[DuplicateGroup] = []
            for g in s.cleanup_groups:
                members = _swap((g.primary_uri, *g.duplicate_uris))
                if len(members) >= 2:
                    groups.append(DuplicateGroup(primary_uri=members[0], duplicate_uris=list(members[1:])))
            self._update(
                selected_uris=_swap(s.selected_uris),
                last_search_results=_swap(s.last_search_results),
                last_manual_selection=_swap(s.last_manual_selection),
                cleanup_groups=tuple(groups),
            )

    # ---------- Internals ----------

    def _update(self, **changes: Any) -> None:
        with self._lock:
            self._state = self._state.model_copy(update=changes)
            snapshot = self._state
            listeners = list(self._listeners)
            for fn in listeners:
                self._safe_call(fn, snapshot)

    @staticmethod
    def _safe_call(fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:  # noqa: BLE001
            _log.exception("State listener %r failed", fn)


__all__ = ["ConversationStore", "StateListener", "GalleryListener"]
