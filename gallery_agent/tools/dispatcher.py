# gallery_agent/tools/dispatcher.py
"""
Tool Dispatcher — planner tool calls → local operations.

Purpose
-------
Map a `ToolCall(name, args)` to a local handler and return either an immediate
payload or a suspension marker:

    execute(call) -> ToolOutput | None

`ToolOutput.value` is the payload (it may itself be None, rendered as JSON
`null`, e.g. a collage that produced no file). A bare `None` return means the
call entered the permission-gated mutation protocol and its result will be
produced later by `complete_mutation`.

Built-in tools
--------------
search_photos        → {"photos_found": n}
delete_photos        → (consent) → true | false
move_photos_to_album → (consent) → bool from the move primitive
create_collage       → "<new id>" | null
apply_filter         → ["<new id>", ...]
get_photo_metadata   → "<summary>"
scan_for_cleanup     → {"found_sets": n}

Unknown names → {"error": "Tool '<name>' is not implemented."}. A handler that
raises is reported as {"error": "Failed: <reason>"} plus an error message in the
transcript; the session is never aborted by a tool.

Target resolution (list-of-images tools)
----------------------------------------
1) explicit `source` / `image_uris_source` arg: "search" → last search results,
   "selection" → last manual selection;
2) a non-empty manual-selection cache;
3) the call's `photo_uris`;
4) empty.

Extending
---------
    register_tool("rotate_photos", handler)          # all new dispatchers
    dispatcher.register("rotate_photos", handler)    # one instance
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from gallery_agent.core.cleanup.duplicates import find_duplicates
from gallery_agent.core.errors import ConsentUnavailableError, tool_error_payload
from gallery_agent.core.search.engine import SearchFilters, SearchOutcome, search_records
from gallery_agent.inputs.settings import AgentSettings
from gallery_agent.orchestrators.pending import PendingMutationTracker
from gallery_agent.orchestrators.state import ConversationStore
from gallery_agent.schemas.models import ChatMessage, PendingMutation, PermissionType, ToolCall
from gallery_agent.store.embedding_store import EmbeddingStore, PeopleDirectory
from gallery_agent.tools.consent import ConsentBroker, ConsentHandle
from gallery_agent.tools.encoders.provider_base import TextEncoder
from gallery_agent.tools.gallery import MediaOperations

_log = logging.getLogger(__name__)

_SEARCH_SOURCES = {"search", "search_results", "last_search"}
_SELECTION_SOURCES = {"selection", "manual", "selected", "manual_selection"}


@dataclass(frozen=True)
class ToolOutput:
    """Immediate tool payload."""

    value: Any

    def to_content(self) -> str:
        return json.dumps(self.value, separators=(",", ":"), ensure_ascii=False)


ToolHandler = Callable[["ToolDispatcher", ToolCall], "ToolOutput | None"]


# --- Tool registry ------------------------------------------------------------

_TOOLS: dict[str, ToolHandler] = {}


def register_tool(name: str, handler: ToolHandler) -> None:
    """Register a handler for every dispatcher created afterwards."""
    _TOOLS[name] = handler


def registered_tools() -> list[str]:
    return sorted(_TOOLS)


# --- Dispatcher -----------------------------------------------------------------


class ToolDispatcher:
    def __init__(
        self,
        *,
        store: EmbeddingStore,
        conversation: ConversationStore,
        tracker: PendingMutationTracker,
        encoder: TextEncoder,
        media: MediaOperations,
        consent: ConsentBroker,
        people: PeopleDirectory | None = None,
        settings: AgentSettings | None = None,
        tools: Mapping[str, ToolHandler] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.store = store
        self.conversation = conversation
        self.tracker = tracker
        self.encoder = encoder
        self.media = media
        self.consent = consent
        self.people = people or PeopleDirectory()
        self.settings = settings or AgentSettings()
        self.tz = tz
        self._tools: dict[str, ToolHandler] = dict(_TOOLS if tools is None else tools)

    def register(self, name: str, handler: ToolHandler) -> None:
        self._tools[name] = handler

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    # ---------- Execution ----------

    def execute(self, call: ToolCall) -> ToolOutput | None:
        handler = self._tools.get(call.name)
        if handler is None:
            _log.warning("Planner requested unknown tool %r", call.name)
            return ToolOutput(tool_error_payload(f"Tool '{call.name}' is not implemented."))

        _log.info("Executing tool %s (call %s)", call.name, call.id)
        try:
            return handler(self, call)
        except Exception as exc:  # noqa: BLE001
            _log.exception("Tool %s failed", call.name)
            self.say_error(f"Error: {exc}")
            return ToolOutput(tool_error_payload(f"Failed: {exc}"))

    def complete_mutation(self, pending: PendingMutation, success: bool) -> ToolOutput:
        """
        Second half of a consent-gated operation. The caller has already taken
        `pending` out of the tracker.
        """
        uris = [str(u) for u in pending.args.get("photo_uris", [])]
        if not success:
            _log.info("Consent denied for %s (call %s)", pending.kind, pending.tool_call_id)
            self.say_error("User denied permission.")
            return ToolOutput(False)

        if pending.kind == "delete":
            targets = list(dict.fromkeys(uris))
            deleted = self.store.soft_delete(targets)
            self.conversation.remove_uris(targets)
            self.conversation.emit_gallery_changed()
            _log.info("Deleted %d of %d photo(s) (call %s)", deleted, len(targets), pending.tool_call_id)
            if deleted != len(targets):
                self.say_error(f"Only {deleted} of {len(targets)} photo(s) could be deleted.")
            return ToolOutput(bool(targets) and deleted == len(targets))

        album = str(pending.args.get("album_name") or self.settings.media.default_album)
        try:
            moved = bool(self.media.move_to_album(uris, album))
        except Exception as exc:  # noqa: BLE001
            _log.exception("Move to %r failed", album)
            self.say_error(f"Error: {exc}")
            return ToolOutput(tool_error_payload(f"Failed: {exc}"))
        self.conversation.emit_gallery_changed()
        return ToolOutput(moved)

    # ---------- Helpers for handlers ----------

    def resolve_target_uris(self, args: Mapping[str, Any]) -> tuple[list[str], str]:
        """Return (ids, source label) following the precedence in the module docstring."""
        state = self.conversation.state
        source = args.get("source") or args.get("image_uris_source")
        if isinstance(source, str) and source.strip():
            key = source.strip().lower()
            if key in _SEARCH_SOURCES:
                return list(state.last_search_results), "search"
            if key in _SELECTION_SOURCES:
                return list(state.last_manual_selection), "selection"

        if state.last_manual_selection:
            return list(state.last_manual_selection), "selection"

        raw = args.get("photo_uris")
        if isinstance(raw, str) and raw:
            return [raw], "arguments"
        if isinstance(raw, Sequence):
            return [str(u) for u in raw if u], "arguments"
        return [], "arguments"

    def request_mutation(self, call: ToolCall, kind: PermissionType, args: dict[str, Any]) -> ToolOutput | None:
        """Ask the broker for a handle; suspend on success, structured error otherwise."""
        uris = args.get("photo_uris", [])
        try:
            handle = self._issue_handle(uris, kind)
        except ConsentUnavailableError as exc:
            _log.warning("%s", exc)
            return ToolOutput(tool_error_payload(exc))
        self.tracker.begin(call.id, kind, args, handle)
        return None

    def _issue_handle(self, uris: Sequence[str], kind: PermissionType) -> ConsentHandle:
        handle = self.consent.request_consent(uris, kind)
        if handle is None:
            raise ConsentUnavailableError(f"Could not request {kind} permission for {len(uris)} photo(s).")
        return handle

    def say(self, text: str, **hints: Any) -> None:
        self.conversation.add_message(ChatMessage(text=text, sender="agent", **hints))

    def say_error(self, text: str) -> None:
        self.conversation.add_message(ChatMessage(text=text, sender="error"))


# --- Built-in handlers ----------------------------------------------------------


def _as_names(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [raw] if raw.strip() else []
    if isinstance(raw, Sequence):
        return [str(x) for x in raw if str(x).strip()]
    return []


def _search_photos(d: ToolDispatcher, call: ToolCall) -> ToolOutput:
    args = call.args
    query = str(args.get("query") or "")
    names = _as_names(args.get("people"))

    allowed: frozenset[str] | None = None
    if names:
        people = d.people.resolve(names)
        if not people:
            d.say(f"I couldn't find anyone named {', '.join(names)}.")
            return ToolOutput({"photos_found": 0})
        allowed = d.people.uris_for(people)

    filters = SearchFilters(
        start_date=args.get("start_date"),
        end_date=args.get("end_date"),
        location=args.get("location"),
        allowed_uris=allowed,
    )
    outcome: SearchOutcome = search_records(
        d.store.get_all(),
        query,
        d.encoder,
        filters,
        threshold=d.settings.search.similarity_threshold,
        max_unranked=d.settings.search.max_unranked_results,
        tz=d.tz,
    )

    if not outcome.found:
        if outcome.reason == "no_semantic_match":
            d.say(f"I looked through {outcome.candidates} photos but none matched '{query}'.")
        else:
            d.say("I couldn't find any photos matching those criteria.")
        return ToolOutput({"photos_found": 0})

    uris = list(outcome.uris)
    d.conversation.set_last_search_results(uris)
    d.say(f"Found {len(uris)} photos.", image_uris=uris, has_selection_prompt=True)
    return ToolOutput({"photos_found": len(uris)})


def _delete_photos(d: ToolDispatcher, call: ToolCall) -> ToolOutput | None:
    uris, source = d.resolve_target_uris(call.args)
    if not uris:
        return ToolOutput(tool_error_payload(f"No photos available from {source} source"))
    return d.request_mutation(call, "delete", {"photo_uris": uris})


def _move_photos_to_album(d: ToolDispatcher, call: ToolCall) -> ToolOutput | None:
    uris, source = d.resolve_target_uris(call.args)
    if not uris:
        return ToolOutput(tool_error_payload(f"No photos available from {source} source"))
    album = str(call.args.get("album_name") or d.settings.media.default_album)
    return d.request_mutation(call, "write", {"photo_uris": uris, "album_name": album})


def _create_collage(d: ToolDispatcher, call: ToolCall) -> ToolOutput:
    uris, source = d.resolve_target_uris(call.args)
    if not uris:
        return ToolOutput(tool_error_payload(f"No photos available from {source} source"))
    title = str(call.args.get("title") or "My Collage")
    new_uri = d.media.create_collage(uris[: d.settings.media.collage_max_photos], title)
    d.say(
        f"I've created the collage '{title}'.",
        image_uris=[new_uri] if new_uri else None,
        has_selection_prompt=True,
    )
    d.conversation.emit_gallery_changed()
    return ToolOutput(new_uri)


def _apply_filter(d: ToolDispatcher, call: ToolCall) -> ToolOutput:
    uris, source = d.resolve_target_uris(call.args)
    if not uris:
        return ToolOutput(tool_error_payload(f"No photos available from {source} source"))
    filter_name = str(call.args.get("filter_name") or "grayscale")
    new_uris = list(d.media.apply_filter(uris, filter_name))
    d.say(f"I've applied the '{filter_name}' filter.", image_uris=new_uris, has_selection_prompt=True)
    if new_uris:
        d.conversation.emit_gallery_changed()
    return ToolOutput(new_uris)


def _get_photo_metadata(d: ToolDispatcher, call: ToolCall) -> ToolOutput:
    uris, _ = d.resolve_target_uris(call.args)
    return ToolOutput(d.media.photo_metadata(uris))


def _scan_for_cleanup(d: ToolDispatcher, call: ToolCall) -> ToolOutput:
    groups = find_duplicates(d.store.get_all(), threshold=d.settings.cleanup.duplicate_threshold)
    d.conversation.set_cleanup_groups(groups)
    if not groups:
        d.say("No duplicates found.")
    else:
        d.say("Found duplicates. Tap to review.", is_cleanup_prompt=True)
    return ToolOutput({"found_sets": len(groups)})


register_tool("search_photos", _search_photos)
register_tool("delete_photos", _delete_photos)
register_tool("move_photos_to_album", _move_photos_to_album)
register_tool("create_collage", _create_collage)
register_tool("apply_filter", _apply_filter)
register_tool("get_photo_metadata", _get_photo_metadata)
register_tool("scan_for_cleanup", _scan_for_cleanup)


__all__ = ["ToolOutput", "ToolHandler", "ToolDispatcher", "register_tool", "registered_tools"]
