# tests/utils.py
"""
Single source of truth for test data, factories, and fakes.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from PIL import Image

from gallery_agent.inputs.settings import AgentSettings
from gallery_agent.orchestrators.pending import PendingMutationTracker
from gallery_agent.orchestrators.session import SessionController
from gallery_agent.orchestrators.state import ConversationStore
from gallery_agent.schemas.models import AgentRequest, AgentResponse, ImageRecord, PermissionType, ToolCall
from gallery_agent.store.embedding_store import InMemoryEmbeddingStore, PeopleDirectory, Person
from gallery_agent.tools.consent import ConsentHandle
from gallery_agent.tools.dispatcher import ToolDispatcher

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_SESSION_ID = "sess-1"
DEFAULT_DIM = 4

# Three photos pointing in clearly different directions + one near-copy of "beach"
DEFAULT_RECORDS: list[dict[str, Any]] = [
    {"uri": "img/beach.jpg", "embedding": [1.0, 0.0, 0.0, 0.0], "location": "Nice, France", "date_taken": 0},
    {"uri": "img/forest.jpg", "embedding": [0.0, 1.0, 0.0, 0.0], "location": "Black Forest", "date_taken": 0},
    {"uri": "img/city.jpg", "embedding": [0.0, 0.0, 1.0, 0.0], "location": "Paris, France", "date_taken": 0},
    {"uri": "img/beach_copy.jpg", "embedding": [0.999, 0.01, 0.0, 0.0], "location": "Nice, France", "date_taken": 0},
]

# -----------------------------
# Factories
# -----------------------------


def make_record(uri: str = "img/a.jpg", embedding: Sequence[float] | None = None, **overrides: Any) -> ImageRecord:
    data: dict[str, Any] = {
        "uri": uri,
        "embedding": list(embedding) if embedding is not None else [1.0, 0.0, 0.0, 0.0],
        "location": None,
        "date_taken": 0,
        "width": 640,
        "height": 480,
    }
    data.update(overrides)
    return ImageRecord(**data)


def make_store(records: Sequence[ImageRecord | dict[str, Any]] | None = None) -> InMemoryEmbeddingStore:
    raw = DEFAULT_RECORDS if records is None else records
    return InMemoryEmbeddingStore(r if isinstance(r, ImageRecord) else ImageRecord(**r) for r in raw)


def make_people(**names_to_uris: list[str]) -> PeopleDirectory:
    return PeopleDirectory(
        Person(id=f"p{i}", name=name, uris=uris) for i, (name, uris) in enumerate(names_to_uris.items(), start=1)
    )


def make_response(
    status: str = "complete",
    *,
    session_id: str = DEFAULT_SESSION_ID,
    message: str | None = None,
    actions: Sequence[ToolCall | dict[str, Any]] | None = None,
    suggestions: Sequence[dict[str, str]] | None = None,
) -> AgentResponse:
    return AgentResponse(
        session_id=session_id,
        status=status,
        agent_message=message,
        next_actions=[a if isinstance(a, ToolCall) else ToolCall(**a) for a in actions] if actions is not None else None,
        suggested_actions=list(suggestions) if suggestions is not None else None,
    )


def make_call(name: str, call_id: str = "call-1", **args: Any) -> ToolCall:
    return ToolCall(id=call_id, name=name, args=args)


def make_image(path: Path, size: tuple[int, int] = (32, 24), color: tuple[int, int, int] = (200, 30, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="JPEG" if path.suffix.lower() in (".jpg", ".jpeg") else None)
    return path


# -----------------------------
# Fakes
# -----------------------------


class ScriptedPlanner:
    """Returns canned responses in order and records every request it saw."""

    def __init__(self, responses: Sequence[AgentResponse | Exception]) -> None:
        self.responses = list(responses)
        self.requests: list[AgentRequest] = []
        self.on_invoke = None  # optional hook(request) run before answering

    def invoke(self, request: AgentRequest) -> AgentResponse:
        self.requests.append(request)
        if self.on_invoke is not None:
            self.on_invoke(request)
        if not self.responses:
            raise AssertionError("ScriptedPlanner ran out of responses")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    @property
    def tool_results(self) -> list[Any]:
        return [r.tool_result for r in self.requests if r.tool_result is not None]


class RecordingMedia:
    """MediaOperations fake that records calls."""

    def __init__(self, *, move_result: bool = True, collage_uri: str | None = "out/collage.jpg") -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.move_result = move_result
        self.collage_uri = collage_uri

    def create_collage(self, uris: Sequence[str], title: str) -> str | None:
        self.calls.append(("create_collage", (list(uris), title)))
        return self.collage_uri

    def apply_filter(self, uris: Sequence[str], filter_name: str) -> list[str]:
        self.calls.append(("apply_filter", (list(uris), filter_name)))
        return [f"{u}.{filter_name}.jpg" for u in uris]

    def move_to_album(self, uris: Sequence[str], album_name: str) -> bool:
        self.calls.append(("move_to_album", (list(uris), album_name)))
        return self.move_result

    def photo_metadata(self, uris: Sequence[str]) -> str:
        self.calls.append(("photo_metadata", (list(uris),)))
        return f"{len(uris)} photo(s)"

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]


class StubConsentBroker:
    """Always issues a handle unless `available` is False."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.requests: list[tuple[list[str], PermissionType]] = []

    def request_consent(self, uris: Sequence[str], kind: PermissionType) -> ConsentHandle | None:
        self.requests.append((list(uris), kind))
        if not self.available or not uris:
            return None
        return ConsentHandle(kind=kind, uris=tuple(uris))


class StubEncoder:
    """Maps exact query strings to fixed vectors; anything else encodes to zeros."""

    def __init__(self, table: dict[str, Sequence[float]] | None = None, dim: int = DEFAULT_DIM) -> None:
        self.table = {k: list(v) for k, v in (table or {}).items()}
        self.dim = dim

    def encode(self, text: str) -> list[float]:
        return self.table.get(text, [0.0] * self.dim)


# -----------------------------
# Wiring
# -----------------------------


def make_dispatcher(
    *,
    store: InMemoryEmbeddingStore | None = None,
    conversation: ConversationStore | None = None,
    tracker: PendingMutationTracker | None = None,
    encoder: StubEncoder | None = None,
    media: RecordingMedia | None = None,
    consent: StubConsentBroker | None = None,
    people: PeopleDirectory | None = None,
    settings: AgentSettings | None = None,
) -> ToolDispatcher:
    return ToolDispatcher(
        store=store if store is not None else make_store(),
        conversation=conversation or ConversationStore(),
        tracker=tracker or PendingMutationTracker(),
        encoder=encoder or StubEncoder(),
        media=media or RecordingMedia(),
        consent=consent or StubConsentBroker(),
        people=people,
        settings=settings,
    )


def make_controller(planner: ScriptedPlanner, dispatcher: ToolDispatcher | None = None, **kwargs: Any) -> SessionController:
    d = dispatcher or make_dispatcher()
    return SessionController(planner, d, d.conversation, d.tracker, **kwargs)
