# main.py
"""
Entry Point — Gallery Agent

Purpose
-------
Talk to a photo library in natural language. A remote planner decides which
local tools to run (search, delete, move, filter, collage, cleanup); this
process executes them against the library and asks before anything
destructive happens.

Commands
--------
    python main.py index --library ~/Pictures [--out index.json]
    python main.py chat  --library ~/Pictures [--index index.json] [--config gallery_agent.json]
                         [--planner-url http://127.0.0.1:8000] [--verbose]

Inside chat:
    /select <n|path> ...   select images (n = position in the last message with images)
    /clear                 clear the selection
    /trash                 list deleted photos
    /restore <path> ...    restore deleted photos
    /empty-trash           permanently forget deleted photos
    /quit                  leave

Design
------
- This file is the composition root: the planner client, encoder, consent
  broker and media primitives are built once here and injected.
- Behavior is configuration-driven (see gallery_agent/inputs/settings.py).
"""

from __future__ import annotations

import argparse
import functools
import logging
import sys
from pathlib import Path

from gallery_agent.clients.planner import Planner, PlannerClient
from gallery_agent.core.logs import configure_logging
from gallery_agent.core.media.imaging import encode_images
from gallery_agent.inputs.settings import AgentSettings, SettingsLoader
from gallery_agent.orchestrators.pending import PendingMutationTracker
from gallery_agent.orchestrators.session import SessionController
from gallery_agent.orchestrators.state import ConversationStore
from gallery_agent.schemas.models import ConversationState, PermissionStatus
from gallery_agent.store.embedding_store import (
    InMemoryEmbeddingStore,
    PeopleDirectory,
    load_index,
    save_index,
)
from gallery_agent.store.indexer import build_index
from gallery_agent.tools.consent import ConsentBroker, InteractiveConsentBroker
from gallery_agent.tools.dispatcher import ToolDispatcher
from gallery_agent.tools.encoders import HashingTextEncoder
from gallery_agent.tools.gallery import LocalGallery

_log = logging.getLogger("gallery_agent.main")

DEFAULT_INDEX_NAME = "gallery_index.json"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=str, default=None, help="Path to settings JSON.")
    common.add_argument("--library", type=str, default=None, help="Photo library folder (overrides config).")
    common.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")

    p = argparse.ArgumentParser(description="Gallery Agent")
    sub = p.add_subparsers(dest="command", required=True)

    idx = sub.add_parser("index", parents=[common], help="Build the embedding index for a library.")
    idx.add_argument("--out", type=str, default=None, help=f"Index path (default: <library>/{DEFAULT_INDEX_NAME}).")

    chat = sub.add_parser("chat", parents=[common], help="Interactive session with the planner.")
    chat.add_argument("--index", type=str, default=None, help=f"Index path (default: <library>/{DEFAULT_INDEX_NAME}).")
    chat.add_argument("--planner-url", type=str, default=None, help="Planner base URL (overrides config).")
    return p.parse_args(argv)


def load_config(args: argparse.Namespace) -> AgentSettings:
    loader = SettingsLoader()
    cfg = loader.load(args.config)
    return loader.with_overrides(
        cfg,
        base_url=getattr(args, "planner_url", None),
        library_root=args.library,
        log_level="DEBUG" if args.verbose else None,
    )


def build_session(
    settings: AgentSettings,
    store: InMemoryEmbeddingStore,
    people: PeopleDirectory,
    *,
    planner: Planner | None = None,
    consent: ConsentBroker | None = None,
) -> SessionController:
    """Wire every collaborator once and hand back a ready controller."""
    conversation = ConversationStore()
    tracker = PendingMutationTracker()
    dispatcher = ToolDispatcher(
        store=store,
        conversation=conversation,
        tracker=tracker,
        encoder=HashingTextEncoder(),
        media=LocalGallery(
            settings.media.library_root,
            store,
            jpeg_quality=settings.media.output_quality,
            on_relocated=conversation.rename_uris,
        ),
        consent=consent or InteractiveConsentBroker(),
        people=people,
        settings=settings,
    )
    planner = planner or PlannerClient(
        settings.planner.base_url,
        endpoint=settings.planner.endpoint,
        timeout_s=settings.planner.timeout_s,
    )
    image_encoder = functools.partial(
        encode_images, max_side=settings.media.encode_max_side, quality=settings.media.jpeg_quality
    )
    return SessionController(planner, dispatcher, conversation, tracker, image_encoder=image_encoder)


# ----------------------------
# index
# ----------------------------


def run_index(settings: AgentSettings, out: str | None) -> Path:
    root = Path(settings.media.library_root).expanduser()
    target = Path(out) if out else root / DEFAULT_INDEX_NAME
    previous: InMemoryEmbeddingStore | None = None
    people = PeopleDirectory()
    if target.exists():
        previous, people = load_index(target)
    store = build_index(root, HashingTextEncoder(), previous=previous)
    save_index(target, store, people)
    print(f"Indexed {len(store)} photo(s) → {target}")
    return target


# ----------------------------
# chat
# ----------------------------


class _Printer:
    """Prints transcript entries as they appear."""

    def __init__(self) -> None:
        self.shown = 0
        self.last_images: list[str] = []

    def __call__(self, state: ConversationState) -> None:
        for msg in state.messages[self.shown :]:
            if msg.sender != "user":
                tag = "agent" if msg.sender == "agent" else "error"
                print(f"[{tag}] {msg.text}")
                for i, uri in enumerate(msg.image_uris or [], start=1):
                    print(f"    {i:>3}. {uri}")
                for s in msg.suggestions or []:
                    print(f"    → {s.label}: {s.prompt}")
            if msg.image_uris:
                self.last_images = list(msg.image_uris)
        self.shown = len(state.messages)


def _pick(tokens: list[str], last_images: list[str]) -> list[str]:
    out: list[str] = []
    for tok in tokens:
        if tok.isdigit() and 1 <= int(tok) <= len(last_images):
            out.append(last_images[int(tok) - 1])
        else:
            out.append(tok)
    return out


def _ask_consent(status: PermissionStatus) -> bool:
    handle = status.handle
    question = handle.describe() if hasattr(handle, "describe") else f"Allow {status.permission}?"
    answer = input(f"{question} [y/N] ").strip().lower()
    return answer in {"y", "yes"}


def run_chat(settings: AgentSettings, index_path: Path) -> None:
    if index_path.exists():
        store, people = load_index(index_path)
    else:
        print(f"No index at {index_path}; run `python main.py index` first. Starting with an empty library.")
        store, people = InMemoryEmbeddingStore(), PeopleDirectory()

    controller = build_session(settings, store, people)
    conversation = controller.conversation
    printer = _Printer()
    conversation.subscribe(printer)
    conversation.on_gallery_changed(lambda: save_index(index_path, store, people))

    print("Gallery Agent: type a request, or /quit.")
    while True:
        try:
            line = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue

        if line.startswith("/"):
            cmd, *rest = line.split()
            if cmd == "/quit":
                break
            if cmd == "/select":
                conversation.set_selection(_pick(rest, printer.last_images))
                print(f"Selected {len(conversation.state.selected_uris)} photo(s).")
            elif cmd == "/clear":
                conversation.clear_selection()
            elif cmd == "/trash":
                for rec in store.trash():
                    print(f"    {rec.uri}")
            elif cmd == "/restore":
                n = store.restore(rest)
                conversation.emit_gallery_changed()
                print(f"Restored {n} photo(s).")
            elif cmd == "/empty-trash":
                n = store.hard_delete([r.uri for r in store.trash()])
                conversation.emit_gallery_changed()
                print(f"Permanently removed {n} photo(s).")
            else:
                print(f"Unknown command {cmd}")
            continue

        controller.submit_user_input(line)
        while isinstance(controller.state.status, PermissionStatus):
            controller.on_consent_result(_ask_consent(controller.state.status))

    save_index(index_path, store, people)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    configure_logging(settings.logging.level, settings.logging.file)

    root = Path(settings.media.library_root).expanduser()
    try:
        if args.command == "index":
            run_index(settings, args.out)
        else:
            index_path = Path(args.index) if args.index else root / DEFAULT_INDEX_NAME
            run_chat(settings, index_path)
    except (FileNotFoundError, ValueError) as e:
        _log.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
