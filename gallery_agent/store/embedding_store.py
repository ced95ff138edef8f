# gallery_agent/store/embedding_store.py
"""
Embedding store contract + an in-memory implementation backed by a JSON index.

Purpose
-------
The store maps photo ids to their embedding and metadata. Search and cleanup
read from it; the consent-approved delete path soft-deletes through it; the
move primitive relocates records when files change path.

Design
------
- `EmbeddingStore` is a Protocol: any engine (SQLite, a device DB, ...) can sit behind it.
- `InMemoryEmbeddingStore` keeps insertion order (search and cleanup are
  order-dependent) and guards every write with a lock so soft-delete is atomic
  with respect to concurrent readers.
- Reads return model copies; callers cannot mutate stored records in place.
- People (named faces → photo ids) live beside the records in `PeopleDirectory`.

Index file shape
----------------
{
  "images": [ImageRecord, ...],
  "people": [{"id": "p1", "name": "Me", "uris": ["..."]}, ...]
}

Public API
----------
- EmbeddingStore (Protocol)
- InMemoryEmbeddingStore
- Person, PeopleDirectory
- load_index(path) -> tuple[InMemoryEmbeddingStore, PeopleDirectory]
- save_index(path, store, people=None) -> Path
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from gallery_agent.schemas.models import ImageRecord

_log = logging.getLogger(__name__)

_SELF_ALIASES = {"me", "my", "myself"}
_SELF_NAME = "Me"


class EmbeddingStore(Protocol):
    def get_all(self) -> list[ImageRecord]: ...

    def by_uri(self, uri: str) -> ImageRecord | None: ...

    def delete_by_uri(self, uri: str) -> None: ...

    def soft_delete(self, uris: Sequence[str]) -> int: ...

    def restore(self, uris: Sequence[str]) -> int: ...

    def put(self, record: ImageRecord) -> None: ...

    def trash(self) -> list[ImageRecord]: ...

    def hard_delete(self, uris: Sequence[str]) -> int: ...

    def relocate(self, old_uri: str, new_uri: str) -> bool: ...


class InMemoryEmbeddingStore(EmbeddingStore):
    """Ordered, thread-safe record store."""

    def __init__(self, records: Iterable[ImageRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, ImageRecord] = {}
        for rec in records:
            self._records[rec.uri] = rec

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ---------- Reads ----------

    def get_all(self) -> list[ImageRecord]:
        """Non-deleted records in insertion order."""
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values() if not r.is_deleted]

    def all_records(self) -> list[ImageRecord]:
        """Every record including trashed ones (persistence uses this)."""
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]

    def by_uri(self, uri: str) -> ImageRecord | None:
        with self._lock:
            rec = self._records.get(uri)
            return rec.model_copy(deep=True) if rec is not None else None

    def trash(self) -> list[ImageRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values() if r.is_deleted]

    # ---------- Writes ----------

    def put(self, record: ImageRecord) -> None:
        with self._lock:
            self._records[record.uri] = record.model_copy(deep=True)

    def delete_by_uri(self, uri: str) -> None:
        with self._lock:
            self._records.pop(uri, None)

    def soft_delete(self, uris: Sequence[str]) -> int:
        return self._set_deleted(uris, True)

    def restore(self, uris: Sequence[str]) -> int:
        return self._set_deleted(uris, False)

    def hard_delete(self, uris: Sequence[str]) -> int:
        """Permanently drop trashed records; live records are left untouched."""
        removed = 0
        with self._lock:
            for uri in uris:
                rec = self._records.get(uri)
                if rec is not None and rec.is_deleted:
                    del self._records[uri]
                    removed += 1
        return removed

    def relocate(self, old_uri: str, new_uri: str) -> bool:
        """Re-key a record after its file moved, keeping its position in the order."""
        with self._lock:
            if old_uri not in self._records or (new_uri != old_uri and new_uri in self._records):
                return False
            self._records = {
                (new_uri if k == old_uri else k): (v.model_copy(update={"uri": new_uri}) if k == old_uri else v)
                for k, v in self._records.items()
            }
            return True

    def _set_deleted(self, uris: Sequence[str], flag: bool) -> int:
        changed = 0
        with self._lock:
            for uri in uris:
                rec = self._records.get(uri)
                if rec is None or rec.is_deleted == flag:
                    continue
                self._records[uri] = rec.model_copy(update={"is_deleted": flag})
                changed += 1
        _log.debug("%s %d record(s)", "Soft-deleted" if flag else "Restored", changed)
        return changed


# =========================
# People
# =========================


class Person(BaseModel):
    id: str
    name: str
    uris: list[str] = Field(default_factory=list, description="Photos this person appears in.")


class PeopleDirectory:
    """Named people and the photos they appear in."""

    def __init__(self, people: Iterable[Person] = ()) -> None:
        self._people = list(people)

    @property
    def people(self) -> list[Person]:
        return list(self._people)

    def find_by_name(self, name: str) -> list[Person]:
        """
        Case-insensitive substring match. "me", "my" and "myself" mean exactly
        the person named "Me".
        """
        needle = (name or "").strip().lower()
        if not needle:
            return []
        if needle in _SELF_ALIASES:
            return [p for p in self._people if p.name.lower() == _SELF_NAME.lower()]
        return [p for p in self._people if needle in p.name.lower()]

    def resolve(self, names: Sequence[str]) -> list[Person]:
        seen: set[str] = set()
        out: list[Person] = []
        for name in names:
            for p in self.find_by_name(name):
                if p.id not in seen:
                    seen.add(p.id)
                    out.append(p)
        return out

    def uris_for(self, people: Sequence[Person]) -> frozenset[str]:
        return frozenset(u for p in people for u in p.uris)


# =========================
# Persistence
# =========================


class _IndexFile(BaseModel):
    images: list[ImageRecord] = Field(default_factory=list)
    people: list[Person] = Field(default_factory=list)


def load_index(path: str | Path) -> tuple[InMemoryEmbeddingStore, PeopleDirectory]:
    """
    Read an index file.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: invalid JSON or failed validation.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Index file not found: {p}")
    try:
        data = _IndexFile.model_validate_json(p.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ValueError(f"Index validation failed for {p}:\n{e}") from e
    _log.info("Loaded %d image(s) and %d person(s) from %s", len(data.images), len(data.people), p)
    return InMemoryEmbeddingStore(data.images), PeopleDirectory(data.people)


def save_index(path: str | Path, store: InMemoryEmbeddingStore, people: PeopleDirectory | None = None) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = _IndexFile(images=store.all_records(), people=people.people if people else [])
    p.write_text(json.dumps(payload.model_dump(mode="json"), indent=2), encoding="utf-8")
    return p


__all__ = [
    "EmbeddingStore",
    "InMemoryEmbeddingStore",
    "Person",
    "PeopleDirectory",
    "load_index",
    "save_index",
]
