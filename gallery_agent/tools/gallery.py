# gallery_agent/tools/gallery.py
"""
Media primitives on a local photo library.

Purpose
-------
The dispatcher never touches files directly; it calls a `MediaOperations`
implementation. `LocalGallery` is the filesystem + Pillow one:

  create_collage(uris, title)  -> new file id | None
  apply_filter(uris, name)     -> [new file ids]
  move_to_album(uris, album)   -> bool (False on the first failure)
  photo_metadata(uris)         -> human-readable summary

Layout under the library root
-----------------------------
  Collages/<title>_<ms>.jpg
  Filtered/<stem>_<filter>_<ms>.jpg
  <album>/<original name>

Photo ids are file paths. Moves re-key the matching store records so search
keeps working without re-indexing, and report the old → new ids through
`on_relocated`.
"""

from __future__ import annotations

import logging
import re
import shutil
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

from PIL import Image

from gallery_agent.core.errors import MediaOperationError
from gallery_agent.core.media.imaging import apply_named_filter, normalize_filter_name, read_exif, stitch_vertical
from gallery_agent.store.embedding_store import EmbeddingStore

_log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\- ]+")


class MediaOperations(Protocol):
    def create_collage(self, uris: Sequence[str], title: str) -> str | None: ...

    def apply_filter(self, uris: Sequence[str], filter_name: str) -> list[str]: ...

    def move_to_album(self, uris: Sequence[str], album_name: str) -> bool: ...

    def photo_metadata(self, uris: Sequence[str]) -> str: ...


def _safe_name(text: str, fallback: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("", text or "").strip()
    return cleaned or fallback


def _now_ms() -> int:
    return int(time.time() * 1000)


RelocationListener = Callable[[Mapping[str, str]], None]


class LocalGallery(MediaOperations):
    """
    `on_relocated` receives the {old id: new id} mapping of every file a move
    actually relocated (also when the move stops early), so holders of photo
    ids such as the selection caches can follow the files.
    """

    def __init__(
        self,
        root: str | Path,
        store: EmbeddingStore,
        *,
        jpeg_quality: int = 95,
        on_relocated: RelocationListener | None = None,
    ) -> None:
        self.root = Path(root).expanduser()
        self.store = store
        self.jpeg_quality = jpeg_quality
        self.on_relocated = on_relocated

    # ---------- Collage ----------

    def create_collage(self, uris: Sequence[str], title: str) -> str | None:
        images: list[Image.Image] = []
        for uri in uris:
            try:
                with Image.open(uri) as im:
                    images.append(im.convert("RGB"))
            except Exception as exc:  # noqa: BLE001
                _log.warning("Skipping unreadable image %s: %s", uri, exc)
        if not images:
            raise MediaOperationError("No readable images to build a collage from.")

        out_dir = self.root / "Collages"
        out_dir.mkdir(parents=True, exist_ok=True)
        name = _safe_name(title, "Collage").replace(" ", "_")
        target = out_dir / f"{name}_{_now_ms()}.jpg"
        stitch_vertical(images).save(target, format="JPEG", quality=self.jpeg_quality)
        _log.info("Created collage %s from %d image(s)", target, len(images))
        return str(target)

    # ---------- Filters ----------

    def apply_filter(self, uris: Sequence[str], filter_name: str) -> list[str]:
        try:
            kind = normalize_filter_name(filter_name)
        except ValueError as e:
            raise MediaOperationError(str(e)) from e

        out_dir = self.root / "Filtered"
        out_dir.mkdir(parents=True, exist_ok=True)
        created: list[str] = []
        for uri in uris:
            src = Path(uri)
            try:
                with Image.open(src) as im:
                    filtered = apply_named_filter(im, kind)
            except Exception as exc:  # noqa: BLE001
                _log.warning("Skipping %s for filter %s: %s", uri, kind, exc)
                continue
            target = out_dir / f"{src.stem}_{kind}_{_now_ms()}.jpg"
            filtered.save(target, format="JPEG", quality=self.jpeg_quality)
            created.append(str(target))
        return created

    # ---------- Albums ----------

    def move_to_album(self, uris: Sequence[str], album_name: str) -> bool:
        album_dir = self.root / _safe_name(album_name, "New Album")
        album_dir.mkdir(parents=True, exist_ok=True)
        moved: dict[str, str] = {}
        try:
            for uri in uris:
                src = Path(uri)
                if not src.is_file():
                    _log.warning("Move aborted: %s does not exist", uri)
                    return False
                target = self._free_path(album_dir / src.name)
                try:
                    shutil.move(str(src), str(target))
                except OSError as exc:
                    _log.warning("Move aborted at %s: %s", uri, exc)
                    return False
                self.store.relocate(uri, str(target))
                moved[uri] = str(target)
        finally:
            if moved and self.on_relocated is not None:
                self.on_relocated(moved)
        _log.info("Moved %d photo(s) to %s", len(uris), album_dir)
        return True

    @staticmethod
    def _free_path(candidate: Path) -> Path:
        if not candidate.exists():
            return candidate
        n = 1
        while True:
            alt = candidate.with_name(f"{candidate.stem}_{n}{candidate.suffix}")
            if not alt.exists():
                return alt
            n += 1

    # ---------- Metadata ----------

    def photo_metadata(self, uris: Sequence[str]) -> str:
        if not uris:
            return "No photos selected."
        lines: list[str] = []
        for uri in uris:
            rec = self.store.by_uri(uri)
            exif = read_exif(uri) if Path(uri).is_file() else {"date_taken": None, "camera_model": None}

            date_ms = (rec.date_taken if rec and rec.date_taken else None) or exif.get("date_taken")
            camera = (rec.camera_model if rec else None) or exif.get("camera_model")
            parts = [Path(uri).name]
            if isinstance(date_ms, int) and date_ms > 0:
                parts.append(f"taken {datetime.fromtimestamp(date_ms / 1000).strftime('%Y-%m-%d %H:%M')}")
            else:
                parts.append("date unknown")
            if rec and rec.width and rec.height:
                parts.append(f"{rec.width}x{rec.height}")
            if camera:
                parts.append(f"camera {camera}")
            if rec and rec.location:
                parts.append(f"location {rec.location}")
            lines.append(", ".join(parts))
        return "\n".join(lines)


__all__ = ["MediaOperations", "LocalGallery", "RelocationListener"]
