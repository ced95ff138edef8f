# gallery_agent/store/indexer.py
"""
Build an embedding index from a folder of photos.

Each readable image becomes an ImageRecord:
  - uri:          absolute file path
  - embedding:    encoder(filename words + parent folder name)
  - width/height: from Pillow
  - date_taken:   EXIF DateTimeOriginal/DateTime, else file mtime
  - camera_model: EXIF Model
Location and trash state are carried over from a previous index when given;
this module has no geocoder.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from gallery_agent.core.media.imaging import read_exif
from gallery_agent.schemas.models import ImageRecord
from gallery_agent.store.embedding_store import InMemoryEmbeddingStore
from gallery_agent.tools.encoders.provider_base import TextEncoder

_log = logging.getLogger(__name__)

_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}


def scan_library(root: str | Path) -> list[Path]:
    base = Path(root).expanduser()
    if not base.is_dir():
        raise FileNotFoundError(f"Library folder not found: {base}")
    return sorted(p.resolve() for p in base.rglob("*") if p.is_file() and p.suffix.lower() in _IMAGE_EXTS)


def describe_image(path: Path, encoder: TextEncoder) -> ImageRecord | None:
    try:
        with Image.open(path) as im:
            width, height = im.size
    except Exception as exc:  # noqa: BLE001
        _log.warning("Skipping unreadable image %s: %s", path, exc)
        return None

    exif = read_exif(path)
    date_ms = exif.get("date_taken")
    if not isinstance(date_ms, int) or date_ms <= 0:
        date_ms = int(path.stat().st_mtime * 1000)
    camera = exif.get("camera_model")

    text = f"{path.stem} {path.parent.name}".replace("_", " ").replace("-", " ")
    return ImageRecord(
        uri=str(path),
        embedding=[float(x) for x in encoder.encode(text)],
        date_taken=max(0, date_ms),
        width=width,
        height=height,
        camera_model=camera if isinstance(camera, str) else None,
    )


def build_index(
    root: str | Path, encoder: TextEncoder, *, previous: InMemoryEmbeddingStore | None = None
) -> InMemoryEmbeddingStore:
    records: list[ImageRecord] = []
    for path in scan_library(root):
        rec = describe_image(path, encoder)
        if rec is None:
            continue
        old = previous.by_uri(rec.uri) if previous is not None else None
        if old is not None:
            rec = rec.model_copy(update={"location": old.location, "is_deleted": old.is_deleted})
        records.append(rec)
    _log.info("Indexed %d image(s) under %s", len(records), root)
    return InMemoryEmbeddingStore(records)


__all__ = ["scan_library", "describe_image", "build_index"]
