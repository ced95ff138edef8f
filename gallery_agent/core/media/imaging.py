# gallery_agent/core/media/imaging.py

from __future__ import annotations

import base64
import io
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Literal

import numpy as np
from PIL import Image, ImageOps

try:
    _RESAMPLE_BICUBIC = Image.Resampling.BICUBIC  # Pillow >= 9.1
except AttributeError:  # Pillow < 9.1
    _RESAMPLE_BICUBIC = Image.BICUBIC

_log = logging.getLogger(__name__)

FilterName = Literal["grayscale", "sepia"]

_FILTER_ALIASES: dict[str, FilterName] = {
    "grayscale": "grayscale",
    "greyscale": "grayscale",
    "black and white": "grayscale",
    "b&w": "grayscale",
    "bw": "grayscale",
    "sepia": "sepia",
}

# Classic sepia tone matrix (rows: output R, G, B)
_SEPIA = np.array(
    [
        [0.393, 0.769, 0.189],
        [0.349, 0.686, 0.168],
        [0.272, 0.534, 0.131],
    ],
    dtype=np.float32,
)

# EXIF tags
_TAG_MODEL = 0x0110
_TAG_DATETIME = 0x0132
_TAG_EXIF_IFD = 0x8769
_TAG_DATETIME_ORIGINAL = 0x9003
_EXIF_DATE_FMT = "%Y:%m:%d %H:%M:%S"


# --- Loading / encoding ------------------------------------------------------


def load_bounded_thumbnail(path: str | Path, max_side: int = 1024) -> Image.Image:
    """Open, apply EXIF orientation, convert to RGB and shrink so the longest side <= max_side."""
    with Image.open(path) as src:
        img = ImageOps.exif_transpose(src) or src
        img = img.convert("RGB")
    img.thumbnail((max_side, max_side), _RESAMPLE_BICUBIC)
    return img


def encode_jpeg_base64(path: str | Path, *, max_side: int = 1024, quality: int = 80) -> str:
    """Downscaled JPEG rendition of an image as a base64 string (no data: prefix)."""
    img = load_bounded_thumbnail(path, max_side=max_side)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def encode_images(uris: Sequence[str], *, max_side: int = 1024, quality: int = 80) -> list[str]:
    """Base64 renditions of every readable image; unreadable files are skipped."""
    out: list[str] = []
    for uri in uris:
        try:
            out.append(encode_jpeg_base64(uri, max_side=max_side, quality=quality))
        except Exception as exc:  # noqa: BLE001
            _log.warning("Skipping attachment %s: %s", uri, exc)
    return out


# --- Collage -----------------------------------------------------------------


def stitch_vertical(images: Sequence[Image.Image], *, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """
    Stack images top-to-bottom on a canvas as wide as the widest input.
    Narrower images are scaled up to that width, preserving aspect ratio.
    """
    if not images:
        raise ValueError("stitch_vertical needs at least one image")
    width = max(im.width for im in images)
    scaled: list[Image.Image] = []
    for im in images:
        rgb = im.convert("RGB")
        if rgb.width != width:
            height = max(1, round(rgb.height * width / rgb.width))
            rgb = rgb.resize((width, height), _RESAMPLE_BICUBIC)
        scaled.append(rgb)

    canvas = Image.new("RGB", (width, sum(im.height for im in scaled)), background)
    y = 0
    for im in scaled:
        canvas.paste(im, (0, y))
        y += im.height
    return canvas


# --- Filters -----------------------------------------------------------------


def normalize_filter_name(name: str | None) -> FilterName:
    """Map user-facing filter names to a supported filter; raises ValueError if unknown."""
    key = (name or "grayscale").strip().lower()
    try:
        return _FILTER_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unsupported filter '{name}'. Supported: grayscale, sepia.") from None


def apply_named_filter(img: Image.Image, name: str | None) -> Image.Image:
    kind = normalize_filter_name(name)
    rgb = img.convert("RGB")
    if kind == "grayscale":
        return ImageOps.grayscale(rgb).convert("RGB")
    arr = np.asarray(rgb, dtype=np.float32)
    toned = np.clip(arr @ _SEPIA.T, 0, 255).astype(np.uint8)
    return Image.fromarray(toned)


# --- EXIF --------------------------------------------------------------------


def read_exif(path: str | Path) -> dict[str, object]:
    """
    Best-effort EXIF summary: {"date_taken": epoch ms | None, "camera_model": str | None}.
    Files without EXIF (or unreadable EXIF) yield Nones.
    """
    out: dict[str, object] = {"date_taken": None, "camera_model": None}
    try:
        with Image.open(path) as im:
            exif = im.getexif()
    except Exception:
        return out
    if not exif:
        return out

    model = exif.get(_TAG_MODEL)
    if isinstance(model, str) and model.strip():
        out["camera_model"] = model.strip().strip("\x00")

    raw_date = None
    try:
        raw_date = exif.get_ifd(_TAG_EXIF_IFD).get(_TAG_DATETIME_ORIGINAL)
    except Exception:
        raw_date = None
    raw_date = raw_date or exif.get(_TAG_DATETIME)
    if isinstance(raw_date, str):
        try:
            moment = datetime.strptime(raw_date.strip().strip("\x00"), _EXIF_DATE_FMT)
            out["date_taken"] = int(moment.timestamp() * 1000)
        except ValueError:
            pass
    return out


__all__ = [
    "FilterName",
    "load_bounded_thumbnail",
    "encode_jpeg_base64",
    "encode_images",
    "stitch_vertical",
    "normalize_filter_name",
    "apply_named_filter",
    "read_exif",
]
