# gallery_agent/inputs/settings.py
"""
Settings loader for the gallery agent.

Goals
-----
- Deterministic, file-first configuration validated with Pydantic.
- Every section has defaults; running without a config file is supported.
- Minimal environment-variable overrides for CI/CLI convenience.

JSON shape
----------
{
  "planner": {"base_url": "http://127.0.0.1:8000", "endpoint": "agent/invoke", "timeout_s": 60},
  "search":  {"similarity_threshold": 0.2, "max_unranked_results": 100},
  "cleanup": {"duplicate_threshold": 0.985},
  "media":   {"library_root": "~/Pictures", "default_album": "New Album", ...},
  "logging": {"level": "INFO", "file": "logs/gallery_agent.log"}
}

Environment overrides (optional)
--------------------------------
- GALLERY_AGENT_BASE_URL              -> planner.base_url
- GALLERY_AGENT_TIMEOUT_S             -> planner.timeout_s (float)
- GALLERY_AGENT_SIMILARITY_THRESHOLD  -> search.similarity_threshold (float)
- GALLERY_AGENT_DUPLICATE_THRESHOLD   -> cleanup.duplicate_threshold (float)
- GALLERY_AGENT_LIBRARY               -> media.library_root
- GALLERY_AGENT_LOG_LEVEL             -> logging.level

Public API
----------
- class SettingsLoader:
    - load(path: str | Path | None) -> AgentSettings
    - load_json(text: str) -> AgentSettings
    - with_overrides(cfg, **kwargs) -> AgentSettings (non-destructive copies)
- function load_settings(path: str | Path | None) -> AgentSettings  (convenience)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, Field, ValidationError

# ----------------------------
# Pydantic models
# ----------------------------


class PlannerOptions(BaseModel):
    """Where and how to reach the remote planner."""

    base_url: str = Field("http://127.0.0.1:8000", description="Planner service root URL.")
    endpoint: str = Field("agent/invoke", description="Path (relative to base_url) of the invoke endpoint.")
    timeout_s: float = Field(60.0, gt=0, description="Per-request timeout in seconds.")


class SearchOptions(BaseModel):
    similarity_threshold: float = Field(
        0.2, ge=-1, le=1, description="Candidates must score strictly above this cosine similarity."
    )
    max_unranked_results: int = Field(100, ge=1, description="Cap for filter-only (blank query) searches.")


class CleanupOptions(BaseModel):
    duplicate_threshold: float = Field(
        0.985, ge=-1, le=1, description="Records scoring strictly above this similarity are duplicates."
    )


class MediaOptions(BaseModel):
    """Local library and media-primitive settings."""

    library_root: str = Field("~/Pictures", description="Root folder of the local photo library.")
    default_album: str = Field("New Album", description="Album used when a move names none.")
    collage_max_photos: int = Field(4, ge=1, description="Maximum photos stitched into one collage.")
    encode_max_side: int = Field(1024, ge=16, description="Longest side of images attached to planner requests.")
    jpeg_quality: int = Field(80, ge=1, le=100, description="JPEG quality for attached images.")
    output_quality: int = Field(95, ge=1, le=100, description="JPEG quality for collages and filtered copies.")


class LoggingOptions(BaseModel):
    level: str = Field("INFO", description="Root level for the gallery_agent logger.")
    file: str | None = Field("logs/gallery_agent.log", description="Rotating log file; null disables file logging.")


class AgentSettings(BaseModel):
    """Full settings payload."""

    planner: PlannerOptions = PlannerOptions()
    search: SearchOptions = SearchOptions()
    cleanup: CleanupOptions = CleanupOptions()
    media: MediaOptions = MediaOptions()
    logging: LoggingOptions = LoggingOptions()


# ----------------------------
# Loader
# ----------------------------


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with light env overrides.

    Default search (when path=None):
        1) ./gallery_agent.json
        2) built-in defaults
    """

    env_prefix: str = "GALLERY_AGENT_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> AgentSettings:
        """
        Load settings from a JSON file (path). If path is None, try defaults.

        Raises:
            FileNotFoundError: an explicit path does not exist.
            ValueError: invalid JSON or failed validation.
        """
        p = self._resolve_path(path)
        raw: dict[str, Any] = self._read_json_file(p) if p is not None else {}
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def load_json(self, text: str) -> AgentSettings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Settings JSON root must be an object.")
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def with_overrides(
        self,
        cfg: AgentSettings,
        *,
        base_url: str | None = None,
        library_root: str | None = None,
        log_level: str | None = None,
        similarity_threshold: float | None = None,
    ) -> AgentSettings:
        """
        Return a *new* AgentSettings with provided non-null overrides applied.
        Does not mutate the original instance.
        """
        updates: dict[str, Any] = {}
        if base_url is not None:
            updates["planner"] = cfg.planner.model_copy(update={"base_url": base_url})
        if library_root is not None:
            updates["media"] = cfg.media.model_copy(update={"library_root": library_root})
        if log_level is not None:
            updates["logging"] = cfg.logging.model_copy(update={"level": log_level})
        if similarity_threshold is not None:
            updates["search"] = cfg.search.model_copy(update={"similarity_threshold": similarity_threshold})
        if not updates:
            return cfg
        return cfg.model_copy(update=updates)

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path | None:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Settings file not found: {p}")
            return p
        candidate = Path("gallery_agent.json")
        return candidate if candidate.exists() else None

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Settings root in {p} must be an object.")
        return cast(dict[str, Any], data)

    def _parse_root(self, data: dict[str, Any]) -> AgentSettings:
        try:
            return AgentSettings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed:\n{e}") from e

    def _apply_env_overrides(self, cfg: AgentSettings) -> AgentSettings:
        """
        Apply light, optional overrides from environment variables.
        Unparseable numbers are ignored; the validated value is kept.
        """
        prefix = self.env_prefix
        updates: dict[str, BaseModel] = {}

        planner_updates: dict[str, Any] = {}
        base_url = os.getenv(f"{prefix}BASE_URL")
        if base_url:
            planner_updates["base_url"] = base_url
        timeout = _env_float(f"{prefix}TIMEOUT_S")
        if timeout is not None and timeout > 0:
            planner_updates["timeout_s"] = timeout
        if planner_updates:
            updates["planner"] = cfg.planner.model_copy(update=planner_updates)

        sim = _env_float(f"{prefix}SIMILARITY_THRESHOLD")
        if sim is not None:
            updates["search"] = cfg.search.model_copy(update={"similarity_threshold": sim})

        dup = _env_float(f"{prefix}DUPLICATE_THRESHOLD")
        if dup is not None:
            updates["cleanup"] = cfg.cleanup.model_copy(update={"duplicate_threshold": dup})

        library = os.getenv(f"{prefix}LIBRARY")
        if library:
            updates["media"] = cfg.media.model_copy(update={"library_root": library})

        level = os.getenv(f"{prefix}LOG_LEVEL")
        if level:
            updates["logging"] = cfg.logging.model_copy(update={"level": level.strip().upper()})

        if not updates:
            return cfg
        return cfg.model_copy(update=updates)


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        # Ignore bad value; keep validated setting
        return None


# ----------------------------
# Convenience function
# ----------------------------


def load_settings(path: str | Path | None = None) -> AgentSettings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)


__all__ = [
    "PlannerOptions",
    "SearchOptions",
    "CleanupOptions",
    "MediaOptions",
    "LoggingOptions",
    "AgentSettings",
    "SettingsLoader",
    "load_settings",
]
