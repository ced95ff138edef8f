# gallery_agent/core/errors.py
"""
Typed errors + utilities for the agent session and local tools.

Exports
-------
- GalleryAgentError
- PlannerError, PlannerTransportError, PlannerResponseError, ProtocolViolationError
- ToolExecutionError, ConsentUnavailableError, MediaOperationError
- PendingMutationConflictError
- AGENT_ERRORS
- classify_planner_error(exc)
- planner_error_guard()
- tool_error_payload(exc)
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError

# =========================
# Exception types
# =========================


class GalleryAgentError(RuntimeError):
    """Base class for all gallery agent failures."""


class PlannerError(GalleryAgentError):
    """The remote planner could not produce a usable response."""


class PlannerTransportError(PlannerError):
    """HTTP/transport failure while talking to the planner."""


class PlannerResponseError(PlannerError):
    """The planner answered, but the body was not a valid AgentResponse."""


class ProtocolViolationError(PlannerError):
    """The planner asked for an action but supplied none."""


class ToolExecutionError(GalleryAgentError):
    """A local tool failed; reported back to the planner as an error payload."""


class ConsentUnavailableError(ToolExecutionError):
    """The consent broker refused to issue a handle for the requested mutation."""


class MediaOperationError(ToolExecutionError):
    """A file/media primitive (collage, filter, move) failed."""


class PendingMutationConflictError(GalleryAgentError):
    """A second consent-gated mutation was started while one is still pending."""


# Selector tuple for grouped exception handling
AGENT_ERRORS = (
    PlannerTransportError,
    PlannerResponseError,
    ProtocolViolationError,
    ConsentUnavailableError,
    MediaOperationError,
    PendingMutationConflictError,
)

# =========================
# Classification helpers
# =========================


def classify_planner_error(exc: Exception) -> PlannerError:
    """
    Map arbitrary exceptions raised while calling the planner to a typed PlannerError.

    Heuristics:
      - requests.* errors → PlannerTransportError
      - JSON decode / pydantic validation errors → PlannerResponseError
      - Any PlannerError subclass → passed through
      - Fallback → PlannerError
    """
    if isinstance(exc, PlannerError):
        return exc

    try:
        import requests

        if isinstance(exc, requests.RequestException):
            return PlannerTransportError(str(exc))
    except Exception:
        pass

    if isinstance(exc, json.JSONDecodeError | ValidationError):
        return PlannerResponseError(f"Malformed planner response: {exc}")

    if isinstance(exc, ConnectionError | TimeoutError):
        return PlannerTransportError(str(exc))

    return PlannerError(f"{type(exc).__name__}: {exc}")


@contextmanager
def planner_error_guard() -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from the planner client."""
    try:
        yield
    except AGENT_ERRORS:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_planner_error(exc) from exc


def tool_error_payload(exc: BaseException | str) -> dict[str, Any]:
    """Structured `{"error": reason}` payload sent back to the planner."""
    reason = exc if isinstance(exc, str) else (str(exc) or type(exc).__name__)
    return {"error": reason}


__all__ = [
    "GalleryAgentError",
    "PlannerError",
    "PlannerTransportError",
    "PlannerResponseError",
    "ProtocolViolationError",
    "ToolExecutionError",
    "ConsentUnavailableError",
    "MediaOperationError",
    "PendingMutationConflictError",
    "AGENT_ERRORS",
    "classify_planner_error",
    "planner_error_guard",
    "tool_error_payload",
]
