# gallery_agent/tools/consent.py
"""
Consent Broker interface + a local implementation.

Purpose
-------
Destructive (delete) and write (move) operations need a user-mediated
authorization before they run. The broker issues an opaque handle that the host
UI presents to the user; the decision comes back later through
`SessionController.on_consent_result(success)`.

Design
------
- `ConsentBroker` is a Protocol. `request_consent` returns None when a handle
  cannot be issued (nothing to authorize, or the kind is unavailable on this host).
- `InteractiveConsentBroker` issues plain handles; the CLI turns them into a y/N prompt.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from gallery_agent.schemas.models import PermissionType

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsentHandle:
    """What the host needs to ask the user: which ids, for which kind of change."""

    kind: PermissionType
    uris: tuple[str, ...]
    token: str = field(default_factory=lambda: uuid.uuid4().hex)

    def describe(self) -> str:
        verb = "Delete" if self.kind == "delete" else "Modify"
        return f"{verb} {len(self.uris)} photo(s)?"


class ConsentBroker(Protocol):
    def request_consent(self, uris: Sequence[str], kind: PermissionType) -> ConsentHandle | None: ...


class InteractiveConsentBroker(ConsentBroker):
    """
    Issues handles for the enabled kinds. Constructing it with an empty
    `enabled_kinds` models a host where mutations are not permitted at all.
    """

    def __init__(self, enabled_kinds: Iterable[PermissionType] = ("delete", "write")) -> None:
        self.enabled_kinds = frozenset(enabled_kinds)

    def request_consent(self, uris: Sequence[str], kind: PermissionType) -> ConsentHandle | None:
        if not uris:
            return None
        if kind not in self.enabled_kinds:
            _log.info("Consent for %r is unavailable on this host", kind)
            return None
        return ConsentHandle(kind=kind, uris=tuple(uris))


__all__ = ["ConsentHandle", "ConsentBroker", "InteractiveConsentBroker"]
