# gallery_agent/orchestrators/session.py
"""
Session Controller — the planner request/response loop.

Purpose
-------
Drive one conversational turn at a time:

    user input ──► planner ──► complete           → agent message, Idle
                         └──► requires_action    → run FIRST action only
                                   ├─ immediate   → tool result ──► planner ...
                                   └─ suspended   → RequiresPermission
    consent result ──► finalize pending mutation → tool result ──► planner ...

Status machine
--------------
Idle → Loading → (Idle | RequiresPermission → Loading → ...) → Idle.
Every failure path appends an error message and lands on Idle.

Design
------
- Synchronous: the planner call blocks inside the turn. A consent suspension
  returns control to the host; the turn resumes in `on_consent_result`.
- Busy guard: user input is accepted only while Idle (RequiresPermission counts
  as busy). The check-and-transition is atomic.
- The session id is whatever the last planner response said; it starts as None.
- Tool results are only ever produced here, exactly one per ToolCall.
- Multi-action responses: only the first action runs; the rest are logged and dropped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from gallery_agent.clients.planner import Planner
from gallery_agent.core.errors import ProtocolViolationError, tool_error_payload
from gallery_agent.orchestrators.pending import PendingMutationTracker
from gallery_agent.orchestrators.state import ConversationStore
from gallery_agent.schemas.models import (
    AgentRequest,
    AgentResponse,
    ChatMessage,
    ConversationState,
    LoadingStatus,
    PermissionStatus,
    ToolResult,
)
from gallery_agent.tools.dispatcher import ToolDispatcher, ToolOutput

_log = logging.getLogger(__name__)

ImageEncoder = Callable[[Sequence[str]], list[str]]


class SessionController:
    def __init__(
        self,
        planner: Planner,
        dispatcher: ToolDispatcher,
        conversation: ConversationStore,
        tracker: PendingMutationTracker,
        *,
        image_encoder: ImageEncoder | None = None,
    ) -> None:
        self.planner = planner
        self.dispatcher = dispatcher
        self.conversation = conversation
        self.tracker = tracker
        self.image_encoder = image_encoder
        self.session_id: str | None = None
        self._guard = threading.Lock()

    @property
    def state(self) -> ConversationState:
        return self.conversation.state

    @property
    def is_busy(self) -> bool:
        return not self.conversation.state.is_idle

    # ---------- Entry points ----------

    def submit_user_input(self, text: str) -> bool:
        """
        Start a turn. Returns False (and changes nothing) when a turn is already in flight.
        """
        with self._guard:
            if self.is_busy:
                _log.info("Input dropped; session is busy (%s)", self.conversation.state.status.kind)
                return False
            captured = self.conversation.capture_selection()
            self.conversation.add_message(ChatMessage(text=text, sender="user", image_uris=list(captured) or None))
            self.conversation.set_status(LoadingStatus(message="Reading images..." if captured else "Thinking..."))

        try:
            images = self._encode_images(captured)
            if captured:
                self.conversation.set_status(LoadingStatus(message="Thinking..."))
            request = AgentRequest(
                session_id=self.session_id,
                user_input=text,
                selected_uris=list(captured) or None,
                base64_images=images,
            )
        except Exception as exc:  # noqa: BLE001
            self._fail(exc)
            return True
        self._drive(request)
        return True

    def on_consent_result(self, success: bool) -> bool:
        """
        Resume the suspended turn with the host's consent decision.
        Returns False when no mutation was pending (stale/duplicate result).
        """
        pending = self.tracker.take()
        if pending is None:
            _log.warning("Consent result (%s) ignored; no mutation is pending", success)
            return False

        self.conversation.set_status(LoadingStatus(message=f"Working on it: {pending.kind}..."))
        try:
            output = self.dispatcher.complete_mutation(pending, success)
        except Exception as exc:  # noqa: BLE001
            _log.exception("Finalizing %s mutation failed", pending.kind)
            self.conversation.add_message(ChatMessage(text=f"Error: {exc}", sender="error"))
            output = ToolOutput(tool_error_payload(f"Failed: {exc}"))
        self._drive(self._tool_result_request(pending.tool_call_id, output))
        return True

    # ---------- Turn loop ----------

    def _drive(self, request: AgentRequest | None) -> None:
        try:
            while request is not None:
                response = self.planner.invoke(request)
                self.session_id = response.session_id
                request = self._handle_response(response)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc)

    def _handle_response(self, response: AgentResponse) -> AgentRequest | None:
        if response.status == "complete":
            self.conversation.add_message(
                ChatMessage(
                    text=response.agent_message or "Done.",
                    sender="agent",
                    suggestions=response.suggested_actions,
                )
            )
            self.conversation.set_idle()
            return None

        actions = response.next_actions or []
        if not actions:
            raise ProtocolViolationError("Agent error: No action provided.")
        if len(actions) > 1:
            _log.warning("Planner sent %d actions; running only the first (%s)", len(actions), actions[0].name)

        call = actions[0]
        self.conversation.set_status(LoadingStatus(message=f"Working on it: {call.name}..."))
        output = self.dispatcher.execute(call)
        if output is None:
            pending = self.tracker.pending
            if pending is None:
                raise ProtocolViolationError(f"Tool {call.name} suspended without a pending mutation.")
            self.conversation.set_status(PermissionStatus(permission=pending.kind, handle=pending.handle))
            return None
        return self._tool_result_request(call.id, output)

    def _tool_result_request(self, tool_call_id: str, output: ToolOutput) -> AgentRequest:
        self.conversation.set_status(LoadingStatus(message="Sending result..."))
        return AgentRequest(
            session_id=self.session_id,
            tool_result=ToolResult(tool_call_id=tool_call_id, content=output.to_content()),
        )

    def _encode_images(self, uris: Sequence[str]) -> list[str] | None:
        if not uris or self.image_encoder is None:
            return None
        try:
            return self.image_encoder(uris) or None
        except Exception as exc:  # noqa: BLE001
            _log.warning("Could not attach %d image(s): %s", len(uris), exc)
            return None

    def _fail(self, exc: BaseException) -> None:
        if isinstance(exc, ProtocolViolationError):
            _log.error("%s", exc)
        else:
            _log.exception("Turn aborted")
        self.tracker.clear()
        self.conversation.add_message(ChatMessage(text=str(exc) or "Unknown network error", sender="error"))
        self.conversation.set_idle()


__all__ = ["SessionController", "ImageEncoder"]
