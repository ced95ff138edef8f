# gallery_agent/schemas/models.py

from __future__ import annotations

import uuid
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Sender = Literal["user", "agent", "error"]
PermissionType = Literal["delete", "write"]
ResponseStatus = Literal["complete", "requires_action"]

# =========================
# Conversation transcript
# =========================


class Suggestion(BaseModel):
    """A follow-up prompt the planner offers alongside a final message."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Short button text shown to the user.")
    prompt: str = Field(..., description="Text submitted as user input when the suggestion is picked.")


class ChatMessage(BaseModel):
    """
    One immutable transcript entry.

    `has_selection_prompt` and `is_cleanup_prompt` are presentation hints: the first
    marks messages whose images the user may select, the second marks the message that
    opens the duplicate review flow.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Unique message id.")
    text: str
    sender: Sender
    image_uris: list[str] | None = Field(None, description="Images attached to the message, if any.")
    has_selection_prompt: bool = False
    is_cleanup_prompt: bool = False
    suggestions: list[Suggestion] | None = None


# =========================
# Planner wire protocol
# =========================


class ToolCall(BaseModel):
    """A planner-issued request to run one named local operation."""

    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one ToolCall; `content` is a compact JSON rendering of the payload."""

    tool_call_id: str
    content: str


class AgentRequest(BaseModel):
    """
    Client → planner request. Serialized with camelCase aliases:

        {"sessionId", "userInput", "toolResult", "selectedUris", "base64Images"}

    Exactly one of `user_input` / `tool_result` is populated.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(None, alias="sessionId")
    user_input: str | None = Field(None, alias="userInput")
    tool_result: ToolResult | None = Field(None, alias="toolResult")
    selected_uris: list[str] | None = Field(None, alias="selectedUris")
    base64_images: list[str] | None = Field(None, alias="base64Images")

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> AgentRequest:
        if (self.user_input is None) == (self.tool_result is None):
            raise ValueError("exactly one of userInput or toolResult must be set")
        return self

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AgentResponse(BaseModel):
    """Planner → client response."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    status: ResponseStatus
    agent_message: str | None = Field(None, alias="agentMessage")
    next_actions: list[ToolCall] | None = Field(None, alias="nextActions")
    suggested_actions: list[Suggestion] | None = Field(None, alias="suggestedActions")


# =========================
# Session status (tagged union)
# =========================


class IdleStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["idle"] = "idle"


class LoadingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["loading"] = "loading"
    message: str = "Thinking..."


class PermissionStatus(BaseModel):
    """The session is suspended until the consent broker reports a decision."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["requires_permission"] = "requires_permission"
    permission: PermissionType
    message: str = "Waiting for permission..."
    handle: Any = Field(None, description="Opaque consent handle issued by the broker.")


AgentStatus = Annotated[IdleStatus | LoadingStatus | PermissionStatus, Field(discriminator="kind")]


class PendingMutation(BaseModel):
    """The single consent-gated operation awaiting a decision."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    tool_call_id: str
    kind: PermissionType
    args: dict[str, Any] = Field(default_factory=dict, description="Argument snapshot replayed on approval.")
    handle: Any = None


# =========================
# Gallery records
# =========================


class ImageRecord(BaseModel):
    """
    Indexed photo: identifier, embedding, and the metadata used by filters.

    `date_taken` is epoch milliseconds (0 when unknown).
    """

    uri: str
    embedding: list[float] = Field(default_factory=list)
    location: str | None = None
    date_taken: int = Field(0, ge=0, description="Capture time in epoch milliseconds.")
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)
    camera_model: str | None = None
    is_deleted: bool = False


class DuplicateGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_uri: str
    duplicate_uris: list[str]


class ConversationState(BaseModel):
    """Snapshot published to subscribers after every state change."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    messages: tuple[ChatMessage, ...] = ()
    status: AgentStatus = Field(default_factory=IdleStatus)
    selected_uris: tuple[str, ...] = ()
    last_search_results: tuple[str, ...] = ()
    last_manual_selection: tuple[str, ...] = ()
    cleanup_groups: tuple[DuplicateGroup, ...] = ()

    @property
    def is_idle(self) -> bool:
        return isinstance(self.status, IdleStatus)


__all__ = [
    "Sender",
    "PermissionType",
    "ResponseStatus",
    "Suggestion",
    "ChatMessage",
    "ToolCall",
    "ToolResult",
    "AgentRequest",
    "AgentResponse",
    "IdleStatus",
    "LoadingStatus",
    "PermissionStatus",
    "AgentStatus",
    "PendingMutation",
    "ImageRecord",
    "DuplicateGroup",
    "ConversationState",
]
