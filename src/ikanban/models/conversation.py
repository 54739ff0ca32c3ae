from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ConversationRole(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ModelRef(BaseModel):
    provider_id: str
    model_id: str


class ConversationSessionMeta(BaseModel):
    session_id: str
    project_id: str
    task_id: str
    directory: str
    title: str | None = None
    created_at: int
    updated_at: int
    last_message_at: int | None = None


class MessagePart(BaseModel):
    text: str | None = None


class ConversationMessage(BaseModel):
    """A runtime message with its loosely typed fields normalized."""

    id: str
    session_id: str
    role: str
    created_at: int
    parts: list[MessagePart] = Field(default_factory=list)
    error: Any = None


class ConversationMessageMeta(BaseModel):
    id: str
    session_id: str
    role: ConversationRole
    created_at: int
    part_count: int
    preview: str
    has_error: bool


class PromptSubmission(BaseModel):
    session_id: str
    prompt: str
    submitted_at: int


def is_conversation_role(value: str) -> bool:
    return value in ConversationRole._value2member_map_


def to_message_meta(message: ConversationMessage) -> ConversationMessageMeta:
    """Project a message into the shape the UI renders.

    Unknown roles are shown as assistant output instead of being dropped.
    """
    preview = "".join(part.text or "" for part in message.parts).strip()
    role = (
        ConversationRole(message.role)
        if is_conversation_role(message.role)
        else ConversationRole.ASSISTANT
    )
    return ConversationMessageMeta(
        id=message.id,
        session_id=message.session_id,
        role=role,
        created_at=message.created_at,
        part_count=len(message.parts),
        preview=preview,
        has_error=message.error is not None,
    )


def touch_session(
    session: ConversationSessionMeta, at: int,
) -> ConversationSessionMeta:
    return session.model_copy(update={"updated_at": at, "last_message_at": at})
