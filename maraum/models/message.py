"""Message models."""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import Field

from maraum.models.base import BaseSchema

MAX_CONTENT_LENGTH = 8000


class ChatType(str, Enum):
    """Conversation lane within a session."""

    MAIN = "main"
    HELPER = "helper"


class MessageRole(str, Enum):
    """Message sender."""

    USER = "user"
    MAIN_ASSISTANT = "main_assistant"
    HELPER_ASSISTANT = "helper_assistant"


# Each assistant role is pinned to one channel
ASSISTANT_ROLE_BY_CHAT_TYPE = {
    ChatType.MAIN: MessageRole.MAIN_ASSISTANT,
    ChatType.HELPER: MessageRole.HELPER_ASSISTANT,
}


class Message(BaseSchema):
    """One persisted turn.

    The bookkeeping columns are kept on the model for the engine but never
    serialized to clients.
    """

    id: str
    session_id: str
    role: MessageRole
    chat_type: ChatType
    content: str
    sent_at: datetime
    client_message_id: str | None = Field(default=None, exclude=True)
    reply_to_id: str | None = Field(default=None, exclude=True)
    completion_flag_detected: bool = Field(default=False, exclude=True)
    completes_session: bool = Field(default=False, exclude=True)

    @property
    def is_user(self) -> bool:
        return self.role == MessageRole.USER


class SendMessageRequest(BaseSchema):
    """Request body for submitting a message."""

    chat_type: ChatType
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    client_message_id: UUID | None = None

    @property
    def dedup_key(self) -> str | None:
        return str(self.client_message_id) if self.client_message_id else None


class Pagination(BaseSchema):
    limit: int
    offset: int
    total: int
    has_more: bool


class MessagesQuery(BaseSchema):
    """Query parameters for listing a session's messages."""

    chat_type: Literal["main", "helper", "all"] = "all"
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)
    order: Literal["asc", "desc"] = "asc"


class MessagesPage(BaseSchema):
    messages: list[Message]
    pagination: Pagination
