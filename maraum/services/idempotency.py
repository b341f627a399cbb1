"""Deduplication of retried message submissions.

A client may resend a message with the same ``clientMessageId``. The store
keeps that key unique per (session, channel) and keeps ``reply_to_id``
unique, so the guard only has to read back what was already recorded.
"""

import logging

from pydantic import BaseModel

from maraum.core.errors import StoreError
from maraum.models.message import ChatType, Message
from maraum.services.store import SupabaseStore

logger = logging.getLogger(__name__)


class PriorExchange(BaseModel):
    """Human turn recorded under a key and, when present, its assistant turn."""

    user_message: Message
    assistant_message: Message | None = None

    @property
    def is_complete(self) -> bool:
        return self.assistant_message is not None


class IdempotencyGuard:
    """Looks up prior exchanges by deduplication key."""

    def __init__(self, store: SupabaseStore) -> None:
        self.store = store

    async def lookup(
        self, session_id: str, chat_type: ChatType, key: str | None
    ) -> PriorExchange | None:
        """Return the prior exchange for ``key``, or None if there is none."""
        if not key:
            return None
        user_message = await self.store.find_message_by_client_id(session_id, chat_type, key)
        if user_message is None:
            return None
        assistant_message = await self.store.find_reply(user_message.id)
        if assistant_message is None:
            logger.info(
                "Resuming exchange with saved human turn and no reply",
                extra={"session_id": session_id, "chat_type": chat_type.value},
            )
        return PriorExchange(user_message=user_message, assistant_message=assistant_message)

    async def winning_exchange(
        self, session_id: str, chat_type: ChatType, key: str
    ) -> PriorExchange:
        """Read back the exchange of a concurrent twin that won the insert."""
        prior = await self.lookup(session_id, chat_type, key)
        if prior is None:
            raise StoreError(
                "Duplicate message key reported but no matching message found",
                {"sessionId": session_id, "chatType": chat_type.value},
            )
        return prior

    async def winning_reply(self, user_message_id: str) -> Message:
        """Read back the assistant turn a concurrent twin already recorded."""
        reply = await self.store.find_reply(user_message_id)
        if reply is None:
            raise StoreError(
                "Duplicate reply reported but no matching message found",
                {"messageId": user_message_id},
            )
        return reply
