"""Persistent store adapter backed by Supabase (PostgREST).

The row-level guarantees the engine relies on are enforced by the schema in
``supabase/migrations``:

- unique (session_id, chat_type, client_message_id) for deduplication keys
- unique reply_to_id, so a human turn gets at most one assistant turn
- unique partial index allowing one non-completed session per user
- triggers that keep the per-channel counters, reject inserts into completed
  sessions and make messages immutable

This module only translates between rows and models, and between PostgREST
errors and ``maraum.core.errors``.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from maraum.core.config import get_settings
from maraum.core.errors import ConflictError, DuplicateRowError, StoreError
from maraum.models.message import ChatType, Message
from maraum.models.scenario import Scenario
from maraum.models.session import Session

logger = logging.getLogger(__name__)

# SQLSTATE codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
SESSION_COMPLETED = "MR409"

MESSAGE_COLUMNS = (
    "id, session_id, role, chat_type, content, sent_at, client_message_id, "
    "reply_to_id, completion_flag_detected, completes_session"
)
SESSION_COLUMNS = (
    "id, user_id, scenario_id, is_completed, started_at, last_activity_at, "
    "completed_at, message_count_main, message_count_helper, duration_seconds"
)
SCENARIO_COLUMNS = (
    "id, title, emoji, sort_order, is_active, initial_message_main, initial_message_helper"
)


class SupabaseStore:
    """Read/write access to scenarios, sessions, messages and logs."""

    def __init__(self, client: Client, max_retries: int | None = None) -> None:
        self.client = client
        self.max_retries = (
            get_settings().store_max_retries if max_retries is None else max_retries
        )

    async def _execute(self, query: Any, operation: str) -> Any:
        """Run a PostgREST query off the event loop, retrying transport errors."""
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(query.execute)
            except PostgrestAPIError as e:
                raise self._translate(e, operation) from e
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    logger.error(f"Store operation {operation} failed after {attempt + 1} attempts: {e}")
                    raise StoreError(
                        f"Database operation failed: {operation}",
                        {"operation": operation, "error": type(e).__name__},
                    ) from e
                attempt += 1
                logger.warning(f"Store operation {operation} transport error, retrying ({attempt})")
                await asyncio.sleep(0.1 * attempt)

    @staticmethod
    def _translate(error: PostgrestAPIError, operation: str) -> StoreError | ConflictError:
        details = {"operation": operation, "code": error.code}
        if error.code == UNIQUE_VIOLATION:
            return DuplicateRowError(f"Duplicate row in {operation}", details)
        if error.code == SESSION_COMPLETED:
            return ConflictError(
                "Cannot send messages to completed session. This conversation has concluded.",
                details,
            )
        logger.error(f"Store operation {operation} rejected: code={error.code}")
        return StoreError(f"Database operation failed: {operation}", details)

    async def ping(self) -> bool:
        """Cheap connectivity check for the health endpoint."""
        try:
            await self._execute(self.client.table("scenarios").select("id").limit(1), "ping")
        except StoreError:
            return False
        return True

    # Scenarios

    async def list_active_scenarios(self) -> list[Scenario]:
        result = await self._execute(
            self.client.table("scenarios")
            .select(SCENARIO_COLUMNS)
            .eq("is_active", True)
            .order("sort_order"),
            "list_scenarios",
        )
        return [Scenario(**row) for row in result.data]

    async def get_scenario(self, scenario_id: int, active_only: bool = True) -> Scenario | None:
        query = self.client.table("scenarios").select(SCENARIO_COLUMNS).eq("id", scenario_id)
        if active_only:
            query = query.eq("is_active", True)
        result = await self._execute(query.limit(1), "get_scenario")
        if not result.data:
            return None
        return Scenario(**result.data[0])

    # Sessions

    async def get_session(self, session_id: str) -> Session | None:
        result = await self._execute(
            self.client.table("sessions").select(SESSION_COLUMNS).eq("id", session_id).limit(1),
            "get_session",
        )
        if not result.data:
            return None
        return Session(**result.data[0])

    async def find_active_session(self, user_id: str) -> Session | None:
        result = await self._execute(
            self.client.table("sessions")
            .select(SESSION_COLUMNS)
            .eq("user_id", user_id)
            .eq("is_completed", False)
            .limit(1),
            "find_active_session",
        )
        if not result.data:
            return None
        return Session(**result.data[0])

    async def insert_session(self, user_id: str, scenario_id: int) -> Session:
        """Insert a session. Raises DuplicateRowError if the user has an active one."""
        result = await self._execute(
            self.client.table("sessions").insert({"user_id": user_id, "scenario_id": scenario_id}),
            "insert_session",
        )
        return Session(**result.data[0])

    async def complete_session(
        self, session_id: str, completed_at: datetime, duration_seconds: int
    ) -> Session | None:
        """Compare-and-set the completion flag.

        Returns the updated row, or None when the session was no longer
        active at write time.
        """
        result = await self._execute(
            self.client.table("sessions")
            .update({
                "is_completed": True,
                "completed_at": completed_at.isoformat(),
                "duration_seconds": duration_seconds,
            })
            .eq("id", session_id)
            .eq("is_completed", False),
            "complete_session",
        )
        if not result.data:
            return None
        return Session(**result.data[0])

    # Messages

    async def insert_message(self, row: dict[str, Any]) -> Message:
        """Insert one message row.

        Raises DuplicateRowError on a deduplication-key or reply collision and
        ConflictError when the session has been completed.
        """
        result = await self._execute(self.client.table("messages").insert(row), "insert_message")
        return Message(**result.data[0])

    async def find_message_by_client_id(
        self, session_id: str, chat_type: ChatType, client_message_id: str
    ) -> Message | None:
        result = await self._execute(
            self.client.table("messages")
            .select(MESSAGE_COLUMNS)
            .eq("session_id", session_id)
            .eq("chat_type", chat_type.value)
            .eq("client_message_id", client_message_id)
            .eq("role", "user")
            .limit(1),
            "find_message_by_client_id",
        )
        if not result.data:
            return None
        return Message(**result.data[0])

    async def find_reply(self, message_id: str) -> Message | None:
        result = await self._execute(
            self.client.table("messages").select(MESSAGE_COLUMNS).eq("reply_to_id", message_id).limit(1),
            "find_reply",
        )
        if not result.data:
            return None
        return Message(**result.data[0])

    async def recent_messages(
        self,
        session_id: str,
        chat_type: ChatType,
        limit: int,
        exclude_id: str | None = None,
    ) -> list[Message]:
        """Last ``limit`` messages on a channel, returned oldest first."""
        query = (
            self.client.table("messages")
            .select(MESSAGE_COLUMNS)
            .eq("session_id", session_id)
            .eq("chat_type", chat_type.value)
        )
        if exclude_id:
            query = query.neq("id", exclude_id)
        result = await self._execute(
            query.order("sent_at", desc=True).order("id", desc=True).limit(limit),
            "recent_messages",
        )
        return [Message(**row) for row in reversed(result.data)]

    async def list_messages(
        self,
        session_id: str,
        chat_type: ChatType | None,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Message], int]:
        """One page of a session's messages plus the total matching count."""
        query = (
            self.client.table("messages")
            .select(MESSAGE_COLUMNS, count="exact")
            .eq("session_id", session_id)
        )
        if chat_type is not None:
            query = query.eq("chat_type", chat_type.value)
        result = await self._execute(
            query.order("sent_at", desc=descending)
            .order("id", desc=descending)
            .range(offset, offset + limit - 1),
            "list_messages",
        )
        messages = [Message(**row) for row in result.data]
        return messages, result.count or 0

    async def session_messages(self, session_id: str) -> list[Message]:
        """Every message of a session, both channels, oldest first."""
        result = await self._execute(
            self.client.table("messages")
            .select(MESSAGE_COLUMNS)
            .eq("session_id", session_id)
            .order("sent_at")
            .order("id"),
            "session_messages",
        )
        return [Message(**row) for row in result.data]

    # Logs

    async def insert_log(self, row: dict[str, Any]) -> None:
        await self._execute(self.client.table("logs").insert(row), "insert_log")
