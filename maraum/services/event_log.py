"""Operational event log.

Records metadata-only events (ids, counts, durations, error kinds) in the
``logs`` table. Message content never goes in here. A failure to record an
event is logged and dropped so it cannot fail the request that caused it.
"""

import logging
from typing import Any

from maraum.services.store import SupabaseStore

logger = logging.getLogger(__name__)


class EventType:
    """Event type constants, matching the ``logs.event_type`` check constraint."""

    API_CALL_COMPLETED = "api_call_completed"
    API_CALL_FAILED = "api_call_failed"
    API_CALL_TIMEOUT = "api_call_timeout"
    SCENARIO_COMPLETED = "scenario_completed"
    SESSION_CREATED = "session_created"


class EventLog:
    """Writes operational events to the store."""

    def __init__(self, store: SupabaseStore) -> None:
        self.store = store

    async def record(
        self,
        event_type: str,
        level: str = "info",
        session_id: str | None = None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an event."""
        try:
            await self.store.insert_log({
                "level": level,
                "event_type": event_type,
                "session_id": session_id,
                "user_id": user_id,
                "metadata": metadata or {},
            })
        except Exception as e:
            logger.warning(
                f"Failed to record event: {type(e).__name__}",
                extra={"event_type": event_type, "session_id": session_id},
            )

    async def record_session_created(self, session_id: str, user_id: str, scenario_id: int) -> None:
        await self.record(
            EventType.SESSION_CREATED,
            session_id=session_id,
            user_id=user_id,
            metadata={"scenario_id": scenario_id},
        )

    async def record_provider_call(
        self,
        session_id: str,
        chat_type: str,
        attempts: int,
        duration_ms: int,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> None:
        await self.record(
            EventType.API_CALL_COMPLETED,
            session_id=session_id,
            metadata={
                "chat_type": chat_type,
                "attempts": attempts,
                "duration_ms": duration_ms,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
            },
        )

    async def record_provider_failure(
        self,
        session_id: str,
        chat_type: str,
        failure: str,
        attempts: int,
        last_error: str | None,
    ) -> None:
        event_type = (
            EventType.API_CALL_TIMEOUT if failure == "timeout" else EventType.API_CALL_FAILED
        )
        await self.record(
            event_type,
            level="error",
            session_id=session_id,
            metadata={
                "chat_type": chat_type,
                "failure": failure,
                "attempts": attempts,
                "last_error": last_error,
            },
        )

    async def record_session_completed(
        self,
        session_id: str,
        user_id: str,
        duration_seconds: int | None,
        message_count_main: int,
        message_count_helper: int,
        reason: str,
    ) -> None:
        await self.record(
            EventType.SCENARIO_COMPLETED,
            session_id=session_id,
            user_id=user_id,
            metadata={
                "duration_seconds": duration_seconds,
                "message_count_main": message_count_main,
                "message_count_helper": message_count_helper,
                "reason": reason,
            },
        )
