"""Session lifecycle: creation, lookup and the active -> completed transition."""

import logging
from datetime import datetime, timezone

from maraum.core.errors import ActiveSessionExistsError, DuplicateRowError, NotFoundError
from maraum.models.message import ChatType, Message, MessageRole
from maraum.models.session import Session, SessionCompletion, SessionCreated, SessionDetail
from maraum.services.event_log import EventLog
from maraum.services.store import SupabaseStore

logger = logging.getLogger(__name__)


def session_duration(started_at: datetime, completed_at: datetime) -> int:
    """Whole seconds between start and completion, never negative."""
    return max(0, int((completed_at - started_at).total_seconds()))


class SessionService:
    """Service for managing session lifecycle."""

    def __init__(self, store: SupabaseStore, event_log: EventLog | None = None) -> None:
        self.store = store
        self.event_log = event_log

    async def create(self, user_id: str, scenario_id: int) -> SessionCreated:
        """Start a scenario for a user and record its two opening messages."""
        scenario = await self.store.get_scenario(scenario_id)
        if scenario is None:
            raise NotFoundError(
                "Scenario not found or not active",
                {"scenarioId": scenario_id},
            )

        try:
            session = await self.store.insert_session(user_id, scenario_id)
        except DuplicateRowError:
            active = await self.store.find_active_session(user_id)
            raise ActiveSessionExistsError(
                "User already has an active session. Complete it before starting a new one.",
                {"activeSessionId": active.id if active else None},
            )

        initial_messages = [
            await self.store.insert_message({
                "session_id": session.id,
                "role": MessageRole.MAIN_ASSISTANT.value,
                "chat_type": ChatType.MAIN.value,
                "content": scenario.initial_message_main,
            }),
            await self.store.insert_message({
                "session_id": session.id,
                "role": MessageRole.HELPER_ASSISTANT.value,
                "chat_type": ChatType.HELPER.value,
                "content": scenario.initial_message_helper,
            }),
        ]
        logger.info(
            f"Session created for scenario {scenario_id}",
            extra={"session_id": session.id},
        )
        if self.event_log:
            await self.event_log.record_session_created(session.id, user_id, scenario_id)

        return SessionCreated(
            **session.model_dump(),
            scenario=scenario.embed(),
            initial_messages=initial_messages,
        )

    async def require(self, session_id: str) -> Session:
        """Get a session or raise ``NotFoundError``."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found", {"sessionId": session_id})
        return session

    async def get(self, session_id: str, include_messages: bool = True) -> SessionDetail:
        """Session with its scenario embedded and, optionally, its messages."""
        session = await self.require(session_id)
        return await self._detail(session, include_messages)

    async def find_active(self, user_id: str, include_messages: bool = False) -> SessionDetail | None:
        """The user's non-completed session, if any.

        Always read from the store, never cached in process.
        """
        session = await self.store.find_active_session(user_id)
        if session is None:
            return None
        return await self._detail(session, include_messages)

    async def _detail(self, session: Session, include_messages: bool) -> SessionDetail:
        scenario = await self.store.get_scenario(session.scenario_id, active_only=False)
        messages: list[Message] | None = None
        if include_messages:
            messages = await self.store.session_messages(session.id)
        return SessionDetail(
            **session.model_dump(),
            scenario=scenario.embed() if scenario else None,
            messages=messages,
        )

    async def complete(self, session: Session, reason: str = "manual") -> SessionCompletion:
        """Transition a session to ``completed``.

        The write is a compare-and-set on ``is_completed``. A caller that
        loses the race to another completion gets the winner's final state,
        so completing twice is not an error.
        """
        if session.is_completed:
            return SessionCompletion.from_session(session)

        completed_at = session.completed_at or datetime.now(timezone.utc)
        if completed_at < session.started_at:
            completed_at = session.started_at
        duration = session_duration(session.started_at, completed_at)

        updated = await self.store.complete_session(session.id, completed_at, duration)
        if updated is None:
            logger.info(
                "Session already completed by a concurrent request",
                extra={"session_id": session.id},
            )
            return SessionCompletion.from_session(await self.require(session.id))

        logger.info(
            f"Session completed ({reason}) duration={duration}s "
            f"main={updated.message_count_main} helper={updated.message_count_helper}",
            extra={"session_id": session.id},
        )
        if self.event_log:
            await self.event_log.record_session_completed(
                session.id,
                updated.user_id,
                updated.duration_seconds,
                updated.message_count_main,
                updated.message_count_helper,
                reason,
            )
        return SessionCompletion.from_session(updated)

    async def complete_by_id(self, session_id: str) -> SessionCompletion:
        """Explicit completion requested by the client. Idempotent."""
        return await self.complete(await self.require(session_id))
