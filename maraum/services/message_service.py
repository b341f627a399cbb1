"""Message exchange: human turn in, assistant turn out.

``submit`` persists the human turn before calling the provider, so a
provider failure never loses the learner's input. Retries carrying the same
``clientMessageId`` either replay the recorded exchange or resume it from
the provider call. Concurrent twins are settled by the store's unique keys:
whoever loses an insert reads back the winner's row and returns it.
"""

import logging
import time

from maraum.core.config import Settings, get_settings
from maraum.core.errors import (
    ConflictError,
    DuplicateRowError,
    ProviderError,
    ProviderExhaustedError,
    ProviderRejectedError,
    ProviderTimeoutError,
)
from maraum.models.exchange import MessageExchangeResult
from maraum.models.message import (
    ASSISTANT_ROLE_BY_CHAT_TYPE,
    MAX_CONTENT_LENGTH,
    ChatType,
    Message,
    MessageRole,
    MessagesPage,
    MessagesQuery,
    Pagination,
    SendMessageRequest,
)
from maraum.models.session import Session
from maraum.services.completion import detect_completion
from maraum.services.event_log import EventLog
from maraum.services.gemini_service import GeminiClient, ProviderFailure, ProviderResult
from maraum.services.idempotency import IdempotencyGuard, PriorExchange
from maraum.services.prompt_service import PromptBuilder
from maraum.services.session_service import SessionService
from maraum.services.store import SupabaseStore

logger = logging.getLogger(__name__)

PROVIDER_ERRORS: dict[ProviderFailure, tuple[type[ProviderError], str]] = {
    ProviderFailure.TIMEOUT: (
        ProviderTimeoutError,
        "The response took too long. Your message was saved, please try again.",
    ),
    ProviderFailure.EXHAUSTED_RETRIES: (
        ProviderExhaustedError,
        "The response service is unavailable right now. Your message was saved, please try again.",
    ),
    ProviderFailure.REJECTED: (
        ProviderRejectedError,
        "The response service rejected the request. Your message was saved.",
    ),
}


class MessageService:
    """Orchestrates one message exchange and lists message history."""

    def __init__(
        self,
        store: SupabaseStore,
        sessions: SessionService,
        provider: GeminiClient,
        prompts: PromptBuilder,
        event_log: EventLog | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.provider = provider
        self.prompts = prompts
        self.event_log = event_log
        self.guard = IdempotencyGuard(store)
        self.settings = settings or get_settings()

    async def submit(self, session_id: str, request: SendMessageRequest) -> MessageExchangeResult:
        """Submit a human turn and return it with the assistant's reply."""
        session = await self.sessions.require(session_id)
        chat_type = request.chat_type
        key = request.dedup_key

        prior = await self.guard.lookup(session_id, chat_type, key)
        if prior is not None and prior.is_complete:
            logger.info(
                "Replaying recorded exchange",
                extra={"session_id": session_id, "chat_type": chat_type.value},
            )
            return await self._replay(prior)

        if session.is_completed:
            raise ConflictError(
                "Cannot send messages to completed session. This conversation has concluded.",
                {"sessionId": session_id, "completedAt": session.completed_at},
            )

        if prior is not None:
            user_message = prior.user_message
        else:
            try:
                user_message = await self.store.insert_message({
                    "session_id": session_id,
                    "role": MessageRole.USER.value,
                    "chat_type": chat_type.value,
                    "content": request.content,
                    "client_message_id": key,
                })
            except DuplicateRowError:
                # A concurrent request with the same key won the insert
                prior = await self.guard.winning_exchange(session_id, chat_type, key)
                if prior.is_complete:
                    return await self._replay(prior)
                user_message = prior.user_message

        return await self._respond(session, user_message)

    async def _respond(self, session: Session, user_message: Message) -> MessageExchangeResult:
        chat_type = user_message.chat_type
        extra = {"session_id": session.id, "chat_type": chat_type.value}

        provider_request = await self.prompts.build(session, user_message)
        started = time.perf_counter()
        result = await self.provider.generate(provider_request)
        duration_ms = int((time.perf_counter() - started) * 1000)

        if not result.ok:
            await self._provider_failed(session.id, chat_type, result)

        logger.info(
            f"Provider responded in {duration_ms}ms after {result.attempts} attempts",
            extra=extra,
        )
        if self.event_log:
            await self.event_log.record_provider_call(
                session.id,
                chat_type.value,
                result.attempts,
                duration_ms,
                result.input_tokens,
                result.output_tokens,
            )

        text = result.text or ""
        marker_detected = False
        completes_session = False
        if chat_type == ChatType.MAIN:
            # Counter read after the provider call; this exchange is not yet counted.
            # Concurrent exchanges may read the same value and overshoot the
            # ceiling by one; the following exchange then completes the session.
            current = await self.sessions.require(session.id)
            completion = detect_completion(
                text,
                current.message_count_main + 1,
                ceiling=self.settings.main_message_ceiling,
            )
            text = completion.text
            marker_detected = completion.marker_detected
            completes_session = completion.should_complete

        try:
            assistant_message = await self.store.insert_message({
                "session_id": session.id,
                "role": ASSISTANT_ROLE_BY_CHAT_TYPE[chat_type].value,
                "chat_type": chat_type.value,
                "content": text[:MAX_CONTENT_LENGTH],
                "reply_to_id": user_message.id,
                "completion_flag_detected": marker_detected,
                "completes_session": completes_session,
            })
        except DuplicateRowError:
            # A concurrent twin already answered this human turn
            logger.info("Reply already recorded by a concurrent request", extra=extra)
            assistant_message = await self.guard.winning_reply(user_message.id)
        except ConflictError:
            # The session completed while the provider was answering
            assistant_message = await self.store.find_reply(user_message.id)
            if assistant_message is None:
                if not completes_session:
                    raise
                return await self._superseded(session.id, user_message, marker_detected)
            logger.info("Reply recorded before the session completed", extra=extra)

        return await self._result(session.id, user_message, assistant_message)

    async def _superseded(
        self, session_id: str, user_message: Message, marker_detected: bool
    ) -> MessageExchangeResult:
        """Result for a completing exchange that lost the completion race.

        Nothing more is written; the caller sees the session's final state.
        """
        logger.info(
            "Session completed by a concurrent exchange",
            extra={"session_id": session_id, "chat_type": user_message.chat_type.value},
        )
        session = await self.sessions.require(session_id)
        return MessageExchangeResult(
            user_message=user_message,
            session_complete=True,
            completion_flag_detected=marker_detected,
            session=await self.sessions.complete(session),
        )

    async def _replay(self, prior: PriorExchange) -> MessageExchangeResult:
        return await self._result(
            prior.user_message.session_id, prior.user_message, prior.assistant_message
        )

    async def _result(
        self, session_id: str, user_message: Message, assistant_message: Message
    ) -> MessageExchangeResult:
        summary = None
        if assistant_message.completes_session:
            reason = "marker" if assistant_message.completion_flag_detected else "ceiling"
            session = await self.sessions.require(session_id)
            summary = await self.sessions.complete(session, reason=reason)

        return MessageExchangeResult(
            user_message=user_message,
            assistant_message=assistant_message,
            session_complete=assistant_message.completes_session,
            completion_flag_detected=assistant_message.completion_flag_detected,
            session=summary,
        )

    async def _provider_failed(
        self, session_id: str, chat_type: ChatType, result: ProviderResult
    ) -> None:
        logger.error(
            f"Provider failed: {result.failure.value} after {result.attempts} attempts",
            extra={"session_id": session_id, "chat_type": chat_type.value, "attempt": result.attempts},
        )
        if self.event_log:
            await self.event_log.record_provider_failure(
                session_id,
                chat_type.value,
                result.failure.value,
                result.attempts,
                result.last_error,
            )
        error_class, message = PROVIDER_ERRORS[result.failure]
        raise error_class(message, attempts=result.attempts, last_error=result.last_error)

    async def list_messages(self, session_id: str, query: MessagesQuery) -> MessagesPage:
        """One page of a session's history ordered by (sent_at, id)."""
        await self.sessions.require(session_id)
        chat_type = None if query.chat_type == "all" else ChatType(query.chat_type)
        messages, total = await self.store.list_messages(
            session_id,
            chat_type,
            limit=query.limit,
            offset=query.offset,
            descending=query.order == "desc",
        )
        return MessagesPage(
            messages=messages,
            pagination=Pagination(
                limit=query.limit,
                offset=query.offset,
                total=total,
                has_more=query.offset + len(messages) < total,
            ),
        )
