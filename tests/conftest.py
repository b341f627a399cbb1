"""Shared fixtures: an in-memory store with the database's constraints and a fake provider."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from maraum.api.deps import get_provider, get_store
from maraum.core.config import Settings
from maraum.core.errors import ConflictError, DuplicateRowError, StoreError
from maraum.main import app
from maraum.models.message import ChatType, Message
from maraum.models.scenario import Scenario
from maraum.models.session import Session
from maraum.services.event_log import EventLog
from maraum.services.gemini_service import ProviderFailure, ProviderRequest, ProviderResult
from maraum.services.message_service import MessageService
from maraum.services.prompt_service import PromptBuilder, PromptRegistry
from maraum.services.session_service import SessionService

SCENARIOS = [
    Scenario(
        id=1,
        title="Marketplace Encounter",
        emoji="🛒",
        sort_order=1,
        initial_message_main='Guten Tag! Suchst du etwas Bestimmtes?',
        initial_message_helper="Ask me if you need vocabulary.",
    ),
    Scenario(
        id=2,
        title="High School Party",
        emoji="🎉",
        sort_order=2,
        initial_message_main="Hey! Willst du auch was trinken?",
        initial_message_helper="A party. How delightfully anxiety-inducing.",
    ),
    Scenario(
        id=4,
        title="Retired",
        emoji="🗄",
        sort_order=4,
        is_active=False,
        initial_message_main="-",
        initial_message_helper="-",
    ),
]


class InMemoryStore:
    """Store double enforcing the same constraints as the SQL schema.

    Each operation yields to the event loop first so concurrent coroutines
    interleave the way concurrent requests do.
    """

    def __init__(self, scenarios: list[Scenario] | None = None) -> None:
        self.scenarios = {s.id: s for s in (scenarios or SCENARIOS)}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self.logs: list[dict[str, Any]] = []
        self.completion_writes = 0
        self.fail_logs = False
        self._clock = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    async def ping(self) -> bool:
        return True

    async def list_active_scenarios(self) -> list[Scenario]:
        await asyncio.sleep(0)
        return sorted((s for s in self.scenarios.values() if s.is_active), key=lambda s: s.sort_order)

    async def get_scenario(self, scenario_id: int, active_only: bool = True) -> Scenario | None:
        await asyncio.sleep(0)
        scenario = self.scenarios.get(scenario_id)
        if scenario is None or (active_only and not scenario.is_active):
            return None
        return scenario

    async def get_session(self, session_id: str) -> Session | None:
        await asyncio.sleep(0)
        row = self.sessions.get(session_id)
        return Session(**row) if row else None

    async def find_active_session(self, user_id: str) -> Session | None:
        await asyncio.sleep(0)
        for row in self.sessions.values():
            if row["user_id"] == user_id and not row["is_completed"]:
                return Session(**row)
        return None

    async def insert_session(self, user_id: str, scenario_id: int) -> Session:
        await asyncio.sleep(0)
        if any(r["user_id"] == user_id and not r["is_completed"] for r in self.sessions.values()):
            raise DuplicateRowError("Duplicate row in insert_session", {"code": "23505"})
        now = self._now()
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "scenario_id": scenario_id,
            "is_completed": False,
            "started_at": now,
            "last_activity_at": now,
            "completed_at": None,
            "message_count_main": 0,
            "message_count_helper": 0,
            "duration_seconds": None,
        }
        self.sessions[row["id"]] = row
        return Session(**row)

    async def complete_session(
        self, session_id: str, completed_at: datetime, duration_seconds: int
    ) -> Session | None:
        await asyncio.sleep(0)
        row = self.sessions.get(session_id)
        if row is None or row["is_completed"]:
            return None
        row["is_completed"] = True
        row["completed_at"] = row["completed_at"] or completed_at
        row["duration_seconds"] = max(
            0, int((row["completed_at"] - row["started_at"]).total_seconds())
        )
        self.completion_writes += 1
        return Session(**row)

    async def insert_message(self, row: dict[str, Any]) -> Message:
        await asyncio.sleep(0)
        session = self.sessions.get(row["session_id"])
        if session is None:
            raise StoreError("Database operation failed: insert_message", {"code": "23503"})
        if session["is_completed"]:
            raise ConflictError("Cannot send messages to completed session.", {"code": "MR409"})
        key = row.get("client_message_id")
        if key and any(
            m["session_id"] == row["session_id"]
            and m["chat_type"] == row["chat_type"]
            and m["client_message_id"] == key
            for m in self.messages
        ):
            raise DuplicateRowError("Duplicate row in insert_message", {"code": "23505"})
        reply_to = row.get("reply_to_id")
        if reply_to and any(m["reply_to_id"] == reply_to for m in self.messages):
            raise DuplicateRowError("Duplicate row in insert_message", {"code": "23505"})

        stored = {
            "id": str(uuid.uuid4()),
            "sent_at": self._now(),
            "client_message_id": None,
            "reply_to_id": None,
            "completion_flag_detected": False,
            "completes_session": False,
            **row,
        }
        self.messages.append(stored)

        if reply_to:
            counter = f"message_count_{row['chat_type']}"
            session[counter] += 1
        session["last_activity_at"] = stored["sent_at"]
        return Message(**stored)

    async def find_message_by_client_id(
        self, session_id: str, chat_type: ChatType, client_message_id: str
    ) -> Message | None:
        await asyncio.sleep(0)
        for m in self.messages:
            if (
                m["session_id"] == session_id
                and m["chat_type"] == chat_type.value
                and m["client_message_id"] == client_message_id
                and m["role"] == "user"
            ):
                return Message(**m)
        return None

    async def find_reply(self, message_id: str) -> Message | None:
        await asyncio.sleep(0)
        for m in self.messages:
            if m["reply_to_id"] == message_id:
                return Message(**m)
        return None

    def _ordered(self, session_id: str, chat_type: ChatType | None) -> list[dict[str, Any]]:
        rows = [
            m
            for m in self.messages
            if m["session_id"] == session_id
            and (chat_type is None or m["chat_type"] == chat_type.value)
        ]
        return sorted(rows, key=lambda m: (m["sent_at"], m["id"]))

    async def recent_messages(
        self,
        session_id: str,
        chat_type: ChatType,
        limit: int,
        exclude_id: str | None = None,
    ) -> list[Message]:
        await asyncio.sleep(0)
        rows = [m for m in self._ordered(session_id, chat_type) if m["id"] != exclude_id]
        return [Message(**m) for m in rows[-limit:]]

    async def list_messages(
        self,
        session_id: str,
        chat_type: ChatType | None,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Message], int]:
        await asyncio.sleep(0)
        rows = self._ordered(session_id, chat_type)
        if descending:
            rows.reverse()
        return [Message(**m) for m in rows[offset:offset + limit]], len(rows)

    async def session_messages(self, session_id: str) -> list[Message]:
        await asyncio.sleep(0)
        return [Message(**m) for m in self._ordered(session_id, None)]

    async def insert_log(self, row: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        if self.fail_logs:
            raise StoreError("Database operation failed: insert_log")
        self.logs.append(row)

    # Test helpers

    def backdate(self, session_id: str, seconds: int) -> None:
        self.sessions[session_id]["started_at"] -= timedelta(seconds=seconds)

    def set_main_count(self, session_id: str, count: int) -> None:
        self.sessions[session_id]["message_count_main"] = count

    def rows(self, session_id: str, role: str | None = None) -> list[dict[str, Any]]:
        return [
            m
            for m in self.messages
            if m["session_id"] == session_id and (role is None or m["role"] == role)
        ]


class FakeProvider:
    """Provider double returning queued results, or a fixed reply when the queue is empty."""

    def __init__(self, reply: str = "Gerne! Was darf es sein?") -> None:
        self.reply = reply
        self.queue: list[ProviderResult] = []
        self.requests: list[ProviderRequest] = []
        self.delays: list[float] = []

    def enqueue(self, *results: ProviderResult) -> None:
        self.queue.extend(results)

    def fail_next(self, failure: ProviderFailure, attempts: int = 4, last_error: str = "503 UNAVAILABLE") -> None:
        self.enqueue(ProviderResult(failure=failure, attempts=attempts, last_error=last_error))

    async def generate(self, request: ProviderRequest) -> ProviderResult:
        self.requests.append(request)
        await asyncio.sleep(self.delays.pop(0) if self.delays else 0)
        if self.queue:
            return self.queue.pop(0)
        return ProviderResult(text=self.reply, attempts=1)

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry() -> PromptRegistry:
    return PromptRegistry.load()


@pytest.fixture
def session_service(store) -> SessionService:
    return SessionService(store, EventLog(store))


@pytest.fixture
def message_service(store, session_service, provider, registry, settings) -> MessageService:
    return MessageService(
        store,
        session_service,
        provider,
        PromptBuilder(registry, store, settings),
        event_log=EventLog(store),
        settings=settings,
    )


@pytest.fixture
def client(store, provider):
    """API client wired to the in-memory store and fake provider."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_provider] = lambda: provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
