"""Session models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from maraum.models.base import BaseSchema
from maraum.models.message import Message
from maraum.models.scenario import ScenarioEmbed


class SessionState(str, Enum):
    """Lifecycle state. ``completed`` is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"


class SessionCreate(BaseSchema):
    """Request to start a scenario."""

    user_id: UUID
    scenario_id: int


class Session(BaseSchema):
    """Session row."""

    id: str
    user_id: str
    scenario_id: int
    is_completed: bool = False
    started_at: datetime
    last_activity_at: datetime | None = None
    completed_at: datetime | None = None
    message_count_main: int = 0
    message_count_helper: int = 0
    duration_seconds: int | None = None

    @property
    def state(self) -> SessionState:
        return SessionState.COMPLETED if self.is_completed else SessionState.ACTIVE


class SessionCompletion(BaseSchema):
    """Completion summary returned when a session ends."""

    id: str
    is_completed: bool
    completed_at: datetime | None
    duration_seconds: int | None
    message_count_main: int
    message_count_helper: int

    @classmethod
    def from_session(cls, session: Session) -> "SessionCompletion":
        return cls(
            id=session.id,
            is_completed=session.is_completed,
            completed_at=session.completed_at,
            duration_seconds=session.duration_seconds,
            message_count_main=session.message_count_main,
            message_count_helper=session.message_count_helper,
        )


class SessionDetail(Session):
    """Session with embedded scenario and, optionally, its messages."""

    scenario: ScenarioEmbed | None = None
    messages: list[Message] | None = None


class SessionCreated(Session):
    """Newly created session with the scenario's opening messages."""

    scenario: ScenarioEmbed | None = None
    initial_messages: list[Message] = []
