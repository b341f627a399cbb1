"""Session API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from maraum.api.deps import get_session_service
from maraum.models.base import BaseSchema
from maraum.models.session import SessionCompletion, SessionCreate, SessionCreated, SessionDetail
from maraum.services.session_service import SessionService

router = APIRouter(prefix="/sessions", tags=["sessions"])


class ActiveSessionResponse(BaseSchema):
    """The user's active session, or null when there is none."""

    session: SessionDetail | None = None


@router.post("", response_model=SessionCreated, status_code=201)
async def create_session(
    body: SessionCreate,
    service: SessionService = Depends(get_session_service),
) -> SessionCreated:
    """Start a scenario."""
    return await service.create(str(body.user_id), body.scenario_id)


@router.get("/active", response_model=ActiveSessionResponse)
async def get_active_session(
    user_id: UUID,
    include_messages: bool = False,
    service: SessionService = Depends(get_session_service),
) -> ActiveSessionResponse:
    """Get the user's active session."""
    session = await service.find_active(str(user_id), include_messages=include_messages)
    return ActiveSessionResponse(session=session)


@router.get("/{session_id}", response_model=SessionDetail, response_model_exclude_none=True)
async def get_session(
    session_id: UUID,
    include_messages: bool = True,
    service: SessionService = Depends(get_session_service),
) -> SessionDetail:
    """Get session by ID."""
    return await service.get(str(session_id), include_messages=include_messages)


@router.post("/{session_id}/complete", response_model=SessionCompletion)
async def complete_session(
    session_id: UUID,
    service: SessionService = Depends(get_session_service),
) -> SessionCompletion:
    """Complete a session. Completing an already completed session is a no-op."""
    return await service.complete_by_id(str(session_id))
