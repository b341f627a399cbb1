"""Message API endpoints."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from maraum.api.deps import get_message_service
from maraum.models.exchange import MessageExchangeResult
from maraum.models.message import MessagesPage, MessagesQuery, SendMessageRequest
from maraum.services.message_service import MessageService

router = APIRouter(prefix="/sessions", tags=["messages"])


@router.get("/{session_id}/messages", response_model=MessagesPage)
async def list_messages(
    session_id: UUID,
    chat_type: Literal["main", "helper", "all"] = "all",
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    order: Literal["asc", "desc"] = "asc",
    service: MessageService = Depends(get_message_service),
) -> MessagesPage:
    """Get a page of the session's message history."""
    query = MessagesQuery(chat_type=chat_type, limit=limit, offset=offset, order=order)
    return await service.list_messages(str(session_id), query)


@router.post(
    "/{session_id}/messages",
    response_model=MessageExchangeResult,
    response_model_exclude_none=True,
    status_code=201,
)
async def send_message(
    session_id: UUID,
    body: SendMessageRequest,
    service: MessageService = Depends(get_message_service),
) -> MessageExchangeResult:
    """Submit a message and get the assistant's reply."""
    return await service.submit(str(session_id), body)
