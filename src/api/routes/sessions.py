"""
Session API routes.

Endpoints for session resolution, turn processing, progress and reset.
"""

from typing import AsyncIterator

from fastapi import APIRouter, status
from fastapi.responses import StreamingResponse
import structlog

from src.api.dependencies import (
    CurrentUserDep,
    InsightServiceDep,
    ProgressionDep,
    SessionServiceDep,
)
from src.api.schemas import (
    InsightListResponse,
    InsightSchema,
    MessageListResponse,
    SessionResponse,
    TurnRequest,
    TurnResponse,
)
from src.domain.models.progression import ProgressSnapshot
from src.domain.models.session import ChatSession
from src.services.insight_service import confidence_band, group_by_category
from src.services.progression_service import ProgressionController

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _to_response(session: ChatSession) -> SessionResponse:
    return SessionResponse(**session.model_dump())


@router.get("/current", response_model=SessionResponse)
async def current_session(user: CurrentUserDep, session_service: SessionServiceDep):
    """Resolve (or create) the signed-in user's active session."""
    session = await session_service.resolve_active_session(user)
    return _to_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str, user: CurrentUserDep, session_service: SessionServiceDep
):
    session = await session_service.get_session(session_id, user)
    return _to_response(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session(
    session_id: str, user: CurrentUserDep, session_service: SessionServiceDep
):
    """Destroy the session with its messages, progress and insights."""
    await session_service.reset_session(session_id, user)


@router.post("/{session_id}/turns", response_model=TurnResponse)
async def record_turn(
    session_id: str,
    request: TurnRequest,
    user: CurrentUserDep,
    session_service: SessionServiceDep,
    controller: ProgressionDep,
):
    """
    Record the user's answer and return the interviewer's next question.

    A text-generation failure still returns 200 with fallback_used=true.
    """
    await session_service.get_session(session_id, user)
    result = await controller.record_turn(session_id, request.text)
    return TurnResponse(
        session_id=result.session_id,
        assistant_text=result.assistant_text,
        fallback_used=result.fallback_used,
        category_advanced=result.category_advanced,
        progress=result.snapshot,
    )


@router.get("/{session_id}/messages", response_model=MessageListResponse)
async def list_messages(
    session_id: str, user: CurrentUserDep, session_service: SessionServiceDep
):
    messages = await session_service.list_messages(session_id, user)
    return MessageListResponse(session_id=session_id, messages=messages, total=len(messages))


@router.get("/{session_id}/progress", response_model=ProgressSnapshot)
async def get_progress(
    session_id: str,
    user: CurrentUserDep,
    session_service: SessionServiceDep,
    controller: ProgressionDep,
):
    await session_service.get_session(session_id, user)
    return await controller.get_snapshot(session_id)


async def _progress_events(
    controller: ProgressionController, session_id: str
) -> AsyncIterator[str]:
    async for snapshot in controller.subscribe_progress(session_id):
        yield f"event: progress\ndata: {snapshot.model_dump_json()}\n\n"
    yield "event: closed\ndata: {}\n\n"


@router.get("/{session_id}/progress/stream")
async def stream_progress(
    session_id: str,
    user: CurrentUserDep,
    session_service: SessionServiceDep,
    controller: ProgressionDep,
):
    """Server-sent events: one `progress` event per committed progress change."""
    await session_service.get_session(session_id, user)
    return StreamingResponse(
        _progress_events(controller, session_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@router.get("/{session_id}/insights", response_model=InsightListResponse)
async def list_insights(
    session_id: str,
    user: CurrentUserDep,
    session_service: SessionServiceDep,
    insight_service: InsightServiceDep,
):
    """Persona insights grouped by category name, newest first within a group."""
    await session_service.get_session(session_id, user)
    insights = await insight_service.list_insights(session_id)
    groups = {
        name: [
            InsightSchema(insight=i, confidence_band=confidence_band(i.confidence).value)
            for i in items
        ]
        for name, items in group_by_category(insights).items()
    }
    return InsightListResponse(session_id=session_id, total=len(insights), groups=groups)
