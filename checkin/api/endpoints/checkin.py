"""
Check-in API endpoints

Handles check-in session lifecycle:
- Creating and starting sessions
- Session status snapshots
- Streaming message log changes
- Submitting replies
- Ending sessions
"""

import asyncio
import json
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from checkin.api.dependencies import (
    HostedSession,
    SessionNotFoundError,
    SessionRegistry,
    get_registry,
)
from checkin.core.checkin_session import CheckinSession, InputLockedError
from checkin.core.message_log import LogChange
from checkin.models.conversation import Turn
from checkin.models.stage import Stage

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class CreateSessionRequest(BaseModel):
    """Request model for creating a session."""
    initial_stage: str | None = None


class CreateSessionResponse(BaseModel):
    """Response model for a created session."""
    session_id: str
    stage: str
    message: str


class TurnView(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime


class SessionStatusResponse(BaseModel):
    """Response for session status."""
    session_id: str
    stage: str
    stage_label: str
    stage_icon: str
    progress: float
    exchange_count: int
    interview_complete: bool
    loading: bool
    busy: bool
    streaming: bool
    turns: list[TurnView]
    pending_input: str
    muted: bool
    playing: bool
    recording_state: str
    transcribing: bool
    voice_error: str | None = None
    dictating: bool = False


class SubmitMessageRequest(BaseModel):
    """Reply text; omitted to send the pending input."""
    message: str | None = None


class SubmitMessageResponse(BaseModel):
    status: str
    turn_id: str | None = None


class InputRequest(BaseModel):
    text: str


# ============================================================================
# HELPERS
# ============================================================================

def lookup(registry: SessionRegistry, session_id: str) -> HostedSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


def turn_view(turn: Turn) -> TurnView:
    return TurnView(
        id=turn.id,
        role=turn.role.value,
        content=turn.content,
        timestamp=turn.timestamp,
    )


def build_status(session: CheckinSession) -> SessionStatusResponse:
    return SessionStatusResponse.model_validate(session.snapshot())


def encode_change(change: LogChange, session: CheckinSession) -> str:
    data = {
        "kind": change.kind,
        "turn": turn_view(change.turn).model_dump(mode="json") if change.turn else None,
        "autoscroll": change.autoscroll,
        "stage": session.stage.value,
    }
    return f"data: {json.dumps(data)}\n\n"


# ============================================================================
# REST ENDPOINTS
# ============================================================================

@router.post("/sessions", response_model=CreateSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> CreateSessionResponse:
    """
    Create a check-in session and start it.

    The context fetch and the opening turn run in the background; watch
    /events for the greeting.
    """
    initial_stage = None
    if request.initial_stage:
        initial_stage = Stage.parse(request.initial_stage)
        if initial_stage is None:
            raise HTTPException(status_code=400, detail=f"Unknown stage: {request.initial_stage}")

    hosted = registry.create(initial_stage=initial_stage)
    hosted.session.start_nowait()

    return CreateSessionResponse(
        session_id=hosted.session.session_id,
        stage=hosted.session.stage.value,
        message="Session created. Subscribe to /events for replies.",
    )


@router.get("/sessions/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionStatusResponse:
    """Get the current status of a check-in session."""
    return build_status(lookup(registry, session_id).session)


@router.get("/sessions/{session_id}/events")
async def stream_events(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> StreamingResponse:
    """
    Server-sent events for every message log change.

    Existing turns are replayed first; renderers should upsert by turn id.
    The stream ends with a "closed" event when the session is torn down.
    """
    session = lookup(registry, session_id).session
    queue: asyncio.Queue[LogChange] = asyncio.Queue()
    unsubscribe = session.log.subscribe(queue.put_nowait)
    if session.log.closed:
        queue.put_nowait(LogChange(kind="closed", autoscroll=False))

    async def event_source():
        try:
            for turn in session.turns:
                replay = LogChange(kind="appended", turn=turn, autoscroll=True)
                yield encode_change(replay, session)
            while True:
                change = await queue.get()
                yield encode_change(change, session)
                if change.kind == "closed":
                    return
        finally:
            unsubscribe()

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post(
    "/sessions/{session_id}/messages",
    response_model=SubmitMessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_message(
    session_id: str,
    request: SubmitMessageRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SubmitMessageResponse:
    """
    Submit a reply.

    Rejected with 409 while the session is loading or a reply is streaming.
    """
    session = lookup(registry, session_id).session

    try:
        task = session.submit_nowait(request.message)
    except InputLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if task is None:
        raise HTTPException(status_code=400, detail="Message is required")

    user_turn = session.turns[-1]
    return SubmitMessageResponse(status="accepted", turn_id=user_turn.id)


@router.put("/sessions/{session_id}/input", response_model=SessionStatusResponse)
async def set_input(
    session_id: str,
    request: InputRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionStatusResponse:
    """Replace the pending (typed) input."""
    session = lookup(registry, session_id).session
    session.set_input(request.text)
    return build_status(session)


@router.delete("/sessions/{session_id}")
async def end_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> dict[str, str]:
    """End a session and release its audio resources."""
    try:
        registry.remove(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "closed", "session_id": session_id}
