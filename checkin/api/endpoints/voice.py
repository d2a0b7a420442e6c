"""
Voice API endpoints

Handles:
- Recording control and chunk upload
- Continuous dictation relayed from the browser recognizer
- Mute toggle
- Fetching and acknowledging synthesized speech clips
"""

import asyncio
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from pydantic import BaseModel

from checkin.api.dependencies import SessionRegistry, get_registry
from checkin.api.endpoints.checkin import lookup
from checkin.models.recording import InvalidRecordingTransition

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class RecordingResponse(BaseModel):
    """Recorder state after an action."""
    recording_state: str
    pending_input: str
    transcript: str | None = None
    error: str | None = None


class MuteResponse(BaseModel):
    muted: bool


class DictationResponse(BaseModel):
    dictating: bool
    pending_input: str
    transcript: str | None = None


class DictationSegmentsRequest(BaseModel):
    """Final segments of one browser recognition session."""
    segments: list[str]


class PlaybackEndedRequest(BaseModel):
    clip_id: str


# ============================================================================
# RECORDING
# ============================================================================

@router.post("/sessions/{session_id}/recording/chunk", response_model=RecordingResponse)
async def upload_chunk(
    session_id: str,
    audio: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_registry),
) -> RecordingResponse:
    """Deliver a captured audio chunk to the active recording."""
    hosted = lookup(registry, session_id)
    chunk = await audio.read()

    if not hosted.microphone.push(chunk):
        raise HTTPException(status_code=409, detail="Microphone is not open")

    recorder = hosted.session.recorder
    return RecordingResponse(
        recording_state=recorder.state.value,
        pending_input=hosted.session.pending_input,
    )


@router.post("/sessions/{session_id}/recording/{action}", response_model=RecordingResponse)
async def control_recording(
    session_id: str,
    action: Literal["start", "pause", "resume", "stop"],
    mime_type: str = "audio/webm",
    registry: SessionRegistry = Depends(get_registry),
) -> RecordingResponse:
    """
    Drive the recording state machine.

    Stopping transcribes the capture and appends the text to the pending
    input. A transcription failure is reported in `error` and leaves the
    pending input unchanged.
    """
    session = lookup(registry, session_id).session
    transcript = None

    try:
        if action == "start":
            session.start_recording(mime_type=mime_type)
        elif action == "pause":
            session.pause_recording()
        elif action == "resume":
            session.resume_recording()
        else:
            transcript = await session.stop_recording()
    except InvalidRecordingTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    return RecordingResponse(
        recording_state=session.recorder.state.value,
        pending_input=session.pending_input,
        transcript=transcript,
        error=session.recorder.last_error,
    )


# ============================================================================
# PLAYBACK
# ============================================================================

@router.post("/sessions/{session_id}/mute", response_model=MuteResponse)
async def toggle_mute(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> MuteResponse:
    """Toggle spoken replies. Muting stops the current clip."""
    session = lookup(registry, session_id).session
    return MuteResponse(muted=session.toggle_mute())


@router.get("/sessions/{session_id}/playback")
async def get_playback(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    """Current clip to play, or 204 when nothing should be playing."""
    clip = lookup(registry, session_id).clips.current
    if clip is None:
        return Response(status_code=204)

    return Response(
        content=clip.audio,
        media_type=clip.media_type,
        headers={"X-Clip-Id": clip.clip_id},
    )


@router.post("/sessions/{session_id}/playback/ended", status_code=204)
async def playback_ended(
    session_id: str,
    request: PlaybackEndedRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    """Browser finished (or failed) playing a clip; release it."""
    lookup(registry, session_id).clips.finished(request.clip_id)
    return Response(status_code=204)


# ============================================================================
# DICTATION
# ============================================================================

@router.post("/sessions/{session_id}/dictation/start", response_model=DictationResponse)
async def start_dictation(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> DictationResponse:
    """Start continuous dictation into the pending input."""
    hosted = lookup(registry, session_id)
    session = hosted.session

    if session.dictating:
        raise HTTPException(status_code=409, detail="Dictation is already running")

    hosted.recognizer.clear()
    session.start_dictation()

    return DictationResponse(dictating=session.dictating, pending_input=session.pending_input)


@router.post("/sessions/{session_id}/dictation/segments", response_model=DictationResponse)
async def report_dictation_segments(
    session_id: str,
    request: DictationSegmentsRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> DictationResponse:
    """
    Report the end of one browser recognition session.

    The host decides whether the browser should start another one: keep
    listening while `dictating` is true.
    """
    hosted = lookup(registry, session_id)
    session = hosted.session
    if not session.dictating:
        raise HTTPException(status_code=409, detail="Dictation is not running")

    hosted.recognizer.session_ended(request.segments)
    # Let the dictation loop merge the report before answering
    await asyncio.sleep(0)

    return DictationResponse(dictating=session.dictating, pending_input=session.pending_input)


@router.post("/sessions/{session_id}/dictation/stop", response_model=DictationResponse)
async def stop_dictation(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> DictationResponse:
    """Stop dictation; the dictated text stays in the pending input."""
    session = lookup(registry, session_id).session
    transcript = await session.stop_dictation()
    return DictationResponse(
        dictating=session.dictating,
        pending_input=session.pending_input,
        transcript=transcript,
    )
