import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from app.services.errors import MeetingAssistantError
from app.services.meeting_assistant import DEFAULT_SESSION_AUDIO_MIME, MeetingAssistantService
from app.services.notes_store import validate_room_name


class ProcessMeetingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: Optional[str] = Field(None, alias="roomName")
    transcript: Optional[str] = None
    participants: Optional[list[str]] = None
    duration: Optional[int] = Field(None, ge=0, description="Meeting length in minutes")


class ProcessAudioRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: Optional[str] = Field(None, alias="roomName")
    audio_data: Optional[str] = Field(None, alias="audioData", description="Base64 audio")
    mime_type: str = Field("audio/wav", alias="mimeType")


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: Optional[str] = Field(None, alias="roomName")
    question: Optional[str] = None


class SaveAudioRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(DEFAULT_SESSION_AUDIO_MIME, alias="mimeType")


def require_room_name(room_name: Optional[str]) -> str:
    if not room_name:
        raise HTTPException(status_code=400, detail="roomName is required")
    try:
        return validate_room_name(room_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_meetings_router(assistant: MeetingAssistantService) -> APIRouter:
    router = APIRouter()
    logger = logging.getLogger("assistant.api.meetings")

    @router.post("/api/meetings/process")
    def process_meeting(payload: ProcessMeetingRequest) -> dict:
        room_name = require_room_name(payload.room_name)
        if not payload.transcript or not payload.transcript.strip():
            raise HTTPException(
                status_code=400, detail="transcript is required and cannot be empty"
            )
        try:
            notes = assistant.process_meeting_transcript(
                room_name,
                payload.transcript,
                payload.participants or [],
                payload.duration,
            )
        except MeetingAssistantError as exc:
            logger.error("Error processing meeting: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"success": True, "notes": notes.to_dict()}

    @router.post("/api/meetings/process-audio")
    def process_meeting_audio(payload: ProcessAudioRequest) -> dict:
        room_name = require_room_name(payload.room_name)
        if not payload.audio_data:
            raise HTTPException(status_code=400, detail="audioData is required")
        try:
            notes = assistant.process_meeting_audio(
                room_name, payload.audio_data, payload.mime_type
            )
        except MeetingAssistantError as exc:
            logger.error("Error processing meeting audio: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"success": True, "notes": notes.to_dict()}

    @router.post("/api/meetings/ask")
    def ask_question(payload: AskRequest) -> dict:
        room_name = require_room_name(payload.room_name)
        if not payload.question or not payload.question.strip():
            raise HTTPException(status_code=400, detail="question is required")
        try:
            answer = assistant.answer_question(room_name, payload.question)
        except MeetingAssistantError as exc:
            logger.error("Error answering question: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"success": True, "answer": answer}

    @router.get("/api/meetings/notes")
    def get_notes(room_name: Optional[str] = Query(None, alias="roomName")) -> dict:
        if room_name:
            notes = assistant.load_meeting_notes(require_room_name(room_name))
            if notes is None:
                raise HTTPException(status_code=404, detail="No meeting notes found")
            return {"success": True, "notes": notes.to_dict()}
        all_notes = assistant.get_all_meeting_notes()
        return {"success": True, "notes": [n.to_dict() for n in all_notes]}

    @router.get("/api/meetings/notes/export", response_class=PlainTextResponse)
    def export_notes(room_name: Optional[str] = Query(None, alias="roomName")) -> str:
        notes = assistant.load_meeting_notes(require_room_name(room_name))
        if notes is None:
            raise HTTPException(status_code=404, detail="No meeting notes found")
        return assistant.store.export_markdown(notes)

    @router.get("/api/meetings/sessions")
    def list_sessions() -> dict:
        return {"success": True, "sessions": assistant.sessions.rooms()}

    @router.delete("/api/meetings/sessions/{room_name}")
    def close_session(room_name: str) -> dict:
        closed = assistant.close_session(require_room_name(room_name))
        if not closed:
            raise HTTPException(status_code=404, detail="No active session for this room")
        logger.info("Session closed via API: room=%s", room_name)
        return {"success": True}

    @router.post("/api/meetings/sessions/{room_name}/audio")
    def save_session_audio(room_name: str, payload: Optional[SaveAudioRequest] = None) -> dict:
        room_name = require_room_name(room_name)
        mime_type = payload.mime_type if payload else DEFAULT_SESSION_AUDIO_MIME
        try:
            path = assistant.save_session_audio(room_name, mime_type)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if path is None:
            raise HTTPException(status_code=404, detail="No session audio collected for this room")
        return {"success": True, "path": path}

    return router
