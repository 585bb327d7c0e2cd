"""Room join helpers and room-event transcript capture."""

import logging
import secrets
import string
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.routers.meetings import require_room_name
from app.services.errors import MeetingAssistantError
from app.services.meeting_assistant import MeetingAssistantService
from app.services.transcript_capture import CaptureRegistry


_ROOM_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_room_id() -> str:
    """Random ``xxxx-xxxx`` room id."""
    def chunk() -> str:
        return "".join(secrets.choice(_ROOM_ID_ALPHABET) for _ in range(4))
    return f"{chunk()}-{chunk()}"


class StartCaptureRequest(BaseModel):
    host: Optional[str] = None


class RoomEventRequest(BaseModel):
    type: Literal[
        "participant_connected",
        "participant_disconnected",
        "track_subscribed",
        "local_track_published",
        "active_speakers_changed",
    ]
    participant: Optional[str] = None
    kind: str = "audio"
    speakers: list[str] = Field(default_factory=list)


class ManualEntryRequest(BaseModel):
    entry: str = Field(..., min_length=1)
    participant: Optional[str] = None


class StopCaptureRequest(BaseModel):
    process: bool = False


def create_rooms_router(
    captures: CaptureRegistry, assistant: MeetingAssistantService
) -> APIRouter:
    router = APIRouter(tags=["rooms"])
    logger = logging.getLogger("assistant.api.rooms")

    def _active_capture(room_name: str):
        capture = captures.get(require_room_name(room_name))
        if capture is None:
            raise HTTPException(status_code=404, detail="No transcript capture for this room")
        return capture

    @router.get("/api/rooms/new")
    def new_room() -> dict:
        return {"roomName": generate_room_id()}

    @router.post("/api/rooms/{room_name}/capture/start")
    def start_capture(room_name: str, payload: Optional[StartCaptureRequest] = None) -> dict:
        capture = captures.get_or_create(require_room_name(room_name))
        capture.start(payload.host if payload else None)
        return {"success": True, "capturing": True}

    @router.post("/api/rooms/{room_name}/capture/events")
    def room_event(room_name: str, payload: RoomEventRequest) -> dict:
        capture = _active_capture(room_name)
        if payload.type == "participant_connected":
            capture.participant_connected(payload.participant)
        elif payload.type == "participant_disconnected":
            capture.participant_disconnected(payload.participant)
        elif payload.type == "track_subscribed":
            capture.track_subscribed(payload.participant, payload.kind)
        elif payload.type == "local_track_published":
            capture.local_track_published(payload.participant, payload.kind)
        else:
            capture.active_speakers_changed(payload.speakers)
        return {"success": True}

    @router.post("/api/rooms/{room_name}/capture/entries")
    def manual_entry(room_name: str, payload: ManualEntryRequest) -> dict:
        capture = _active_capture(room_name)
        capture.add_manual_entry(payload.entry, payload.participant)
        return {"success": True}

    @router.get("/api/rooms/{room_name}/capture")
    def current_capture(room_name: str) -> dict:
        capture = _active_capture(room_name)
        return {
            "success": True,
            "capturing": capture.is_capturing,
            "transcript": capture.current_transcript(),
            "participants": capture.participants(),
        }

    @router.post("/api/rooms/{room_name}/capture/stop")
    def stop_capture(room_name: str, payload: Optional[StopCaptureRequest] = None) -> dict:
        capture = _active_capture(room_name)
        result = capture.stop()
        response = {"success": True, **result}
        if payload and payload.process:
            if not result["transcript"].strip():
                raise HTTPException(status_code=400, detail="Captured transcript is empty")
            try:
                notes = assistant.process_meeting_transcript(
                    capture.room_name,
                    result["transcript"],
                    result["participants"],
                    result["duration"],
                )
            except MeetingAssistantError as exc:
                logger.error("Error processing captured transcript: %s", exc)
                raise HTTPException(status_code=500, detail=str(exc)) from exc
            response["notes"] = notes.to_dict()
        return response

    return router
