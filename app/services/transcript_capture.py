"""Room-event transcript capture.

Clients connected to a room forward the room's participant and speaker
events here; the capture turns them into a timestamped running log that
can later be summarized like any other transcript.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Optional


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _display_name(name: Optional[str]) -> str:
    return (name or "").strip() or "Unknown"


class TranscriptCapture:
    def __init__(self, room_name: str) -> None:
        self.room_name = room_name
        self._lock = threading.Lock()
        self._transcript: list[str] = []
        self._participants: dict[str, None] = {}
        self._start_time: Optional[datetime] = None
        self._capturing = False
        self._logger = logging.getLogger("assistant.capture")

    @property
    def is_capturing(self) -> bool:
        with self._lock:
            return self._capturing

    def _add_entry(self, entry: str) -> None:
        if self._capturing:
            self._transcript.append(f"[{_now_iso()}] {entry}")

    def start(self, host: Optional[str] = None) -> None:
        with self._lock:
            self._capturing = True
            self._start_time = datetime.now(timezone.utc)
            self._transcript = []
            if host:
                self._participants[host] = None
                self._add_entry(f"Meeting started. {host} is the host.")
        self._logger.info("Transcript capture started: room=%s", self.room_name)

    def participant_connected(self, name: Optional[str]) -> None:
        name = _display_name(name)
        with self._lock:
            self._participants[name] = None
            self._add_entry(f"{name} joined the meeting")

    def participant_disconnected(self, name: Optional[str]) -> None:
        name = _display_name(name)
        with self._lock:
            self._add_entry(f"{name} left the meeting")
            self._participants.pop(name, None)

    def track_subscribed(self, name: Optional[str], kind: str) -> None:
        if kind != "audio":
            return
        with self._lock:
            self._participants[_display_name(name)] = None

    def local_track_published(self, name: Optional[str], kind: str) -> None:
        self.track_subscribed(name, kind)

    def active_speakers_changed(self, speakers: list[str]) -> None:
        if not speakers:
            return
        with self._lock:
            self._add_entry(f"{_display_name(speakers[0])} is speaking")

    def add_manual_entry(self, entry: str, participant: Optional[str] = None) -> None:
        prefix = f"[{participant}]" if participant else "[System]"
        with self._lock:
            self._add_entry(f"{prefix} {entry}")

    def current_transcript(self) -> str:
        with self._lock:
            return "\n".join(self._transcript)

    def participants(self) -> list[str]:
        with self._lock:
            return list(self._participants)

    def stop(self) -> dict:
        with self._lock:
            self._capturing = False
            duration = None
            if self._start_time is not None:
                elapsed = datetime.now(timezone.utc) - self._start_time
                duration = round(elapsed.total_seconds() / 60)
            result = {
                "transcript": "\n".join(self._transcript),
                "participants": list(self._participants),
                "duration": duration,
            }
        self._logger.info(
            "Transcript capture stopped: room=%s duration=%s participants=%d",
            self.room_name,
            duration,
            len(result["participants"]),
        )
        return result

    def reset(self) -> None:
        with self._lock:
            self._transcript = []
            self._participants.clear()
            self._start_time = None
            self._capturing = False


class CaptureRegistry:
    """One TranscriptCapture per room."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._captures: dict[str, TranscriptCapture] = {}

    def get(self, room_name: str) -> Optional[TranscriptCapture]:
        with self._lock:
            return self._captures.get(room_name)

    def get_or_create(self, room_name: str) -> TranscriptCapture:
        with self._lock:
            capture = self._captures.get(room_name)
            if capture is None:
                capture = TranscriptCapture(room_name)
                self._captures[room_name] = capture
            return capture

    def remove(self, room_name: str) -> None:
        with self._lock:
            capture = self._captures.pop(room_name, None)
        if capture is not None:
            capture.reset()
