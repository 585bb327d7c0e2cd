from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from app.context import AppContext
from app.services.notes_models import MeetingNotes
from app.services.wav_encoder import convert_to_wav


_ROOM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


def validate_room_name(room_name: str) -> str:
    """Room names become part of file names, so keep them path-safe."""
    if not room_name or ".." in room_name or not _ROOM_NAME_RE.match(room_name):
        raise ValueError(f"Invalid room name: {room_name!r}")
    return room_name


class NotesStore:
    """Flat-file store: one ``meeting-<room>-<epoch ms>.json`` per note set."""

    def __init__(self, ctx: AppContext) -> None:
        self._ctx = ctx
        self._lock = threading.RLock()
        self._logger = logging.getLogger("assistant.notes")

    @property
    def meetings_dir(self) -> str:
        return self._ctx.meetings_dir

    @property
    def audio_dir(self) -> str:
        return self._ctx.audio_dir

    def ensure_directories(self) -> None:
        for d in (self.meetings_dir, self.audio_dir):
            os.makedirs(d, exist_ok=True)

    @staticmethod
    def _room_file_re(room_name: str) -> re.Pattern:
        return re.compile(rf"^meeting-{re.escape(room_name)}-(\d+)\.json$")

    def _list_note_files(self, room_name: Optional[str] = None) -> list[str]:
        self.ensure_directories()
        names = os.listdir(self.meetings_dir)
        if room_name is None:
            return [name for name in names if name.endswith(".json")]
        pattern = self._room_file_re(room_name)
        matched = [name for name in names if pattern.match(name)]
        # Newest first; epoch ms sorts numerically, not lexically
        return sorted(matched, key=lambda n: int(pattern.match(n).group(1)), reverse=True)

    def _read_notes_file(self, path: str) -> MeetingNotes:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return MeetingNotes.model_validate(data)

    def _write_notes_file(self, path: str, notes: MeetingNotes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        temp_path = f"{path}.tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(notes.to_dict(), f, indent=2)
        os.replace(temp_path, path)

    def save(self, notes: MeetingNotes) -> str:
        validate_room_name(notes.room_name)
        validate_room_name(notes.meeting_id)
        with self._lock:
            self.ensure_directories()
            path = os.path.join(self.meetings_dir, f"{notes.meeting_id}.json")
            self._write_notes_file(path, notes)
            self._logger.info("Notes saved: meeting_id=%s room=%s", notes.meeting_id, notes.room_name)
            return path

    def load_latest(self, room_name: str) -> Optional[MeetingNotes]:
        with self._lock:
            try:
                files = self._list_note_files(room_name)
                if not files:
                    return None
                return self._read_notes_file(os.path.join(self.meetings_dir, files[0]))
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                self._logger.error("Error loading meeting notes for room=%s: %s", room_name, exc)
                return None

    def list_all(self, room_name: Optional[str] = None) -> list[MeetingNotes]:
        with self._lock:
            try:
                files = self._list_note_files(room_name)
            except OSError as exc:
                self._logger.error("Error loading all meeting notes: %s", exc)
                return []
            notes: list[MeetingNotes] = []
            for name in files:
                try:
                    notes.append(self._read_notes_file(os.path.join(self.meetings_dir, name)))
                except (OSError, json.JSONDecodeError, ValidationError) as exc:
                    self._logger.error("Error reading %s: %s", name, exc)
            return sorted(notes, key=lambda n: _timestamp_key(n.timestamp), reverse=True)

    def save_audio(self, room_name: str, parts_b64: list[str], mime_type: str) -> str:
        validate_room_name(room_name)
        with self._lock:
            self.ensure_directories()
            file_name = f"audio-{room_name}-{int(time.time() * 1000)}.wav"
            path = os.path.join(self.audio_dir, file_name)
            wav_bytes = convert_to_wav(parts_b64, mime_type)
            with open(path, "wb") as f:
                f.write(wav_bytes)
            self._logger.info("Audio saved: room=%s path=%s bytes=%d", room_name, path, len(wav_bytes))
            return path

    @staticmethod
    def export_markdown(notes: MeetingNotes) -> str:
        lines = [
            f"# Meeting Notes: {notes.room_name}",
            "",
            f"**Date:** {notes.timestamp}",
        ]
        if notes.duration is not None:
            lines.append(f"**Duration:** {notes.duration} minutes")
        lines.append("")
        lines.extend(["## Summary", "", notes.summary, ""])
        if notes.action_items:
            lines.append("## Action Items")
            for item in notes.action_items:
                meta = []
                if item.assignee:
                    meta.append(f"Assigned to: {item.assignee}")
                if item.due_date:
                    meta.append(f"Due: {item.due_date}")
                suffix = f" ({', '.join(meta)})" if meta else ""
                lines.append(f"- [{item.priority}] {item.description}{suffix}")
            lines.append("")
        if notes.key_topics:
            lines.append("## Key Topics")
            lines.extend(f"- {topic}" for topic in notes.key_topics)
            lines.append("")
        if notes.participants:
            lines.append("## Participants")
            lines.extend(f"- {name}" for name in notes.participants)
            lines.append("")
        if notes.transcript:
            lines.extend(["## Transcript", "", notes.transcript])
        return "\n".join(lines)


def _timestamp_key(timestamp: str) -> float:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0
