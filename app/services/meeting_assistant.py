"""Meeting assistant: notes generation and Q&A over per-room sessions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from app.services.assistant_config import AssistantConfig
from app.services.assistant_session import SessionManager, decoded_audio_size
from app.services.errors import (
    AssistantNotConfiguredError,
    MeetingAssistantError,
    TranscriptGenerationError,
)
from app.services.notes_models import MeetingNotes
from app.services.notes_parser import build_meeting_notes, parse_model_reply
from app.services.notes_store import NotesStore


NO_NOTES_ANSWER = (
    "No meeting notes found for this room. Please ensure the meeting has been processed first."
)
NO_ANSWER = "Unable to generate an answer. Please try again."
DEFAULT_SESSION_AUDIO_MIME = "audio/L16;rate=24000"
TRANSCRIPT_CONTEXT_CHARS = 5000

NOTES_PROMPT = """You are a professional meeting assistant. Analyze this meeting transcript and generate comprehensive, actionable meeting notes.

Meeting Participants: {participants}
{duration_line}

Transcript:
{transcript}

Generate a detailed JSON response with this exact structure:
{{
  "summary": "A comprehensive 2-3 paragraph summary of the meeting covering main discussion points, decisions made, and outcomes",
  "actionItems": [
    {{
      "description": "Clear, specific, actionable task description",
      "assignee": "Participant name or 'Unassigned' if not mentioned",
      "dueDate": "YYYY-MM-DD format if mentioned, otherwise null",
      "priority": "high|medium|low based on urgency and importance"
    }}
  ],
  "keyTopics": ["Topic 1", "Topic 2", "Topic 3", ...],
  "participants": ["Participant 1", "Participant 2", ...]
}}

Important guidelines:
- Extract ALL action items mentioned, even if implied
- Assign priority based on language cues (urgent, ASAP, important = high; soon, next week = medium; eventually, later = low)
- List all distinct topics discussed
- Include all participants mentioned in the transcript
- Be precise and professional

Return ONLY valid JSON, no markdown formatting or explanations."""

QUESTION_PROMPT = """You are a meeting assistant. Answer the following question based on these meeting notes.

Question: "{question}"

Meeting Information:
- Room: {room}
- Date: {date}
- Duration: {duration}

Summary:
{summary}

Action Items:
{action_items}

Key Topics Discussed:
{topics}

Participants:
{participants}
{transcript_section}
Provide a clear, concise, and helpful answer. If the question cannot be answered from the meeting notes, politely indicate that the information is not available in this meeting's notes. Be specific and reference relevant details when possible."""


def build_notes_prompt(
    transcript: str, participants: list[str], duration: Optional[int] = None
) -> str:
    return NOTES_PROMPT.format(
        participants=", ".join(participants) or "Not specified",
        duration_line=f"Meeting Duration: {duration} minutes" if duration else "",
        transcript=transcript,
    )


def _format_date(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%Y-%m-%d")
    except ValueError:
        return timestamp


def build_question_prompt(notes: MeetingNotes, question: str) -> str:
    if notes.action_items:
        lines = []
        for i, item in enumerate(notes.action_items, start=1):
            line = f"{i}. {item.description}"
            if item.assignee:
                line += f" (Assigned to: {item.assignee})"
            if item.due_date:
                line += f" (Due: {item.due_date})"
            line += f" [Priority: {item.priority}]"
            lines.append(line)
        action_items = "\n".join(lines)
    else:
        action_items = "No action items"

    transcript_section = ""
    if notes.transcript:
        transcript_section = (
            "\n\nFull Transcript (for reference):\n"
            f"{notes.transcript[:TRANSCRIPT_CONTEXT_CHARS]}...\n"
        )

    return QUESTION_PROMPT.format(
        question=question,
        room=notes.room_name,
        date=_format_date(notes.timestamp),
        duration=f"{notes.duration} minutes" if notes.duration else "Not specified",
        summary=notes.summary,
        action_items=action_items,
        topics=", ".join(notes.key_topics),
        participants=", ".join(notes.participants),
        transcript_section=transcript_section,
    )


class MeetingAssistantService:
    """Turns transcripts or audio into stored meeting notes and answers questions.

    All model traffic for a room goes through that room's session, so the
    model keeps the meeting context between notes generation and Q&A.
    """

    def __init__(
        self,
        config: AssistantConfig,
        sessions: SessionManager,
        store: NotesStore,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._store = store
        self._logger = logging.getLogger("assistant.meetings")

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def store(self) -> NotesStore:
        return self._store

    def _require_configured(self) -> None:
        if not self._config.is_configured():
            raise AssistantNotConfiguredError()

    def _ask(self, room_name: str, turns: list, *, raw: bool = False) -> str:
        self._sessions.send(room_name, turns)
        turn = self._sessions.handle_turn(room_name)
        error = self._sessions.turn_error(turn)
        if error:
            raise MeetingAssistantError(error)
        if raw:
            return self._sessions.reply_text(turn)
        return self._sessions.extract_text(turn)

    def process_meeting_audio(
        self, room_name: str, audio_data: str, mime_type: str = "audio/wav"
    ) -> MeetingNotes:
        self._require_configured()
        self._store.ensure_directories()

        self._logger.info("Processing meeting audio: room=%s mime=%s", room_name, mime_type)
        transcript = self._ask(
            room_name,
            [{"parts": [{"inlineData": {"mimeType": mime_type, "data": audio_data}}]}],
        )
        if not transcript:
            raise TranscriptGenerationError("No transcript generated from audio")
        return self.generate_meeting_notes(room_name, transcript)

    def process_meeting_transcript(
        self,
        room_name: str,
        transcript: str,
        participants: Optional[list[str]] = None,
        duration: Optional[int] = None,
    ) -> MeetingNotes:
        self._require_configured()
        self._store.ensure_directories()
        return self.generate_meeting_notes(room_name, transcript, participants or [], duration)

    def generate_meeting_notes(
        self,
        room_name: str,
        transcript: str,
        participants: Optional[list[str]] = None,
        duration: Optional[int] = None,
    ) -> MeetingNotes:
        self._require_configured()
        participants = participants or []
        prompt = build_notes_prompt(transcript, participants, duration)
        try:
            response_text = self._ask(room_name, [prompt], raw=True)
            parsed = parse_model_reply(response_text, transcript)
            notes = build_meeting_notes(parsed, room_name, transcript, participants, duration)
            self._store.save(notes)
        except AssistantNotConfiguredError:
            raise
        except Exception as exc:
            self._logger.error("Error generating meeting notes: %s", exc)
            raise MeetingAssistantError(f"Failed to generate meeting notes: {exc}") from exc
        self._logger.info(
            "Meeting notes generated: meeting_id=%s action_items=%d topics=%d",
            notes.meeting_id,
            len(notes.action_items),
            len(notes.key_topics),
        )
        return notes

    def answer_question(self, room_name: str, question: str) -> str:
        notes = self._store.load_latest(room_name)
        if notes is None:
            return NO_NOTES_ANSWER
        self._require_configured()

        prompt = build_question_prompt(notes, question)
        try:
            answer = self._ask(room_name, [prompt])
        except AssistantNotConfiguredError:
            raise
        except Exception as exc:
            self._logger.error("Error answering question: %s", exc)
            raise MeetingAssistantError(f"Failed to answer question: {exc}") from exc
        return answer or NO_ANSWER

    def load_meeting_notes(self, room_name: str) -> Optional[MeetingNotes]:
        return self._store.load_latest(room_name)

    def get_all_meeting_notes(self, room_name: Optional[str] = None) -> list[MeetingNotes]:
        return self._store.list_all(room_name)

    def save_session_audio(
        self, room_name: str, mime_type: str = DEFAULT_SESSION_AUDIO_MIME
    ) -> Optional[str]:
        parts = self._sessions.audio_parts(room_name)
        if not parts:
            return None
        self._logger.info(
            "Saving session audio: room=%s parts=%d bytes=%d",
            room_name,
            len(parts),
            decoded_audio_size(parts),
        )
        return self._store.save_audio(room_name, parts, mime_type)

    def close_session(self, room_name: str) -> bool:
        return self._sessions.close_session(room_name)

    def cleanup(self) -> None:
        self._sessions.cleanup()
