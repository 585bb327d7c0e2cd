"""Parsing of model replies into meeting notes.

The model is asked for strict JSON, but replies are not always clean, so
parsing happens in three stages:
1. Pull the outermost JSON object out of the reply text
2. Fall back to label scraping ("Summary: ...", "Topics: ...") when no
   object parses
3. Normalize whatever was recovered into a complete MeetingNotes
"""

from __future__ import annotations

import json
import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from app.services.notes_models import PRIORITIES, ActionItem, MeetingNotes


SUMMARY_FALLBACK = "Summary extraction failed. Please review the transcript."
SUMMARY_UNAVAILABLE = "Unable to extract summary automatically."

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_SUMMARY_RE = re.compile(
    r"(?:summary|overview)[:\s]+([\s\S]*?)(?:\n\n|action|key|topics)", re.IGNORECASE
)
_TOPICS_RE = re.compile(
    r"(?:topics?|discussed|covered)[:\s]+([\s\S]*?)(?:\n\n|action|summary|participants)",
    re.IGNORECASE,
)
_TOPIC_SPLIT_RE = re.compile(r"[,;•\n-]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]\s+")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "was", "are", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "should", "could",
        "may", "might", "must", "can",
    }
)

MAX_TOPICS = 10
MAX_TOPIC_SENTENCES = 50
MAX_TOPIC_LENGTH = 100


def extract_json_object(text: str) -> dict:
    """Return the outermost ``{...}`` block of ``text`` parsed as JSON.

    Raises:
        ValueError: if the text holds no JSON object (json.JSONDecodeError
        is a ValueError too)
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        raise ValueError("No JSON found in response")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("JSON response is not an object")
    return parsed


def extract_topics_from_transcript(transcript: str) -> list[str]:
    """Pick up to ten opening sentences that carry a significant word."""
    sentences = _SENTENCE_SPLIT_RE.split(transcript or "")
    topics: list[str] = []
    for sentence in sentences[:MAX_TOPIC_SENTENCES]:
        words = sentence.lower().split()
        if any(len(word) > 4 and word not in STOP_WORDS for word in words):
            topics.append(sentence[:MAX_TOPIC_LENGTH].strip())
    return list(dict.fromkeys(topics))[:MAX_TOPICS]


def parse_notes_from_text(text: str, transcript: str) -> dict:
    """Scrape summary and topics out of a free-text reply."""
    summary_match = _SUMMARY_RE.search(text or "")
    topics_match = _TOPICS_RE.search(text or "")

    summary = summary_match.group(1).strip() if summary_match else ""
    if topics_match and topics_match.group(1):
        topics = [t.strip() for t in _TOPIC_SPLIT_RE.split(topics_match.group(1))]
        key_topics = [t for t in topics if t][:MAX_TOPICS]
    else:
        key_topics = extract_topics_from_transcript(transcript)

    return {
        "summary": summary or SUMMARY_UNAVAILABLE,
        "actionItems": [],
        "keyTopics": key_topics,
        "participants": [],
    }


def parse_model_reply(text: str, transcript: str) -> dict:
    try:
        return extract_json_object(text)
    except ValueError:
        return parse_notes_from_text(text, transcript)


def _normalize_priority(value: Any) -> str:
    priority = str(value or "medium").strip().lower()
    return priority if priority in PRIORITIES else "medium"


def _normalize_due_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "n/a"):
        return None
    return text


def _normalize_action_item(item: Any) -> ActionItem:
    if not isinstance(item, dict):
        return ActionItem(description=str(item).strip() or "Action item", assignee="Unassigned")
    return ActionItem(
        description=str(item.get("description") or "Action item"),
        assignee=str(item.get("assignee") or "Unassigned"),
        due_date=_normalize_due_date(item.get("dueDate")),
        priority=_normalize_priority(item.get("priority")),
    )


def new_meeting_id(room_name: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"meeting-{room_name}-{now_ms}"


def build_meeting_notes(
    parsed: dict,
    room_name: str,
    transcript: str,
    participants: Optional[list[str]] = None,
    duration: Optional[int] = None,
) -> MeetingNotes:
    """Fill the gaps of a parsed reply so the result is always complete."""
    participants = participants or []

    action_items = parsed.get("actionItems")
    key_topics = parsed.get("keyTopics")
    parsed_participants = parsed.get("participants")

    if isinstance(key_topics, list):
        topics = [str(t) for t in key_topics]
    else:
        topics = extract_topics_from_transcript(transcript)

    if isinstance(parsed_participants, list):
        people = [str(p) for p in parsed_participants]
    elif participants:
        people = list(participants)
    else:
        people = ["Unknown"]

    return MeetingNotes(
        meeting_id=new_meeting_id(room_name),
        room_name=room_name,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        summary=str(parsed.get("summary") or SUMMARY_FALLBACK),
        action_items=[_normalize_action_item(item) for item in action_items]
        if isinstance(action_items, list)
        else [],
        key_topics=topics,
        participants=people,
        transcript=transcript,
        duration=duration,
    )
