"""Notes parsing test suite."""
from __future__ import annotations

from app.services.meeting_assistant import build_notes_prompt, build_question_prompt
from app.services.notes_models import ActionItem, MeetingNotes
from app.services.notes_parser import (
    SUMMARY_FALLBACK,
    SUMMARY_UNAVAILABLE,
    build_meeting_notes,
    extract_json_object,
    parse_model_reply,
    parse_notes_from_text,
)
from app.tests.base import TestSuite


class NotesParsingSuite(TestSuite):
    """Turning model replies into complete meeting notes."""

    suite_id = "notes-parsing"
    name = "Notes Parsing"
    description = "JSON extraction, label fallback, normalization and prompt building"

    def _register_tests(self):
        self.add_test("NP-001", "JSON object pulled out of a fenced reply", self._test_fenced_json)
        self.add_test("NP-002", "Reply without JSON is rejected", self._test_no_json)
        self.add_test("NP-003", "Labelled free text falls back to scraping", self._test_label_fallback)
        self.add_test("NP-004", "Topics fall back to transcript sentences", self._test_transcript_topics)
        self.add_test("NP-005", "Malformed JSON uses the text fallback", self._test_malformed_json)
        self.add_test("NP-006", "Action items are normalized", self._test_action_items)
        self.add_test("NP-007", "Missing fields get defaults", self._test_defaults)
        self.add_test("NP-008", "Notes serialize with camelCase keys", self._test_camel_case)
        self.add_test("NP-009", "Notes prompt carries meeting context", self._test_notes_prompt)
        self.add_test("NP-010", "Question prompt lists notes details", self._test_question_prompt)

    def _test_fenced_json(self, ctx: dict):
        reply = 'Here you go:\n```json\n{"summary": "Done", "keyTopics": ["a"]}\n```'
        parsed = extract_json_object(reply)
        assert parsed == {"summary": "Done", "keyTopics": ["a"]}, parsed

    def _test_no_json(self, ctx: dict):
        try:
            extract_json_object("no structured content here")
        except ValueError:
            return
        raise AssertionError("expected ValueError")

    def _test_label_fallback(self, ctx: dict):
        text = "Summary: The budget was approved.\n\nTopics: budget, hiring; roadmap\n\n"
        parsed = parse_notes_from_text(text, "")
        assert parsed["summary"] == "The budget was approved.", parsed["summary"]
        assert parsed["keyTopics"] == ["budget", "hiring", "roadmap"], parsed["keyTopics"]
        assert parsed["actionItems"] == []
        assert parsed["participants"] == []

    def _test_transcript_topics(self, ctx: dict):
        transcript = "We reviewed the quarterly budget. Ok. Then we planned hiring."
        parsed = parse_notes_from_text("nothing useful", transcript)
        assert parsed["summary"] == SUMMARY_UNAVAILABLE
        assert parsed["keyTopics"] == [
            "We reviewed the quarterly budget",
            "Then we planned hiring.",
        ], parsed["keyTopics"]

    def _test_malformed_json(self, ctx: dict):
        parsed = parse_model_reply("{not json} Summary: Short sync.\n\n", "")
        assert parsed["summary"] == "Short sync.", parsed

    def _test_action_items(self, ctx: dict):
        parsed = {
            "summary": "Sync",
            "actionItems": [
                {"description": "Ship it", "assignee": "Alice", "dueDate": "2026-11-01", "priority": "HIGH"},
                {"description": "Review", "priority": "urgent", "dueDate": "null"},
                "Call the vendor",
            ],
        }
        notes = build_meeting_notes(parsed, "standup", "transcript text")
        first, second, third = notes.action_items
        assert (first.priority, first.due_date, first.assignee) == ("high", "2026-11-01", "Alice")
        assert (second.priority, second.due_date, second.assignee) == ("medium", None, "Unassigned")
        assert third.description == "Call the vendor"
        assert notes.meeting_id.startswith("meeting-standup-"), notes.meeting_id
        assert notes.timestamp.endswith("Z"), notes.timestamp

    def _test_defaults(self, ctx: dict):
        transcript = "Marketing presented the campaign results."
        notes = build_meeting_notes({}, "room1", transcript, ["Dana"], 15)
        assert notes.summary == SUMMARY_FALLBACK
        assert notes.participants == ["Dana"]
        assert notes.key_topics == ["Marketing presented the campaign results."], notes.key_topics
        assert notes.duration == 15
        assert notes.transcript == transcript

        anonymous = build_meeting_notes({"summary": "x"}, "room1", "")
        assert anonymous.participants == ["Unknown"]
        return {"meeting_id": notes.meeting_id}

    def _test_camel_case(self, ctx: dict):
        notes = MeetingNotes(
            meeting_id="meeting-r-1",
            room_name="r",
            timestamp="2026-10-18T09:30:00.000Z",
            summary="s",
            action_items=[ActionItem(description="d", due_date="2026-10-20")],
        )
        data = notes.to_dict()
        for key in ("meetingId", "roomName", "actionItems", "keyTopics"):
            assert key in data, key
        assert data["actionItems"][0]["dueDate"] == "2026-10-20"
        assert MeetingNotes.model_validate(data) == notes

    def _test_notes_prompt(self, ctx: dict):
        prompt = build_notes_prompt("Alice: hi", ["Alice", "Bob"], 30)
        assert "Meeting Participants: Alice, Bob" in prompt
        assert "Meeting Duration: 30 minutes" in prompt
        assert "Alice: hi" in prompt
        assert '"actionItems": [' in prompt

        bare = build_notes_prompt("text", [])
        assert "Meeting Participants: Not specified" in bare
        assert "Meeting Duration" not in bare

    def _test_question_prompt(self, ctx: dict):
        notes = MeetingNotes(
            meeting_id="meeting-r-1",
            room_name="r",
            timestamp="2026-10-18T09:30:00.000Z",
            summary="Quarterly planning",
            action_items=[
                ActionItem(description="Draft plan", assignee="Alice", due_date="2026-10-30", priority="high")
            ],
            key_topics=["Planning", "Budget"],
            participants=["Alice"],
            transcript="x" * 6000,
        )
        prompt = build_question_prompt(notes, "Who drafts the plan?")
        assert 'Question: "Who drafts the plan?"' in prompt
        assert "- Date: 2026-10-18" in prompt
        assert "- Duration: Not specified" in prompt
        assert "1. Draft plan (Assigned to: Alice) (Due: 2026-10-30) [Priority: high]" in prompt
        assert "Planning, Budget" in prompt
        assert "x" * 5000 + "..." in prompt
        assert "x" * 5001 not in prompt
