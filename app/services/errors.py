from __future__ import annotations


NOT_CONFIGURED_MESSAGE = (
    "GEMINI_API_KEY not configured. Please set GEMINI_API_KEY in your environment variables."
)


class MeetingAssistantError(RuntimeError):
    pass


class AssistantNotConfiguredError(MeetingAssistantError):
    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE) -> None:
        super().__init__(message)


class TranscriptGenerationError(MeetingAssistantError):
    pass


class SessionClosedError(MeetingAssistantError):
    pass
