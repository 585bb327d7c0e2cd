"""
Per-room streaming assistant sessions.

Each room gets one long-lived session holding the conversation with the
model. Client turns are handed to a worker thread that streams the reply;
every streamed chunk becomes a ServerMessage delivered through callbacks:
1. The session pushes messages to ``on_message`` as they arrive
2. The manager queues them per room
3. Callers drain the queue with a short poll until ``turn_complete``
"""

from __future__ import annotations

import base64
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from app.services.assistant_config import AssistantConfig, AssistantSettings
from app.services.errors import AssistantNotConfiguredError, SessionClosedError
from app.services.llm import GeminiProvider, LLMProvider


PRIMING_PROMPT = """You are a professional meeting assistant. Listen carefully to this meeting and prepare to generate:
1. A comprehensive summary
2. Actionable action items with assignees and priorities
3. Key topics discussed
4. Participant contributions

Be precise, professional, and focus on actionable outcomes."""

ClientTurn = Union[str, dict]
ProviderFactory = Callable[[str, str, str], LLMProvider]


@dataclass
class InlineData:
    mime_type: str
    data: str


@dataclass
class ServerMessage:
    """One streamed chunk of a model reply.

    ``turn_id`` is the session sequence number of the client turn the chunk
    answers, so waiters can tell a late reply apart from their own.
    """
    text_parts: list[str] = field(default_factory=list)
    inline_data: list[InlineData] = field(default_factory=list)
    file_uris: list[str] = field(default_factory=list)
    turn_complete: bool = False
    error: Optional[str] = None
    turn_id: int = 0

    @classmethod
    def from_parts(cls, parts: list[dict], turn_id: int = 0) -> "ServerMessage":
        message = cls(turn_id=turn_id)
        for part in parts:
            if part.get("text"):
                message.text_parts.append(part["text"])
            inline = part.get("inlineData")
            if isinstance(inline, dict):
                message.inline_data.append(
                    InlineData(
                        mime_type=inline.get("mimeType", ""),
                        data=inline.get("data", ""),
                    )
                )
            file_data = part.get("fileData")
            if isinstance(file_data, dict) and file_data.get("fileUri"):
                message.file_uris.append(file_data["fileUri"])
        return message


def _to_parts(turn: ClientTurn) -> list[dict]:
    if isinstance(turn, str):
        return [{"text": turn}]
    if "parts" in turn and isinstance(turn["parts"], list):
        return list(turn["parts"])
    return [turn]


def estimate_tokens(contents: list[dict]) -> int:
    """Rough token count: 4 chars per text token, 32 bytes per audio token."""
    total = 0
    for content in contents:
        for part in content.get("parts", []):
            if part.get("text"):
                total += len(part["text"]) // 4 + 1
            inline = part.get("inlineData")
            if isinstance(inline, dict):
                decoded_bytes = len(inline.get("data", "")) * 3 // 4
                total += decoded_bytes // 32 + 1
    return total


def compress_history(contents: list[dict], trigger_tokens: int, target_tokens: int) -> list[dict]:
    """Sliding-window compression: drop the oldest turns once over the trigger.

    The newest turn always survives and the window always opens on a user turn.
    """
    if estimate_tokens(contents) <= trigger_tokens:
        return contents
    window = list(contents)
    while len(window) > 1 and estimate_tokens(window) > target_tokens:
        window.pop(0)
    while len(window) > 1 and window[0].get("role") != "user":
        window.pop(0)
    return window


class AssistantSession:
    """One streaming conversation with the model, bound to a room."""

    def __init__(
        self,
        room_name: str,
        provider: LLMProvider,
        settings: AssistantSettings,
        *,
        system_instruction: Optional[str] = None,
        on_open: Optional[Callable[[], None]] = None,
        on_message: Optional[Callable[[ServerMessage], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_close: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.room_name = room_name
        self._provider = provider
        self._settings = settings
        self._system_instruction = system_instruction
        self._on_open = on_open
        self._on_message = on_message
        self._on_error = on_error
        self._on_close = on_close
        self._logger = logging.getLogger("assistant.session")

        self._lock = threading.RLock()
        self._history: list[dict] = []
        self._pending: queue.Queue[Optional[tuple[int, list[dict]]]] = queue.Queue()
        self._turn_seq = 0
        self._worker: Optional[threading.Thread] = None
        self._closed = False
        self._opened = False

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def last_turn_id(self) -> int:
        with self._lock:
            return self._turn_seq

    def history(self) -> list[dict]:
        with self._lock:
            return list(self._history)

    def open(self) -> None:
        with self._lock:
            if self._opened:
                return
            self._opened = True
            self._worker = threading.Thread(
                target=self._worker_loop,
                daemon=True,
                name=f"assistant-session-{self.room_name}",
            )
            self._worker.start()
        if self._on_open:
            self._on_open()

    def send_client_content(self, turns: list[ClientTurn]) -> int:
        """Queue one user turn made of text and/or inline-data parts.

        Returns the turn id its reply messages will carry.
        """
        parts: list[dict] = []
        for turn in turns:
            parts.extend(_to_parts(turn))
        with self._lock:
            if self._closed:
                raise SessionClosedError(f"Session for room {self.room_name} is closed")
            if not self._opened:
                raise SessionClosedError(f"Session for room {self.room_name} is not open")
            self._turn_seq += 1
            turn_id = self._turn_seq
        self._pending.put((turn_id, parts))
        return turn_id

    def close(self, reason: str = "closed by client") -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._pending.put(None)
        if self._on_close:
            self._on_close(reason)

    def _generation_config(self) -> dict:
        config: dict = {"responseModalities": list(self._settings.response_modalities)}
        if "AUDIO" in self._settings.response_modalities:
            config["speechConfig"] = {
                "voiceConfig": {
                    "prebuiltVoiceConfig": {"voiceName": self._settings.voice_name}
                }
            }
        return config

    def _emit(self, message: ServerMessage) -> None:
        if self._on_message:
            self._on_message(message)

    def _worker_loop(self) -> None:
        self._logger.debug("Session worker started: room=%s", self.room_name)
        while True:
            item = self._pending.get()
            if item is None or self.is_closed:
                break
            self._run_turn(*item)
        self._logger.debug("Session worker ended: room=%s", self.room_name)

    def _run_turn(self, turn_id: int, parts: list[dict]) -> None:
        with self._lock:
            self._history.append({"role": "user", "parts": parts})
            self._history = compress_history(
                self._history,
                self._settings.compression_trigger_tokens,
                self._settings.compression_target_tokens,
            )
            contents = list(self._history)

        reply_text: list[str] = []
        try:
            for chunk_parts in self._provider.generate_stream(
                contents,
                system_instruction=self._system_instruction,
                generation_config=self._generation_config(),
            ):
                if self.is_closed:
                    return
                message = ServerMessage.from_parts(chunk_parts, turn_id)
                reply_text.extend(message.text_parts)
                self._emit(message)
        except Exception as exc:
            self._logger.warning("Session turn failed: room=%s error=%s", self.room_name, exc)
            if self._on_error:
                self._on_error(exc)
            self._emit(ServerMessage(turn_complete=True, error=str(exc), turn_id=turn_id))
            return

        with self._lock:
            if reply_text:
                self._history.append({"role": "model", "parts": [{"text": "".join(reply_text)}]})
        self._emit(ServerMessage(turn_complete=True, turn_id=turn_id))


class SessionManager:
    """Registry of one AssistantSession per room plus its response queue."""

    def __init__(
        self,
        config: AssistantConfig,
        provider_factory: Optional[ProviderFactory] = None,
    ) -> None:
        self._config = config
        self._provider_factory = provider_factory or _gemini_factory
        self._logger = logging.getLogger("assistant.session")
        self._lock = threading.RLock()
        self._sessions: dict[str, AssistantSession] = {}
        self._response_queues: dict[str, queue.Queue[ServerMessage]] = {}
        self._audio_parts: dict[str, list[str]] = {}
        self._expected_turns: dict[str, int] = {}

    def initialize_session(self, room_name: str) -> AssistantSession:
        api_key = self._config.api_key()
        if not api_key:
            raise AssistantNotConfiguredError()
        settings = self._config.settings()
        provider = self._provider_factory(api_key, settings.session_model, self._config.base_url())

        response_queue: queue.Queue[ServerMessage] = queue.Queue()
        holder: dict[str, AssistantSession] = {}

        def on_open() -> None:
            self._logger.info("Session opened for room: %s", room_name)

        def on_message(message: ServerMessage) -> None:
            response_queue.put(message)
            self.handle_model_turn(room_name, message)

        def on_error(exc: Exception) -> None:
            self._logger.error("Session error for %s: %s", room_name, exc)

        def on_close(reason: str) -> None:
            self._logger.info("Session closed for %s: %s", room_name, reason)
            closed = holder.get("session")
            last_turn = closed.last_turn_id if closed is not None else 0
            response_queue.put(
                ServerMessage(turn_complete=True, error=f"Session closed: {reason}", turn_id=last_turn)
            )
            self._forget(room_name, closed)

        session = AssistantSession(
            room_name,
            provider,
            settings,
            system_instruction=PRIMING_PROMPT,
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )
        holder["session"] = session

        with self._lock:
            previous = self._sessions.get(room_name)
            self._sessions[room_name] = session
            self._response_queues[room_name] = response_queue
            self._audio_parts[room_name] = []
            self._expected_turns[room_name] = 0
        if previous is not None:
            previous.close("replaced by a new session")
        session.open()
        return session

    def _forget(self, room_name: str, session: Optional[AssistantSession]) -> None:
        with self._lock:
            if session is not None and self._sessions.get(room_name) is not session:
                return
            self._sessions.pop(room_name, None)
            self._response_queues.pop(room_name, None)
            self._audio_parts.pop(room_name, None)
            self._expected_turns.pop(room_name, None)

    def get(self, room_name: str) -> Optional[AssistantSession]:
        with self._lock:
            return self._sessions.get(room_name)

    def get_or_create(self, room_name: str) -> AssistantSession:
        session = self.get(room_name)
        if session is None or session.is_closed:
            session = self.initialize_session(room_name)
        return session

    def rooms(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions.keys())

    def audio_parts(self, room_name: str) -> list[str]:
        with self._lock:
            return list(self._audio_parts.get(room_name, []))

    def handle_model_turn(self, room_name: str, message: ServerMessage) -> None:
        for uri in message.file_uris:
            self._logger.info("File received for %s: %s", room_name, uri)
        if message.inline_data:
            with self._lock:
                parts = self._audio_parts.setdefault(room_name, [])
                parts.extend(item.data or "" for item in message.inline_data)
        for text in message.text_parts:
            self._logger.debug("Text response for %s: %s", room_name, text)

    def send(self, room_name: str, turns: list[ClientTurn]) -> None:
        """Send a turn on the room session, discarding replies nobody waited for."""
        session = self.get_or_create(room_name)
        with self._lock:
            response_queue = self._response_queues.get(room_name)
        stale = 0
        while response_queue is not None:
            try:
                response_queue.get_nowait()
                stale += 1
            except queue.Empty:
                break
        if stale:
            self._logger.warning("Dropped %d stale messages for room %s", stale, room_name)
        turn_id = session.send_client_content(turns)
        with self._lock:
            self._expected_turns[room_name] = turn_id

    def wait_message(
        self,
        room_name: str,
        response_queue: Optional[queue.Queue[ServerMessage]] = None,
    ) -> Optional[ServerMessage]:
        if response_queue is None:
            with self._lock:
                response_queue = self._response_queues.get(room_name)
        if response_queue is not None:
            try:
                return response_queue.get_nowait()
            except queue.Empty:
                pass
        time.sleep(self._config.settings().poll_interval_seconds)
        return None

    def handle_turn(self, room_name: str, timeout: Optional[float] = None) -> list[ServerMessage]:
        """Collect messages until the turn completes or the timeout expires."""
        if timeout is None:
            timeout = self._config.settings().turn_timeout_seconds
        with self._lock:
            response_queue = self._response_queues.get(room_name)
            expected = self._expected_turns.get(room_name, 0)
        deadline = time.monotonic() + timeout
        turn: list[ServerMessage] = []
        while time.monotonic() < deadline:
            message = self.wait_message(room_name, response_queue)
            if message is None:
                continue
            if message.turn_id < expected:
                self._logger.debug(
                    "Discarding message from turn %d for room %s (waiting on %d)",
                    message.turn_id,
                    room_name,
                    expected,
                )
                continue
            turn.append(message)
            if message.turn_complete:
                return turn
        self._logger.warning(
            "Turn timed out for room %s after %.1fs (%d messages)",
            room_name,
            timeout,
            len(turn),
        )
        return turn

    @staticmethod
    def extract_text(turn: list[ServerMessage]) -> str:
        text = ""
        for message in turn:
            for part in message.text_parts:
                text += part + "\n"
        return text.strip()

    @staticmethod
    def reply_text(turn: list[ServerMessage]) -> str:
        """Streamed text exactly as the model produced it, chunks joined without separators."""
        return "".join(part for message in turn for part in message.text_parts).strip()

    @staticmethod
    def turn_error(turn: list[ServerMessage]) -> Optional[str]:
        for message in turn:
            if message.error:
                return message.error
        return None

    def close_session(self, room_name: str) -> bool:
        session = self.get(room_name)
        if session is None:
            return False
        session.close()
        self._forget(room_name, session)
        return True

    def cleanup(self) -> None:
        for room_name in self.rooms():
            self.close_session(room_name)


def _gemini_factory(api_key: str, model: str, base_url: str) -> LLMProvider:
    return GeminiProvider(api_key=api_key, model=model, base_url=base_url)


def decoded_audio_size(parts_b64: list[str]) -> int:
    return sum(len(base64.b64decode(part)) for part in parts_b64 if part)
