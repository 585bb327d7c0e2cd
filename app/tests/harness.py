"""Test harness orchestration."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime

from app.tests.base import TestSuite


_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


class TestHarness:
    """Orchestrates test suite execution."""

    def __init__(self, logs_dir: str):
        self.logs_dir = logs_dir
        self.suites: dict[str, type[TestSuite]] = {}
        self.logger = logging.getLogger("assistant.test.harness")
        self._register_suites()

    def _register_suites(self):
        """Register all available test suites."""
        from app.tests.suites.assistant_session import AssistantSessionSuite
        from app.tests.suites.meetings_api import MeetingsApiSuite
        from app.tests.suites.notes_parsing import NotesParsingSuite
        from app.tests.suites.notes_store import NotesStoreSuite
        from app.tests.suites.server_logging import ServerLoggingSuite
        from app.tests.suites.transcript_capture import TranscriptCaptureSuite
        from app.tests.suites.wav_encoding import WavEncodingSuite

        for suite_class in (
            NotesParsingSuite,
            NotesStoreSuite,
            WavEncodingSuite,
            AssistantSessionSuite,
            TranscriptCaptureSuite,
            MeetingsApiSuite,
            ServerLoggingSuite,
        ):
            self.suites[suite_class.suite_id] = suite_class

    def get_available_suites(self) -> list[dict]:
        """Return info about all available suites."""
        return [suite_class().get_info() for suite_class in self.suites.values()]

    def _open_log(self, name: str, console: bool) -> tuple[logging.Logger, str]:
        os.makedirs(self.logs_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = os.path.join(self.logs_dir, f"test_{name}_{timestamp}.log")

        logger = logging.getLogger(f"assistant.test.{name}")
        logger.setLevel(logging.DEBUG)
        _reset_handlers(logger)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(file_handler)

        if console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(
                logging.Formatter("[%(asctime)s] [TEST] %(message)s", datefmt="%H:%M:%S")
            )
            logger.addHandler(console_handler)

        return logger, log_file

    async def run_suite(self, suite_id: str) -> dict:
        """Run a specific test suite."""
        if suite_id not in self.suites:
            return {
                "status": "error",
                "message": f"Unknown suite: {suite_id}",
                "available": list(self.suites.keys()),
            }

        logger, log_file = self._open_log(suite_id, console=True)
        logger.info("Starting test suite: %s", suite_id)
        logger.info("Log file: %s", log_file)

        try:
            result = await self.suites[suite_id](logger=logger).run()
            logger.info("JSON RESULT:\n%s", json.dumps(result.to_dict(), indent=2))
        finally:
            _reset_handlers(logger)

        return {
            "status": "ok",
            "log_file": log_file,
            "result": result.to_dict(),
        }

    async def run_all(self) -> dict:
        """Run all test suites."""
        logger, log_file = self._open_log("all", console=False)
        logger.info("=" * 60)
        logger.info("RUNNING ALL TEST SUITES")
        logger.info("=" * 60)

        all_results = []
        totals = {"passed": 0, "failed": 0, "skipped": 0, "error": 0}
        try:
            for suite_id, suite_class in self.suites.items():
                logger.info(">>> Starting suite: %s", suite_id)
                result = await suite_class(logger=logger).run()
                all_results.append(result.to_dict())
                totals["passed"] += result.passed
                totals["failed"] += result.failed
                totals["skipped"] += result.skipped
                totals["error"] += result.error

            logger.info(
                "OVERALL: %d passed, %d failed, %d skipped, %d errors in %d suites",
                totals["passed"],
                totals["failed"],
                totals["skipped"],
                totals["error"],
                len(all_results),
            )
        finally:
            _reset_handlers(logger)

        return {
            "status": "ok",
            "log_file": log_file,
            "total_passed": totals["passed"],
            "total_failed": totals["failed"],
            "total_skipped": totals["skipped"],
            "total_error": totals["error"],
            "suites": all_results,
        }
