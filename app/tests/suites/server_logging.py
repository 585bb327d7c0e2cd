"""Server logging test suite."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime

from app.routers.logs import latest_server_log
from app.services.crash_logging import disable_crash_logging, enable_crash_logging
from app.services.logging_setup import configure_logging, server_log_path
from app.tests.base import TestSuite

_ROUTED = ("", "uvicorn", "uvicorn.error", "uvicorn.access")


def _snapshot(logger: logging.Logger) -> tuple:
    return list(logger.handlers), logger.level, logger.propagate


def _flush_root() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class ServerLoggingSuite(TestSuite):
    """Log file routing and crash dump setup."""

    suite_id = "server-logging"
    name = "Server Logging"
    description = "Server log file, uvicorn routing and crash log location"

    def _register_tests(self):
        self.add_test("LG-001", "Server log file name", self._test_log_name)
        self.add_test("LG-002", "Application and uvicorn records reach the file", self._test_file_routing)
        self.add_test("LG-003", "Reconfiguring starts a new file", self._test_reconfigure)
        self.add_test("LG-004", "Crash log opened once", self._test_crash_log)

    async def setup(self):
        self.context["logs_dir"] = tempfile.mkdtemp(prefix="server-logging-")
        self.context["saved"] = {name: _snapshot(logging.getLogger(name)) for name in _ROUTED}

    async def teardown(self):
        for name, (handlers, level, propagate) in self.context.get("saved", {}).items():
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                if handler not in handlers:
                    handler.close()
            for handler in handlers:
                logger.addHandler(handler)
            logger.setLevel(level)
            logger.propagate = propagate
        disable_crash_logging()
        shutil.rmtree(self.context.get("logs_dir", ""), ignore_errors=True)

    def _test_log_name(self, ctx: dict):
        path = server_log_path("/logs", datetime(2026, 10, 18, 9, 5, 7))
        assert path == os.path.join("/logs", "server_2026-10-18_09-05-07.log"), path

    def _test_file_routing(self, ctx: dict):
        log_path = configure_logging(ctx["logs_dir"], console_level=logging.CRITICAL)
        ctx["log_path"] = log_path
        logging.getLogger("assistant.session").debug("worker started for lg-room")
        logging.getLogger("assistant.api.errors").error("Unhandled exception in GET /x")
        logging.getLogger("uvicorn.access").info("GET /api/health 200")
        logging.getLogger("httpx").info("HTTP Request: POST example")
        _flush_root()

        with open(log_path, "r", encoding="utf-8") as f:
            text = f.read()
        assert "[assistant.session] worker started for lg-room" in text, text
        assert "ERROR   [assistant.api.errors]" in text, text
        assert "GET /api/health 200" in text, text
        assert "HTTP Request" not in text, text
        assert latest_server_log(ctx["logs_dir"]) == log_path

        root = logging.getLogger()
        assert [h.name for h in root.handlers] == ["assistant_file", "assistant_console"], root.handlers
        assert logging.getLogger("uvicorn").handlers == root.handlers
        assert logging.getLogger("uvicorn").propagate is False

    def _test_reconfigure(self, ctx: dict):
        first = ctx["log_path"]
        old_file = logging.getLogger().handlers[0]
        os.utime(first, (0, 0))
        second = configure_logging(ctx["logs_dir"], console_level=logging.CRITICAL)
        logging.getLogger("assistant.boot").info("after reconfigure")
        _flush_root()

        assert len(logging.getLogger().handlers) == 2
        assert old_file.stream is None, "previous log file left open"
        with open(second, "r", encoding="utf-8") as f:
            assert "after reconfigure" in f.read()
        if first != second:
            with open(first, "r", encoding="utf-8") as f:
                assert "after reconfigure" not in f.read()
        assert latest_server_log(ctx["logs_dir"]) == second

    def _test_crash_log(self, ctx: dict):
        disable_crash_logging()
        path = enable_crash_logging(ctx["logs_dir"])
        assert path == os.path.join(ctx["logs_dir"], "crash.log"), path
        assert os.path.exists(path)
        other = tempfile.mkdtemp(prefix="server-logging-other-")
        try:
            assert enable_crash_logging(other) == path
            assert not os.path.exists(os.path.join(other, "crash.log"))
        finally:
            disable_crash_logging()
            shutil.rmtree(other, ignore_errors=True)
