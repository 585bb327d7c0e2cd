"""Process-wide logging for the meeting assistant server.

Every run writes a fresh ``server_<timestamp>.log`` under the logs directory.
The file captures DEBUG from all ``assistant.*`` loggers, the console shows
INFO and above.  uvicorn's loggers are pointed at the same two handlers so
request lines end up next to the application records that
``/api/logs/errors`` scans.
"""

import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SERVER_LOG_PREFIX = "server_"

_FILE_HANDLER_NAME = "assistant_file"
_CONSOLE_HANDLER_NAME = "assistant_console"
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
_QUIET_LOGGERS = ("urllib3", "httpx", "httpcore")


def server_log_path(logs_dir: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    return os.path.join(logs_dir, f"{SERVER_LOG_PREFIX}{stamp}.log")


def _named(handler: logging.Handler, name: str, level: int) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    handler.setLevel(level)
    handler.name = name
    return handler


def _route(logger: logging.Logger, level: int, handlers: list[logging.Handler]) -> None:
    for old in list(logger.handlers):
        logger.removeHandler(old)
        if old.name in (_FILE_HANDLER_NAME, _CONSOLE_HANDLER_NAME) and old not in handlers:
            old.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def configure_logging(logs_dir: Optional[str] = None, *, console_level: int = logging.INFO) -> str:
    """Install the server log file and console handlers; returns the log file path.

    Calling it again swaps in a new log file and closes the previous one.
    """
    logs_dir = logs_dir or os.path.join(os.getcwd(), "logs")
    os.makedirs(logs_dir, exist_ok=True)
    log_path = server_log_path(logs_dir)

    handlers = [
        _named(
            RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8"),
            _FILE_HANDLER_NAME,
            logging.DEBUG,
        ),
        _named(logging.StreamHandler(), _CONSOLE_HANDLER_NAME, console_level),
    ]
    _route(logging.getLogger(), logging.DEBUG, handlers)
    for name in _UVICORN_LOGGERS:
        _route(logging.getLogger(name), logging.INFO, handlers)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("assistant.boot").info("Logging to %s", log_path)
    return log_path
