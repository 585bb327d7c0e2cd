import faulthandler
import logging
import os
import threading
from typing import IO, Optional

CRASH_LOG_NAME = "crash.log"

_lock = threading.Lock()
_crash_stream: Optional[IO[str]] = None


def enable_crash_logging(logs_dir: Optional[str] = None) -> str:
    """Dump every thread's stack to ``crash.log`` on a fatal signal.

    Only the first call opens the file; later calls return the active path.
    """
    global _crash_stream
    with _lock:
        if _crash_stream is not None:
            return _crash_stream.name
        logs_dir = logs_dir or os.path.join(os.getcwd(), "logs")
        os.makedirs(logs_dir, exist_ok=True)
        path = os.path.join(logs_dir, CRASH_LOG_NAME)
        _crash_stream = open(path, "a", encoding="utf-8")
        faulthandler.enable(file=_crash_stream, all_threads=True)
    logging.getLogger("assistant.boot").info("Crash dumps go to %s", path)
    return path


def disable_crash_logging() -> None:
    global _crash_stream
    with _lock:
        if _crash_stream is None:
            return
        faulthandler.disable()
        _crash_stream.close()
        _crash_stream = None
