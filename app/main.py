import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app.context import AppContext
from app.exception_handlers import setup_exception_handlers
from app.routers.logs import create_logs_router
from app.routers.meetings import create_meetings_router
from app.routers.rooms import create_rooms_router
from app.routers.testing import create_testing_router
from app.services.assistant_config import AssistantConfig
from app.services.assistant_session import ProviderFactory, SessionManager
from app.services.crash_logging import disable_crash_logging, enable_crash_logging
from app.services.logging_setup import configure_logging
from app.services.meeting_assistant import MeetingAssistantService
from app.services.notes_store import NotesStore
from app.services.transcript_capture import CaptureRegistry


def _load_config(config_path: str, logger: logging.Logger) -> dict:
    if not os.path.exists(config_path):
        logger.info("Boot: config_path missing=%s", config_path)
        return {}
    logger.info("Boot: loading config_path=%s", config_path)
    with open(config_path, "r", encoding="utf-8") as config_file:
        config = json.load(config_file)
    logger.info("Boot: config keys=%s", sorted(config.keys()))
    return config


def create_app(
    cwd: Optional[str] = None,
    *,
    provider_factory: Optional[ProviderFactory] = None,
    setup_logging: bool = True,
) -> FastAPI:
    cwd = cwd or os.getcwd()
    if setup_logging:
        configure_logging(os.path.join(cwd, "logs"))
        enable_crash_logging(os.path.join(cwd, "logs"))
    logger = logging.getLogger("assistant.boot")
    logger.info("Boot: starting create_app cwd=%s", cwd)

    default_data_dir = os.path.join(cwd, "data")
    os.makedirs(default_data_dir, exist_ok=True)
    # Config always lives in the app-level data dir regardless of custom data_dir
    config_path = os.path.join(default_data_dir, "config.json")
    config = _load_config(config_path, logger)

    # Resolve data directory: use custom path from config if valid, else default
    custom_data_dir = config.get("data_dir", "")
    if custom_data_dir and os.path.isdir(custom_data_dir) and os.access(custom_data_dir, os.W_OK):
        data_dir = custom_data_dir
        logger.info("Boot: using custom data_dir=%s", data_dir)
    else:
        data_dir = default_data_dir
        if custom_data_dir:
            logger.warning(
                "Boot: custom data_dir=%s is invalid or not writable, falling back to %s",
                custom_data_dir, data_dir,
            )

    ctx = AppContext(
        cwd=cwd,
        data_dir=data_dir,
        config_path=config_path,
    )
    ctx.ensure_dirs()
    logger.info("Boot: AppContext ready data_dir=%s", ctx.data_dir)

    assistant_config = AssistantConfig(ctx.config_path)
    if not assistant_config.is_configured():
        logger.warning("Boot: GEMINI_API_KEY not configured; assistant calls will fail")
    sessions = SessionManager(assistant_config, provider_factory=provider_factory)
    store = NotesStore(ctx)
    assistant = MeetingAssistantService(assistant_config, sessions, store)
    captures = CaptureRegistry()

    version_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "VERSION.txt")
    version = "v0.1.0"
    if os.path.exists(version_path):
        with open(version_path, "r", encoding="utf-8") as version_file:
            version = version_file.read().strip() or version

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutdown: closing %d assistant sessions", len(sessions.rooms()))
        assistant.cleanup()
        if setup_logging:
            disable_crash_logging()

    app = FastAPI(title="Meeting Assistant", version="0.1.0", lifespan=lifespan)
    app.state.version = version
    app.state.ctx = ctx
    app.state.assistant = assistant
    app.state.captures = captures

    setup_exception_handlers(app)
    app.include_router(create_meetings_router(assistant))
    logger.info("Boot: meetings router mounted")
    app.include_router(create_rooms_router(captures, assistant))
    logger.info("Boot: rooms router mounted")
    app.include_router(create_logs_router(ctx))
    logger.info("Boot: logs router mounted")
    app.include_router(create_testing_router(ctx))
    logger.info("Boot: testing router mounted")

    @app.get("/api/health")
    def health() -> dict:
        return {
            "status": "ok",
            "version": app.state.version,
            "configured": assistant_config.is_configured(),
        }

    logger.info("Boot: create_app complete")
    return app
