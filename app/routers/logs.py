import logging
import os
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from app.context import AppContext
from app.services.logging_setup import SERVER_LOG_PREFIX


_ERROR_MARKERS = ("error", "exception", "traceback")


class ClientLogRequest(BaseModel):
    level: Literal["error", "warning", "info"] = "error"
    message: str = Field(..., min_length=1)
    room_name: str = Field("", alias="roomName")
    context: dict = Field(default_factory=dict)


def latest_server_log(logs_dir: str) -> str | None:
    if not os.path.isdir(logs_dir):
        return None
    log_files = [
        os.path.join(logs_dir, name)
        for name in os.listdir(logs_dir)
        if name.startswith(SERVER_LOG_PREFIX) and ".log" in name
    ]
    if not log_files:
        return None
    return max(log_files, key=os.path.getmtime)


def create_logs_router(ctx: AppContext) -> APIRouter:
    router = APIRouter(tags=["logs"])
    logger = logging.getLogger("assistant.client")

    @router.get("/api/logs/errors")
    def error_log(limit: int = Query(200, ge=1, le=2000)) -> dict:
        latest = latest_server_log(ctx.logs_dir)
        if latest is None:
            return {"lines": []}
        try:
            with open(latest, "r", encoding="utf-8") as log_file:
                lines = [
                    line.rstrip("\n")
                    for line in log_file
                    if any(marker in line.lower() for marker in _ERROR_MARKERS)
                ]
        except OSError:
            return {"lines": []}
        return {"lines": lines[-limit:]}

    @router.post("/api/logs/client")
    def client_log(payload: ClientLogRequest) -> dict:
        message = f"[client] {payload.message}"
        if payload.room_name:
            message = f"{message} | room={payload.room_name}"
        if payload.context:
            message = f"{message} | context={payload.context}"
        level = {"warning": logging.WARNING, "info": logging.INFO}.get(payload.level, logging.ERROR)
        logger.log(level, message)
        return {"status": "ok"}

    return router
