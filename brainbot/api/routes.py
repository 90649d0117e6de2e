"""HTTP routes: chat handoff, status, history, hosted files, health."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from loguru import logger
from pydantic import BaseModel

from .. import __version__
from ..dispatcher.core import HOSTED_NAME

if TYPE_CHECKING:
    from .app import ApiState

router = APIRouter()

API_MESSAGE_MAX_CHARS = 2000


class ChatRequest(BaseModel):
    message: str


def get_state(request: Request) -> "ApiState":
    return request.app.state.api


@router.post("/api/chat")
async def post_chat(body: ChatRequest, state: "ApiState" = Depends(get_state)):
    """Queue a message for the engine; the reply goes to the default delivery target."""
    message = body.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="message is empty")
    if len(message) > API_MESSAGE_MAX_CHARS:
        raise HTTPException(status_code=400, detail="message too long")
    if not state.handoff.enqueue(message):
        raise HTTPException(status_code=503, detail="busy, message dropped")
    logger.info(f"API queued message: {message[:60]}")
    return {"status": "queued"}


@router.get("/api/chat")
async def get_chat(state: "ApiState" = Depends(get_state)):
    return {"history": state.history()}


@router.get("/api/status")
async def get_status(state: "ApiState" = Depends(get_state)):
    return {**state.status(), "queue_depth": len(state.handoff)}


@router.get("/files/{name}")
async def get_file(name: str, state: "ApiState" = Depends(get_state)):
    if not HOSTED_NAME.fullmatch(name):
        raise HTTPException(status_code=400, detail="invalid file name")
    path = state.hosted_dir / name
    if not path.is_file():
        raise HTTPException(status_code=404, detail="not found")
    return FileResponse(path)


@router.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
