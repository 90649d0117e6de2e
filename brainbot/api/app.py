"""FastAPI application factory for the local HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from .. import __version__
from ..bus.queue import HandoffQueue
from .routes import router


@dataclass
class ApiState:
    """What the HTTP thread may touch.

    ``handoff`` is the only mutable object shared with the engine; the
    callables return snapshots.
    """

    handoff: HandoffQueue
    hosted_dir: Path
    status: Callable[[], dict[str, Any]]
    history: Callable[[], list[dict[str, str]]]


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": "invalid request body"})


def create_app(state: ApiState) -> FastAPI:
    app = FastAPI(
        title="brainbot API",
        description="Local control API for the brainbot device assistant",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    app.state.api = state
    return app
