"""Serve the API with uvicorn on a background thread."""

from __future__ import annotations

import threading

import uvicorn
from fastapi import FastAPI
from loguru import logger

from ..config.schema import ApiConfig


class ApiServer:
    """uvicorn ``Server`` running in a daemon thread with its own event loop."""

    def __init__(self, app: FastAPI, config: ApiConfig) -> None:
        self._config = config
        self._server = uvicorn.Server(
            uvicorn.Config(app, host=config.host, port=config.port, log_level="warning")
        )
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._server.run, name="brainbot-api", daemon=True)
        self._thread.start()
        logger.info(f"HTTP API listening on http://{self._config.host}:{self._config.port}")

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout)
        self._thread = None
        logger.info("HTTP API stopped")
