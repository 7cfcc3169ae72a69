"""Loopback HTTP listener that receives the Spotify OAuth redirect.

The listener only lives for one authorization attempt. AuthSession depends on
the AuthCallbackListener protocol; tests substitute an in-memory fake.
"""
import asyncio
import logging
import socket
from typing import Awaitable, Callable, Dict, Optional, Protocol, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from cadence.config import CALLBACK_HOST, CALLBACK_PATH, CALLBACK_PORT

logger = logging.getLogger(__name__)

# Receives the callback query parameters; returns (status code, HTML body).
CallbackHandler = Callable[[Dict[str, str]], Awaitable[Tuple[int, str]]]

STARTUP_TIMEOUT_SEC = 5.0


class AuthCallbackListener(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def start(self, handler: CallbackHandler) -> None: ...

    async def close(self) -> None: ...


def build_callback_app(path: str, handler: CallbackHandler) -> FastAPI:
    """Minimal app with the single callback route."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(path)
    async def oauth_callback(request: Request):
        status, body = await handler(dict(request.query_params))
        return HTMLResponse(body, status_code=status)

    return app


class LoopbackCallbackListener:
    """Serves the callback app with uvicorn on a fixed loopback port."""

    def __init__(
        self,
        host: str = CALLBACK_HOST,
        port: int = CALLBACK_PORT,
        path: str = CALLBACK_PATH,
    ) -> None:
        self._host = host
        self._port = port
        self._path = path
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, handler: CallbackHandler) -> None:
        if self.is_open:
            raise RuntimeError("Callback listener already running")
        # Bind here so a busy port raises OSError to the caller instead of
        # uvicorn exiting the process.
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._port))
        except OSError:
            sock.close()
            raise
        config = uvicorn.Config(
            build_callback_app(self._path, handler),
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + STARTUP_TIMEOUT_SEC
        while not self._server.started:
            if self._task.done() or loop.time() > deadline:
                await self.close()
                raise OSError(f"Callback listener failed to start on {self._host}:{self._port}")
            await asyncio.sleep(0.02)
        logger.info("Callback listener on http://%s:%s%s", self._host, self._port, self._path)

    async def close(self) -> None:
        """Stop serving. Idempotent."""
        server, task = self._server, self._task
        self._server = None
        self._task = None
        if server is None or task is None:
            return
        server.should_exit = True
        try:
            await asyncio.wait_for(task, timeout=STARTUP_TIMEOUT_SEC)
        except asyncio.TimeoutError:
            logger.warning("Callback listener did not stop in time, cancelling")
        logger.info("Callback listener closed")
