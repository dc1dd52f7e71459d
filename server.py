"""uvicorn lifecycle for the task server.

``TaskServer`` binds the listen socket itself, serves in a background task and
shuts down when the caller's stop event fires. Failures are raised to the
caller; deciding whether to exit the process is left to the entry point.
"""

import asyncio
import contextlib
import signal
import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI
from loguru import logger

from config import Settings

class ServerError(Exception):
    pass


class ListenError(ServerError):
    """The listen address could not be bound."""


class ServeError(ServerError):
    """The server stopped on its own before a stop was requested."""


class ShutdownTimeout(ServerError):
    """In-flight requests were still running when the grace period ran out."""


class _EmbeddedServer(uvicorn.Server):
    # signals are routed to the stop event by the owner
    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class TaskServer:
    def __init__(self, app: FastAPI, host: str, port: int, grace_period: float = Settings.grace_period):
        self.app = app
        self.host = host
        self.port = port
        self.grace_period = grace_period
        self._sock: Optional[socket.socket] = None
        self._server: Optional[_EmbeddedServer] = None

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    @property
    def address(self) -> tuple:
        if self._sock is None:
            raise ServerError("server is not bound")
        return self._sock.getsockname()[:2]

    def bind(self) -> socket.socket:
        if self._sock is not None:
            return self._sock
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ListenError(f"cannot listen on {self.host}:{self.port}: {e}") from e
        sock.set_inheritable(True)
        self._sock = sock
        return sock

    async def run(self, stop: asyncio.Event) -> None:
        """Serve until ``stop`` is set, then shut down within the grace period."""
        sock = self.bind()
        config = uvicorn.Config(self.app, lifespan="off")
        self._server = _EmbeddedServer(config)

        host, port = self.address
        logger.info("listening on {}:{}", host, port)

        serve_task = asyncio.create_task(self._server.serve(sockets=[sock]))
        stop_task = asyncio.create_task(stop.wait())
        try:
            await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()

        try:
            if serve_task.done():
                exc = serve_task.exception()
                raise ServeError(f"server stopped unexpectedly: {exc}") from exc
            await self._shutdown(serve_task)
        finally:
            sock.close()
            self._sock = None

    async def _shutdown(self, serve_task: asyncio.Task) -> None:
        logger.info("shutting down, waiting up to {}s for in-flight requests", self.grace_period)
        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(serve_task), timeout=self.grace_period)
        except asyncio.TimeoutError:
            self._server.force_exit = True
            serve_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await serve_task
            raise ShutdownTimeout(f"graceful shutdown exceeded {self.grace_period}s") from None
        logger.info("server stopped")


async def serve(app: FastAPI, settings: Settings, stop: Optional[asyncio.Event] = None) -> int:
    """Run ``app`` until SIGINT/SIGTERM (or ``stop``) and return the process exit code."""
    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Windows 에서는 지원 안 됨
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)

    server = TaskServer(app, settings.host, settings.port, settings.grace_period)
    try:
        await server.run(stop)
    except ListenError as e:
        logger.critical("error listening and serving: {}", e)
        return 1
    except ShutdownTimeout as e:
        logger.critical("error shutting down http server: {}", e)
        return 1
    except ServeError as e:
        logger.critical("error running server: {}", e)
        return 1
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
    return 0
