"""HTTP server lifecycle: start, serve, signal-driven bounded drain.

``HttpServer.run`` starts the uvicorn listener in a background task and then
waits for whichever happens first:

- the listener finishes on its own (it could not bind, the application
  failed to start, or it crashed): ``ServerError`` is raised;
- the ``ShutdownSignal`` is cancelled (an OS interrupt was received): the
  listener stops accepting connections, in-flight requests are given until
  the drain deadline to finish and are cancelled after that.

Lifecycle states: starting -> serving -> draining -> stopped.
"""

import asyncio
import signal
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager, suppress
from enum import StrEnum
from typing import Self

import uvicorn
from fastapi import FastAPI
from loguru import logger

from src.core.config import Settings
from src.core.constants import SHUTDOWN_GRACE_SECONDS
from src.core.exceptions import ServerError
from src.core.logging import uvicorn_log_config


class ServerState(StrEnum):
    """Lifecycle states of ``HttpServer``."""

    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownSignal:
    """Cancellation token tripped by OS signals.

    Created once at process start and passed to everything that has to react
    to shutdown. ``notify`` installs the signal handlers on the running event
    loop; leaving it always cancels the token.

    Args:
        signals: Signals that cancel the token.
    """

    def __init__(self, signals: Iterable[signal.Signals] = (signal.SIGINT,)) -> None:
        self.signals = tuple(signals)
        self.received: signal.Signals | None = None
        self.cancelled_at: float | None = None
        self._event = asyncio.Event()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> Self:
        """Build a token from signal names such as ``"SIGINT"``."""
        return cls(signal.Signals[name] for name in names)

    @property
    def cancelled(self) -> bool:
        """Whether shutdown has been requested."""
        return self._event.is_set()

    def cancel(self, signum: signal.Signals | None = None) -> None:
        """Request shutdown. Only the first call has an effect.

        Args:
            signum: The signal that triggered the request, if any.
        """
        if self._event.is_set():
            return

        self.received = signum
        try:
            self.cancelled_at = asyncio.get_running_loop().time()
        except RuntimeError:
            self.cancelled_at = None

        if signum is not None:
            logger.info("Received {}, shutting down", signum.name)
        self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._event.wait()

    def drain_deadline(self, timeout: float) -> float:
        """Loop time at which draining must be over.

        Args:
            timeout: Seconds allowed for draining, counted from cancellation.

        Returns:
            float: Deadline in event loop time.
        """
        start = self.cancelled_at
        if start is None:
            start = asyncio.get_running_loop().time()
        return start + timeout

    @contextmanager
    def notify(self) -> Generator[Self]:
        """Cancel this token when one of its signals is received.

        Must be entered from a running event loop.

        Yields:
            Self: This token.
        """
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        try:
            for sig in self.signals:
                loop.add_signal_handler(sig, self.cancel, sig)
                installed.append(sig)
            yield self
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            self.cancel()


class _Listener(uvicorn.Server):
    """uvicorn server that leaves signal handling to ``ShutdownSignal``."""

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]) -> None:
        super().__init__(config)
        self._on_started = on_started

    @contextmanager
    def capture_signals(self) -> Generator[None]:
        yield

    async def startup(self, sockets: list | None = None) -> None:  # type: ignore[type-arg]
        await super().startup(sockets=sockets)
        if not self.should_exit:
            self._on_started()


class HttpServer:
    """The HTTP listener of the application and its lifecycle.

    Args:
        app: The application to serve.
        settings: Settings providing the bind address and the drain bound.
    """

    def __init__(self, app: FastAPI, settings: Settings) -> None:
        self.app = app
        self.settings = settings
        self.state = ServerState.STARTING
        self.ready = asyncio.Event()
        self._listener = _Listener(self._build_config(), on_started=self._on_started)

    def _build_config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self.app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            lifespan="on",
            log_config=uvicorn_log_config(),
            timeout_graceful_shutdown=self.settings.shutdown_timeout_seconds,  # type: ignore[arg-type]
        )

    @property
    def port(self) -> int | None:
        """Port the listener is bound to, once serving."""
        for server in self._listener.servers:
            for sock in server.sockets:
                return int(sock.getsockname()[1])
        return None

    def _set_state(self, state: ServerState) -> None:
        self.state = state
        logger.info("Server {}", state.value, server_state=state.value)

    def _on_started(self) -> None:
        self._set_state(ServerState.SERVING)
        self.ready.set()

    async def _listen(self) -> None:
        try:
            await self._listener.serve()
        except SystemExit as exc:
            # uvicorn exits the process when it cannot bind
            msg = "failed to start server"
            raise ServerError(
                msg,
                context={
                    "host": self.settings.api_host,
                    "port": self.settings.api_port,
                },
                cause=exc,
            ) from exc

    async def run(self, shutdown: ShutdownSignal) -> None:
        """Serve until ``shutdown`` is cancelled, then drain.

        Args:
            shutdown: Token cancelled when the process must stop.

        Raises:
            ServerError: If the listener stops before shutdown was requested.
        """
        logger.info(
            "Server is starting at {}:{}",
            self.settings.api_host,
            self.settings.api_port,
        )

        listener = asyncio.create_task(self._listen(), name="http-listener")
        interrupted = asyncio.create_task(shutdown.wait(), name="shutdown-signal")

        try:
            done, _ = await asyncio.wait(
                {listener, interrupted}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            listener.cancel()
            raise
        finally:
            interrupted.cancel()
            with suppress(asyncio.CancelledError):
                await interrupted

        if listener in done:
            self._set_state(ServerState.STOPPED)
            exc = listener.exception()
            if isinstance(exc, ServerError):
                raise exc
            msg = "server stopped unexpectedly"
            raise ServerError(msg, cause=exc) from exc

        await self._drain(listener, shutdown)

    async def _drain(self, listener: asyncio.Task[None], shutdown: ShutdownSignal) -> None:
        """Stop accepting connections and wait for in-flight requests.

        uvicorn cancels requests still running after
        ``shutdown_timeout_seconds``; the listener itself is cancelled if it
        has not stopped shortly after that.
        """
        self._set_state(ServerState.DRAINING)
        self._listener.should_exit = True

        deadline = shutdown.drain_deadline(
            self.settings.shutdown_timeout_seconds + SHUTDOWN_GRACE_SECONDS
        )
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
        try:
            done, _ = await asyncio.wait({listener}, timeout=remaining)
            if not done:
                self._listener.force_exit = True
                logger.warning(
                    "Listener still running after {}s, "
                    "remaining connections abandoned",
                    self.settings.shutdown_timeout_seconds,
                )
                listener.cancel()
                with suppress(asyncio.CancelledError):
                    await listener
            else:
                exc = listener.exception()
                if isinstance(exc, ServerError):
                    logger.opt(exception=exc).error("Listener failed while draining")
                elif exc is not None:
                    raise exc
        finally:
            self._set_state(ServerState.STOPPED)


async def run_server(
    app: FastAPI, settings: Settings, shutdown: ShutdownSignal | None = None
) -> None:
    """Serve ``app`` until an OS interrupt, then shut down gracefully.

    Args:
        app: The application to serve.
        settings: Application settings.
        shutdown: Cancellation token. Built from ``settings.shutdown_signals``
            when omitted.

    Raises:
        ServerError: If the listener fails to start or stops unexpectedly.
    """
    if shutdown is None:
        shutdown = ShutdownSignal.from_names(settings.shutdown_signals)

    server = HttpServer(app, settings)
    with shutdown.notify():
        await server.run(shutdown)
