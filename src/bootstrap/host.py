"""
Application Host
================

Owns the process lifecycle:

    NOT_STARTED -> STARTING -> RUNNING -> SHUTTING_DOWN -> STOPPED
                   STARTING -> STOPPED   (fatal startup failure)

STARTUP:
1. Load settings (missing/invalid configuration is fatal)
2. Build the application context (all-or-nothing)
3. Bind the listener socket
4. Start the HTTP server and wait until it accepts connections

SHUTDOWN:
1. Stop the HTTP server (graceful, bounded by shutdown_timeout)
2. Close the application context in reverse construction order
"""

import asyncio
import signal
import socket
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, Optional, Sequence, Tuple

import uvicorn

from src.bootstrap.composition import WEB, compose
from src.bootstrap.context import ApplicationContext, ContextBuilder
from src.config import Settings, load_settings
from src.core import ApplicationException, ComponentWiringException, LifecycleException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SettingsLoader = Callable[[], Settings]
Composer = Callable[[Settings, Sequence[str]], ContextBuilder]

_STARTUP_POLL_SECONDS = 0.05
_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class HostState(str, Enum):
    """Host lifecycle states."""
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class _HostedServer(uvicorn.Server):
    """uvicorn server whose process signals are handled by the host."""

    def install_signal_handlers(self) -> None:
        pass

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class ApplicationHost:
    """
    Composition root runner for the service.

    Usage:
        host = ApplicationHost(sys.argv[1:])
        exit_code = asyncio.run(host.run())

    Or, when embedding:
        context = await host.start()
        ...
        await host.stop()
    """

    def __init__(
        self,
        args: Sequence[str] = (),
        settings_loader: SettingsLoader = load_settings,
        composer: Composer = compose
    ):
        self._args: Tuple[str, ...] = tuple(args)
        self._settings_loader = settings_loader
        self._composer = composer

        self._state = HostState.NOT_STARTED
        self._context: Optional[ApplicationContext] = None
        self._socket: Optional[socket.socket] = None
        self._server: Optional[_HostedServer] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._shutdown_requested: Optional[asyncio.Event] = None
        self._stopped: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._address: Optional[Tuple[str, int]] = None
        self._failed = False

    # ========== Properties ==========

    @property
    def state(self) -> HostState:
        return self._state

    @property
    def context(self) -> Optional[ApplicationContext]:
        return self._context

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """(host, port) actually bound, with an ephemeral port resolved."""
        return self._address

    @property
    def is_running(self) -> bool:
        return self._state is HostState.RUNNING

    def _set_state(self, state: HostState) -> None:
        logger.info("Host state changed", extra={"from": self._state.value, "to": state.value})
        self._state = state

    # ========== Lifecycle ==========

    async def start(self) -> ApplicationContext:
        """
        Build the application context and start serving.

        Returns once the listener accepts connections. Calling start() on a
        running host returns the existing context.

        Raises:
            ConfigurationException: If configuration is missing or invalid
            ComponentWiringException: If a component or the listener fails
            LifecycleException: If the host was already stopped, or another
                context is active in this process
        """
        if self._state is HostState.RUNNING:
            logger.info("Host already running")
            return self._context
        if self._state is not HostState.NOT_STARTED:
            raise LifecycleException(
                f"Cannot start host in state '{self._state.value}'",
                {"state": self._state.value}
            )

        self._set_state(HostState.STARTING)
        self._loop = asyncio.get_running_loop()
        self._shutdown_requested = asyncio.Event()
        self._stopped = asyncio.Event()

        try:
            settings = self._settings_loader()
            logger.info("Starting application", extra={
                "app_name": settings.app_name,
                "version": settings.app_version,
                "environment": settings.environment
            })

            self._context = await self._composer(settings, self._args).build()
            self._socket = self._bind(settings)
            await self._start_server(settings)
        except BaseException as e:
            # Includes cancellation: STARTING may only end in RUNNING or STOPPED
            logger.error(
                "Startup aborted",
                extra={
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "details": getattr(e, "details", None)
                }
            )
            self._failed = True
            await self._release()
            self._set_state(HostState.STOPPED)
            self._stopped.set()
            raise

        self._set_state(HostState.RUNNING)
        logger.info("Application started", extra={
            "host": self._address[0],
            "port": self._address[1]
        })
        return self._context

    def request_shutdown(self) -> None:
        """
        Ask a running host to shut down. Idempotent.

        Safe to call from signal handlers and from threads other than the
        one running the host's event loop.
        """
        if self._shutdown_requested is None or self._shutdown_requested.is_set():
            return

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is self._loop:
            self._mark_shutdown_requested()
            return
        try:
            self._loop.call_soon_threadsafe(self._mark_shutdown_requested)
        except RuntimeError:
            logger.debug("Shutdown requested after the event loop closed")

    def _mark_shutdown_requested(self) -> None:
        if self._shutdown_requested.is_set():
            return
        logger.info("Shutdown requested")
        self._shutdown_requested.set()

    async def wait(self) -> None:
        """Block until shutdown is requested or the HTTP server exits."""
        if self._state is not HostState.RUNNING:
            return

        shutdown = asyncio.ensure_future(self._shutdown_requested.wait())
        done, _ = await asyncio.wait(
            {shutdown, self._serve_task},
            return_when=asyncio.FIRST_COMPLETED
        )
        if shutdown not in done:
            shutdown.cancel()
            logger.error("HTTP server exited without a shutdown request")
            self._failed = True

    async def stop(self) -> None:
        """
        Stop serving and release the application context.

        Idempotent: stopping a stopped host is a no-op, and a concurrent
        call waits for the shutdown in progress. A host that never started
        is left untouched.
        """
        if self._state in (HostState.NOT_STARTED, HostState.STOPPED):
            return
        if self._state is HostState.SHUTTING_DOWN:
            await self._stopped.wait()
            return
        if self._state is HostState.STARTING:
            raise LifecycleException("Cannot stop host while it is starting")

        self._set_state(HostState.SHUTTING_DOWN)
        self.request_shutdown()
        try:
            await self._release()
        finally:
            self._set_state(HostState.STOPPED)
            self._stopped.set()
        logger.info("Application stopped")

    async def run(self) -> int:
        """
        Start, serve until a shutdown signal, stop.

        Returns:
            int: 0 on clean shutdown, 1 on startup or server failure
        """
        try:
            await self.start()
        except ApplicationException as e:
            logger.critical(
                "Application failed to start",
                extra={"error_type": type(e).__name__, "error": e.message, "details": e.details}
            )
            return 1
        except Exception as e:
            logger.critical(
                "Application failed to start",
                extra={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True
            )
            return 1

        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop)
        try:
            await self.wait()
        finally:
            self._remove_signal_handlers(loop, installed)
            await self.stop()

        return 1 if self._failed else 0

    # ========== Internals ==========

    def _bind(self, settings: Settings) -> socket.socket:
        family = socket.AF_INET6 if ":" in settings.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((settings.host, settings.port))
        except OSError as e:
            sock.close()
            raise ComponentWiringException(
                "listener",
                f"cannot bind {settings.host}:{settings.port}: {e}",
                {"host": settings.host, "port": settings.port}
            ) from e

        bound_host, bound_port = sock.getsockname()[:2]
        self._address = (bound_host, bound_port)
        return sock

    async def _start_server(self, settings: Settings) -> None:
        config = uvicorn.Config(
            self._context[WEB],
            lifespan="on",
            log_config=None,
            access_log=False,
            timeout_graceful_shutdown=settings.shutdown_timeout,
        )
        self._server = _HostedServer(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._serve_task.done():
                error = None if self._serve_task.cancelled() else self._serve_task.exception()
                raise ComponentWiringException(
                    "listener",
                    f"HTTP server exited during startup: {error or 'startup aborted'}"
                ) from error
            await asyncio.sleep(_STARTUP_POLL_SECONDS)

    async def _release(self) -> None:
        """Stop the server (if any) and close the context (if any)."""
        if self._server is not None:
            self._server.should_exit = True

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                self._failed = True
                logger.error(
                    "HTTP server stopped with an error",
                    extra={"error_type": type(e).__name__, "error": str(e)}
                )
            self._serve_task = None

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        if self._context is not None:
            await self._context.close()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> Tuple[int, ...]:
        installed = []
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not on the main thread, or not supported by this loop
                logger.debug("Signal handler not installed", extra={"signal": sig.name})
                continue
            installed.append(sig)
        return tuple(installed)

    @staticmethod
    def _remove_signal_handlers(loop: asyncio.AbstractEventLoop, signals: Sequence[int]) -> None:
        for sig in signals:
            loop.remove_signal_handler(sig)
