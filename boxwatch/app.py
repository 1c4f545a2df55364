"""Application bootstrap for BoxWatch.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → store → status components → sweeper → REST

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single component failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from boxwatch.config import load_config
from boxwatch.models.config import BoxWatchConfig
from boxwatch.observability.logging import get_logger, setup_logging
from boxwatch.timecodec import Clock, SystemClock, resolve_tz

if TYPE_CHECKING:
    import structlog

    from boxwatch.status import IngestService, OfflineSweeper, StatusEngine, TransitionDetector
    from boxwatch.store import EventStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class BoxWatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` on an app that was never started (or already stopped) is safe.
    Pass ``serve=False`` to start everything except the HTTP server.
    """

    def __init__(
        self,
        config: BoxWatchConfig | None = None,
        clock: Clock | None = None,
        serve: bool = True,
    ) -> None:
        self.config = config
        self._clock: Clock = clock or SystemClock()
        self._serve = serve

        self.store: EventStore | None = None
        self.detector: TransitionDetector | None = None
        self.engine: StatusEngine | None = None
        self.ingest: IngestService | None = None
        self.sweeper: OfflineSweeper | None = None
        self._rest_server: object | None = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("boxwatch starting", version=_boxwatch_version())

        # --- 3. Event store ---------------------------------------------
        self._start_store()

        # --- 4. Detector, engine, ingestion -----------------------------
        self._start_status()

        # --- 5. Offline sweeper -----------------------------------------
        self._start_sweeper()

        # --- 6. REST API ------------------------------------------------
        if self._serve:
            await self._start_rest()

        self._running = True
        self._log.info("boxwatch started", port=self.config.api.port, serving=self._serve)

    def _start_store(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from boxwatch.store import build_store

            self.store = build_store(self.config.store)
            self._log.info("event store started", backend=self.config.store.backend)
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    def _start_status(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        try:
            from boxwatch.status import IngestService, StatusEngine, TransitionDetector

            monitor = self.config.monitor
            self.detector = TransitionDetector(self.store, self._clock)
            self.engine = StatusEngine(
                self.store,
                self._clock,
                service_map=monitor.service_map,
                timeouts=monitor.heartbeat_timeouts(),
                service_freshness=monitor.service_freshness,
                history_limit=monitor.history_limit,
            )
            self.ingest = IngestService(self.store, self.detector, self._clock)
            self._log.info(
                "status engine started",
                mapped_boxes=len(monitor.service_map),
                box_timeout_s=int(monitor.box_heartbeat_timeout.total_seconds()),
                nodered_timeout_s=int(monitor.nodered_heartbeat_timeout.total_seconds()),
                service_freshness_s=int(monitor.service_freshness.total_seconds()),
            )
        except Exception as exc:
            raise _ComponentError("status", exc) from exc

    def _start_sweeper(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        assert self.detector is not None
        try:
            from boxwatch.status import OfflineSweeper

            monitor = self.config.monitor
            self.sweeper = OfflineSweeper(
                self.store,
                self.detector,
                self._clock,
                timeouts=monitor.heartbeat_timeouts(),
                interval_seconds=monitor.sweep_interval_seconds,
            )
            self.sweeper.start()
        except Exception as exc:
            raise _ComponentError("sweeper", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from boxwatch.api import build_app

            fastapi_app = build_app(
                store=self.store,
                engine=self.engine,
                ingest=self.ingest,
                display_tz=resolve_tz(self.config.monitor.display_tz),
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host=self.config.api.host,
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", host=self.config.api.host, port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            # Never started
            return

        log = self._log or get_logger("app")
        log.info("boxwatch shutting down")
        self._running = False

        if self._rest_server is not None:
            # Let uvicorn drain in-flight requests before cancelling its task
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
            self._rest_server = None

        for task in reversed(self._background_tasks):
            if not task.done():
                try:
                    await asyncio.wait_for(asyncio.shield(task), timeout=_SHUTDOWN_GRACE_SECONDS)
                except TimeoutError:
                    task.cancel()
                except Exception as exc:
                    log.error("background task raised during shutdown", task=task.get_name(), error=str(exc))
        self._background_tasks.clear()

        await self._stop_component("sweeper", self.sweeper)
        await self._stop_component("store", self.store)

        log.info("boxwatch stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() or close() on a component, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None) or getattr(component, "close", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _boxwatch_version() -> str:
    from boxwatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = BoxWatchApp()
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is not None:
            return
        shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # Block until shutdown is triggered (background tasks run concurrently)
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        # Shutdown runs as its own task; wait for it so asyncio.run() does not cancel it
        if shutdown_task is not None:
            await shutdown_task
        elif app.running:
            await app.stop()
