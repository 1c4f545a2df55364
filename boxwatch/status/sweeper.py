"""Offline sweeper: infers silent disconnects from heartbeat silence.

Per (box_code, source) the recorded state is UNKNOWN until the first
heartbeat, then ONLINE or OFFLINE as given by the latest STATUS_CHANGE.  On
every tick, a channel that is ONLINE and whose latest heartbeat is older than
the channel's timeout gets an ``offline`` STATUS_CHANGE carrying the last
known IP.  The sweeper never moves a channel back to ONLINE; only a live
heartbeat can prove liveness.

Usage::

    sweeper = OfflineSweeper(store, detector, clock, timeouts, interval_seconds=5)
    sweeper.start()
    ...
    await sweeper.stop()

Tests drive it one step at a time with ``await sweeper.tick()``.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta

from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.observability.logging import get_logger
from boxwatch.observability.metrics import (
    boxes_online,
    status_transitions_total,
    sweep_duration_seconds,
    sweep_errors_total,
    sweep_intervals_skipped_total,
    sweep_runs_total,
)
from boxwatch.status.transitions import TransitionDetector
from boxwatch.store.base import EventFilter, EventStore
from boxwatch.timecodec import Clock

_logger = get_logger("status.sweeper")


class OfflineSweeper:
    """Periodic background task appending synthetic ``offline`` transitions.

    Args:
        store:            Event log.
        detector:         Transition detector whose keyed locks serialise
                          the per-channel check-and-append.
        clock:            Source of "now".
        timeouts:         Silence threshold per channel; channels without an
                          entry are not swept.
        interval_seconds: Sweep cadence.
    """

    def __init__(
        self,
        store: EventStore,
        detector: TransitionDetector,
        clock: Clock,
        timeouts: dict[EventSource, timedelta],
        interval_seconds: float = 5.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._detector = detector
        self._clock = clock
        self._timeouts = dict(timeouts)
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._iterations = 0
        self._skipped_intervals = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def skipped_intervals(self) -> int:
        """Scheduled slots dropped because an iteration overran its interval."""
        return self._skipped_intervals

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Launch the sweep loop as a background task.  Idempotent."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="offline-sweeper")
        _logger.info("offline_sweeper_started", interval_s=self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit.  Safe if never started."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _logger.info("offline_sweeper_stopped", iterations=self._iterations)

    async def _run(self) -> None:
        """Fire every interval relative to the original schedule; skip missed slots."""
        next_run = time.monotonic() + self._interval
        while self._running:
            delay = next_run - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            if not self._running:
                break

            await self.run_iteration()

            now = time.monotonic()
            skipped = 0
            while next_run <= now:
                next_run += self._interval
                skipped += 1
            if skipped > 1:
                self._skipped_intervals += skipped - 1
                sweep_intervals_skipped_total.inc(skipped - 1)
                _logger.warning("offline_sweep_intervals_skipped", skipped=skipped - 1)

    async def run_iteration(self) -> list[Event]:
        """One guarded sweep: errors are logged and counted, never raised."""
        started = time.perf_counter()
        try:
            appended = await self.tick()
        except Exception as exc:
            sweep_errors_total.inc()
            _logger.error("offline_sweep_failed", error=str(exc), exc_info=True)
            return []
        finally:
            sweep_duration_seconds.observe(time.perf_counter() - started)
        self._iterations += 1
        sweep_runs_total.inc()
        return appended

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def tick(self) -> list[Event]:
        """Check every known channel once and return the appended transitions.

        Store access is delegated to a thread-pool executor, one box at a
        time, so request handlers keep running while a sweep is in progress.
        """
        loop = asyncio.get_running_loop()
        appended: list[Event] = []
        for source, timeout in self._timeouts.items():
            online = 0
            box_codes = await loop.run_in_executor(
                None, self._store.distinct_box_codes, EventFilter(source=source)
            )
            for box_code in sorted(box_codes):
                try:
                    async with self._detector.lock(box_code, source):
                        change, is_online = await loop.run_in_executor(
                            None, self._check, box_code, source, timeout, self._clock.now()
                        )
                except Exception as exc:
                    sweep_errors_total.inc()
                    _logger.error(
                        "offline_sweep_box_failed",
                        box_code=box_code,
                        source=source.value,
                        error=str(exc),
                        exc_info=True,
                    )
                    continue
                if is_online:
                    online += 1
                if change is not None:
                    appended.append(change)
            boxes_online.labels(source=source.value).set(online)
        return appended

    def _check(
        self,
        box_code: str,
        source: EventSource,
        timeout: timedelta,
        now: datetime,
    ) -> tuple[Event | None, bool]:
        """Return (appended offline transition or None, channel online after the check)."""
        last_heartbeat = self._store.latest(
            EventFilter(source=source, type=EventType.HEARTBEAT, box_code=box_code)
        )
        last_status = self._store.latest(
            EventFilter(source=source, type=EventType.STATUS_CHANGE, box_code=box_code)
        )
        if last_heartbeat is None or last_status is None:
            return None, False
        if last_status.online_status != OnlineStatus.ONLINE:
            return None, False
        silence = now - last_heartbeat.timestamp
        if silence <= timeout:
            return None, True

        change = Event(
            timestamp=now,
            source=source,
            type=EventType.STATUS_CHANGE,
            box_code=box_code,
            ip=last_heartbeat.ip,
            online_status=OnlineStatus.OFFLINE,
        )
        self._store.append(change)
        status_transitions_total.labels(source=source.value, status=OnlineStatus.OFFLINE.value).inc()
        _logger.info(
            "box_status_changed",
            box_code=box_code,
            source=source.value,
            previous="online",
            status="offline",
            silent_for_s=int(silence.total_seconds()),
            ip=last_heartbeat.ip,
        )
        return change, False
