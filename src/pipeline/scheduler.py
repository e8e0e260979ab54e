"""
Single-flight frame scheduler.

The scheduler is driven by display-refresh ticks on the asyncio event loop.
On each tick it starts a decode pass only when none is in flight; ticks
that arrive while a pass is still running are dropped rather than queued,
so a slow provider costs frames instead of growing a backlog.

State:
    IDLE --start()--> RUNNING --stop()--> IDLE
    is_processing is a sub-flag: set while a pass is in flight, forced on
    while the display surface is hidden, and optionally kept across
    stop(keep_processing=True) so a camera or model swap can drain.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from models.config import SchedulerConfig
from models.errors import ResourceBusy
from models.stats import LatencyWindow, SchedulerSnapshot


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SchedulerEvent(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"
    HIDDEN = "hidden"
    VISIBLE = "visible"


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


class FrameScheduler:
    """
    Paces decode passes against display ticks with at most one pass in flight.

    Args:
        run_pass: Coroutine function running one full pipeline pass.
        config: Pacing configuration.
        sink: Receives each pass result while the scheduler is still running.
        on_stop: Called on stop() to release the capture resource.
        clock: Millisecond clock; injectable for tests.
        auto_tick: Arm display ticks on the event loop after start(). When
            False the caller drives tick() directly.

    Example:
        scheduler = FrameScheduler(pipeline_pass, SchedulerConfig(), sink=render)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        run_pass: Callable[[], Awaitable[Any]],
        config: Optional[SchedulerConfig] = None,
        sink: Optional[Callable[[Any], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = _now_ms,
        auto_tick: bool = True,
    ):
        self._run_pass = run_pass
        self.config = config or SchedulerConfig()
        self._sink = sink
        self._on_stop = on_stop
        self._clock = clock
        self._auto_tick = auto_tick

        self._state = SchedulerState.IDLE
        self._processing = False
        self._hidden = False
        self._in_flight: Optional[asyncio.Future] = None
        self._tick_handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0

        self._frame_count = 0
        self._last_fps_tick = 0.0
        self._fps = 0
        self._latencies = LatencyWindow(self.config.latency_window)
        self._frames_started = 0
        self._frames_dropped = 0
        self._latest: Any = None
        self._listeners: List[Callable[[SchedulerEvent], None]] = []

    # -- state -------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def in_flight_count(self) -> int:
        return 0 if self._in_flight is None else 1

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def fps(self) -> int:
        return self._fps

    @property
    def average_inference_ms(self) -> float:
        return self._latencies.mean()

    @property
    def latencies(self) -> LatencyWindow:
        return self._latencies

    @property
    def latest_result(self) -> Any:
        return self._latest

    def snapshot(self) -> SchedulerSnapshot:
        stats = getattr(self._latest, "stats", None)
        return SchedulerSnapshot(
            state=self._state.value,
            is_processing=self._processing,
            fps=self._fps,
            average_inference_ms=self._latencies.mean(),
            detection_count=stats.detection_count if stats is not None else 0,
            frames_started=self._frames_started,
            frames_dropped=self._frames_dropped,
        )

    def add_listener(self, callback: Callable[[SchedulerEvent], None]) -> None:
        """Register a callback for state-transition events."""
        self._listeners.append(callback)

    def _emit(self, event: SchedulerEvent) -> None:
        for callback in self._listeners:
            try:
                callback(event)
            except Exception as e:
                logging.warning(f"Scheduler listener error: {e}")

    # -- transitions -------------------------------------------------------

    def start(self) -> None:
        """IDLE -> RUNNING. Resets FPS and latency accounting; no-op when running."""
        if self._state is SchedulerState.RUNNING:
            return
        self._generation += 1
        self._state = SchedulerState.RUNNING
        # A flag kept across stop() only outlives the pass it was guarding
        self._processing = self._hidden or self._in_flight is not None
        self._frame_count = 0
        self._fps = 0
        self._last_fps_tick = self._clock()
        self._latencies.clear()
        self._latest = None
        logging.info("Frame scheduler started")
        self._emit(SchedulerEvent.STARTED)
        if self._auto_tick:
            self._arm()

    def stop(self, keep_processing: bool = False) -> None:
        """
        RUNNING -> IDLE.

        Cancels the pending tick and releases the capture resource. An
        in-flight pass is not aborted; its result is discarded. With
        keep_processing the processing flag is left as-is so no new pass
        can start until the in-flight one settles.
        """
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

        was_running = self._state is SchedulerState.RUNNING
        self._state = SchedulerState.IDLE
        if not keep_processing:
            self._processing = False
        self._frame_count = 0
        self._fps = 0

        if self._on_stop is not None:
            try:
                self._on_stop()
            except Exception as e:
                logging.warning(f"Error releasing capture resource: {e}")

        if was_running:
            logging.info(f"Frame scheduler stopped (keep_processing={keep_processing})")
            self._emit(SchedulerEvent.STOPPED)

    def set_visible(self, visible: bool) -> None:
        """
        Throttle inference while the display surface is hidden.

        Hidden forces the processing flag on without stopping the tick
        loop; visible releases it unless a pass is still in flight.
        """
        self._hidden = not visible
        if self._state is SchedulerState.RUNNING:
            if self._hidden:
                self._processing = True
            elif self._in_flight is None:
                self._processing = False
        self._emit(SchedulerEvent.VISIBLE if visible else SchedulerEvent.HIDDEN)

    def after_in_flight(self, callback: Callable[[], None]) -> None:
        """Call back now if no pass is in flight, else once the current pass settles."""
        if self._in_flight is None:
            callback()
            return
        self._in_flight.add_done_callback(lambda _: callback())

    async def drain(self, timeout: Optional[float] = None, poll_interval: Optional[float] = None) -> None:
        """
        Wait until no pass is in flight.

        Raises:
            ResourceBusy: If the in-flight pass has not settled within timeout seconds.
        """
        timeout = self.config.drain_timeout_s if timeout is None else timeout
        poll = self.config.drain_poll_ms / 1000.0 if poll_interval is None else poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._in_flight is not None:
            if loop.time() >= deadline:
                raise ResourceBusy(f"Frame still processing after {timeout:.1f}s")
            await asyncio.sleep(poll)

    # -- ticking -----------------------------------------------------------

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._tick_handle = loop.call_later(self.config.tick_interval_ms / 1000.0, self._on_tick)

    def _on_tick(self) -> None:
        self._tick_handle = None
        if self._state is not SchedulerState.RUNNING:
            return
        self.tick()
        self._arm()

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Run one scheduling tick.

        Publishes the FPS sample once per fps interval, then starts a pass
        unless one is in flight or processing is suppressed.

        Returns:
            True if a pass was started.
        """
        if self._state is not SchedulerState.RUNNING:
            return False
        now = self._clock() if now is None else now

        if now - self._last_fps_tick >= self.config.fps_interval_ms:
            self._fps = self._frame_count
            self._frame_count = 0
            self._last_fps_tick = now

        if self._processing or self._in_flight is not None:
            self._frames_dropped += 1
            return False

        self._processing = True
        self._frames_started += 1
        self._in_flight = asyncio.ensure_future(self._run(self._generation, self._clock()))
        return True

    async def _run(self, generation: int, started: float) -> None:
        result: Any = None
        failed = False
        try:
            result = await self._run_pass()
        except Exception as e:
            failed = True
            logging.error(f"Frame pass failed: {e}")
        finally:
            self._in_flight = None
            self._processing = self._hidden and self._state is SchedulerState.RUNNING
            if generation == self._generation:
                self._frame_count += 1

        if failed or generation != self._generation:
            return
        self._latencies.add(self._clock() - started)
        if self._state is not SchedulerState.RUNNING:
            return
        self._latest = result
        if self._sink is not None:
            try:
                self._sink(result)
            except Exception as e:
                logging.warning(f"Result sink error: {e}")
