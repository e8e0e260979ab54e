"""
Capture session: the explicit owner of one camera, one provider, the
decode pipeline and its scheduler.

Everything the core needs is passed in; nothing is read from module
globals. The session is the only object allowed to swap the camera or the
model, and it drains in-flight processing before doing so.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional, Union

from inference.provider import InferenceProvider
from models.config import SchedulerConfig
from models.detection import Head
from models.errors import ProviderFailure, SessionStartError
from models.frame import FrameData
from models.stats import FrameResult, SchedulerSnapshot
from observation.base import ObservationSource
from pipeline.engine import FramePipeline
from pipeline.scheduler import FrameScheduler, SchedulerEvent, SchedulerState


class CaptureSession:
    """
    Binds a frame source to the pipeline and paces it with a FrameScheduler.

    Example:
        session = CaptureSession(source, pipeline, SchedulerConfig(), sink=show)
        session.start()
        ...
        await session.swap_source(other_camera)
        session.stop()
    """

    def __init__(
        self,
        source: ObservationSource,
        pipeline: FramePipeline,
        scheduler_config: Optional[SchedulerConfig] = None,
        sink: Optional[Callable[[FrameResult], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        auto_tick: bool = True,
    ):
        self._source = source
        self.pipeline = pipeline
        self._defer_release = False
        self._latest_frame: Optional[FrameData] = None
        kwargs = {"clock": clock} if clock is not None else {}
        self.scheduler = FrameScheduler(
            self._run_pass,
            scheduler_config,
            sink=sink,
            on_stop=self._release_source,
            auto_tick=auto_tick,
            **kwargs,
        )

    @property
    def source(self) -> ObservationSource:
        return self._source

    @property
    def provider(self) -> InferenceProvider:
        return self.pipeline.provider

    @property
    def state(self) -> SchedulerState:
        return self.scheduler.state

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    @property
    def latest_result(self) -> Optional[FrameResult]:
        return self.scheduler.latest_result

    @property
    def latest_frame(self) -> Optional[FrameData]:
        """Frame of the most recently completed pass, for drawing overlays."""
        return self._latest_frame

    def stats(self) -> SchedulerSnapshot:
        return self.scheduler.snapshot()

    def add_listener(self, callback: Callable[[SchedulerEvent], None]) -> None:
        self.scheduler.add_listener(callback)

    # -- control -----------------------------------------------------------

    def start(self) -> None:
        """
        Acquire the camera and start scheduling.

        Raises:
            SessionStartError: If the camera cannot be opened or no head has a
                model. The scheduler stays idle.
        """
        if self.scheduler.is_running:
            return
        enabled = self.pipeline.enabled_heads
        available = getattr(self.provider, "heads", None)
        if available is not None and enabled and not (enabled & frozenset(available)):
            raise SessionStartError(
                f"Provider has no model for any enabled head: {sorted(h.value for h in enabled)}"
            )
        try:
            self._source.open()
        except Exception as e:
            logging.error(f"Failed to open source {self._source.source_id}: {e}")
            raise SessionStartError(f"Failed to open source {self._source.source_id}: {e}") from e
        self.scheduler.start()
        logging.info(f"Session started: source={self._source.source_id}")

    def stop(self, keep_processing: bool = False) -> None:
        """Stop scheduling and release the camera once no pass is reading from it."""
        self.scheduler.stop(keep_processing=keep_processing)

    def set_threshold(self, threshold: float) -> None:
        self.pipeline.set_threshold(threshold)

    def set_enabled_heads(self, heads: Iterable[Union[Head, str]]) -> None:
        self.pipeline.set_enabled_heads(heads)

    def set_visible(self, visible: bool) -> None:
        self.scheduler.set_visible(visible)

    async def swap_source(self, source: ObservationSource, timeout: Optional[float] = None) -> None:
        """
        Replace the camera.

        Stops with the processing flag held and waits for the in-flight pass
        to settle before releasing the old source, then acquires the new one
        and resumes if the session was running.

        Raises:
            ResourceBusy: If the in-flight pass does not settle in time. The
                session is left stopped and still holds the old source; retry.
            SessionStartError: If the new source cannot be opened.
        """
        was_running = self.scheduler.is_running
        await self._stop_and_drain(timeout)
        self._source = source
        logging.info(f"Source swapped to {source.source_id}")
        if was_running:
            self.start()

    async def swap_provider(self, provider: InferenceProvider, timeout: Optional[float] = None) -> None:
        """Replace the inference provider after draining; closes the old one."""
        was_running = self.scheduler.is_running
        await self._stop_and_drain(timeout)
        old = self.pipeline.provider
        self.pipeline.set_provider(provider)
        try:
            old.close()
        except Exception as e:
            logging.warning(f"Error closing previous provider: {e}")
        logging.info("Inference provider swapped")
        if was_running:
            self.start()

    async def close(self, timeout: Optional[float] = None) -> None:
        """Tear the session down: stop, drain, release camera and provider."""
        await self._stop_and_drain(timeout)
        self.pipeline.provider.close()

    # -- internals ---------------------------------------------------------

    async def _stop_and_drain(self, timeout: Optional[float]) -> None:
        self._defer_release = True
        try:
            self.scheduler.stop(keep_processing=True)
            await self.scheduler.drain(timeout)
        finally:
            self._defer_release = False
        self._source.close()

    def _release_source(self) -> None:
        if self._defer_release:
            return
        # A pass may still be reading from the source on a worker thread
        source = self._source
        self.scheduler.after_in_flight(lambda: self._close_released(source))

    def _close_released(self, source: ObservationSource) -> None:
        if self.scheduler.is_running and self._source is source:
            return
        try:
            source.close()
        except Exception as e:
            logging.warning(f"Error closing source {source.source_id}: {e}")

    async def _run_pass(self) -> FrameResult:
        loop = asyncio.get_running_loop()
        frame_data = await loop.run_in_executor(None, self._source.read)
        if frame_data is None:
            raise ProviderFailure(f"No frame available from {self._source.source_id}")
        result = await self.pipeline.process(frame_data)
        self._latest_frame = frame_data
        return result
