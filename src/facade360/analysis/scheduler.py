"""Frame-sampling scheduler: walks a video at a fixed interval and analyzes frames."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from facade360.analysis.frame_analyzer import FrameAnalyzer
from facade360.analysis.video_source import VideoSource
from facade360.config import (
    FRAME_INTERVAL_SEC,
    INTER_FRAME_DELAY_SEC,
    MAX_CONSECUTIVE_ERRORS,
    SEEK_TIMEOUT_SEC,
)
from facade360.errors import SchedulerError, SeekTimeout, TooManyConsecutiveErrors
from facade360.models import AnalysisMode, FrameResult

logger = logging.getLogger(__name__)

# Called with each appended result and its 1-based frame number
FrameCallback = Callable[[FrameResult, int], None]


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERRORED = "errored"


class FrameSamplingScheduler:
    """Drives a FrameAnalyzer across a video, one frame at a time.

    ``start()`` runs the control loop until the video ends, ``stop()`` is
    called, or too many frames fail in a row. ``pause()``/``resume()``/
    ``stop()`` take effect at the next scheduling point: a frame already
    being analyzed is finished, no new one is started.
    """

    def __init__(
        self,
        analyzer: FrameAnalyzer,
        source: VideoSource | None = None,
        frame_interval: float = FRAME_INTERVAL_SEC,
        seek_timeout: float = SEEK_TIMEOUT_SEC,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        inter_frame_delay: float = INTER_FRAME_DELAY_SEC,
        mode: AnalysisMode = AnalysisMode.PANORAMA,
        on_frame: FrameCallback | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.source = source
        self.frame_interval = frame_interval
        self.seek_timeout = seek_timeout
        self.max_consecutive_errors = max_consecutive_errors
        self.inter_frame_delay = inter_frame_delay
        self.mode = mode
        self.on_frame = on_frame

        self.state = SchedulerState.IDLE
        self.results: list[FrameResult] = []
        self.cursor = 0.0
        self._frame_index = 0
        self.consecutive_errors = 0
        self.last_error: BaseException | None = None
        self._wake: asyncio.Event | None = None

    @property
    def frames_processed(self) -> int:
        return len(self.results)

    @property
    def is_active(self) -> bool:
        return self.state in (SchedulerState.RUNNING, SchedulerState.PAUSED)

    def bind_source(self, source: VideoSource) -> None:
        """Attach a new video and reset to idle, discarding previous results."""
        if self.is_active:
            raise SchedulerError("Cannot change the video source while processing")
        self.source = source
        self.state = SchedulerState.IDLE
        self.results = []
        self.cursor = 0.0
        self._frame_index = 0

    def clear_results(self) -> None:
        if self.is_active:
            raise SchedulerError("Cannot clear results while processing")
        self.results = []

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "frames_processed": self.frames_processed,
            "cursor": self.cursor,
            "duration": self.source.duration if self.source else None,
            "consecutive_errors": self.consecutive_errors,
        }

    def _check_can_start(self) -> None:
        if self.is_active:
            raise SchedulerError(f"Cannot start while {self.state.value}")
        if self.source is None:
            raise SchedulerError("No video source bound")
        if self.frame_interval <= 0:
            raise SchedulerError(f"frame_interval must be positive, got {self.frame_interval}")
        if not self.analyzer.ready:
            raise SchedulerError("Classification ensemble is not ready")

    async def start(self) -> SchedulerState:
        """Process the bound video from t=0. Returns the final state.

        Raises:
            SchedulerError: Nothing to run or already running.
            TooManyConsecutiveErrors: The error threshold was reached; the
                results gathered so far are kept.
        """
        self._check_can_start()
        self.results = []
        self.cursor = 0.0
        self._frame_index = 0
        self.consecutive_errors = 0
        self.last_error = None
        self._wake = asyncio.Event()
        self._wake.set()
        self.state = SchedulerState.RUNNING
        logger.info(
            "Processing started: interval=%.2fs, mode=%s, duration=%.1fs",
            self.frame_interval,
            self.mode.value,
            self.source.duration,  # type: ignore[union-attr]
        )

        await self._run()

        logger.info(
            "Processing finished (%s): %d frames analyzed", self.state.value, self.frames_processed
        )
        return self.state

    async def _run(self) -> None:
        assert self.source is not None and self._wake is not None
        while True:
            if self.state is SchedulerState.PAUSED:
                await self._wake.wait()
                continue
            if self.state is not SchedulerState.RUNNING:
                break
            if self.cursor >= self.source.duration:
                self.state = SchedulerState.COMPLETED
                break

            await self._process_frame(self.cursor)
            # Derived from an integer index so float steps do not drift
            self._frame_index += 1
            self.cursor = self._frame_index * self.frame_interval

            if self.consecutive_errors >= self.max_consecutive_errors and self.is_active:
                self.state = SchedulerState.ERRORED
                logger.error(
                    "Stopping after %d consecutive frame errors (%d frames kept)",
                    self.consecutive_errors,
                    self.frames_processed,
                )
                raise TooManyConsecutiveErrors(self.consecutive_errors, self.last_error)

            # Yield to other tasks between frames
            await asyncio.sleep(self.inter_frame_delay)

    async def _process_frame(self, time_sec: float) -> None:
        assert self.source is not None
        try:
            try:
                await asyncio.wait_for(self.source.seek(time_sec), timeout=self.seek_timeout)
            except TimeoutError as e:
                raise SeekTimeout(
                    f"Seek to {time_sec:.2f}s not acknowledged within {self.seek_timeout}s"
                ) from e
            frame = self.source.read_frame()
            result = self.analyzer.analyze(frame, time_sec, self.mode)
        except Exception as e:
            self.consecutive_errors += 1
            self.last_error = e
            logger.error(
                "Frame at %.2fs failed (%d/%d consecutive): %s",
                time_sec,
                self.consecutive_errors,
                self.max_consecutive_errors,
                e,
            )
            return

        self.consecutive_errors = 0
        self.results.append(result)
        if self.on_frame is not None:
            self.on_frame(result, len(self.results))

    def pause(self) -> None:
        if self.state is not SchedulerState.RUNNING:
            raise SchedulerError(f"Cannot pause while {self.state.value}")
        self.state = SchedulerState.PAUSED
        assert self._wake is not None
        self._wake.clear()
        logger.info("Processing paused at %.2fs", self.cursor)

    def resume(self) -> None:
        if self.state is not SchedulerState.PAUSED:
            raise SchedulerError(f"Cannot resume while {self.state.value}")
        self.state = SchedulerState.RUNNING
        assert self._wake is not None
        self._wake.set()
        logger.info("Processing resumed at %.2fs", self.cursor)

    def toggle_pause(self) -> SchedulerState:
        if self.state is SchedulerState.PAUSED:
            self.resume()
        else:
            self.pause()
        return self.state

    def stop(self) -> None:
        """Finish now, keeping the results gathered so far."""
        if not self.is_active:
            raise SchedulerError(f"Cannot stop while {self.state.value}")
        self.state = SchedulerState.COMPLETED
        assert self._wake is not None
        self._wake.set()
        logger.info("Processing stopped with %d frames", self.frames_processed)
