"""Video sources the scheduler seeks and reads frames from."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np
from PIL import Image

from facade360.errors import SourceUnavailable
from facade360.models import RasterFrame

logger = logging.getLogger(__name__)


class VideoSource(Protocol):
    """A seekable video whose current frame can be read as an RGB raster."""

    duration: float
    width: int
    height: int

    async def seek(self, time_sec: float) -> None:
        """Move to ``time_sec``; returns once the frame at that time is ready."""
        ...

    def read_frame(self) -> RasterFrame:
        """Return the frame at the last completed seek."""
        ...

    def close(self) -> None: ...


class OpenCVVideoSource:
    """Video file decoded with OpenCV.

    Decoding runs on a single worker thread so seeks never overlap, even
    when the caller stops waiting on one that timed out.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._capture = cv2.VideoCapture(str(self.path))
        if not self._capture.isOpened():
            raise SourceUnavailable(f"Cannot open video: {self.path}")

        fps = self._capture.get(cv2.CAP_PROP_FPS) or 30.0
        frame_count = self._capture.get(cv2.CAP_PROP_FRAME_COUNT)
        self.duration = frame_count / fps if frame_count > 0 else 0.0
        self.width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="video-decode")
        self._frame: RasterFrame | None = None
        logger.info(
            "Opened %s: %dx%d, %.1fs at %.2f fps",
            self.path.name,
            self.width,
            self.height,
            self.duration,
            fps,
        )

    def _seek_and_decode(self, time_sec: float) -> None:
        self._capture.set(cv2.CAP_PROP_POS_MSEC, time_sec * 1000.0)
        ok, frame = self._capture.read()
        if not ok or frame is None:
            logger.warning("No frame decoded at %.2fs", time_sec)
            self._frame = None
            return
        self._frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    async def seek(self, time_sec: float) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._seek_and_decode, time_sec)

    def read_frame(self) -> RasterFrame:
        if self._frame is None:
            raise SourceUnavailable(f"No decoded frame available from {self.path.name}")
        return self._frame.copy()

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._capture.release()


def load_image(path: str | Path) -> RasterFrame:
    """Read a still image (e.g. a 360 photo) as an RGB raster."""
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("RGB"))
    except OSError as e:
        raise SourceUnavailable(f"Cannot read image {path}: {e}") from e
