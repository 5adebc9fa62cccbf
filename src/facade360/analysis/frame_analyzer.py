"""Per-frame analysis across all perspectives of an equirectangular frame."""

import logging
from io import BytesIO

import numpy as np
from PIL import Image

from facade360.analysis.regions import PerspectiveSet, RegionExtractor
from facade360.analysis.track import Track, coordinates_at_time
from facade360.classification.ensemble import ClassificationEnsemble
from facade360.config import FRAME_THUMBNAIL_QUALITY, PERSPECTIVE_THUMBNAIL_QUALITY
from facade360.errors import SourceUnavailable
from facade360.models import AnalysisMode, FrameResult, PerspectiveResult, RasterFrame

logger = logging.getLogger(__name__)


def encode_jpeg(raster: RasterFrame, quality: int) -> bytes:
    """Encode an RGB raster as JPEG bytes."""
    buf = BytesIO()
    Image.fromarray(np.ascontiguousarray(raster[:, :, :3])).save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def _check_frame(frame: RasterFrame | None) -> RasterFrame:
    if frame is None:
        raise SourceUnavailable("Frame source returned no raster")
    if frame.ndim != 3 or frame.shape[0] == 0 or frame.shape[1] == 0 or frame.shape[2] < 3:
        raise SourceUnavailable(f"Unusable frame raster of shape {frame.shape}")
    return frame


class FrameAnalyzer:
    """Extracts perspectives from a frame and classifies each one."""

    def __init__(
        self,
        ensemble: ClassificationEnsemble,
        perspectives: PerspectiveSet | None = None,
        extractor: RegionExtractor | None = None,
        track: Track | None = None,
    ) -> None:
        self.ensemble = ensemble
        self.perspectives = perspectives or PerspectiveSet.from_config()
        self.extractor = extractor or RegionExtractor()
        self.track = track

    @property
    def ready(self) -> bool:
        return self.ensemble.ready

    def set_track(self, track: Track | None) -> None:
        self.track = track

    def analyze(
        self,
        frame: RasterFrame | None,
        video_time_sec: float,
        mode: AnalysisMode = AnalysisMode.PANORAMA,
    ) -> FrameResult:
        if mode is AnalysisMode.FLAT:
            return self.analyze_flat_frame(frame, video_time_sec)
        return self.analyze_frame(frame, video_time_sec)

    def analyze_frame(self, frame: RasterFrame | None, video_time_sec: float) -> FrameResult:
        """Analyze the four perspectives of an equirectangular frame."""
        frame = _check_frame(frame)
        logger.debug("Analyzing 360 frame at %.2fs", video_time_sec)

        perspectives: list[PerspectiveResult] = []
        for definition in self.perspectives:
            region = self.extractor.extract(frame, definition)
            perspectives.append(
                PerspectiveResult(
                    perspective_key=definition.key,
                    display_name=definition.display_name,
                    thumbnail=encode_jpeg(region, PERSPECTIVE_THUMBNAIL_QUALITY),
                    predictions=self.ensemble.classify(region),
                )
            )

        logger.info("Frame at %.2fs analyzed: %d perspectives", video_time_sec, len(perspectives))
        return FrameResult(
            timestamp_sec=video_time_sec,
            coordinates=coordinates_at_time(self.track, video_time_sec),
            thumbnail=encode_jpeg(frame, FRAME_THUMBNAIL_QUALITY),
            perspectives=perspectives,
        )

    def analyze_flat_frame(self, frame: RasterFrame | None, video_time_sec: float) -> FrameResult:
        """Analyze a non-360 frame as a whole, without perspectives."""
        frame = _check_frame(frame)
        return FrameResult(
            timestamp_sec=video_time_sec,
            coordinates=coordinates_at_time(self.track, video_time_sec),
            thumbnail=encode_jpeg(frame, FRAME_THUMBNAIL_QUALITY),
            predictions=self.ensemble.classify(frame[:, :, :3]),
        )
