"""Data models for frames, predictions and consensus results."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np

from facade360.errors import InvalidRegion

# Sentinel values stored in prediction fields instead of a label
NOT_FOUND = "not found"
PREDICTION_ERROR = "prediction error"
ANALYSIS_ERROR = "analysis error"

# (height, width, 3) uint8 RGB raster
RasterFrame = np.ndarray

LabelMap = dict[str, dict[str, str]]


def unmapped_label(class_index: int) -> str:
    """Label used when a class index has no entry in the label map."""
    return f"class {class_index} (unmapped)"


class AnalysisMode(str, Enum):
    """How a frame is analyzed: four perspectives or the whole flat frame."""

    PANORAMA = "panorama"
    FLAT = "flat"


@dataclass(frozen=True)
class CropRegion:
    """Rectangle expressed as fractions of the source width/height."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            raise InvalidRegion(f"Region fractions must be finite: {values}")
        if any(v < 0.0 or v > 1.0 for v in values):
            raise InvalidRegion(f"Region fractions must lie in [0, 1]: {values}")
        # Small tolerance for float sums such as 0.7 + 0.3
        if self.x + self.width > 1.0 + 1e-9 or self.y + self.height > 1.0 + 1e-9:
            raise InvalidRegion(f"Region exceeds the source bounds: {values}")

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class PerspectiveDefinition:
    """A named extraction window over an equirectangular frame."""

    key: str
    display_name: str
    region: CropRegion
    secondary_region: CropRegion | None = None
    description: str = ""

    @property
    def is_stitched(self) -> bool:
        return self.secondary_region is not None


@dataclass(frozen=True)
class TrackPoint:
    """A single GPS waypoint."""

    latitude: float
    longitude: float
    absolute_time_ms: int


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


@dataclass(frozen=True)
class PredictionRecord:
    """Labels predicted by one model architecture for one raster."""

    model_id: str
    tipologia: str
    material_fachada: str
    pisos: str
    is_stub: bool = False

    def value(self, task: str) -> str:
        return getattr(self, task)


@dataclass
class PerspectiveResult:
    """Predictions for one perspective of one frame."""

    perspective_key: str
    display_name: str
    thumbnail: bytes  # JPEG
    predictions: list[PredictionRecord]


@dataclass
class FrameResult:
    """Analysis of one sampled frame.

    Panorama frames carry ``perspectives``; flat (non-360) frames carry
    ``predictions`` for the whole frame instead.
    """

    timestamp_sec: float
    coordinates: Coordinates | None
    thumbnail: bytes  # JPEG
    perspectives: list[PerspectiveResult] | None = None
    predictions: list[PredictionRecord] | None = None

    @property
    def is_panorama(self) -> bool:
        return self.perspectives is not None

    def all_predictions(self) -> list[PredictionRecord]:
        """Flatten predictions across perspectives (or return the flat list)."""
        if self.perspectives is not None:
            return [pred for p in self.perspectives for pred in p.predictions]
        return list(self.predictions or [])


@dataclass(frozen=True)
class VoteCount:
    value: str
    count: int


@dataclass(frozen=True)
class Conflict:
    """Two near-tied candidates for the same task."""

    task: str
    options: tuple[VoteCount, ...]


@dataclass(frozen=True)
class ConsensusReport:
    """Agreement among predictions of a frame, per task."""

    strong: dict[str, VoteCount] = field(default_factory=dict)
    partial: dict[str, VoteCount] = field(default_factory=dict)
    conflicts: tuple[Conflict, ...] = ()
    agreement: dict[str, str] = field(default_factory=dict)

    def conflicted_tasks(self) -> list[str]:
        return [c.task for c in self.conflicts]


@dataclass
class AnalysisRun:
    """A stored processing run over one video or image."""

    id: int
    source_path: str
    mode: str
    frame_interval: float | None
    state: str
    frames: int
    started_at: datetime | None
    finished_at: datetime | None
