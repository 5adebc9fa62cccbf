"""Perspective extraction from equirectangular frames."""

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np

from facade360.config import DEFAULT_PERSPECTIVES, MODEL_INPUT_SIZE
from facade360.errors import InvalidRegion, SourceUnavailable
from facade360.models import CropRegion, PerspectiveDefinition, RasterFrame

logger = logging.getLogger(__name__)

# (width, height)
OutputSize = tuple[int, int]


class PerspectiveSet:
    """Ordered set of perspective definitions keyed by perspective key."""

    def __init__(self, definitions: list[PerspectiveDefinition]) -> None:
        self._definitions: dict[str, PerspectiveDefinition] = {}
        for definition in definitions:
            if definition.key in self._definitions:
                raise ValueError(f"Duplicate perspective key: {definition.key}")
            self._definitions[definition.key] = definition

    @classmethod
    def from_config(cls, config: dict[str, dict] | None = None) -> "PerspectiveSet":
        """Build definitions from a ``DEFAULT_PERSPECTIVES``-shaped mapping."""
        config = config if config is not None else DEFAULT_PERSPECTIVES
        definitions = []
        for key, cfg in config.items():
            secondary = cfg.get("secondary_region")
            definitions.append(
                PerspectiveDefinition(
                    key=key,
                    display_name=cfg.get("display_name", key),
                    description=cfg.get("description", ""),
                    region=CropRegion(*cfg["region"]),
                    secondary_region=CropRegion(*secondary) if secondary else None,
                )
            )
        return cls(definitions)

    def __iter__(self) -> Iterator[PerspectiveDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)

    def __getitem__(self, key: str) -> PerspectiveDefinition:
        return self._definitions[key]

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def keys(self) -> list[str]:
        return list(self._definitions)

    def replace(self, definition: PerspectiveDefinition) -> None:
        """Swap an existing definition for a new one, keeping its position."""
        if definition.key not in self._definitions:
            raise KeyError(f"Unknown perspective: {definition.key}")
        self._definitions[definition.key] = definition
        logger.info(
            "Region updated for %s: %s (secondary: %s)",
            definition.key,
            definition.region.as_tuple(),
            definition.secondary_region.as_tuple() if definition.secondary_region else None,
        )

    def describe(self) -> dict[str, dict]:
        """Return the configured regions per perspective."""
        return {
            d.key: {
                "name": d.display_name,
                "description": d.description,
                "main_region": d.region.as_tuple(),
                "secondary_region": d.secondary_region.as_tuple() if d.secondary_region else None,
            }
            for d in self
        }


def _as_raster(source: RasterFrame | None) -> RasterFrame:
    if source is None:
        raise SourceUnavailable("No source raster")
    if source.ndim != 3 or source.shape[2] < 3 or source.shape[0] == 0 or source.shape[1] == 0:
        raise SourceUnavailable(f"Unsupported raster shape: {source.shape}")
    return source[:, :, :3]


def pixel_bounds(source_shape: tuple[int, ...], region: CropRegion) -> tuple[int, int, int, int]:
    """Return (x, y, width, height) in pixels for a fractional region."""
    height, width = source_shape[0], source_shape[1]
    x = math.floor(region.x * width)
    y = math.floor(region.y * height)
    w = math.floor(region.width * width)
    h = math.floor(region.height * height)
    if w <= 0 or h <= 0:
        raise InvalidRegion(
            f"Region {region.as_tuple()} is empty on a {width}x{height} source"
        )
    return x, y, w, h


def _resample_into(
    source: RasterFrame, bounds: tuple[int, int, int, int], out: np.ndarray
) -> None:
    """Nearest-neighbour resample of a source rectangle into ``out``.

    Output pixel i samples source pixel ``x + floor((i + 0.5) * w / out_w)``.
    """
    x, y, w, h = bounds
    out_h, out_w = out.shape[:2]
    cols = x + np.floor((np.arange(out_w) + 0.5) * w / out_w).astype(np.intp)
    rows = y + np.floor((np.arange(out_h) + 0.5) * h / out_h).astype(np.intp)
    np.clip(cols, x, x + w - 1, out=cols)
    np.clip(rows, y, y + h - 1, out=rows)
    out[...] = source[rows[:, None], cols[None, :]]


class RegionExtractor:
    """Crop and resample perspective windows into fixed-size rasters.

    A scratch buffer per output size is reused between calls. Every call
    overwrites it completely and returns a copy, so results stay valid
    after the next extraction.
    """

    def __init__(self, output_size: OutputSize = (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE)) -> None:
        self.output_size = self._check_size(output_size)
        self._buffers: dict[OutputSize, np.ndarray] = {}

    @staticmethod
    def _check_size(size: OutputSize) -> OutputSize:
        width, height = size
        if width < 1 or height < 1:
            raise InvalidRegion(f"Output size must be positive: {size}")
        return (int(width), int(height))

    def _scratch(self, size: OutputSize) -> np.ndarray:
        buffer = self._buffers.get(size)
        if buffer is None:
            width, height = size
            buffer = np.empty((height, width, 3), dtype=np.uint8)
            self._buffers[size] = buffer
        return buffer

    def extract_region(
        self,
        source: RasterFrame,
        region: CropRegion,
        output_size: OutputSize | None = None,
    ) -> RasterFrame:
        """Crop ``region`` out of ``source`` and resample it to ``output_size``."""
        raster = _as_raster(source)
        size = self._check_size(output_size or self.output_size)
        bounds = pixel_bounds(raster.shape, region)
        buffer = self._scratch(size)
        _resample_into(raster, bounds, buffer)
        return buffer.copy()

    def extract_rear_view(
        self,
        source: RasterFrame,
        definition: PerspectiveDefinition,
        output_size: OutputSize | None = None,
    ) -> RasterFrame:
        """Stitch the two frame edges into a single rear-facing raster.

        The secondary (right edge) region fills the left half and the primary
        (left edge) region fills the right half, so the seam of the output
        lands on the true rear heading instead of the panorama wrap-around.
        """
        if definition.secondary_region is None:
            raise InvalidRegion(f"Perspective {definition.key} has no secondary region")
        raster = _as_raster(source)
        width, height = self._check_size(output_size or self.output_size)
        if width < 2:
            raise InvalidRegion(f"Stitched output needs at least 2 columns: {width}")
        half = width // 2

        right_edge = pixel_bounds(raster.shape, definition.secondary_region)
        left_edge = pixel_bounds(raster.shape, definition.region)

        buffer = self._scratch((width, height))
        _resample_into(raster, right_edge, buffer[:, :half])
        _resample_into(raster, left_edge, buffer[:, half:])
        return buffer.copy()

    def extract(
        self,
        source: RasterFrame,
        definition: PerspectiveDefinition,
        output_size: OutputSize | None = None,
    ) -> RasterFrame:
        """Extract a perspective, stitching when it has a secondary region."""
        if definition.is_stitched:
            return self.extract_rear_view(source, definition, output_size)
        return self.extract_region(source, definition.region, output_size)


@dataclass
class CompatibilityReport:
    """Whether a frame size looks like an equirectangular 360 source."""

    is_valid: bool
    aspect_ratio: float
    width: int
    height: int
    notes: list[str] = field(default_factory=list)


def check_equirectangular(width: int, height: int) -> CompatibilityReport:
    """Check aspect ratio (~2:1) and resolution of a 360 source."""
    aspect_ratio = width / height if height else 0.0
    report = CompatibilityReport(
        is_valid=False, aspect_ratio=aspect_ratio, width=width, height=height
    )

    if 1.8 <= aspect_ratio <= 2.2:
        report.is_valid = True
        report.notes.append("Aspect ratio compatible with 360 video")
    else:
        report.notes.append(f"Aspect ratio {aspect_ratio:.2f} is not typical of 360 video (~2.0)")

    if width >= 1920 and height >= 960:
        report.notes.append("Resolution adequate for detailed analysis")
    elif width >= 1280 and height >= 640:
        report.notes.append("Resolution acceptable, higher quality recommended")
    else:
        report.notes.append("Low resolution, analysis quality may suffer")

    return report
