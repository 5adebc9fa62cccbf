"""Tests for perspective region extraction."""

import numpy as np
import pytest
from conftest import make_raster

from facade360.analysis.regions import (
    PerspectiveSet,
    RegionExtractor,
    check_equirectangular,
    pixel_bounds,
)
from facade360.errors import InvalidRegion, SourceUnavailable
from facade360.models import CropRegion, PerspectiveDefinition


def test_default_perspectives_order():
    perspectives = PerspectiveSet.from_config()
    assert perspectives.keys() == ["front", "left", "right", "rear"]
    assert perspectives["rear"].is_stitched
    assert not perspectives["front"].is_stitched


def test_every_perspective_has_model_input_size(panorama):
    extractor = RegionExtractor()
    for definition in PerspectiveSet.from_config():
        out = extractor.extract(panorama, definition)
        assert out.shape == (224, 224, 3)
        assert out.dtype == np.uint8


def test_extract_region_samples_pixel_centres():
    source = make_raster(100, 50)
    out = RegionExtractor().extract_region(source, CropRegion(0.0, 0.0, 1.0, 1.0), (50, 25))
    # Output column i samples source column floor((i + 0.5) * 2)
    assert list(out[0, :5, 0]) == [1, 3, 5, 7, 9]
    assert list(out[:3, 0, 1]) == [1, 3, 5]


def test_extract_region_identity_size_is_exact_crop():
    source = make_raster(200, 100)
    region = CropRegion(0.25, 0.25, 0.5, 0.5)
    out = RegionExtractor().extract_region(source, region, (100, 50))
    np.testing.assert_array_equal(out, source[25:75, 50:150])


def test_rear_view_halves_match_edge_regions(panorama):
    extractor = RegionExtractor()
    rear = PerspectiveSet.from_config()["rear"]

    stitched = extractor.extract_rear_view(panorama, rear, (224, 224))
    right_edge = extractor.extract_region(panorama, rear.secondary_region, (112, 224))
    left_edge = extractor.extract_region(panorama, rear.region, (112, 224))

    np.testing.assert_array_equal(stitched[:, :112], right_edge)
    np.testing.assert_array_equal(stitched[:, 112:], left_edge)


def test_rear_view_odd_width_gives_extra_column_to_primary(panorama):
    extractor = RegionExtractor()
    rear = PerspectiveSet.from_config()["rear"]
    stitched = extractor.extract_rear_view(panorama, rear, (5, 4))
    left_edge = extractor.extract_region(panorama, rear.region, (3, 4))
    np.testing.assert_array_equal(stitched[:, 2:], left_edge)


def test_rear_view_requires_secondary_region(panorama):
    front = PerspectiveSet.from_config()["front"]
    with pytest.raises(InvalidRegion):
        RegionExtractor().extract_rear_view(panorama, front)


def test_results_survive_buffer_reuse(panorama):
    extractor = RegionExtractor()
    perspectives = PerspectiveSet.from_config()
    first = extractor.extract(panorama, perspectives["left"])
    snapshot = first.copy()
    extractor.extract(panorama, perspectives["right"])
    np.testing.assert_array_equal(first, snapshot)


def test_empty_pixel_region_raises():
    source = make_raster(5, 5)
    with pytest.raises(InvalidRegion):
        pixel_bounds(source.shape, CropRegion(0.0, 0.0, 0.1, 0.5))


def test_missing_source_raises():
    front = PerspectiveSet.from_config()["front"]
    with pytest.raises(SourceUnavailable):
        RegionExtractor().extract(None, front)


def test_invalid_output_size():
    with pytest.raises(InvalidRegion):
        RegionExtractor(output_size=(0, 224))


def test_replace_keeps_position():
    perspectives = PerspectiveSet.from_config()
    perspectives.replace(
        PerspectiveDefinition("left", "Left wide", CropRegion(0.0, 0.2, 0.35, 0.6))
    )
    assert perspectives.keys() == ["front", "left", "right", "rear"]
    assert perspectives.describe()["left"]["main_region"] == (0.0, 0.2, 0.35, 0.6)


def test_replace_unknown_key():
    perspectives = PerspectiveSet.from_config()
    with pytest.raises(KeyError):
        perspectives.replace(
            PerspectiveDefinition("up", "Up", CropRegion(0.0, 0.0, 1.0, 0.25))
        )


def test_describe_rear_has_secondary_region():
    info = PerspectiveSet.from_config().describe()
    assert info["rear"]["secondary_region"] == (0.85, 0.25, 0.15, 0.5)
    assert info["front"]["secondary_region"] is None


def test_check_equirectangular_high_resolution():
    report = check_equirectangular(3840, 1920)
    assert report.is_valid
    assert report.aspect_ratio == 2.0
    assert "Resolution adequate for detailed analysis" in report.notes


def test_check_equirectangular_wrong_aspect():
    report = check_equirectangular(1920, 1080)
    assert not report.is_valid


def test_check_equirectangular_low_resolution():
    report = check_equirectangular(800, 400)
    assert report.is_valid
    assert "Low resolution, analysis quality may suffer" in report.notes
