"""Tests for per-frame analysis."""

import pytest
from conftest import make_ensemble

from facade360.analysis.frame_analyzer import FrameAnalyzer, encode_jpeg
from facade360.analysis.track import Track
from facade360.errors import SourceUnavailable
from facade360.models import AnalysisMode, Coordinates, TrackPoint

JPEG_MAGIC = b"\xff\xd8"


def test_encode_jpeg(panorama):
    assert encode_jpeg(panorama, 70).startswith(JPEG_MAGIC)


def test_analyze_panorama_frame(panorama):
    analyzer = FrameAnalyzer(make_ensemble())

    result = analyzer.analyze(panorama, 5.0)

    assert result.is_panorama
    assert result.timestamp_sec == 5.0
    assert result.coordinates is None
    assert result.thumbnail.startswith(JPEG_MAGIC)
    assert [p.perspective_key for p in result.perspectives] == ["front", "left", "right", "rear"]
    for perspective in result.perspectives:
        assert perspective.thumbnail.startswith(JPEG_MAGIC)
        assert [r.model_id for r in perspective.predictions] == ["mobilenet", "efficientnet"]
    assert len(result.all_predictions()) == 8


def test_analyze_flat_frame(panorama):
    analyzer = FrameAnalyzer(make_ensemble())

    result = analyzer.analyze(panorama, 0.0, AnalysisMode.FLAT)

    assert not result.is_panorama
    assert result.perspectives is None
    assert [r.model_id for r in result.predictions] == ["mobilenet", "efficientnet"]


def test_analyze_with_track(panorama):
    analyzer = FrameAnalyzer(make_ensemble())
    analyzer.set_track(
        Track(
            [
                TrackPoint(40.0, -3.0, 1_000),
                TrackPoint(41.0, -4.0, 11_000),
            ]
        )
    )
    assert analyzer.analyze(panorama, 8.0).coordinates == Coordinates(41.0, -4.0)


def test_missing_frame_raises():
    analyzer = FrameAnalyzer(make_ensemble())
    with pytest.raises(SourceUnavailable):
        analyzer.analyze(None, 0.0)


def test_ready_follows_ensemble():
    assert FrameAnalyzer(make_ensemble()).ready
    assert not FrameAnalyzer(make_ensemble(architectures=())).ready
