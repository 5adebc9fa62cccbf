"""Tests for GPS track alignment."""

from facade360.analysis.track import Track, coordinates_at_time, load_gpx
from facade360.models import Coordinates, TrackPoint

T0 = 1_700_000_000_000

GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <trkseg>
      <trkpt lat="40.4168" lon="-3.7038"><time>2024-05-01T10:00:00Z</time></trkpt>
      <trkpt lat="40.4170" lon="-3.7040"><time>2024-05-01T10:00:10Z</time></trkpt>
      <trkpt lat="40.4172" lon="-3.7042"></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


def two_point_track() -> Track:
    return Track(
        [
            TrackPoint(40.0, -3.0, T0),
            TrackPoint(41.0, -4.0, T0 + 10_000),
        ]
    )


def test_first_point_is_video_start():
    assert two_point_track().coordinates_at(0.0) == Coordinates(40.0, -3.0)


def test_nearest_point():
    track = two_point_track()
    assert track.coordinates_at(4.999) == Coordinates(40.0, -3.0)
    assert track.coordinates_at(5.001) == Coordinates(41.0, -4.0)


def test_midpoint_tie_goes_to_earlier_point():
    assert two_point_track().coordinates_at(5.0) == Coordinates(40.0, -3.0)


def test_after_last_point():
    assert two_point_track().coordinates_at(60.0) == Coordinates(41.0, -4.0)


def test_single_point_matches_every_time():
    track = Track([TrackPoint(10.0, 20.0, T0)])
    for t in (0.0, 3.3, 1000.0):
        assert track.coordinates_at(t) == Coordinates(10.0, 20.0)


def test_unsorted_points_are_ordered():
    track = Track(
        [
            TrackPoint(41.0, -4.0, T0 + 10_000),
            TrackPoint(40.0, -3.0, T0),
        ]
    )
    assert track.start_ms == T0
    assert track.coordinates_at(1.0) == Coordinates(40.0, -3.0)


def test_duplicate_timestamps_pick_first_in_input_order():
    track = Track(
        [
            TrackPoint(1.0, 1.0, T0),
            TrackPoint(2.0, 2.0, T0 + 5_000),
            TrackPoint(3.0, 3.0, T0 + 5_000),
        ]
    )
    assert track.coordinates_at(5.0) == Coordinates(2.0, 2.0)


def test_empty_track():
    track = Track([])
    assert track.start_ms is None
    assert track.coordinates_at(1.0) is None


def test_no_track_loaded():
    assert coordinates_at_time(None, 5.0) is None


def test_load_gpx_skips_points_without_time(tmp_path):
    path = tmp_path / "route.gpx"
    path.write_text(GPX, encoding="utf-8")

    track = load_gpx(path)

    assert len(track) == 2
    assert track.coordinates_at(0.0) == Coordinates(40.4168, -3.7038)
    assert track.coordinates_at(9.0) == Coordinates(40.4170, -3.7040)
