"""GPS track loading and time alignment with video timestamps."""

import bisect
import logging
from collections.abc import Iterable
from pathlib import Path

import gpxpy

from facade360.models import Coordinates, TrackPoint

logger = logging.getLogger(__name__)


class Track:
    """Time-ordered GPS waypoints. The earliest point is the video's t=0."""

    def __init__(self, points: Iterable[TrackPoint]) -> None:
        # sorted() is stable, so equal timestamps keep their input order
        self.points: list[TrackPoint] = sorted(points, key=lambda p: p.absolute_time_ms)
        self._times = [p.absolute_time_ms for p in self.points]

    def __len__(self) -> int:
        return len(self.points)

    @property
    def start_ms(self) -> int | None:
        return self._times[0] if self._times else None

    def coordinates_at(self, video_time_sec: float) -> Coordinates | None:
        """Return the waypoint closest in time to a video-relative timestamp.

        Ties go to the earlier point.
        """
        if not self.points:
            return None
        target = self._times[0] + video_time_sec * 1000.0

        idx = bisect.bisect_left(self._times, target)
        if idx == len(self._times):
            best = idx - 1
        elif idx == 0:
            best = 0
        else:
            before = target - self._times[idx - 1]
            after = self._times[idx] - target
            best = idx if after < before else idx - 1
        # Walk back to the first point sharing the chosen timestamp
        while best > 0 and self._times[best - 1] == self._times[best]:
            best -= 1

        point = self.points[best]
        return Coordinates(lat=point.latitude, lon=point.longitude)


def coordinates_at_time(track: Track | None, video_time_sec: float) -> Coordinates | None:
    """Align a video timestamp with a track; ``None`` when no track is loaded."""
    if track is None:
        return None
    return track.coordinates_at(video_time_sec)


def load_gpx(path: str | Path) -> Track:
    """Parse ``trkpt`` waypoints with timestamps from a GPX file."""
    with open(path, encoding="utf-8") as f:
        gpx = gpxpy.parse(f)

    points: list[TrackPoint] = []
    skipped = 0
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                if point.time is None:
                    skipped += 1
                    continue
                points.append(
                    TrackPoint(
                        latitude=point.latitude,
                        longitude=point.longitude,
                        absolute_time_ms=int(point.time.timestamp() * 1000),
                    )
                )

    if skipped:
        logger.warning("Skipped %d GPX points without a timestamp in %s", skipped, path)
    logger.info("Loaded %d track points from %s", len(points), path)
    return Track(points)
