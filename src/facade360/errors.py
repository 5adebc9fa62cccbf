"""Exception types raised across the analysis pipeline."""


class Facade360Error(Exception):
    """Base class for all project errors."""


class InvalidRegion(Facade360Error, ValueError):
    """Crop geometry is malformed or resolves to an empty pixel rectangle."""


class ModelUnavailable(Facade360Error):
    """No model is loaded for a (architecture, task) pair."""


class PredictionFailure(Facade360Error):
    """A loaded model raised while predicting."""


class SeekTimeout(Facade360Error):
    """The video source did not acknowledge a seek in time."""


class SourceUnavailable(Facade360Error):
    """No raster could be read from the frame source."""


class TooManyConsecutiveErrors(Facade360Error):
    """The scheduler gave up after repeated per-frame failures."""

    def __init__(self, count: int, last_error: BaseException | None = None) -> None:
        super().__init__(f"Stopped after {count} consecutive frame errors: {last_error}")
        self.count = count
        self.last_error = last_error


class SchedulerError(Facade360Error):
    """Invalid scheduler configuration or state transition."""


class LabelMapError(Facade360Error):
    """A label dictionary could not be loaded or has the wrong structure."""
