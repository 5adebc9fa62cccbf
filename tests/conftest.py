"""Shared test fixtures."""

import asyncio

import duckdb
import numpy as np
import pytest

from facade360.classification.ensemble import ClassificationEnsemble
from facade360.classification.labels import DEFAULT_LABEL_MAPS
from facade360.errors import SourceUnavailable
from facade360.models import NOT_FOUND, PredictionRecord
from facade360.storage.schema import ensure_schema


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def panorama() -> np.ndarray:
    """A 2:1 synthetic equirectangular frame."""
    return make_raster(400, 200)


def make_raster(width: int, height: int) -> np.ndarray:
    """RGB raster whose red/green channels encode the column/row index."""
    cols = np.arange(width, dtype=np.uint16) % 256
    rows = np.arange(height, dtype=np.uint16) % 256
    raster = np.zeros((height, width, 3), dtype=np.uint8)
    raster[:, :, 0] = cols[None, :]
    raster[:, :, 1] = rows[:, None]
    raster[:, :, 2] = 128
    return raster


class FakeTaskModel:
    """Always predicts the same class index."""

    def __init__(self, class_index: int, is_stub: bool = False) -> None:
        self.class_index = class_index
        self.is_stub = is_stub
        self.calls = 0

    def predict(self, batch) -> int:
        self.calls += 1
        return self.class_index


class FailingTaskModel:
    is_stub = False

    def predict(self, batch) -> int:
        raise RuntimeError("model exploded")


def make_ensemble(
    architectures: tuple[str, ...] = ("mobilenet", "efficientnet"),
    class_index: int = 0,
) -> ClassificationEnsemble:
    """Ensemble of fake models that all predict ``class_index``."""
    models = {
        arch: {
            task: FakeTaskModel(class_index)
            for task in ("tipologia", "material_fachada", "pisos")
        }
        for arch in architectures
    }
    return ClassificationEnsemble(models, DEFAULT_LABEL_MAPS)


def make_record(
    model_id: str = "mobilenet",
    tipologia: str = NOT_FOUND,
    material_fachada: str = NOT_FOUND,
    pisos: str = NOT_FOUND,
    is_stub: bool = False,
) -> PredictionRecord:
    return PredictionRecord(
        model_id=model_id,
        tipologia=tipologia,
        material_fachada=material_fachada,
        pisos=pisos,
        is_stub=is_stub,
    )


class FakeVideoSource:
    """In-memory video: every seek decodes the same synthetic frame.

    Seeks to a time in ``fail_at`` leave no frame to read; seeks to a time in
    ``slow_at`` take ``seek_delay`` seconds.
    """

    def __init__(
        self,
        duration: float,
        width: int = 400,
        height: int = 200,
        fail_at: set[float] | None = None,
        slow_at: set[float] | None = None,
        seek_delay: float = 1.0,
    ) -> None:
        self.duration = duration
        self.width = width
        self.height = height
        self.fail_at = fail_at or set()
        self.slow_at = slow_at or set()
        self.seek_delay = seek_delay
        self.seeks: list[float] = []
        self.closed = False
        self._raster = make_raster(width, height)
        self._current: float | None = None

    async def seek(self, time_sec: float) -> None:
        self.seeks.append(time_sec)
        self._current = None
        if time_sec in self.slow_at:
            await asyncio.sleep(self.seek_delay)
        self._current = time_sec

    def read_frame(self) -> np.ndarray:
        if self._current is None or self._current in self.fail_at:
            raise SourceUnavailable(f"No frame at {self._current}")
        return self._raster.copy()

    def close(self) -> None:
        self.closed = True
