"""CSV export of analysis results."""

from datetime import date
from pathlib import Path

import pandas as pd

from facade360.models import FrameResult, PredictionRecord

PANORAMA_COLUMNS = [
    "FrameNumber",
    "TimeSec",
    "Lat",
    "Lon",
    "Perspective",
    "Model",
    "Tipologia",
    "Material",
    "Pisos",
]
FLAT_COLUMNS = [c for c in PANORAMA_COLUMNS if c != "Perspective"]


def model_label(record: PredictionRecord) -> str:
    """Model column value; stub predictions are marked as such."""
    return f"{record.model_id} (stub)" if record.is_stub else record.model_id


def _row(
    frame_number: int,
    frame: FrameResult,
    record: PredictionRecord,
    perspective: str | None,
) -> dict:
    row = {
        "FrameNumber": frame_number,
        "TimeSec": frame.timestamp_sec,
        "Lat": frame.coordinates.lat if frame.coordinates else None,
        "Lon": frame.coordinates.lon if frame.coordinates else None,
    }
    if perspective is not None:
        row["Perspective"] = perspective
    row.update(
        {
            "Model": model_label(record),
            "Tipologia": record.tipologia,
            "Material": record.material_fachada,
            "Pisos": record.pisos,
        }
    )
    return row


def result_rows(results: list[FrameResult]) -> list[dict]:
    """One row per (frame x perspective x model), in result order.

    Flat frames produce rows without a ``Perspective`` key.
    """
    rows = []
    for frame_number, frame in enumerate(results, start=1):
        if frame.perspectives is not None:
            for perspective in frame.perspectives:
                for record in perspective.predictions:
                    rows.append(_row(frame_number, frame, record, perspective.display_name))
        else:
            for record in frame.predictions or []:
                rows.append(_row(frame_number, frame, record, None))
    return rows


def results_dataframe(results: list[FrameResult]) -> pd.DataFrame:
    """Results as a DataFrame; the Perspective column only when any frame is 360."""
    panorama = any(frame.perspectives is not None for frame in results)
    columns = PANORAMA_COLUMNS if panorama else FLAT_COLUMNS
    return pd.DataFrame(result_rows(results), columns=columns)


def export_csv(results: list[FrameResult], path: str | Path) -> int:
    """Write results to a CSV file. Returns the number of rows written."""
    df = results_dataframe(results)
    df.to_csv(path, index=False)
    return len(df)


def default_export_filename(panorama: bool, day: date | None = None) -> str:
    day = day or date.today()
    prefix = "analisis_360_fachadas" if panorama else "analisis_fachadas"
    return f"{prefix}_{day.isoformat()}.csv"
