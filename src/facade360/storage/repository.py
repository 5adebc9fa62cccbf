"""CRUD operations for analysis runs and frame predictions in DuckDB."""

import duckdb

from facade360.models import (
    AnalysisRun,
    Coordinates,
    FrameResult,
    PerspectiveResult,
    PredictionRecord,
)


def create_run(
    conn: duckdb.DuckDBPyConnection,
    source_path: str,
    mode: str,
    frame_interval: float | None = None,
) -> int:
    """Register a new run and return its ID."""
    row = conn.execute(
        """
        INSERT INTO analysis_runs (source_path, mode, frame_interval)
        VALUES (?, ?, ?)
        RETURNING id
        """,
        [source_path, mode, frame_interval],
    ).fetchone()
    assert row is not None
    return row[0]


def insert_frame_result(
    conn: duckdb.DuckDBPyConnection,
    run_id: int,
    frame_number: int,
    frame: FrameResult,
) -> int:
    """Store every prediction of a frame. Returns the number of rows inserted."""
    lat = frame.coordinates.lat if frame.coordinates else None
    lon = frame.coordinates.lon if frame.coordinates else None

    entries: list[tuple[str | None, str | None, PredictionRecord]] = []
    if frame.perspectives is not None:
        for perspective in frame.perspectives:
            for record in perspective.predictions:
                entries.append((perspective.perspective_key, perspective.display_name, record))
    else:
        entries.extend((None, None, record) for record in frame.predictions or [])

    for perspective_key, perspective_name, record in entries:
        conn.execute(
            """
            INSERT INTO frame_predictions (
                run_id, frame_number, time_sec, lat, lon,
                perspective_key, perspective_name, model_id,
                tipologia, material_fachada, pisos, is_stub
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                run_id,
                frame_number,
                frame.timestamp_sec,
                lat,
                lon,
                perspective_key,
                perspective_name,
                record.model_id,
                record.tipologia,
                record.material_fachada,
                record.pisos,
                record.is_stub,
            ],
        )
    conn.execute(
        "UPDATE analysis_runs SET frames = GREATEST(frames, ?) WHERE id = ?",
        [frame_number, run_id],
    )
    return len(entries)


def finish_run(conn: duckdb.DuckDBPyConnection, run_id: int, state: str) -> None:
    """Record the final scheduler state of a run."""
    conn.execute(
        "UPDATE analysis_runs SET state = ?, finished_at = current_timestamp WHERE id = ?",
        [state, run_id],
    )


def get_run(conn: duckdb.DuckDBPyConnection, run_id: int) -> AnalysisRun | None:
    row = conn.execute(
        """
        SELECT id, source_path, mode, frame_interval, state, frames, started_at, finished_at
        FROM analysis_runs WHERE id = ?
        """,
        [run_id],
    ).fetchone()
    if row is None:
        return None
    return _row_to_run(row)


def list_runs(conn: duckdb.DuckDBPyConnection) -> list[AnalysisRun]:
    """All runs, newest first."""
    rows = conn.execute(
        """
        SELECT id, source_path, mode, frame_interval, state, frames, started_at, finished_at
        FROM analysis_runs ORDER BY id DESC
        """
    ).fetchall()
    return [_row_to_run(row) for row in rows]


def load_frame_results(conn: duckdb.DuckDBPyConnection, run_id: int) -> list[FrameResult]:
    """Rebuild the FrameResults of a run, in insertion order.

    Thumbnails are not stored, so they come back empty.
    """
    rows = conn.execute(
        """
        SELECT frame_number, time_sec, lat, lon, perspective_key, perspective_name,
               model_id, tipologia, material_fachada, pisos, is_stub
        FROM frame_predictions
        WHERE run_id = ?
        ORDER BY id
        """,
        [run_id],
    ).fetchall()

    frames: dict[int, FrameResult] = {}
    perspectives: dict[tuple[int, str], PerspectiveResult] = {}
    for (
        frame_number,
        time_sec,
        lat,
        lon,
        perspective_key,
        perspective_name,
        model_id,
        tipologia,
        material_fachada,
        pisos,
        is_stub,
    ) in rows:
        record = PredictionRecord(
            model_id=model_id,
            tipologia=tipologia,
            material_fachada=material_fachada,
            pisos=pisos,
            is_stub=bool(is_stub),
        )
        frame = frames.get(frame_number)
        if frame is None:
            frame = FrameResult(
                timestamp_sec=time_sec,
                coordinates=Coordinates(lat, lon) if lat is not None and lon is not None else None,
                thumbnail=b"",
                perspectives=[] if perspective_key is not None else None,
                predictions=None if perspective_key is not None else [],
            )
            frames[frame_number] = frame

        if perspective_key is None:
            frame.predictions.append(record)  # type: ignore[union-attr]
            continue
        perspective = perspectives.get((frame_number, perspective_key))
        if perspective is None:
            perspective = PerspectiveResult(
                perspective_key=perspective_key,
                display_name=perspective_name,
                thumbnail=b"",
                predictions=[],
            )
            perspectives[(frame_number, perspective_key)] = perspective
            frame.perspectives.append(perspective)  # type: ignore[union-attr]
        perspective.predictions.append(record)

    return list(frames.values())


def _row_to_run(row: tuple) -> AnalysisRun:
    """Convert a DB row tuple to AnalysisRun.

    Column order: 0:id, 1:source_path, 2:mode, 3:frame_interval,
    4:state, 5:frames, 6:started_at, 7:finished_at
    """
    return AnalysisRun(
        id=row[0],
        source_path=row[1],
        mode=row[2],
        frame_interval=row[3],
        state=row[4],
        frames=row[5],
        started_at=row[6],
        finished_at=row[7],
    )
