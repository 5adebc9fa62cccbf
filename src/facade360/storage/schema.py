"""DuckDB schema definition."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("CREATE SEQUENCE IF NOT EXISTS analysis_runs_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS analysis_runs (
            id              INTEGER PRIMARY KEY DEFAULT nextval('analysis_runs_id_seq'),
            source_path     VARCHAR NOT NULL,
            mode            VARCHAR NOT NULL,
            frame_interval  DOUBLE,
            state           VARCHAR NOT NULL DEFAULT 'running',
            frames          INTEGER NOT NULL DEFAULT 0,
            started_at      TIMESTAMP DEFAULT current_timestamp,
            finished_at     TIMESTAMP
        )
    """)

    # One row per (frame x perspective x model); perspective columns are
    # NULL for flat (non-360) frames
    conn.execute("CREATE SEQUENCE IF NOT EXISTS frame_predictions_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS frame_predictions (
            id                INTEGER PRIMARY KEY DEFAULT nextval('frame_predictions_id_seq'),
            run_id            INTEGER NOT NULL,
            frame_number      INTEGER NOT NULL,
            time_sec          DOUBLE NOT NULL,
            lat               DOUBLE,
            lon               DOUBLE,
            perspective_key   VARCHAR,
            perspective_name  VARCHAR,
            model_id          VARCHAR NOT NULL,
            tipologia         VARCHAR,
            material_fachada  VARCHAR,
            pisos             VARCHAR,
            is_stub           BOOLEAN NOT NULL DEFAULT false,
            created_at        TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_predictions_run ON frame_predictions(run_id, frame_number)"
    )
