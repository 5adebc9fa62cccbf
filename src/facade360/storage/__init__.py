"""Results CLI: list stored analysis runs, export them and report consensus."""

import argparse


def main() -> None:
    """CLI entry point for stored results."""
    parser = argparse.ArgumentParser(description="Stored facade analysis results")
    parser.add_argument("--db", help="DuckDB file (default: FACADE360_DB_PATH)")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Initialize the database schema")

    # runs
    subparsers.add_parser("runs", help="List analysis runs")

    # export
    export_parser = subparsers.add_parser("export", help="Export a run to CSV")
    export_parser.add_argument("--run-id", type=int, required=True, help="Run ID")
    export_parser.add_argument("--output", help="CSV path (default: dated file name)")

    # consensus
    consensus_parser = subparsers.add_parser(
        "consensus", help="Per-frame consensus report for a run"
    )
    consensus_parser.add_argument("--run-id", type=int, required=True, help="Run ID")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from facade360.db import get_connection
    from facade360.log import setup_logging

    setup_logging()
    conn = get_connection(args.db)
    try:
        if args.command == "init-db":
            print("Database initialized successfully.")
        elif args.command == "runs":
            _cmd_runs(conn)
        elif args.command == "export":
            _cmd_export(conn, args)
        elif args.command == "consensus":
            _cmd_consensus(conn, args)
    finally:
        conn.close()


def _cmd_runs(conn) -> None:
    from facade360.storage.repository import list_runs

    runs = list_runs(conn)
    if not runs:
        print("No runs stored.")
        return
    for run in runs:
        started = run.started_at.strftime("%Y-%m-%d %H:%M") if run.started_at else "-"
        print(f"  {run.id:>4}  {started}  {run.mode:<8} {run.state:<11} {run.frames:>5} frames  "
              f"{run.source_path}")


def _cmd_export(conn, args: argparse.Namespace) -> None:
    from facade360.analysis.export import default_export_filename, export_csv
    from facade360.storage.repository import get_run, load_frame_results

    run = get_run(conn, args.run_id)
    if run is None:
        print(f"Error: run {args.run_id} not found")
        return

    results = load_frame_results(conn, args.run_id)
    if not results:
        print(f"Run {args.run_id} has no analyzed frames.")
        return

    output = args.output or default_export_filename(run.mode == "panorama")
    rows = export_csv(results, output)
    print(f"Exported {rows} rows to {output}")


def _cmd_consensus(conn, args: argparse.Namespace) -> None:
    from facade360.analysis.consensus import format_frame_report, frame_report
    from facade360.storage.repository import get_run, load_frame_results

    if get_run(conn, args.run_id) is None:
        print(f"Error: run {args.run_id} not found")
        return

    for frame_number, frame in enumerate(load_frame_results(conn, args.run_id), start=1):
        for line in format_frame_report(frame_report(frame, frame_number)):
            print(line)
