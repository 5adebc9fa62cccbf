"""Analysis CLI: sample a 360 video (or a still frame) and classify its facades."""

import argparse
from pathlib import Path

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp"}


def main() -> None:
    """CLI entry point for facade analysis."""
    parser = argparse.ArgumentParser(description="360 facade video analysis")
    parser.add_argument("--log-level", help="Logging level (default: FACADE360_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command")

    # video
    video_parser = subparsers.add_parser("video", help="Analyze a video at a fixed interval")
    video_parser.add_argument("path", help="Video file")
    video_parser.add_argument(
        "--interval", type=float, help="Seconds between sampled frames (default: 5)"
    )
    video_parser.add_argument("--gpx", help="GPX track recorded along the video")
    video_parser.add_argument(
        "--flat", action="store_true", help="Classify whole frames instead of 4 perspectives"
    )
    video_parser.add_argument(
        "--csv", nargs="?", const="", help="Export results to CSV (default name if no path)"
    )
    video_parser.add_argument("--no-db", action="store_true", help="Do not store the run")
    _add_model_args(video_parser)

    # image
    image_parser = subparsers.add_parser("image", help="Analyze a single still frame")
    image_parser.add_argument("path", help="Image file (equirectangular for 360 mode)")
    image_parser.add_argument("--flat", action="store_true", help="Classify the whole image")
    _add_model_args(image_parser)

    # perspectives
    subparsers.add_parser("perspectives", help="Show the perspective regions")

    # check
    check_parser = subparsers.add_parser(
        "check", help="Check whether a video or image looks equirectangular"
    )
    check_parser.add_argument("path", help="Video or image file")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from facade360.log import setup_logging

    setup_logging(level=args.log_level)

    if args.command == "video":
        _cmd_video(args)
    elif args.command == "image":
        _cmd_image(args)
    elif args.command == "perspectives":
        _cmd_perspectives()
    elif args.command == "check":
        _cmd_check(args)


def _add_model_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--models-dir", help="Directory with modelo_*.pt files")
    parser.add_argument("--device", help="Torch device (default: FACADE360_DEVICE)")
    parser.add_argument(
        "--no-stubs",
        action="store_true",
        help="Leave missing models unavailable instead of using stubs",
    )


def _build_analyzer(args: argparse.Namespace):
    """Load label maps and models. Returns None when no model is usable."""
    from facade360.analysis.frame_analyzer import FrameAnalyzer
    from facade360.classification.ensemble import load_ensemble
    from facade360.classification.labels import load_label_maps
    from facade360.config import DEVICE, LABEL_MAPS_SOURCE, MODELS_DIR, TRAINING_CSV_PATH

    labels = load_label_maps(LABEL_MAPS_SOURCE, TRAINING_CSV_PATH)
    print(f"Label maps: {labels.origin}")

    ensemble = load_ensemble(
        args.models_dir or MODELS_DIR,
        labels.label_maps,
        device=args.device or DEVICE,
        stub_missing=not args.no_stubs,
    )
    if not ensemble.ready:
        print("Error: no classification model available (see facade360-models status)")
        return None
    return FrameAnalyzer(ensemble)


def _cmd_video(args: argparse.Namespace) -> None:
    """Run the frame-sampling scheduler over a video."""
    import asyncio
    import math

    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from facade360.analysis.export import default_export_filename, export_csv
    from facade360.analysis.regions import check_equirectangular
    from facade360.analysis.scheduler import FrameSamplingScheduler
    from facade360.analysis.track import load_gpx
    from facade360.analysis.video_source import OpenCVVideoSource
    from facade360.config import FRAME_INTERVAL_SEC
    from facade360.errors import SchedulerError, SourceUnavailable, TooManyConsecutiveErrors
    from facade360.models import AnalysisMode

    mode = AnalysisMode.FLAT if args.flat else AnalysisMode.PANORAMA
    interval = args.interval if args.interval is not None else FRAME_INTERVAL_SEC

    try:
        source = OpenCVVideoSource(args.path)
    except SourceUnavailable as e:
        print(f"Error: {e}")
        return

    if mode is AnalysisMode.PANORAMA:
        report = check_equirectangular(source.width, source.height)
        if not report.is_valid:
            print(f"Warning: {report.notes[0]}. Consider --flat.")

    analyzer = _build_analyzer(args)
    if analyzer is None:
        source.close()
        return
    if args.gpx:
        analyzer.set_track(load_gpx(args.gpx))

    conn = None
    run_id = None
    if not args.no_db:
        from facade360.db import get_connection
        from facade360.storage.repository import create_run

        conn = get_connection()
        run_id = create_run(conn, str(Path(args.path).resolve()), mode.value, interval)

    total_frames = max(1, math.ceil(source.duration / interval)) if interval > 0 else 1

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task("Analyzing frames", total=total_frames)

        def on_frame(result, frame_number: int) -> None:
            if conn is not None:
                from facade360.storage.repository import insert_frame_result

                insert_frame_result(conn, run_id, frame_number, result)
            progress.update(task, completed=int(result.timestamp_sec // interval) + 1)

        scheduler = FrameSamplingScheduler(
            analyzer, source, frame_interval=interval, mode=mode, on_frame=on_frame
        )
        try:
            asyncio.run(scheduler.start())
        except TooManyConsecutiveErrors as e:
            print(f"Stopped: {e}")
        except SchedulerError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            print("Interrupted; keeping the frames analyzed so far.")
        finally:
            source.close()
            if conn is not None:
                from facade360.storage.repository import finish_run

                state = "interrupted" if scheduler.is_active else scheduler.state.value
                finish_run(conn, run_id, state)
                conn.close()

    results = scheduler.results
    print(f"Analyzed {len(results)} frames ({scheduler.state.value}).")
    if run_id is not None:
        print(f"Stored as run {run_id}.")

    if args.csv is not None and results:
        output = args.csv or default_export_filename(mode is AnalysisMode.PANORAMA)
        rows = export_csv(results, output)
        print(f"Exported {rows} rows to {output}")


def _cmd_image(args: argparse.Namespace) -> None:
    """Analyze one still frame and print its report."""
    from facade360.analysis.consensus import format_frame_report, frame_report
    from facade360.analysis.video_source import load_image
    from facade360.errors import SourceUnavailable
    from facade360.models import AnalysisMode

    try:
        raster = load_image(args.path)
    except SourceUnavailable as e:
        print(f"Error: {e}")
        return

    analyzer = _build_analyzer(args)
    if analyzer is None:
        return

    mode = AnalysisMode.FLAT if args.flat else AnalysisMode.PANORAMA
    result = analyzer.analyze(raster, 0.0, mode)

    if result.perspectives is not None:
        for perspective in result.perspectives:
            print(f"{perspective.display_name}:")
            for record in perspective.predictions:
                print(f"  {_format_record(record)}")
    else:
        for record in result.predictions or []:
            print(_format_record(record))

    for line in format_frame_report(frame_report(result, 1)):
        print(line)


def _format_record(record) -> str:
    stub = " (stub)" if record.is_stub else ""
    return (
        f"{record.model_id}{stub}: tipologia={record.tipologia}, "
        f"material={record.material_fachada}, pisos={record.pisos}"
    )


def _cmd_perspectives() -> None:
    from facade360.analysis.regions import PerspectiveSet

    for key, info in PerspectiveSet.from_config().describe().items():
        print(f"{key}: {info['name']} - {info['description']}")
        print(f"  main region: {info['main_region']}")
        if info["secondary_region"] is not None:
            print(f"  secondary region: {info['secondary_region']}")


def _cmd_check(args: argparse.Namespace) -> None:
    """Report whether a file's frame size suits 360 analysis."""
    from facade360.analysis.regions import check_equirectangular
    from facade360.analysis.video_source import OpenCVVideoSource, load_image
    from facade360.errors import SourceUnavailable

    try:
        if Path(args.path).suffix.lower() in IMAGE_SUFFIXES:
            height, width = load_image(args.path).shape[:2]
        else:
            source = OpenCVVideoSource(args.path)
            width, height = source.width, source.height
            source.close()
    except SourceUnavailable as e:
        print(f"Error: {e}")
        return

    report = check_equirectangular(width, height)
    status = "compatible" if report.is_valid else "not compatible"
    print(f"{args.path}: {width}x{height} (aspect {report.aspect_ratio:.2f}) - {status}")
    for note in report.notes:
        print(f"  - {note}")
