"""Model CLI: inspect label maps and the availability of classification models."""

import argparse


def main() -> None:
    """CLI entry point for the classification ensemble."""
    parser = argparse.ArgumentParser(description="Facade classification models")
    parser.add_argument("--log-level", help="Logging level (default: FACADE360_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command")

    # labels
    labels_parser = subparsers.add_parser("labels", help="Show the label maps and their origin")
    labels_parser.add_argument("--source", help="JSON path or URL (default: FACADE360_LABEL_MAPS)")
    labels_parser.add_argument("--csv", help="Training CSV fallback (default: FACADE360_TRAINING_CSV)")

    # status
    status_parser = subparsers.add_parser("status", help="Show model availability per task")
    status_parser.add_argument("--models-dir", help="Directory with modelo_*.pt files")
    status_parser.add_argument("--device", help="Torch device (default: FACADE360_DEVICE)")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from facade360.log import setup_logging

    setup_logging(level=args.log_level)

    if args.command == "labels":
        _cmd_labels(args)
    elif args.command == "status":
        _cmd_status(args)


def _cmd_labels(args: argparse.Namespace) -> None:
    """Print each task's labels, as the ensemble would resolve them."""
    from facade360.classification.labels import load_label_maps
    from facade360.config import LABEL_MAPS_SOURCE, TRAINING_CSV_PATH

    result = load_label_maps(args.source or LABEL_MAPS_SOURCE, args.csv or TRAINING_CSV_PATH)
    print(f"Origin: {result.origin}")
    for task, labels in result.label_maps.items():
        print(f"{task} ({len(labels)} classes)")
        for index, label in labels.items():
            print(f"  {index:>3}  {label}")


def _cmd_status(args: argparse.Namespace) -> None:
    """Load every model file and report which are real, stubbed or missing."""
    from facade360.classification.ensemble import load_ensemble
    from facade360.classification.labels import load_label_maps
    from facade360.config import DEVICE, LABEL_MAPS_SOURCE, MODELS_DIR, TRAINING_CSV_PATH

    models_dir = args.models_dir or MODELS_DIR
    labels = load_label_maps(LABEL_MAPS_SOURCE, TRAINING_CSV_PATH)
    ensemble = load_ensemble(models_dir, labels.label_maps, device=args.device or DEVICE)

    print(f"Models dir: {models_dir}")
    print(f"Label maps: {labels.origin}")
    stubs = 0
    for architecture, tasks in ensemble.status().items():
        for task, state in tasks.items():
            print(f"  {architecture:<13} {task:<17} {state}")
            stubs += state == "stub"
    if stubs:
        print(f"Warning: {stubs} model(s) replaced by stubs; their predictions are random.")
