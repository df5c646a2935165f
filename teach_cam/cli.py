"""
Command-line interface for offline Teach Cam model management and detection.
Run as: python -m teach_cam.cli <command>
"""

import sys
import logging
import argparse
import sqlite3
from pathlib import Path
from collections import Counter

from . import config
from . import db
from .detection import TemplateDetector
from .imaging import DecodeError, decode_image
from .mapping import Rect
from .templates import LabeledSample, TrainingError


def parse_box(text: str) -> Rect:
    """Parse 'x,y,w,h' into a Rect."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"Expected x,y,w,h but got '{text}'")
    try:
        x, y, w, h = (int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Box values must be integers: '{text}'")
    return Rect(x, y, w, h)


def cmd_list_models(args, conn):
    """Handle list-models command."""
    models = db.list_models(conn)

    if not models:
        print("No models found in catalog.")
        return 0

    # Print header
    print(f"{'ID':<4} {'Name':<25} {'Samples':<8} {'Labels':<30} {'Created':<20} {'Active':<6}")
    print("-" * 96)

    for m in models:
        labels_display = ", ".join(m.labels)[:29]
        active = "yes" if m.is_active else "no"
        print(f"{m.id:<4} {m.name[:24]:<25} {m.sample_count:<8} "
              f"{labels_display:<30} {m.created_at:<20} {active:<6}")

    return 0


def cmd_show(args, conn):
    """Handle show command."""
    model = db.get_model(conn, args.model)
    samples = db.load_samples(conn, model.id)

    active = " (active)" if model.is_active else ""
    print(f"\nModel {model.id} – {model.name}{active}")
    print(f"Created: {model.created_at}  samples: {model.sample_count}")

    counts = Counter(s.label_name for s in samples)
    if counts:
        print(f"\nLabels:")
        for label, count in counts.items():
            print(f"  {label:<20} {count:>6}")

        print(f"\nSamples:")
        for s in samples:
            print(f"  {s.id[:8]}  {s}")

    print()
    return 0


def cmd_delete(args, conn):
    """Handle delete command."""
    model = db.get_model(conn, args.model)
    db.delete_model(conn, model.id)
    print(f"Deleted model {model.id} '{model.name}'")
    return 0


def cmd_import(args, conn):
    """Handle import command: add image files as samples of a model."""
    samples = []
    for path in args.images:
        data = Path(path).read_bytes()
        try:
            decode_image(data)
        except DecodeError as e:
            print(f"Skipping {path}: {e}", file=sys.stderr)
            continue
        samples.append(LabeledSample(label_name=args.label, image_data=data, bounding_box=args.box))

    if not samples:
        print("Error: no readable images to import", file=sys.stderr)
        return 1

    try:
        model = db.get_model(conn, args.model)
    except db.ModelNotFoundError:
        model_id = db.save_model(conn, args.model, samples, activate=False)
        print(f"Created model {model_id} '{args.model}' with {len(samples)} samples")
        return 0

    db.add_samples(conn, model.id, samples)
    print(f"Added {len(samples)} samples to model {model.id} '{model.name}'")
    return 0


def cmd_detect(args, conn):
    """Handle detect command: train from a model and run it on image files."""
    model = db.get_model(conn, args.model)
    samples = db.load_samples(conn, model.id)

    detector = TemplateDetector(threshold=args.threshold, overlap_threshold=args.overlap)
    try:
        count = detector.train(samples)
    except TrainingError as e:
        print(f"Error: training model '{model.name}' failed: {e}", file=sys.stderr)
        return 1

    print(f"Model '{model.name}': {count} templates")

    exit_code = 0
    for path in args.images:
        try:
            frame = decode_image(Path(path).read_bytes())
        except (OSError, DecodeError) as e:
            print(f"{path}: error: {e}", file=sys.stderr)
            exit_code = 1
            continue

        detections = detector.detect(frame)
        print(f"\n{path}: {len(detections)} detections")
        for det in detections:
            box = det.box
            print(f"  {det.label:<20} {det.confidence:>6.1%}  "
                  f"x={box.x} y={box.y} w={box.width} h={box.height}")

    return exit_code


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="teach-cam-cli",
        description="Offline tools for Teach Cam - manage saved models and run detection on images"
    )
    parser.add_argument(
        "--db",
        type=str,
        default=config.DB_PATH,
        help=f"Model catalog path (default: {config.DB_PATH})"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    # list-models command
    subparsers.add_parser(
        "list-models",
        help="List all saved models"
    )

    # show command
    p_show = subparsers.add_parser(
        "show",
        help="Show labels and samples of one model"
    )
    p_show.add_argument("--model", required=True, help="Model name or ID")

    # delete command
    p_delete = subparsers.add_parser(
        "delete",
        help="Delete a model and its samples"
    )
    p_delete.add_argument("--model", required=True, help="Model name or ID")

    # import command
    p_import = subparsers.add_parser(
        "import",
        help="Add labeled samples from image files (creates the model if needed)"
    )
    p_import.add_argument("--model", required=True, help="Model name")
    p_import.add_argument("--label", required=True, help="Label for every imported sample")
    p_import.add_argument(
        "--box",
        type=parse_box,
        required=True,
        help="Object box in image pixels as x,y,w,h"
    )
    p_import.add_argument("images", nargs="+", help="Image files")

    # detect command
    p_detect = subparsers.add_parser(
        "detect",
        help="Train from a model and detect its labels in image files"
    )
    p_detect.add_argument("--model", required=True, help="Model name or ID")
    p_detect.add_argument(
        "--threshold",
        type=float,
        default=config.MATCH_THRESHOLD,
        help=f"Minimum match score (default: {config.MATCH_THRESHOLD})"
    )
    p_detect.add_argument(
        "--overlap",
        type=float,
        default=config.NMS_OVERLAP_THRESHOLD,
        help=f"Same-label IoU for duplicate removal (default: {config.NMS_OVERLAP_THRESHOLD})"
    )
    p_detect.add_argument("images", nargs="+", help="Image files")

    return parser


COMMANDS = {
    "list-models": cmd_list_models,
    "show": cmd_show,
    "delete": cmd_delete,
    "import": cmd_import,
    "detect": cmd_detect,
}


def main(argv=None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        db.init_db(args.db)
        conn = db.connect(args.db)
    except sqlite3.Error as e:
        print(f"Error opening model catalog: {e}", file=sys.stderr)
        return 1

    try:
        return handler(args, conn)
    except db.ModelNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (sqlite3.Error, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
