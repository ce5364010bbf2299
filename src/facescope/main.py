"""Command-line entry point.

Usage:
    facescope detect photo.jpg
    facescope embed photo.jpg
    facescope render photo.jpg annotated.jpg --debug --label face
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from facescope.config import Settings, get_settings
from facescope.errors import FaceScopeError
from facescope.ml.face_detector import create_detector, detect
from facescope.ml.face_recognizer import create_recognizer
from facescope.ml.preprocessing import correct_orientation
from facescope.pipeline import analyze_image
from facescope.render import visualize_boxes
from facescope.schemas import DetectedFace, FaceBox

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def _cmd_detect(args: argparse.Namespace, settings: Settings) -> int:
    with create_detector(settings.face_detection_model, settings) as detector:
        records = detect(detector, correct_orientation(args.image, settings))
    for record in records:
        print(DetectedFace.from_record(record).model_dump_json())
    return 0


def _cmd_embed(args: argparse.Namespace, settings: Settings) -> int:
    with (
        create_detector(settings.face_detection_model, settings) as detector,
        create_recognizer(settings.face_recognition_model, settings) as recognizer,
    ):
        results = analyze_image(args.image, detector, recognizer, settings)
    for result in results:
        print(DetectedFace.from_record(result.record, vector=result.feature.tolist()).model_dump_json())
    return 0


def _cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    with create_detector(settings.face_detection_model, settings) as detector:
        records = detect(detector, correct_orientation(args.image, settings))
    boxes = [FaceBox.from_record(record, label=args.label) for record in records]
    Path(args.output).write_bytes(visualize_boxes(args.image, boxes, debug=args.debug, settings=settings))
    logger.info("Wrote %d box(es) to %s", len(boxes), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facescope",
        description="Face detection, recognition and box rendering",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    detect_cmd = commands.add_parser("detect", help="Print detected faces as JSON lines")
    detect_cmd.add_argument("image", help="Image file")
    detect_cmd.set_defaults(func=_cmd_detect)

    embed_cmd = commands.add_parser("embed", help="Print detected faces with feature vectors")
    embed_cmd.add_argument("image", help="Image file")
    embed_cmd.set_defaults(func=_cmd_embed)

    render_cmd = commands.add_parser("render", help="Draw detected faces onto the image")
    render_cmd.add_argument("image", help="Image file")
    render_cmd.add_argument("output", help="Where to write the annotated image")
    render_cmd.add_argument("--label", default="face", help="Label drawn above each box")
    render_cmd.add_argument("--debug", action="store_true", help="Also draw detection scores")
    render_cmd.set_defaults(func=_cmd_render)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return its exit status."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        status: int = args.func(args, settings)
    except FaceScopeError as exc:
        logger.error("%s", exc)
        return 1
    return status


def cli() -> None:
    raise SystemExit(main())
