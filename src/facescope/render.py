"""Draw face boxes and labels onto images for inspection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import cv2

from facescope.errors import NullArgumentError
from facescope.ml.preprocessing import correct_orientation, encode_image, infer_format, validate_image

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    import numpy as np
    from numpy.typing import NDArray

    from facescope.config import Settings
    from facescope.schemas import FaceBox

logger = logging.getLogger(__name__)

BOX_COLOR: tuple[int, int, int] = (0, 0, 255)  # red, BGR
FONT = cv2.FONT_HERSHEY_SIMPLEX

# Pixels of the image's shorter side per pixel of stroke width
STROKE_DIVISOR = 300
FONT_TO_STROKE = 10


def annotation_sizes(width: int, height: int) -> tuple[int, int]:
    """Return (stroke width, font size) in pixels for an image of the given size.

    Both scale with the shorter side so annotations look the same at any
    resolution.
    """
    stroke = min(width, height) // STROKE_DIVISOR
    return stroke, stroke * FONT_TO_STROKE


def label_text(box: FaceBox, debug: bool) -> str:
    """Text drawn above a box; debug mode appends the score."""
    if debug:
        return f"{box.label} : {box.score:.3f}"
    return box.label


def draw_boxes(image: NDArray[np.uint8], boxes: Sequence[FaceBox], debug: bool = False) -> NDArray[np.uint8]:
    """Draw an unfilled red rectangle and a label for each box, in order.

    The image is modified in place and returned. Each label starts at the
    box's left edge with its baseline half a font height above the box.

    Raises:
        NullArgumentError: If the image or the box list is None.
    """
    if image is None:
        raise NullArgumentError("Image")
    if boxes is None:
        raise NullArgumentError("Box list")
    validate_image(image)

    height, width = image.shape[:2]
    stroke, font_size = annotation_sizes(width, height)
    # sub-pixel strokes still get the thinnest visible line
    thickness = max(stroke, 1)
    font_scale = cv2.getFontScaleFromHeight(FONT, font_size, thickness) if font_size > 0 else 0.0

    for box in boxes:
        cv2.rectangle(
            image,
            (box.x, box.y),
            (box.x + box.width, box.y + box.height),
            BOX_COLOR,
            thickness,
        )
        if font_size > 0:
            cv2.putText(
                image,
                label_text(box, debug),
                (box.x, box.y - font_size // 2),
                FONT,
                font_scale,
                BOX_COLOR,
                thickness,
                cv2.LINE_AA,
            )

    logger.debug("Drew %d box(es) on %dx%d image", len(boxes), width, height)
    return image


def visualize_boxes(
    image_path: str | Path,
    boxes: Sequence[FaceBox],
    debug: bool = False,
    settings: Settings | None = None,
) -> bytes:
    """Load an image upright, draw boxes on it and re-encode it.

    The output format follows the file extension of ``image_path``.

    Raises:
        UnknownFormatError: If no format can be inferred from the path.
        DecodeError: If the file is not a readable image.
    """
    if image_path is None:
        raise NullArgumentError("Image path")
    if boxes is None:
        raise NullArgumentError("Box list")
    fmt = infer_format(image_path)
    image = correct_orientation(image_path, settings)
    draw_boxes(image, boxes, debug)
    return encode_image(image, fmt)
