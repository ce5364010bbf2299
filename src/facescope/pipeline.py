"""Detect-then-embed pipeline over a single image file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from facescope.errors import NullArgumentError
from facescope.ml.face_detector import FaceRecord, detect
from facescope.ml.face_recognizer import extract_feature
from facescope.ml.preprocessing import correct_orientation

if TYPE_CHECKING:
    from pathlib import Path

    import numpy as np
    from numpy.typing import NDArray

    from facescope.config import Settings
    from facescope.ml.face_detector import DetectorHandle
    from facescope.ml.face_recognizer import RecognizerHandle


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceAnalysis:
    """A detected face and its feature vector."""

    record: FaceRecord
    feature: NDArray[np.float32]


def analyze_image(
    image_path: str | Path,
    detector: DetectorHandle,
    recognizer: RecognizerHandle,
    settings: Settings | None = None,
) -> list[FaceAnalysis]:
    """Orientation-correct an image, detect faces and embed each one.

    Results keep the detector's face order. The handles stay owned by the
    caller.
    """
    if detector is None:
        raise NullArgumentError("Face detector")
    if recognizer is None:
        raise NullArgumentError("Face recognizer")

    image = correct_orientation(image_path, settings)
    records = detect(detector, image)
    results = [FaceAnalysis(record, extract_feature(recognizer, image, record, settings)) for record in records]
    logger.info("Analyzed %s: %d face(s)", image_path, len(results))
    return results
