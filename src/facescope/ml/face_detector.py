"""Face detection with the YuNet model.

A :class:`DetectorHandle` owns one loaded detector. YuNet only accepts input
of the size it was last configured for, so :func:`detect` sets the handle's
input size to the current image's size before every call.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import astuple, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

from facescope.config import Settings, get_settings
from facescope.errors import InferenceError, InvalidModelPathError, NullArgumentError
from facescope.ml.model_manager import ModelManager
from facescope.ml.preprocessing import correct_orientation, to_bgr, validate_image

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

FACE_RECORD_FIELDS = 15


@dataclass(frozen=True)
class FaceRecord:
    """One detected face: bounding box, five landmarks and confidence.

    Coordinates are in pixels of the image passed to the detector. The field
    order matches a row of the detector's output.
    """

    x: float
    y: float
    width: float
    height: float
    right_eye_x: float
    right_eye_y: float
    left_eye_x: float
    left_eye_y: float
    nose_x: float
    nose_y: float
    right_mouth_x: float
    right_mouth_y: float
    left_mouth_x: float
    left_mouth_y: float
    score: float

    @classmethod
    def from_row(cls, row: NDArray[np.float32] | list[float]) -> FaceRecord:
        values = np.asarray(row, dtype=np.float32).reshape(-1)
        if values.size != FACE_RECORD_FIELDS:
            raise ValueError(f"Face record needs {FACE_RECORD_FIELDS} values, got {values.size}")
        return cls(*(float(v) for v in values))

    def to_array(self) -> NDArray[np.float32]:
        """Return the record as a length-15 float32 row."""
        return np.array(astuple(self), dtype=np.float32)

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        """(x, y, width, height) of the bounding box."""
        return self.x, self.y, self.width, self.height

    @property
    def landmarks(self) -> NDArray[np.float32]:
        """5x2 array: right eye, left eye, nose tip, right and left mouth corners."""
        return self.to_array()[4:14].reshape(5, 2)


class FaceDetectorModel(Protocol):
    """The detector capability, as exposed by ``cv2.FaceDetectorYN``."""

    def setInputSize(self, input_size: tuple[int, int]) -> None:  # noqa: N802
        ...

    def detect(self, image: NDArray[np.uint8]) -> tuple[int, NDArray[np.float32] | None]:
        ...


class DetectorHandle:
    """A loaded face detector and its current input size.

    The handle must be released by whoever created it, either explicitly with
    :meth:`release` or by using it as a context manager.
    """

    def __init__(self, model: FaceDetectorModel, model_path: Path) -> None:
        self._model: FaceDetectorModel | None = model
        self.model_path = model_path
        self.input_size: tuple[int, int] | None = None

    @property
    def model(self) -> FaceDetectorModel:
        if self._model is None:
            raise NullArgumentError("Face detector model")
        return self._model

    @property
    def released(self) -> bool:
        return self._model is None

    def set_input_size(self, width: int, height: int) -> None:
        """Configure the detector for images of the given size."""
        self.model.setInputSize((width, height))
        self.input_size = (width, height)

    def release(self) -> None:
        """Drop the loaded model. Further use raises NullArgumentError."""
        if self._model is not None:
            logger.debug("Released face detector %s", self.model_path)
        self._model = None
        self.input_size = None

    def __enter__(self) -> DetectorHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def create_detector(model_path: str | Path, settings: Settings | None = None) -> DetectorHandle:
    """Load a YuNet detector from a model file path or registry name.

    The returned handle has no input size yet; :func:`detect` sets it.

    Raises:
        NullArgumentError: If no model path is given.
        InvalidModelPathError: If the model cannot be resolved or loaded.
    """
    if model_path is None:
        raise NullArgumentError("Face detector model path")
    settings = settings or get_settings()
    manager = ModelManager(settings)
    path = manager.resolve(model_path)
    backend_id, target_id = manager.backend_target()

    try:
        model = cv2.FaceDetectorYN.create(
            model=str(path),
            config="",
            input_size=(0, 0),
            score_threshold=settings.score_threshold,
            nms_threshold=settings.nms_threshold,
            top_k=settings.top_k,
            backend_id=backend_id,
            target_id=target_id,
        )
    except cv2.error as exc:
        raise InvalidModelPathError(f"Could not load face detector from {path}: {exc}") from exc

    logger.info("Created face detector from %s", path)
    return DetectorHandle(model, path)


def detect(handle: DetectorHandle, image: NDArray[np.uint8]) -> list[FaceRecord]:
    """Detect faces in an image.

    Args:
        handle: Detector to run. Its input size is reset to the image size.
        image: HxWx3 BGR uint8 array. Gray and BGRA input is converted.

    Returns:
        One record per face, in the order the model produced them.

    Raises:
        NullArgumentError: If the handle or image is None, or the handle was released.
        InvalidImageError: If the image has zero rows or columns.
        InferenceError: If the model fails.
    """
    if handle is None:
        raise NullArgumentError("Face detector")
    validate_image(image)

    bgr = to_bgr(image)
    height, width = bgr.shape[:2]
    handle.set_input_size(width, height)
    try:
        _, faces = handle.model.detect(bgr)
    except cv2.error as exc:
        raise InferenceError(f"Face detection failed: {exc}") from exc

    if faces is None:
        records: list[FaceRecord] = []
    else:
        records = [FaceRecord.from_row(row) for row in faces]
    logger.debug("Detected %d face(s) in %dx%d image", len(records), width, height)
    return records


def detect_path(
    handle: DetectorHandle, image_path: str | Path, settings: Settings | None = None
) -> list[FaceRecord]:
    """Decode an image file, rotate it upright from its EXIF orientation and detect faces."""
    if handle is None:
        raise NullArgumentError("Face detector")
    image = correct_orientation(image_path, settings)
    return detect(handle, image)


def detect_bytes(
    handle: DetectorHandle, image_bytes: bytes, settings: Settings | None = None
) -> list[FaceRecord]:
    """Detect faces in encoded image bytes.

    The bytes are written to a temporary file which is always removed before
    returning, whether detection succeeds or not.
    """
    if image_bytes is None:
        raise NullArgumentError("Image bytes")
    fd, temp_name = tempfile.mkstemp(prefix="facescope-")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as stream:
            stream.write(image_bytes)
        return detect_path(handle, temp_path, settings)
    finally:
        temp_path.unlink(missing_ok=True)
        logger.debug("Removed temporary file %s", temp_path)
