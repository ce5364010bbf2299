"""Face recognition (embedding) with the SFace model."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

from facescope.config import Settings, get_settings
from facescope.errors import InferenceError, InvalidModelPathError, NullArgumentError
from facescope.ml.face_detector import FaceRecord
from facescope.ml.model_manager import ModelManager
from facescope.ml.preprocessing import to_bgr, validate_image

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class FaceRecognizerModel(Protocol):
    """The recognizer capability, as exposed by ``cv2.FaceRecognizerSF``."""

    def alignCrop(self, src_img: NDArray[np.uint8], face_box: NDArray[np.float32]) -> NDArray[np.uint8]:  # noqa: N802
        ...

    def feature(self, aligned_img: NDArray[np.uint8]) -> NDArray[np.float32]:
        ...


class RecognizerHandle:
    """A loaded face recognizer.

    Released by its creator with :meth:`release` or a ``with`` block.
    """

    def __init__(self, model: FaceRecognizerModel, model_path: Path) -> None:
        self._model: FaceRecognizerModel | None = model
        self.model_path = model_path

    @property
    def model(self) -> FaceRecognizerModel:
        if self._model is None:
            raise NullArgumentError("Face recognizer model")
        return self._model

    @property
    def released(self) -> bool:
        return self._model is None

    def release(self) -> None:
        if self._model is not None:
            logger.debug("Released face recognizer %s", self.model_path)
        self._model = None

    def __enter__(self) -> RecognizerHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def create_recognizer(model_path: str | Path, settings: Settings | None = None) -> RecognizerHandle:
    """Load an SFace recognizer from a model file path or registry name.

    Raises:
        NullArgumentError: If no model path is given.
        InvalidModelPathError: If the model cannot be resolved or loaded.
    """
    if model_path is None:
        raise NullArgumentError("Face recognizer model path")
    settings = settings or get_settings()
    manager = ModelManager(settings)
    path = manager.resolve(model_path)
    backend_id, target_id = manager.backend_target()

    try:
        model = cv2.FaceRecognizerSF.create(
            model=str(path),
            config="",
            backend_id=backend_id,
            target_id=target_id,
        )
    except cv2.error as exc:
        raise InvalidModelPathError(f"Could not load face recognizer from {path}: {exc}") from exc

    logger.info("Created face recognizer from %s", path)
    return RecognizerHandle(model, path)


def extract_feature(
    recognizer: RecognizerHandle | str | Path,
    image: NDArray[np.uint8],
    face: FaceRecord | NDArray[np.float32],
    settings: Settings | None = None,
) -> NDArray[np.float32]:
    """Extract the feature vector of one detected face.

    Args:
        recognizer: A recognizer handle, or a model path/name. For a path, a
            handle is created and released within this call.
        image: The image the face was detected in (HxWx3 BGR uint8). It is
            neither modified nor retained.
        face: The face's detection record or its length-15 row.

    Returns:
        A flat float32 feature vector that shares no memory with the image or
        the model's buffers.

    Raises:
        NullArgumentError: If any argument is None.
        InferenceError: If alignment or feature extraction fails.
    """
    if recognizer is None:
        raise NullArgumentError("Face recognizer")
    if image is None:
        raise NullArgumentError("Source image")
    if face is None:
        raise NullArgumentError("Face box")
    validate_image(image)

    if not isinstance(recognizer, RecognizerHandle):
        with create_recognizer(recognizer, settings) as handle:
            return extract_feature(handle, image, face, settings)

    if isinstance(face, FaceRecord):
        face_row = face.to_array()
    else:
        face_row = np.asarray(face, dtype=np.float32).reshape(-1)
    model = recognizer.model
    try:
        aligned = model.alignCrop(to_bgr(image), face_row.reshape(1, -1))
        feature = model.feature(aligned)
    except cv2.error as exc:
        raise InferenceError(f"Face feature extraction failed: {exc}") from exc

    return np.array(feature, dtype=np.float32, copy=True).reshape(-1)
