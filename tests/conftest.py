"""Shared test fixtures and fake model capabilities."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import ExifTags, Image

from facescope.config import Settings
from facescope.ml.face_detector import DetectorHandle
from facescope.ml.face_recognizer import RecognizerHandle

ALICE_ROW = [10, 20, 50, 60, 25, 40, 45, 40, 35, 55, 27, 68, 43, 68, 0.873]
BOB_ROW = [100, 30, 40, 44, 110, 45, 128, 45, 119, 55, 112, 63, 126, 63, 0.61]


class FakeDetectorModel:
    """Stands in for cv2.FaceDetectorYN, recording how it was configured."""

    def __init__(self, faces: np.ndarray | None = None, error: Exception | None = None) -> None:
        self.faces = faces
        self.error = error
        self.input_sizes: list[tuple[int, int]] = []
        self.seen_shapes: list[tuple[int, ...]] = []

    def setInputSize(self, input_size: tuple[int, int]) -> None:  # noqa: N802
        self.input_sizes.append(tuple(input_size))

    def detect(self, image: np.ndarray) -> tuple[int, np.ndarray | None]:
        self.seen_shapes.append(image.shape)
        if self.error is not None:
            raise self.error
        return 1, self.faces


class FakeRecognizerModel:
    """Stands in for cv2.FaceRecognizerSF, reusing one output buffer."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.buffer = np.arange(128, dtype=np.float32).reshape(1, 128)
        self.face_boxes: list[np.ndarray] = []

    def alignCrop(self, src_img: np.ndarray, face_box: np.ndarray) -> np.ndarray:  # noqa: N802
        self.face_boxes.append(face_box)
        return src_img[:4, :4]

    def feature(self, aligned_img: np.ndarray) -> np.ndarray:
        if self.error is not None:
            raise self.error
        self.buffer[0, 0] = float(aligned_img.sum())
        return self.buffer


def make_faces(*rows: list[float]) -> np.ndarray:
    return np.array(rows, dtype=np.float32)


def write_jpeg(path: Path, width: int, height: int, orientation: int | None = None) -> Path:
    """Write a random-noise JPEG, optionally tagged with an EXIF orientation."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    img = Image.fromarray(pixels)
    if orientation is None:
        img.save(path, format="JPEG")
    else:
        exif = Image.Exif()
        exif[ExifTags.Base.Orientation] = orientation
        img.save(path, format="JPEG", exif=exif)
    return path


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(models_dir=str(tmp_path / "models"))


@pytest.fixture()
def image() -> np.ndarray:
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)


@pytest.fixture()
def detector_model() -> FakeDetectorModel:
    return FakeDetectorModel(faces=make_faces(ALICE_ROW, BOB_ROW))


@pytest.fixture()
def detector(detector_model: FakeDetectorModel, tmp_path: Path) -> DetectorHandle:
    return DetectorHandle(detector_model, tmp_path / "yunet.onnx")


@pytest.fixture()
def recognizer_model() -> FakeRecognizerModel:
    return FakeRecognizerModel()


@pytest.fixture()
def recognizer(recognizer_model: FakeRecognizerModel, tmp_path: Path) -> RecognizerHandle:
    return RecognizerHandle(recognizer_model, tmp_path / "sface.onnx")
