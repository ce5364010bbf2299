"""Model manager: resolve and download the OpenCV Zoo face models.

Model references are either paths to local ``.onnx`` files or names from
``MODEL_REGISTRY``, which are fetched from the Hugging Face Hub on first use.
Nothing is cached beyond the file on disk; loading the weights is the job of
the detector and recognizer handles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import cv2
from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError

from facescope.errors import InvalidModelPathError

if TYPE_CHECKING:
    from facescope.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


class ModelTask(StrEnum):
    FACE_DETECTION = "face_detection"
    FACE_RECOGNITION = "face_recognition"


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a single ONNX model."""

    name: str
    repo_id: str
    filename: str
    task: ModelTask
    license: str


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "yunet_2023mar": ModelSpec(
        name="yunet_2023mar",
        repo_id="opencv/face_detection_yunet",
        filename="face_detection_yunet_2023mar.onnx",
        task=ModelTask.FACE_DETECTION,
        license="MIT",
    ),
    "sface_2021dec": ModelSpec(
        name="sface_2021dec",
        repo_id="opencv/face_recognition_sface",
        filename="face_recognition_sface_2021dec.onnx",
        task=ModelTask.FACE_RECOGNITION,
        license="Apache-2.0",
    ),
}


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ModelManager:
    """Resolves model references to local files and picks the DNN backend."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)

    def resolve(self, model: str | Path) -> Path:
        """Return a local path for a model file path or registry name.

        Raises:
            InvalidModelPathError: If the reference is neither an existing
                file nor a downloadable registry entry.
        """
        path = Path(model)
        if path.is_file():
            return path

        spec = MODEL_REGISTRY.get(str(model))
        if spec is None:
            raise InvalidModelPathError(f"Model not found: {model}")
        return self.ensure_downloaded(spec)

    def ensure_downloaded(self, spec: ModelSpec) -> Path:
        """Download a registry model from the Hugging Face Hub if not already present."""
        local = self._models_dir / spec.filename
        if local.is_file():
            return local

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=spec.repo_id,
                    filename=spec.filename,
                    local_dir=str(self._models_dir),
                )
            )
        except (HfHubHTTPError, OSError) as exc:
            raise InvalidModelPathError(f"Could not download model '{spec.name}': {exc}") from exc
        logger.info("Downloaded %s (license: %s) to %s", spec.name, spec.license, downloaded)
        return downloaded

    def backend_target(self) -> tuple[int, int]:
        """Map the configured device to an OpenCV DNN (backend, target) pair."""
        device = self._settings.device
        if device == "cuda":
            return cv2.dnn.DNN_BACKEND_CUDA, cv2.dnn.DNN_TARGET_CUDA
        if device == "openvino":
            return cv2.dnn.DNN_BACKEND_INFERENCE_ENGINE, cv2.dnn.DNN_TARGET_CPU
        return cv2.dnn.DNN_BACKEND_OPENCV, cv2.dnn.DNN_TARGET_CPU
