"""Environment-based configuration for FaceScope."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACESCOPE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACESCOPE_",
        case_sensitive=False,
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # DNN device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model selection: registry names or paths to .onnx files
    face_detection_model: str = "yunet_2023mar"
    face_recognition_model: str = "sface_2021dec"
    models_dir: str = "models"

    # YuNet configuration
    score_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    nms_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    top_k: int = Field(default=5000, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
