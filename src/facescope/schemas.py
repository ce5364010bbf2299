"""Pydantic models for caller-facing face data."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from facescope.ml.face_detector import FaceRecord


class FaceBox(BaseModel):
    """A box to draw: top-left corner, size, label and prediction score."""

    x: int = Field(description="Bounding box top-left x in pixels")
    y: int = Field(description="Bounding box top-left y in pixels")
    width: int = Field(ge=0, description="Bounding box width in pixels")
    height: int = Field(ge=0, description="Bounding box height in pixels")
    label: str = ""
    score: float = Field(default=0.0, description="Prediction score shown in debug mode")

    @classmethod
    def from_record(cls, record: FaceRecord, label: str = "") -> FaceBox:
        """Build a box from a detection record, rounding to whole pixels."""
        return cls(
            x=round(record.x),
            y=round(record.y),
            width=max(0, round(record.width)),
            height=max(0, round(record.height)),
            label=label,
            score=record.score,
        )


class Landmark(BaseModel):
    """A single facial landmark in pixels."""

    x: float
    y: float


class DetectedFace(BaseModel):
    """A detected face with bounding box, landmarks and score."""

    x: float = Field(description="Bounding box x position in pixels")
    y: float = Field(description="Bounding box y position in pixels")
    width: float = Field(description="Bounding box width in pixels")
    height: float = Field(description="Bounding box height in pixels")
    score: float = Field(description="Detection confidence (0.0-1.0)")
    landmarks: dict[str, Landmark] = Field(
        description="right_eye, left_eye, nose_tip, right_mouth and left_mouth points"
    )
    vector: list[float] | None = Field(default=None, description="Face feature vector, when extracted")

    @classmethod
    def from_record(cls, record: FaceRecord, vector: list[float] | None = None) -> DetectedFace:
        """Build the output view of a detection record, optionally with its feature vector."""
        return cls(
            vector=vector,
            x=record.x,
            y=record.y,
            width=record.width,
            height=record.height,
            score=record.score,
            landmarks={
                "right_eye": Landmark(x=record.right_eye_x, y=record.right_eye_y),
                "left_eye": Landmark(x=record.left_eye_x, y=record.left_eye_y),
                "nose_tip": Landmark(x=record.nose_x, y=record.nose_y),
                "right_mouth": Landmark(x=record.right_mouth_x, y=record.right_mouth_y),
                "left_mouth": Landmark(x=record.left_mouth_x, y=record.left_mouth_y),
            },
        )
