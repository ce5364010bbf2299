"""Exception taxonomy shared by the detection, recognition and imaging layers."""

from __future__ import annotations


class FaceScopeError(Exception):
    """Base class for all FaceScope errors."""


class NullArgumentError(FaceScopeError, TypeError):
    """A required argument is missing (or refers to a released handle)."""

    def __init__(self, argument: str) -> None:
        super().__init__(f"{argument} is None")
        self.argument = argument


class InvalidModelPathError(FaceScopeError, FileNotFoundError):
    """A model file could not be resolved or loaded."""


class InvalidImageError(FaceScopeError, ValueError):
    """An image has no pixels or exceeds the configured size limit."""


class DecodeError(FaceScopeError, ValueError):
    """The codec could not read or parse an image."""


class UnknownFormatError(FaceScopeError, ValueError):
    """No encode format can be inferred for an image."""


class InferenceError(FaceScopeError, RuntimeError):
    """The underlying detection or recognition model failed."""
