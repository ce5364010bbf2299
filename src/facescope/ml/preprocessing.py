"""Image preprocessing: decoding, encoding, validation and EXIF orientation.

Images are HxWx3 BGR uint8 numpy arrays, the layout OpenCV's codecs and
face models use. Decoding never applies EXIF rotation implicitly; callers that
need the canonical orientation go through :func:`correct_orientation`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import cv2
import numpy as np
from PIL import ExifTags, Image

from facescope.config import Settings, get_settings
from facescope.errors import DecodeError, InvalidImageError, NullArgumentError, UnknownFormatError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

_DECODE_FLAGS = cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION

# EXIF orientation value -> clockwise rotation in degrees
_ORIENTATION_ROTATION: dict[int, int] = {
    1: 0,
    6: 90,
    3: 180,
    8: 270,
}

# Clockwise angle -> (cos, sin) in image coordinates (y axis pointing down)
_QUARTER_TURNS: dict[int, tuple[int, int]] = {
    0: (1, 0),
    90: (0, 1),
    180: (-1, 0),
    270: (0, -1),
}


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def validate_image(image: NDArray[np.uint8] | None) -> None:
    """Check that an image is present and has pixels.

    Raises:
        NullArgumentError: If the image is None.
        InvalidImageError: If the image has zero rows or columns, or no data.
    """
    if image is None:
        raise NullArgumentError("Image")
    if image.ndim < 2 or image.shape[0] <= 0 or image.shape[1] <= 0 or image.size == 0:
        raise InvalidImageError(f"Invalid image with shape {image.shape}")


def decode_image(image_bytes: bytes, settings: Settings | None = None) -> NDArray[np.uint8]:
    """Decode raw image bytes into a BGR uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format OpenCV can read).
        settings: Source of the pixel limit; defaults to the environment.

    Returns:
        HxWx3 BGR uint8 numpy array.

    Raises:
        NullArgumentError: If no bytes are given.
        DecodeError: If the bytes cannot be decoded.
        InvalidImageError: If the image exceeds the configured pixel limit.
    """
    if image_bytes is None:
        raise NullArgumentError("Image bytes")
    settings = settings or get_settings()

    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Empty image data")
    try:
        image = cv2.imdecode(buffer, _DECODE_FLAGS)
    except cv2.error as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc
    if image is None:
        raise DecodeError("Stream could not be read as an image")

    height, width = image.shape[:2]
    if height * width > settings.max_image_pixels:
        raise InvalidImageError(
            f"Image of {width}x{height} exceeds the limit of {settings.max_image_pixels} pixels"
        )
    return image


def load_image(image_path: str | Path, settings: Settings | None = None) -> NDArray[np.uint8]:
    """Read and decode an image file, without orientation correction."""
    if image_path is None:
        raise NullArgumentError("Image path")
    try:
        data = Path(image_path).read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read image file {image_path}: {exc}") from exc
    return decode_image(data, settings)


def infer_format(image_path: str | Path) -> str:
    """Return the encode format implied by a file name's extension.

    Raises:
        UnknownFormatError: If there is no extension or OpenCV cannot write it.
    """
    suffix = Path(image_path).suffix.lower().lstrip(".")
    if not suffix:
        raise UnknownFormatError(f"No image format can be determined from {image_path}")
    if suffix == "jpeg":
        suffix = "jpg"
    if not cv2.haveImageWriter(f"image.{suffix}"):
        raise UnknownFormatError(f"Unsupported image format: {suffix}")
    return suffix


def encode_image(image: NDArray[np.uint8], fmt: str) -> bytes:
    """Encode an image to bytes in the given format (e.g. ``"png"``, ``"jpg"``)."""
    validate_image(image)
    ext = "." + fmt.lower().lstrip(".")
    if not cv2.haveImageWriter(f"image{ext}"):
        raise UnknownFormatError(f"Unsupported image format: {fmt}")
    try:
        ok, encoded = cv2.imencode(ext, image)
    except cv2.error as exc:
        raise InvalidImageError(f"Image cannot be encoded as {fmt}: {exc}") from exc
    if not ok:
        raise InvalidImageError(f"Image cannot be encoded as {fmt}")
    return encoded.tobytes()


def to_bgr(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Return a 3-channel BGR view of an image, converting gray and BGRA input."""
    if image.ndim == 2 or image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


# ---------------------------------------------------------------------------
# Orientation
# ---------------------------------------------------------------------------


def read_orientation(image_path: str | Path) -> int | None:
    """Read the EXIF Orientation tag of an image file.

    Returns None when the file has no EXIF data, no orientation tag, or
    cannot be parsed at all.
    """
    try:
        with Image.open(image_path) as img:
            value = img.getexif().get(ExifTags.Base.Orientation)
            return None if value is None else int(value)
    except Exception:  # noqa: BLE001
        logger.debug("No readable EXIF orientation in %s", image_path, exc_info=True)
        return None


def rotation_for_orientation(orientation: int | None) -> int:
    """Map an EXIF orientation value to a clockwise rotation in degrees.

    Unknown or unsupported values (including mirrored orientations) map to 0.
    """
    if orientation is None:
        return 0
    return _ORIENTATION_ROTATION.get(orientation, 0)


def rotated_size(width: int, height: int, degrees: int) -> tuple[int, int]:
    """Return the (width, height) of an image after a clockwise rotation."""
    if degrees in (90, 270):
        return height, width
    return width, height


def rotation_matrix(width: int, height: int, degrees: int) -> NDArray[np.float64]:
    """Build the 2x3 affine matrix rotating a width x height image clockwise.

    The transform is translate(new centre) . rotate(degrees) . translate(-old
    centre), with centres in pixel-centre coordinates so right angles map the
    pixel grid exactly onto itself.
    """
    if degrees not in _QUARTER_TURNS:
        raise ValueError(f"Rotation must be a multiple of 90 degrees, got {degrees}")
    cos, sin = _QUARTER_TURNS[degrees]
    new_width, new_height = rotated_size(width, height, degrees)

    to_origin = np.array([[1, 0, -(width - 1) / 2], [0, 1, -(height - 1) / 2], [0, 0, 1]], dtype=np.float64)
    rotate = np.array([[cos, -sin, 0], [sin, cos, 0], [0, 0, 1]], dtype=np.float64)
    to_centre = np.array(
        [[1, 0, (new_width - 1) / 2], [0, 1, (new_height - 1) / 2], [0, 0, 1]], dtype=np.float64
    )
    return (to_centre @ rotate @ to_origin)[:2]


def rotate_image(image: NDArray[np.uint8], degrees: int) -> NDArray[np.uint8]:
    """Return a new image rotated clockwise by a multiple of 90 degrees.

    The input array is left untouched.
    """
    validate_image(image)
    height, width = image.shape[:2]
    matrix = rotation_matrix(width, height, degrees)
    return cv2.warpAffine(
        image,
        matrix,
        rotated_size(width, height, degrees),
        flags=cv2.INTER_NEAREST,
        borderMode=cv2.BORDER_CONSTANT,
    )


def correct_orientation(image_path: str | Path, settings: Settings | None = None) -> NDArray[np.uint8]:
    """Load an image and rotate it upright according to its EXIF orientation.

    Because the decoder ignores metadata, photos rotated on a phone load in
    their sensor orientation. If the orientation cannot be determined, the
    decoded image is returned unmodified.

    Raises:
        NullArgumentError: If the path is None.
        DecodeError: If the path is not a readable image.
    """
    image = load_image(image_path, settings)
    degrees = rotation_for_orientation(read_orientation(image_path))
    if degrees == 0:
        return image

    logger.debug("Rotating %s by %d degrees", image_path, degrees)
    return rotate_image(image, degrees)
