"""Tests for decoding, encoding and EXIF orientation correction."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest
from conftest import write_jpeg

from facescope.config import Settings
from facescope.errors import DecodeError, InvalidImageError, NullArgumentError, UnknownFormatError
from facescope.ml.preprocessing import (
    correct_orientation,
    decode_image,
    encode_image,
    infer_format,
    load_image,
    read_orientation,
    rotate_image,
    rotation_for_orientation,
    rotation_matrix,
    to_bgr,
    validate_image,
)

# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TestValidateImage:
    def test_none_raises_null_argument(self) -> None:
        with pytest.raises(NullArgumentError):
            validate_image(None)

    @pytest.mark.parametrize("shape", [(0, 10, 3), (10, 0, 3), (0, 0)])
    def test_zero_dimension_raises_invalid_image(self, shape: tuple[int, ...]) -> None:
        with pytest.raises(InvalidImageError):
            validate_image(np.zeros(shape, dtype=np.uint8))

    def test_valid_image_passes(self, image: np.ndarray) -> None:
        validate_image(image)


class TestDecodeEncode:
    def test_png_roundtrip_is_lossless(self, image: np.ndarray) -> None:
        decoded = decode_image(encode_image(image, "png"))
        np.testing.assert_array_equal(decoded, image)

    def test_garbage_bytes_raise_decode_error(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"not an image at all")

    def test_empty_bytes_raise_decode_error(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_none_bytes_raise_null_argument(self) -> None:
        with pytest.raises(NullArgumentError):
            decode_image(None)  # type: ignore[arg-type]

    def test_pixel_limit_enforced(self, image: np.ndarray) -> None:
        settings = Settings(max_image_pixels=100)
        with pytest.raises(InvalidImageError, match="exceeds"):
            decode_image(encode_image(image, "png"), settings)

    def test_encode_unknown_format(self, image: np.ndarray) -> None:
        with pytest.raises(UnknownFormatError):
            encode_image(image, "notaformat")

    def test_load_missing_file_raises_decode_error(self, tmp_path: Path) -> None:
        with pytest.raises(DecodeError):
            load_image(tmp_path / "missing.jpg")

    def test_load_non_image_raises_decode_error(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.jpg"
        path.write_text("hello")
        with pytest.raises(DecodeError):
            load_image(path)


class TestInferFormat:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("photo.jpg", "jpg"), ("photo.JPEG", "jpg"), ("dir/scan.png", "png"), ("a.b.bmp", "bmp")],
    )
    def test_known_extensions(self, name: str, expected: str) -> None:
        assert infer_format(name) == expected

    def test_missing_extension(self) -> None:
        with pytest.raises(UnknownFormatError):
            infer_format("photo")

    def test_unsupported_extension(self) -> None:
        with pytest.raises(UnknownFormatError):
            infer_format("photo.xyz")


class TestToBgr:
    def test_gray_becomes_three_channels(self) -> None:
        gray = np.full((4, 5), 9, dtype=np.uint8)
        bgr = to_bgr(gray)
        assert bgr.shape == (4, 5, 3)
        assert (bgr == 9).all()

    def test_bgra_drops_alpha(self) -> None:
        assert to_bgr(np.zeros((4, 5, 4), dtype=np.uint8)).shape == (4, 5, 3)

    def test_bgr_is_returned_as_is(self, image: np.ndarray) -> None:
        assert to_bgr(image) is image


# ---------------------------------------------------------------------------
# Orientation
# ---------------------------------------------------------------------------


class TestRotationForOrientation:
    @pytest.mark.parametrize(
        ("orientation", "degrees"),
        [(1, 0), (6, 90), (3, 180), (8, 270), (2, 0), (5, 0), (7, 0), (None, 0), (42, 0)],
    )
    def test_mapping(self, orientation: int | None, degrees: int) -> None:
        assert rotation_for_orientation(orientation) == degrees


class TestRotationMatrix:
    def test_quarter_turn_maps_corners(self) -> None:
        # 4 wide, 2 tall -> 2 wide, 4 tall
        matrix = rotation_matrix(4, 2, 90)
        top_left = matrix @ np.array([0, 0, 1])
        top_right = matrix @ np.array([3, 0, 1])
        np.testing.assert_allclose(top_left, [1, 0])
        np.testing.assert_allclose(top_right, [1, 3])

    def test_half_turn_keeps_size(self) -> None:
        matrix = rotation_matrix(4, 2, 180)
        np.testing.assert_allclose(matrix @ np.array([0, 0, 1]), [3, 1])

    def test_non_right_angle_rejected(self) -> None:
        with pytest.raises(ValueError, match="multiple of 90"):
            rotation_matrix(4, 2, 45)


class TestRotateImage:
    @pytest.mark.parametrize(("degrees", "k"), [(90, -1), (180, 2), (270, 1), (0, 0)])
    def test_matches_numpy_rotation(self, image: np.ndarray, degrees: int, k: int) -> None:
        np.testing.assert_array_equal(rotate_image(image, degrees), np.rot90(image, k=k))

    def test_input_not_mutated(self, image: np.ndarray) -> None:
        original = image.copy()
        rotated = rotate_image(image, 90)
        assert rotated is not image
        np.testing.assert_array_equal(image, original)

    def test_clockwise_then_counter_clockwise_restores_dimensions(self, image: np.ndarray) -> None:
        height, width = image.shape[:2]
        turned = rotate_image(image, rotation_for_orientation(6))
        assert turned.shape[:2] == (width, height)
        restored = rotate_image(turned, rotation_for_orientation(8))
        assert restored.shape[:2] == (height, width)


class TestReadOrientation:
    def test_reads_tag(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "rotated.jpg", 40, 30, orientation=6)
        assert read_orientation(path) == 6

    def test_no_exif_returns_none(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "plain.jpg", 40, 30)
        assert read_orientation(path) is None

    def test_png_without_metadata_returns_none(self, tmp_path: Path, image: np.ndarray) -> None:
        path = tmp_path / "plain.png"
        cv2.imwrite(str(path), image)
        assert read_orientation(path) is None

    def test_unreadable_file_returns_none(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"\xff\xd8 definitely not a jpeg")
        assert read_orientation(path) is None


class TestCorrectOrientation:
    def test_without_metadata_returns_raw_decode(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "plain.jpg", 40, 30)
        np.testing.assert_array_equal(correct_orientation(path), load_image(path))

    def test_normal_orientation_returns_raw_decode(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "upright.jpg", 40, 30, orientation=1)
        np.testing.assert_array_equal(correct_orientation(path), load_image(path))

    @pytest.mark.parametrize(("orientation", "k"), [(6, -1), (3, 2), (8, 1)])
    def test_rotates_by_tag(self, tmp_path: Path, orientation: int, k: int) -> None:
        path = write_jpeg(tmp_path / f"o{orientation}.jpg", 40, 30, orientation=orientation)
        corrected = correct_orientation(path)
        np.testing.assert_array_equal(corrected, np.rot90(load_image(path), k=k))

    def test_quarter_turn_swaps_dimensions(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "portrait.jpg", 40, 30, orientation=6)
        assert correct_orientation(path).shape[:2] == (40, 30)

    def test_unsupported_orientation_is_noop(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "mirrored.jpg", 40, 30, orientation=2)
        np.testing.assert_array_equal(correct_orientation(path), load_image(path))

    def test_source_file_untouched(self, tmp_path: Path) -> None:
        path = write_jpeg(tmp_path / "portrait.jpg", 40, 30, orientation=6)
        before = path.read_bytes()
        correct_orientation(path)
        assert path.read_bytes() == before

    def test_missing_file_raises_decode_error(self, tmp_path: Path) -> None:
        with pytest.raises(DecodeError):
            correct_orientation(tmp_path / "nope.jpg")

    def test_none_path_raises_null_argument(self) -> None:
        with pytest.raises(NullArgumentError):
            correct_orientation(None)  # type: ignore[arg-type]
