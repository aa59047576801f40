"""
Tests for the image preprocessing steps.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def wrap(array):
    from ocrprep.buffer import PixelBuffer
    return PixelBuffer.from_array(array)


class TestPixelBuffer:
    """Test the raster container."""

    def test_from_array_grayscale(self):
        from ocrprep.buffer import PixelBuffer

        buf = PixelBuffer.from_array(np.zeros((20, 30), dtype=np.uint8))

        assert buf.width == 30
        assert buf.height == 20
        assert buf.channels == 1
        assert len(buf.samples) == 600

    def test_from_array_single_channel_axis(self):
        from ocrprep.buffer import PixelBuffer

        buf = PixelBuffer.from_array(np.zeros((5, 6, 1), dtype=np.uint8))

        assert buf.channels == 1
        assert buf.pixels.shape == (5, 6)

    def test_from_bytes_rgb(self):
        from ocrprep.buffer import PixelBuffer

        buf = PixelBuffer.from_bytes(2, 1, 3, bytes([1, 2, 3, 4, 5, 6]))

        assert buf.channels == 3
        assert buf.pixels[0, 1].tolist() == [4, 5, 6]
        assert buf.to_bytes() == bytes([1, 2, 3, 4, 5, 6])

    def test_length_mismatch_rejected(self):
        from ocrprep.buffer import PixelBuffer

        with pytest.raises(ValueError):
            PixelBuffer.from_bytes(2, 2, 1, bytes(3))

    def test_zero_dimensions_rejected(self):
        from ocrprep.buffer import PixelBuffer

        with pytest.raises(ValueError):
            PixelBuffer.from_array(np.zeros((0, 5), dtype=np.uint8))

    def test_equality_by_content(self):
        from ocrprep.buffer import PixelBuffer

        a = PixelBuffer.from_array(np.full((3, 3), 7, dtype=np.uint8))
        b = PixelBuffer.from_array(np.full((3, 3), 7, dtype=np.uint8))
        c = PixelBuffer.from_array(np.full((3, 3), 8, dtype=np.uint8))

        assert a == b
        assert a != c

    def test_not_hashable(self):
        from ocrprep.buffer import PixelBuffer

        buf = PixelBuffer.from_array(np.zeros((2, 2), dtype=np.uint8))

        with pytest.raises(TypeError):
            hash(buf)

    def test_unsupported_channels_rejected(self):
        from ocrprep.buffer import PixelBuffer

        with pytest.raises(ValueError):
            PixelBuffer.from_array(np.zeros((4, 4, 4), dtype=np.uint8))


class TestPreprocessing:
    """Test image preprocessing functions."""

    @pytest.fixture
    def sample_image(self):
        """Create a sample grayscale image."""
        # Create a simple test image with some text-like patterns
        img = np.ones((300, 400), dtype=np.uint8) * 255
        # Add some dark regions (simulating text)
        img[50:60, 50:200] = 0
        img[80:90, 50:180] = 0
        img[110:120, 50:220] = 0
        return wrap(img)

    @pytest.fixture
    def sample_color_image(self):
        """Create a sample color image."""
        img = np.ones((300, 400, 3), dtype=np.uint8) * 255
        img[50:60, 50:200] = [0, 0, 0]
        img[80:90, 50:180] = [0, 0, 0]
        return wrap(img)

    @pytest.fixture
    def skewed_image(self):
        """Create a slightly skewed image."""
        import cv2

        # Create base image
        img = np.ones((400, 500), dtype=np.uint8) * 255

        # Add horizontal lines
        for y in range(50, 350, 30):
            img[y:y+2, 50:450] = 0

        # Rotate slightly
        center = (250, 200)
        angle = 5.0
        rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)
        rotated = cv2.warpAffine(img, rotation_matrix, (500, 400),
                                  borderValue=255)

        return wrap(rotated)

    def test_grayscale_already_gray(self, sample_image):
        """Grayscale images are returned as-is."""
        from ocrprep.steps import grayscale

        result = grayscale(sample_image)

        assert result is sample_image

    def test_grayscale_from_color(self, sample_color_image):
        """Test conversion from color to grayscale."""
        from ocrprep.steps import grayscale

        result = grayscale(sample_color_image)

        assert result.channels == 1
        assert (result.width, result.height) == (400, 300)
        assert result.pixels[0, 0] == 255
        assert result.pixels[55, 100] == 0

    def test_grayscale_luminance_weights(self):
        """Pure red maps to roughly 0.299 * 255."""
        from ocrprep.steps import grayscale

        img = np.zeros((2, 2, 3), dtype=np.uint8)
        img[:, :, 0] = 255

        result = grayscale(wrap(img))

        assert abs(int(result.pixels[0, 0]) - 76) <= 1

    def test_grayscale_rejects_raw_arrays(self):
        from ocrprep.errors import StepError
        from ocrprep.steps import grayscale

        with pytest.raises(StepError):
            grayscale(np.zeros((4, 4), dtype=np.uint8))

    def test_target_size_scales_to_300_dpi(self):
        from ocrprep.steps import compute_target_size

        assert compute_target_size(100, 100) == (416, 416)

    def test_target_size_capped(self):
        from ocrprep.steps import compute_target_size

        width, height = compute_target_size(2000, 1000)

        assert 3999 <= width <= 4000
        assert 1998 <= height <= 2000

    def test_target_size_minimum(self):
        from ocrprep.steps import compute_target_size

        width, height = compute_target_size(10, 10)

        assert 299 <= width <= 300
        assert 299 <= height <= 300

    def test_target_size_never_zero(self):
        from ocrprep.steps import compute_target_size

        width, height = compute_target_size(1, 9000)

        assert width >= 1
        assert height >= 1

    def test_resize_upscales_small_image(self):
        from ocrprep.steps import resize

        result = resize(wrap(np.full((80, 100), 200, dtype=np.uint8)))

        assert 415 <= result.width <= 417
        assert 332 <= result.height <= 334
        assert result.channels == 1

    def test_resize_large_image_capped(self):
        """A 2000x2000 page upscales but stays within the 4000 pixel cap."""
        from ocrprep.steps import resize

        result = resize(wrap(np.full((2000, 2000), 200, dtype=np.uint8)))

        assert max(result.width, result.height) <= 4000
        assert result.width > 2000
        assert result.width == result.height

    def test_resize_keeps_color(self):
        from ocrprep.steps import resize

        result = resize(wrap(np.full((80, 100, 3), 200, dtype=np.uint8)))

        assert result.channels == 3

    def test_resize_skips_near_target(self):
        """Images already at the capped target size are not resampled."""
        from ocrprep.steps import resize

        image = wrap(np.full((100, 4000), 255, dtype=np.uint8))

        assert resize(image) is image

    def test_denoise_removes_salt(self):
        from ocrprep.steps import denoise

        img = np.full((20, 20), 255, dtype=np.uint8)
        img[10, 10] = 0

        result = denoise(wrap(img))

        assert result.pixels[10, 10] == 255

    def test_denoise_outputs_grayscale(self, sample_color_image):
        from ocrprep.steps import denoise

        result = denoise(sample_color_image)

        assert result.channels == 1
        assert (result.width, result.height) == (400, 300)

    def test_normalize_stretches_range(self):
        from ocrprep.steps import normalize

        img = np.full((10, 10), 100, dtype=np.uint8)
        img[5:, :] = 150

        result = normalize(wrap(img))

        assert result.pixels.min() == 0
        assert result.pixels.max() == 255

    def test_normalize_uniform_unchanged(self):
        from ocrprep.steps import normalize

        image = wrap(np.full((10, 10), 77, dtype=np.uint8))

        assert normalize(image) is image

    def test_normalize_keeps_channels(self):
        from ocrprep.steps import normalize

        img = np.zeros((4, 4, 3), dtype=np.uint8)
        img[0, 0] = [50, 60, 70]

        result = normalize(wrap(img))

        assert result.channels == 3
        assert result.pixels.max() == 255

    def test_sharpen_uniform_unchanged(self):
        from ocrprep.steps import sharpen

        image = wrap(np.full((10, 10), 128, dtype=np.uint8))

        result = sharpen(image)

        np.testing.assert_array_equal(result.pixels, image.pixels)

    def test_sharpen_clamps(self):
        from ocrprep.steps import sharpen

        img = np.zeros((9, 9), dtype=np.uint8)
        img[4, 4] = 200

        result = sharpen(wrap(img))

        assert result.pixels.dtype == np.uint8
        assert result.pixels[4, 4] == 255
        assert result.pixels[4, 3] == 0

    def test_deskew_straight_image(self, sample_image):
        """Test that straight images are not changed."""
        from ocrprep.steps import deskew, detect_skew_angle

        assert detect_skew_angle(sample_image) == 0.0

        result = deskew(sample_image)

        assert result == sample_image

    def test_deskew_single_line(self):
        from ocrprep.steps import detect_skew_angle

        img = np.full((50, 100), 255, dtype=np.uint8)
        img[25, 10:90] = 0

        assert detect_skew_angle(img) == 0.0

    def test_detect_skewed_image(self, skewed_image):
        """A 5 degree rotation is detected within the search resolution."""
        from ocrprep.steps import detect_skew_angle

        angle = detect_skew_angle(skewed_image)

        assert abs(abs(angle) - 5.0) <= 0.6

    def test_deskew_improves_alignment(self, skewed_image):
        from ocrprep.steps import deskew, projection_variance

        result = deskew(skewed_image)

        assert (result.width, result.height) == (500, 400)
        assert projection_variance(result.pixels, 0.0) > projection_variance(skewed_image.pixels, 0.0)

    def test_deskew_blank_image(self):
        from ocrprep.steps import detect_skew_angle

        assert detect_skew_angle(np.full((30, 30), 255, dtype=np.uint8)) == 0.0

    def test_threshold_binary_output(self, sample_color_image):
        from ocrprep.steps import threshold

        result = threshold(sample_color_image)

        assert result.channels == 1
        assert set(np.unique(result.pixels)).issubset({0, 255})

    def test_threshold_text_pattern(self):
        from ocrprep.steps import threshold

        img = np.full((50, 50), 255, dtype=np.uint8)
        img[10, 5:45] = 0

        result = threshold(wrap(img))

        assert result.pixels[10, 25] == 0
        assert result.pixels[5, 25] == 255
        assert result.pixels[40, 40] == 255

    def test_integral_images(self):
        from ocrprep.steps import integral_images

        values = np.array([[1, 2], [3, 4]], dtype=np.uint8)
        integral, integral_sq = integral_images(values)

        assert integral.shape == (3, 3)
        assert integral[2, 2] == 10
        assert integral_sq[2, 2] == 30
        assert integral[0].tolist() == [0, 0, 0]

    def test_registry(self):
        from ocrprep.steps import STEPS

        assert set(STEPS) == {
            "grayscale", "resize", "denoise", "normalize", "sharpen", "deskew", "threshold"
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
