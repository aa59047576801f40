"""
Image preprocessing steps for the OCR preparation pipeline.

Provides seven pure transforms, each taking a PixelBuffer and returning a new one:
- Grayscale conversion
- Resizing toward 300 DPI
- Denoising (3x3 median)
- Contrast normalization (histogram stretch)
- Sharpening (Laplacian kernel)
- Deskewing (projection profile search)
- Thresholding (Sauvola binarization)
"""

import logging
import math
from typing import Callable, Dict, List, Tuple, Union

import numpy as np

from .buffer import PixelBuffer
from .config import (
    ASSUMED_INPUT_DPI,
    DARK_PIXEL_THRESHOLD,
    DESKEW_COARSE_RANGE,
    DESKEW_COARSE_STEP,
    DESKEW_FINE_RANGE,
    DESKEW_FINE_STEP,
    DESKEW_MIN_ANGLE,
    MAX_DIMENSION,
    MIN_DIMENSION,
    RESIZE_SKIP_TOLERANCE,
    SAUVOLA_K,
    SAUVOLA_R,
    SAUVOLA_WINDOW,
    SHARPEN_KERNEL,
    TARGET_DPI,
)
from .errors import StepError

logger = logging.getLogger(__name__)


# ============================================================================
# Helpers
# ============================================================================

def _require_buffer(image, step: str) -> PixelBuffer:
    if not isinstance(image, PixelBuffer):
        raise StepError(f"{step}: expected a PixelBuffer, got {type(image).__name__}")
    return image


def _gray_pixels(image: PixelBuffer) -> np.ndarray:
    """Return the single-channel samples of an image, converting RGB if needed."""
    import cv2

    if image.is_grayscale:
        return image.pixels
    return cv2.cvtColor(image.pixels, cv2.COLOR_RGB2GRAY)


# ============================================================================
# Core Preprocessing Steps
# ============================================================================

def grayscale(image: PixelBuffer) -> PixelBuffer:
    """
    Convert image to grayscale if it's color.

    Uses the perceptual weights 0.299 R + 0.587 G + 0.114 B.

    Args:
        image: Input image (RGB or grayscale)

    Returns:
        Grayscale image (the input itself when already grayscale)
    """
    image = _require_buffer(image, "grayscale")
    if image.is_grayscale:
        return image
    return PixelBuffer.from_array(_gray_pixels(image))


def compute_target_size(width: int, height: int) -> Tuple[int, int]:
    """
    Compute the output size of the resize step.

    Assumes a 72 DPI source and targets 300 DPI, constrained so the larger
    side stays within MAX_DIMENSION and small images reach MIN_DIMENSION.

    Args:
        width: Current width in pixels
        height: Current height in pixels

    Returns:
        (new_width, new_height)
    """
    scale = TARGET_DPI / ASSUMED_INPUT_DPI

    new_width = int(width * scale)
    new_height = int(height * scale)

    # Clamp to max dimension
    if new_width > MAX_DIMENSION or new_height > MAX_DIMENSION:
        scale_down = MAX_DIMENSION / max(new_width, new_height)
        new_width = int(new_width * scale_down)
        new_height = int(new_height * scale_down)

    # Ensure minimum dimension
    if new_width < MIN_DIMENSION and new_height < MIN_DIMENSION:
        scale_up = MIN_DIMENSION / max(1, min(new_width, new_height))
        new_width = int(new_width * scale_up)
        new_height = int(new_height * scale_up)

    return max(1, new_width), max(1, new_height)


def resize(image: PixelBuffer) -> PixelBuffer:
    """
    Resize image to optimal resolution for OCR.

    Images whose target size is within 5% of the current size are returned
    unchanged. Otherwise the image is resampled with a Lanczos filter.

    Args:
        image: Input image

    Returns:
        Resized image
    """
    import cv2

    image = _require_buffer(image, "resize")
    new_width, new_height = compute_target_size(image.width, image.height)

    low, high = RESIZE_SKIP_TOLERANCE
    width_ratio = new_width / image.width
    height_ratio = new_height / image.height
    if low <= width_ratio <= high and low <= height_ratio <= high:
        logger.debug(f"Skipping resize: {image.width}x{image.height} is already near target")
        return image

    try:
        resized = cv2.resize(
            image.pixels,
            (new_width, new_height),
            interpolation=cv2.INTER_LANCZOS4
        )
    except cv2.error as e:
        raise StepError(f"resize to {new_width}x{new_height} failed: {e}") from e

    logger.debug(f"Resized image: {image.width}x{image.height} -> {new_width}x{new_height}")
    return PixelBuffer.from_array(resized)


def denoise(image: PixelBuffer) -> PixelBuffer:
    """
    Remove isolated noise pixels with a 3x3 median filter.

    Median filtering preserves edges better than a Gaussian blur and is
    effective against salt-and-pepper noise.

    Args:
        image: Input image (converted to grayscale first)

    Returns:
        Denoised grayscale image
    """
    import cv2

    image = _require_buffer(image, "denoise")
    gray = _gray_pixels(image)
    try:
        denoised = cv2.medianBlur(gray, 3)
    except cv2.error as e:
        raise StepError(f"median filter failed: {e}") from e
    return PixelBuffer.from_array(denoised)


def normalize(image: PixelBuffer) -> PixelBuffer:
    """
    Stretch contrast so samples span the full 0-255 range.

    Args:
        image: Input image

    Returns:
        Normalized image, or the input unchanged when it is uniform
    """
    image = _require_buffer(image, "normalize")
    min_val = int(image.pixels.min())
    max_val = int(image.pixels.max())

    if max_val <= min_val:
        logger.debug("Skipping normalize: uniform image")
        return image

    value_range = np.float32(max_val - min_val)
    stretched = (image.pixels.astype(np.float32) - min_val) / value_range * np.float32(255.0)
    logger.debug(f"Normalized contrast range [{min_val}, {max_val}] -> [0, 255]")
    return PixelBuffer.from_array(stretched.astype(np.uint8))


def sharpen(image: PixelBuffer) -> PixelBuffer:
    """
    Enhance edges with a 3x3 Laplacian sharpening kernel.

    Args:
        image: Input image

    Returns:
        Sharpened image with samples clamped to [0, 255]
    """
    import cv2

    image = _require_buffer(image, "sharpen")
    kernel = np.array(SHARPEN_KERNEL, dtype=np.float32)
    try:
        # ddepth=-1 keeps uint8 output, which saturates at 0 and 255
        sharpened = cv2.filter2D(image.pixels, -1, kernel, borderType=cv2.BORDER_REPLICATE)
    except cv2.error as e:
        raise StepError(f"convolution failed: {e}") from e
    return PixelBuffer.from_array(sharpened)


def _search_angles(center: float, half_range: float, step: float) -> List[float]:
    count = int(round(2 * half_range / step))
    return [center - half_range + i * step for i in range(count + 1)]


def projection_variance(gray: np.ndarray, angle: float) -> float:
    """
    Variance of the horizontal projection profile at a candidate angle.

    Each dark pixel is rotated about the image center and counted in the row
    of its rotated y-coordinate. Higher variance means better aligned text lines.

    Args:
        gray: Grayscale samples, shape (height, width)
        angle: Candidate angle in degrees

    Returns:
        Population variance of the per-row dark pixel counts
    """
    height, width = gray.shape
    ys, xs = np.nonzero(gray < DARK_PIXEL_THRESHOLD)
    if len(ys) == 0:
        return 0.0
    return _projection_variance(xs - width / 2.0, ys - height / 2.0, height, math.radians(angle))


def _projection_variance(dx: np.ndarray, dy: np.ndarray, height: int, radians: float) -> float:
    cy = height / 2.0
    new_y = np.trunc(dy * math.cos(radians) - dx * math.sin(radians) + cy).astype(np.int64)
    rows = new_y[(new_y >= 0) & (new_y < height)]
    counts = np.bincount(rows, minlength=height).astype(np.float64)
    return float(counts.var())


def detect_skew_angle(image: Union[PixelBuffer, np.ndarray]) -> float:
    """
    Detect skew using a projection profile search.

    Searches -5 to +5 degrees in 0.5 degree steps, then refines within
    +/-0.5 degrees of the best candidate in 0.1 degree steps.

    Args:
        image: Grayscale buffer or samples

    Returns:
        Detected angle in degrees (0.0 when the image has no dark pixels)
    """
    gray = _gray_pixels(image) if isinstance(image, PixelBuffer) else np.asarray(image)
    height, width = gray.shape[:2]

    ys, xs = np.nonzero(gray < DARK_PIXEL_THRESHOLD)
    if len(ys) == 0:
        return 0.0
    dx = xs - width / 2.0
    dy = ys - height / 2.0

    best_angle = 0.0
    best_variance = 0.0

    for angle in _search_angles(0.0, DESKEW_COARSE_RANGE, DESKEW_COARSE_STEP):
        variance = _projection_variance(dx, dy, height, math.radians(angle))
        if variance > best_variance:
            best_variance = variance
            best_angle = angle

    # Refine search around best angle
    for angle in _search_angles(best_angle, DESKEW_FINE_RANGE, DESKEW_FINE_STEP):
        variance = _projection_variance(dx, dy, height, math.radians(angle))
        if variance > best_variance:
            best_variance = variance
            best_angle = angle

    return best_angle


def deskew(image: PixelBuffer) -> PixelBuffer:
    """
    Correct image skew by detecting and rotating to fix text alignment.

    Rotation is about the image center with bilinear interpolation; the
    uncovered area is filled with white and the dimensions are kept.

    Args:
        image: Input image (converted to grayscale first)

    Returns:
        Deskewed grayscale image
    """
    import cv2

    image = _require_buffer(image, "deskew")
    gray_image = grayscale(image)
    angle = detect_skew_angle(gray_image.pixels)

    if abs(angle) < DESKEW_MIN_ANGLE:
        logger.debug(f"Skew angle too small to correct: {angle:.2f}°")
        return gray_image

    center = (gray_image.width / 2.0, gray_image.height / 2.0)
    rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)
    try:
        rotated = cv2.warpAffine(
            gray_image.pixels,
            rotation_matrix,
            (gray_image.width, gray_image.height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=255
        )
    except cv2.error as e:
        raise StepError(f"rotation by {angle:.2f}° failed: {e}") from e

    logger.info(f"Deskewed image by {angle:.2f}°")
    return PixelBuffer.from_array(rotated)


def integral_images(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Summed-area tables of values and squared values.

    Both tables have one extra leading row and column of zeros so that
    window sums need no boundary checks.
    """
    values = values.astype(np.float64)
    height, width = values.shape
    integral = np.zeros((height + 1, width + 1), dtype=np.float64)
    integral_sq = np.zeros((height + 1, width + 1), dtype=np.float64)
    integral[1:, 1:] = values.cumsum(axis=0).cumsum(axis=1)
    integral_sq[1:, 1:] = (values * values).cumsum(axis=0).cumsum(axis=1)
    return integral, integral_sq


def threshold(image: PixelBuffer) -> PixelBuffer:
    """
    Binarize with Sauvola adaptive thresholding.

    For each pixel, threshold = mean * (1 + k * (std_dev / R - 1)) over a
    15x15 window clipped at the borders. Better than Otsu for documents
    with uneven lighting.

    Args:
        image: Input image (converted to grayscale first)

    Returns:
        Binary grayscale image containing only 0 and 255
    """
    image = _require_buffer(image, "threshold")
    gray = _gray_pixels(image)
    height, width = gray.shape
    half_window = SAUVOLA_WINDOW // 2

    integral, integral_sq = integral_images(gray)

    rows = np.arange(height)
    cols = np.arange(width)
    y1 = np.clip(rows - half_window, 0, height - 1)[:, None]
    y2 = np.clip(rows + half_window, 0, height - 1)[:, None] + 1
    x1 = np.clip(cols - half_window, 0, width - 1)[None, :]
    x2 = np.clip(cols + half_window, 0, width - 1)[None, :] + 1

    area = ((y2 - y1) * (x2 - x1)).astype(np.float64)
    window_sum = integral[y2, x2] - integral[y1, x2] - integral[y2, x1] + integral[y1, x1]
    window_sq = integral_sq[y2, x2] - integral_sq[y1, x2] - integral_sq[y2, x1] + integral_sq[y1, x1]

    mean = window_sum / area
    std_dev = np.sqrt(np.maximum(window_sq / area - mean * mean, 0.0))
    thresholds = mean * (1.0 + SAUVOLA_K * (std_dev / SAUVOLA_R - 1.0))

    binary = np.where(gray > thresholds, 255, 0).astype(np.uint8)
    logger.debug(f"Applied Sauvola threshold (window={SAUVOLA_WINDOW}, k={SAUVOLA_K})")
    return PixelBuffer.from_array(binary)


# ============================================================================
# Step Registry
# ============================================================================

StepFunction = Callable[[PixelBuffer], PixelBuffer]

STEPS: Dict[str, StepFunction] = {
    "grayscale": grayscale,
    "resize": resize,
    "denoise": denoise,
    "normalize": normalize,
    "sharpen": sharpen,
    "deskew": deskew,
    "threshold": threshold,
}
