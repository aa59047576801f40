"""
I/O utilities for the OCR preparation pipeline.

Handles:
- Raster decoding (PNG, JPEG, GIF, BMP, WEBP, TIFF) into PixelBuffers
- Image saving
- Input type detection
- JSON serialization
"""

import io
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from .buffer import PixelBuffer
from .errors import DecodeFailure

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.bmp', '.webp', '.tiff', '.tif')

# Pillow modes that decode to a single channel
_GRAYSCALE_MODES = ("1", "L", "LA", "I", "I;16", "F")


# ============================================================================
# Image Decoding
# ============================================================================

def decode_image(data: bytes) -> PixelBuffer:
    """
    Decode encoded image bytes into a PixelBuffer.

    Grayscale sources stay single-channel; everything else becomes RGB.
    Only the first frame of animated or multi-page files is decoded.

    Args:
        data: Encoded image bytes

    Returns:
        Decoded PixelBuffer

    Raises:
        DecodeFailure: If the bytes are not a supported image
    """
    from PIL import Image, UnidentifiedImageError

    if not data:
        raise DecodeFailure("Empty image data")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            mode = "L" if img.mode in _GRAYSCALE_MODES else "RGB"
            array = np.array(img.convert(mode))
    except (UnidentifiedImageError, OSError, ValueError, EOFError, SyntaxError) as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e

    try:
        buffer = PixelBuffer.from_array(array)
    except ValueError as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e

    logger.debug(f"Decoded image: {buffer.width}x{buffer.height}, {buffer.channels} channel(s)")
    return buffer


def load_image(image_path: Union[str, Path]) -> PixelBuffer:
    """
    Load an image from file.

    Raises:
        FileNotFoundError: If image file doesn't exist
        DecodeFailure: If image cannot be decoded
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    return decode_image(image_path.read_bytes())


def save_image(image: PixelBuffer, output_path: Union[str, Path], quality: int = 95) -> Path:
    """
    Save a PixelBuffer to file. The format follows the file extension.

    Args:
        image: Image to save
        output_path: Path to save the image
        quality: JPEG quality (1-100)

    Returns:
        Path to the saved image
    """
    import cv2

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # OpenCV expects BGR channel order
    pixels = image.pixels if image.is_grayscale else cv2.cvtColor(image.pixels, cv2.COLOR_RGB2BGR)

    if output_path.suffix.lower() in ('.jpg', '.jpeg'):
        ok = cv2.imwrite(str(output_path), pixels, [cv2.IMWRITE_JPEG_QUALITY, quality])
    else:
        ok = cv2.imwrite(str(output_path), pixels)

    if not ok:
        raise ValueError(f"Could not encode image as {output_path.suffix or 'unknown format'}")

    logger.debug(f"Saved image: {output_path}")
    return output_path


# ============================================================================
# Input Handling
# ============================================================================

def is_pdf_bytes(data: bytes) -> bool:
    """Check the %PDF- magic bytes."""
    return bytes(data[:len(PDF_MAGIC)]) == PDF_MAGIC


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of an input file.

    The extension decides first; files without a known extension are
    sniffed for the PDF magic bytes.

    Returns:
        One of: 'pdf', 'image', 'unknown'
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    if suffix in IMAGE_EXTENSIONS:
        return 'image'

    with open(input_path, 'rb') as f:
        if is_pdf_bytes(f.read(len(PDF_MAGIC))):
            return 'pdf'
    return 'unknown'


def read_input(input_path: Union[str, Path], max_size: Optional[int] = None) -> bytes:
    """
    Read an input file into memory.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is larger than ``max_size`` bytes
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    size = input_path.stat().st_size
    if max_size is not None and size > max_size:
        raise ValueError(f"File too large: {size} bytes (max: {max_size} bytes)")

    return input_path.read_bytes()


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, dataclasses and pixel buffers."""

    def default(self, obj):
        if isinstance(obj, PixelBuffer):
            return {"width": obj.width, "height": obj.height, "channels": obj.channels}
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def to_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, cls=EnhancedJSONEncoder)


def save_json(data: Any, output_path: Union[str, Path], indent: int = 2) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(to_json(data, indent=indent))

    logger.debug(f"Saved JSON: {output_path}")
    return output_path
