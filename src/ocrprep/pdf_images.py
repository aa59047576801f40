"""
Embedded raster extraction from PDF documents.

Walks the PDF object graph with PyMuPDF, selects image XObjects, resolves
their color space and decodes the raw samples into PixelBuffers.

Handles:
- DeviceGray, DeviceRGB and DeviceCMYK images
- ICCBased color spaces (1, 3 or 4 components)
- Direct, indirect and array color space declarations
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import fitz
import numpy as np

from .buffer import PixelBuffer
from .errors import DocumentParseError

logger = logging.getLogger(__name__)

DocumentSource = Union[bytes, bytearray, memoryview, str, Path]

_NAME_PATTERN = re.compile(r"/([^\s/\[\]<>()]+)")
_REFERENCE_PATTERN = re.compile(r"(\d+)\s+\d+\s+R")


# ============================================================================
# Color Spaces
# ============================================================================

@dataclass(frozen=True)
class PdfColorSpace:
    """
    Resolved color space of an image object.

    ``components`` is None for color spaces this module cannot decode.
    """
    name: str
    components: Optional[int] = None

    @classmethod
    def device_gray(cls) -> "PdfColorSpace":
        return cls("DeviceGray", 1)

    @classmethod
    def device_rgb(cls) -> "PdfColorSpace":
        return cls("DeviceRGB", 3)

    @classmethod
    def device_cmyk(cls) -> "PdfColorSpace":
        return cls("DeviceCMYK", 4)

    @classmethod
    def icc_based(cls, components: int) -> "PdfColorSpace":
        return cls("ICCBased", components)

    @classmethod
    def unknown(cls, name: str) -> "PdfColorSpace":
        return cls(name, None)

    @classmethod
    def from_name(cls, name: str) -> "PdfColorSpace":
        known = {
            "DeviceGray": cls.device_gray,
            "DeviceRGB": cls.device_rgb,
            "DeviceCMYK": cls.device_cmyk,
        }
        factory = known.get(name)
        if factory is not None:
            return factory()
        if name == "ICCBased":
            return cls.icc_based(3)
        return cls.unknown(name)

    @property
    def is_supported(self) -> bool:
        return self.components in (1, 3, 4)

    def __str__(self) -> str:
        if self.name == "ICCBased":
            return f"ICCBased({self.components})"
        return self.name


# ============================================================================
# Document Access
# ============================================================================

def open_pdf(document: DocumentSource) -> fitz.Document:
    """
    Open a PDF from bytes or a path.

    Raises:
        DocumentParseError: If the source cannot be opened as a PDF
    """
    try:
        if isinstance(document, (bytes, bytearray, memoryview)):
            doc = fitz.open(stream=bytes(document), filetype="pdf")
        else:
            doc = fitz.open(str(document), filetype="pdf")
    except Exception as e:
        raise DocumentParseError(f"Failed to parse PDF: {e}") from e

    if not doc.is_pdf or doc.xref_length() <= 1:
        doc.close()
        raise DocumentParseError("Document is not a PDF or contains no objects")
    return doc


def extract_text_layer(document: DocumentSource) -> str:
    """
    Text drawn by the PDF's content streams, one page per block.

    Raises:
        DocumentParseError: If the source cannot be opened as a PDF
    """
    doc = open_pdf(document)
    try:
        pages = [page.get_text("text") for page in doc]
    finally:
        doc.close()
    return "\n".join(pages)


def _get_key(doc: fitz.Document, xref: int, key: str) -> Tuple[str, str]:
    return doc.xref_get_key(xref, key)


def _get_int(doc: fitz.Document, xref: int, key: str) -> Optional[int]:
    kind, value = _get_key(doc, xref, key)
    if kind not in ("int", "float"):
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _icc_components(doc: fitz.Document, text: str) -> int:
    """Component count of the ICC profile referenced from an array."""
    match = _REFERENCE_PATTERN.search(text)
    if match:
        components = _get_int(doc, int(match.group(1)), "N")
        if components:
            return components
    return 3


def _color_space_from_text(doc: fitz.Document, text: str) -> Optional[PdfColorSpace]:
    """Parse a name (``/DeviceRGB``) or array (``[/ICCBased 8 0 R]``) declaration."""
    text = text.strip()
    match = _NAME_PATTERN.match(text.lstrip("[").strip())
    if not match:
        return None
    name = match.group(1)
    if name == "ICCBased" and text.startswith("["):
        return PdfColorSpace.icc_based(_icc_components(doc, text))
    return PdfColorSpace.from_name(name)


def resolve_color_space(doc: fitz.Document, xref: int) -> PdfColorSpace:
    """
    Resolve the ColorSpace entry of an image object.

    Falls back to DeviceRGB when the entry is missing or cannot be resolved.
    """
    kind, value = _get_key(doc, xref, "ColorSpace")

    resolved = None
    if kind in ("name", "array"):
        resolved = _color_space_from_text(doc, value)
    elif kind == "xref":
        match = _REFERENCE_PATTERN.search(value)
        if match:
            target = doc.xref_object(int(match.group(1)), compressed=True)
            resolved = _color_space_from_text(doc, target)

    return resolved or PdfColorSpace.device_rgb()


# ============================================================================
# Sample Decoding
# ============================================================================

def cmyk_to_rgb(samples: np.ndarray) -> np.ndarray:
    """
    Convert ``(h, w, 4)`` CMYK samples to ``(h, w, 3)`` RGB.

    R = (1 - C)(1 - K) * 255, and likewise for G with M and B with Y.
    """
    cmyk = samples.astype(np.float32) / np.float32(255.0)
    white = np.float32(1.0) - cmyk[:, :, 3:4]
    rgb = (np.float32(1.0) - cmyk[:, :, :3]) * white * np.float32(255.0)
    return rgb.astype(np.uint8)


def decode_samples(
    data: bytes,
    width: int,
    height: int,
    color_space: PdfColorSpace,
    bits_per_component: int = 8
) -> PixelBuffer:
    """
    Decode raw image samples into a PixelBuffer.

    Args:
        data: Decompressed stream contents
        width: Image width
        height: Image height
        color_space: Resolved color space
        bits_per_component: Bit depth of each component

    Returns:
        Grayscale or RGB PixelBuffer

    Raises:
        ValueError: If the format is unsupported or the data is too short
    """
    if not color_space.is_supported:
        raise ValueError(f"Unsupported color space: {color_space}")
    if bits_per_component != 8:
        raise ValueError(f"Unsupported {color_space} format: {bits_per_component} bits per component")

    components = color_space.components
    expected = width * height * components
    if len(data) < expected:
        raise ValueError(
            f"Insufficient {color_space} data: data_len={len(data)}, expected={expected}"
        )

    samples = np.frombuffer(data, dtype=np.uint8, count=expected)
    if components == 1:
        return PixelBuffer.from_array(samples.reshape(height, width))
    samples = samples.reshape(height, width, components)
    if components == 4:
        samples = cmyk_to_rgb(samples)
    return PixelBuffer.from_array(samples)


# ============================================================================
# Extractor
# ============================================================================

class PdfRasterExtractor:
    """
    Extracts embedded raster images from a PDF.

    Images that cannot be decoded are skipped; one warning per skipped image
    is kept in ``warnings`` for the most recent call.
    """

    def __init__(self):
        self.warnings: List[str] = []

    def extract(self, document: DocumentSource) -> List[PixelBuffer]:
        """
        Extract all decodable images in object order.

        Args:
            document: PDF bytes or a path to a PDF file

        Returns:
            List of PixelBuffers (empty if there are no usable images)

        Raises:
            DocumentParseError: If the document is not a parseable PDF
        """
        images, self.warnings = self.extract_with_warnings(document)
        return images

    def extract_with_warnings(self, document: DocumentSource) -> Tuple[List[PixelBuffer], List[str]]:
        """Like ``extract`` but returns the skip warnings alongside the images."""
        doc = open_pdf(document)
        images: List[PixelBuffer] = []
        warnings: List[str] = []

        try:
            for xref in range(1, doc.xref_length()):
                if not self._is_image(doc, xref):
                    continue
                try:
                    images.append(self._extract_image(doc, xref))
                except Exception as e:
                    message = f"Failed to extract image from object {xref}: {e}"
                    logger.warning(message)
                    warnings.append(message)
        finally:
            doc.close()

        logger.info(f"Extracted {len(images)} image(s) from PDF ({len(warnings)} skipped)")
        return images, warnings

    @staticmethod
    def _is_image(doc: fitz.Document, xref: int) -> bool:
        try:
            if not doc.xref_is_stream(xref):
                return False
            return _get_key(doc, xref, "Subtype") == ("name", "/Image")
        except Exception as e:
            logger.debug(f"Skipping unreadable object {xref}: {e}")
            return False

    @staticmethod
    def _extract_image(doc: fitz.Document, xref: int) -> PixelBuffer:
        width = _get_int(doc, xref, "Width")
        height = _get_int(doc, xref, "Height")
        if not width or not height or width <= 0 or height <= 0:
            raise ValueError(f"Missing or invalid image size: width={width}, height={height}")

        bits = _get_int(doc, xref, "BitsPerComponent")
        bits = 8 if bits is None else bits
        color_space = resolve_color_space(doc, xref)

        data = doc.xref_stream(xref) or b""

        logger.debug(
            f"PDF image {xref}: {width}x{height}, {bits} bits, "
            f"color_space={color_space}, data_len={len(data)}"
        )
        return decode_samples(data, width, height, color_space, bits)


def extract_images(document: DocumentSource) -> List[PixelBuffer]:
    """Extract embedded images from a PDF, discarding skip warnings."""
    return PdfRasterExtractor().extract(document)
