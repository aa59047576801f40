"""
Tests for embedded image extraction from PDFs.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def image_dict(width, height, color_space="/DeviceGray", bits=8):
    entries = [
        "/Type /XObject",
        "/Subtype /Image",
        f"/Width {width}",
        f"/Height {height}",
        f"/BitsPerComponent {bits}",
    ]
    if color_space:
        entries.append(f"/ColorSpace {color_space}")
    return "<< " + " ".join(entries) + " >>"


def make_pdf(objects, text=None):
    """
    Build a one-page PDF holding the given raw objects.

    Args:
        objects: List of (dictionary, stream_data) pairs; stream_data may be None.
            The token ``{prev}`` in a dictionary is replaced by the xref of
            the previous object.
        text: Optional text drawn on the page
    """
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text, fontsize=11)

    prev = None
    for dictionary, data in objects:
        xref = doc.get_new_xref()
        doc.update_object(xref, dictionary.replace("{prev}", str(prev)))
        if data is not None:
            doc.update_stream(xref, data)
        prev = xref

    pdf_bytes = doc.tobytes()
    doc.close()
    return pdf_bytes


class TestColorSpace:
    """Test color space descriptors."""

    def test_from_name(self):
        from ocrprep.pdf_images import PdfColorSpace

        assert PdfColorSpace.from_name("DeviceGray").components == 1
        assert PdfColorSpace.from_name("DeviceRGB").components == 3
        assert PdfColorSpace.from_name("DeviceCMYK").components == 4
        assert not PdfColorSpace.from_name("Indexed").is_supported

    def test_str(self):
        from ocrprep.pdf_images import PdfColorSpace

        assert str(PdfColorSpace.icc_based(4)) == "ICCBased(4)"
        assert str(PdfColorSpace.device_rgb()) == "DeviceRGB"

    def test_cmyk_to_rgb(self):
        from ocrprep.pdf_images import cmyk_to_rgb

        samples = np.array([[[0, 0, 0, 0], [0, 255, 255, 0], [0, 0, 0, 255]]], dtype=np.uint8)

        rgb = cmyk_to_rgb(samples)

        assert rgb[0, 0].tolist() == [255, 255, 255]
        assert rgb[0, 1].tolist() == [255, 0, 0]
        assert rgb[0, 2].tolist() == [0, 0, 0]


class TestDecodeSamples:
    """Test raw sample decoding."""

    def test_gray(self):
        from ocrprep.pdf_images import PdfColorSpace, decode_samples

        buf = decode_samples(bytes(range(6)), 3, 2, PdfColorSpace.device_gray())

        assert buf.channels == 1
        assert buf.pixels.tolist() == [[0, 1, 2], [3, 4, 5]]

    def test_trailing_bytes_ignored(self):
        from ocrprep.pdf_images import PdfColorSpace, decode_samples

        buf = decode_samples(bytes(10), 2, 2, PdfColorSpace.device_gray())

        assert len(buf.samples) == 4

    def test_insufficient_data(self):
        from ocrprep.pdf_images import PdfColorSpace, decode_samples

        with pytest.raises(ValueError, match="Insufficient"):
            decode_samples(bytes(5), 2, 1, PdfColorSpace.device_rgb())

    def test_unsupported_bit_depth(self):
        from ocrprep.pdf_images import PdfColorSpace, decode_samples

        with pytest.raises(ValueError, match="bits per component"):
            decode_samples(bytes(16), 4, 4, PdfColorSpace.device_gray(), bits_per_component=1)


class TestPdfRasterExtractor:
    """Test image extraction from whole documents."""

    def test_gray_image(self):
        from ocrprep.pdf_images import PdfRasterExtractor

        pdf = make_pdf([(image_dict(4, 3), bytes(range(12)))])

        extractor = PdfRasterExtractor()
        images = extractor.extract(pdf)

        assert len(images) == 1
        assert images[0].channels == 1
        assert (images[0].width, images[0].height) == (4, 3)
        assert images[0].to_bytes() == bytes(range(12))
        assert extractor.warnings == []

    def test_rgb_image(self):
        from ocrprep.pdf_images import extract_images

        data = bytes([255, 0, 0, 0, 255, 0, 0, 0, 255, 10, 20, 30])
        pdf = make_pdf([(image_dict(2, 2, "/DeviceRGB"), data)])

        images = extract_images(pdf)

        assert len(images) == 1
        assert images[0].channels == 3
        assert images[0].pixels[0, 1].tolist() == [0, 255, 0]

    def test_cmyk_image(self):
        from ocrprep.pdf_images import extract_images

        pdf = make_pdf([(image_dict(1, 1, "/DeviceCMYK"), bytes([0, 255, 255, 0]))])

        images = extract_images(pdf)

        assert images[0].channels == 3
        assert images[0].pixels[0, 0].tolist() == [255, 0, 0]

    def test_missing_color_space_defaults_to_rgb(self):
        from ocrprep.pdf_images import extract_images

        pdf = make_pdf([(image_dict(2, 2, color_space=None), bytes(12))])

        images = extract_images(pdf)

        assert images[0].channels == 3

    def test_icc_based_gray(self):
        """ICC profiles with one component decode as grayscale."""
        from ocrprep.pdf_images import extract_images

        pdf = make_pdf([
            ("<< /N 1 >>", b"not a real profile"),
            (image_dict(2, 2, "[/ICCBased {prev} 0 R]"), bytes([0, 64, 128, 255])),
        ])

        images = extract_images(pdf)

        assert len(images) == 1
        assert images[0].channels == 1
        assert images[0].to_bytes() == bytes([0, 64, 128, 255])

    def test_indirect_color_space(self):
        from ocrprep.pdf_images import extract_images

        pdf = make_pdf([
            ("/DeviceGray", None),
            (image_dict(2, 2, "{prev} 0 R"), bytes(4)),
        ])

        images = extract_images(pdf)

        assert len(images) == 1
        assert images[0].channels == 1

    def test_icc_based_rgb(self):
        """Three-component ICC profiles decode as RGB."""
        from ocrprep.pdf_images import PdfRasterExtractor

        pdf = make_pdf([
            ("<< /N 3 >>", b"not a real profile"),
            (image_dict(2, 1, "[/ICCBased {prev} 0 R]"), bytes([255, 0, 0, 0, 0, 255])),
        ])

        extractor = PdfRasterExtractor()
        images = extractor.extract(pdf)

        assert len(images) == 1
        assert images[0].channels == 3
        assert images[0].pixels.tolist() == [[[255, 0, 0], [0, 0, 255]]]
        assert extractor.warnings == []

    def test_indirect_icc_array(self):
        """A ColorSpace reference to an [/ICCBased ref] array resolves like the direct form."""
        from ocrprep.pdf_images import PdfRasterExtractor

        pdf = make_pdf([
            ("<< /N 3 >>", b"not a real profile"),
            ("[/ICCBased {prev} 0 R]", None),
            (image_dict(2, 1, "{prev} 0 R"), bytes([255, 0, 0, 0, 0, 255])),
        ])

        extractor = PdfRasterExtractor()
        images = extractor.extract(pdf)

        assert len(images) == 1
        assert images[0].channels == 3
        assert images[0].pixels.tolist() == [[[255, 0, 0], [0, 0, 255]]]
        assert extractor.warnings == []

    def test_malformed_image_skipped(self):
        """A truncated image is skipped with a warning; valid ones survive."""
        from ocrprep.pdf_images import PdfRasterExtractor

        pdf = make_pdf([
            (image_dict(4, 4), bytes(3)),
            (image_dict(2, 2, "/DeviceRGB"), bytes(12)),
        ])

        extractor = PdfRasterExtractor()
        images = extractor.extract(pdf)

        assert len(images) == 1
        assert images[0].channels == 3
        assert len(extractor.warnings) == 1
        assert "Failed to extract image from object" in extractor.warnings[0]
        assert "Insufficient" in extractor.warnings[0]

    def test_unsupported_color_space_skipped(self):
        from ocrprep.pdf_images import PdfRasterExtractor

        pdf = make_pdf([(image_dict(2, 2, "/Separation"), bytes(4))])

        images, warnings = PdfRasterExtractor().extract_with_warnings(pdf)

        assert images == []
        assert len(warnings) == 1

    def test_one_bit_image_skipped(self):
        from ocrprep.pdf_images import extract_images

        pdf = make_pdf([(image_dict(8, 8, bits=1), bytes(8))])

        assert extract_images(pdf) == []

    def test_no_images(self):
        from ocrprep.pdf_images import PdfRasterExtractor

        extractor = PdfRasterExtractor()

        assert extractor.extract(make_pdf([])) == []
        assert extractor.warnings == []

    def test_garbage_input(self):
        from ocrprep.errors import DocumentParseError
        from ocrprep.pdf_images import extract_images

        with pytest.raises(DocumentParseError):
            extract_images(b"this is not a pdf at all")

    def test_extract_from_path(self, tmp_path):
        from ocrprep.pdf_images import extract_images

        path = tmp_path / "scan.pdf"
        path.write_bytes(make_pdf([(image_dict(2, 2), bytes(4))]))

        assert len(extract_images(path)) == 1


class TestTextLayer:
    """Test direct text extraction."""

    def test_text_layer(self):
        from ocrprep.pdf_images import extract_text_layer

        text = extract_text_layer(make_pdf([], text="Quarterly report 2024"))

        assert "Quarterly report 2024" in text

    def test_no_text_layer(self):
        from ocrprep.pdf_images import extract_text_layer

        assert extract_text_layer(make_pdf([])).strip() == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
