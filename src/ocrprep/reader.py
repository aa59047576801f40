"""
Document reader: raw bytes in, recognized text out.

Orchestrates the full flow:
1. PDFs with a usable text layer are answered directly
2. Otherwise embedded images are extracted from the PDF
3. Each image is preprocessed and passed to the recognition engine
4. Confidence comes from the engine, or from the heuristic scorer
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .buffer import PixelBuffer
from .config import ReaderConfig
from .confidence import ConfidenceScorer
from .errors import PreprocessingError, RecognitionError
from .io import decode_image, is_pdf_bytes, read_input
from .pdf_images import PdfRasterExtractor, extract_text_layer
from .pipeline import PipelineResult, PreprocessingPipeline
from .recognition import Recognition, RecognitionEngine

logger = logging.getLogger(__name__)

ReaderSource = Union[bytes, bytearray, str, Path, PixelBuffer]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class OCRResult:
    """Complete OCR result for a document."""
    text: str
    confidence: float
    processing_time_ms: int = 0
    warnings: List[str] = field(default_factory=list)
    engine: Optional[str] = None
    # None if preprocessing was skipped
    preprocessing: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return bool(self.text)

    @property
    def preprocessing_time_ms(self) -> int:
        return (self.preprocessing or {}).get("total_time_ms", 0)

    @property
    def preprocessing_preset(self) -> Optional[str]:
        return (self.preprocessing or {}).get("preset")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "processing_time_ms": self.processing_time_ms,
            "warnings": self.warnings,
            "engine": self.engine,
            "preprocessing": self.preprocessing,
        }

    def to_metadata(self) -> Dict[str, Any]:
        """Compact form suitable for storing next to the source file."""
        return {
            "ocr_text": self.text,
            "ocr_confidence": self.confidence,
            "ocr_engine": self.engine,
            "ocr_processed_at": datetime.now(timezone.utc).isoformat(),
        }


def merge_preprocessing_stats(results: List[PipelineResult]) -> Optional[Dict[str, Any]]:
    """
    Combine the stats of several pipeline runs.

    Step times are summed by name, in order of first execution.
    """
    if not results or results[0].preset == "none":
        return None

    step_times: Dict[str, int] = {}
    for result in results:
        for timing in result.steps:
            step_times[timing.name] = step_times.get(timing.name, 0) + timing.time_ms

    return {
        "preset": results[0].preset,
        "total_time_ms": sum(r.total_time_ms for r in results),
        "steps": [{"name": name, "time_ms": ms} for name, ms in step_times.items()],
    }


# ============================================================================
# Reader
# ============================================================================

class DocumentReader:
    """
    Extracts text from images and PDFs.

    Example:
        engine = create_engine()
        reader = DocumentReader(engine)
        result = reader.read("scan.pdf")
        print(result.text, result.confidence)
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        config: Optional[ReaderConfig] = None,
        scorer: Optional[ConfidenceScorer] = None
    ):
        self.engine = engine
        self.config = config or ReaderConfig()
        self.scorer = scorer or ConfidenceScorer()
        self.pipeline = PreprocessingPipeline(self.config.preprocess.preset)
        self.extractor = PdfRasterExtractor()

    def read(self, source: ReaderSource) -> OCRResult:
        """
        Recognize the text of a document.

        Args:
            source: Encoded image or PDF bytes, a file path, or a decoded PixelBuffer

        Returns:
            OCRResult with text, confidence, warnings and preprocessing stats

        Raises:
            DocumentParseError: If a PDF cannot be parsed
            PreprocessingError: If a standalone image cannot be decoded or preprocessed
            RecognitionError: If the engine fails on a standalone image
            ValueError: If the input exceeds the configured size limit
        """
        start = time.perf_counter()

        if isinstance(source, PixelBuffer):
            result = self._read_buffer(source)
        else:
            data = self._load(source)
            if is_pdf_bytes(data):
                result = self._read_pdf(data)
            else:
                result = self._read_buffer(decode_image(data))

        result.processing_time_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Read document: {len(result.text)} chars, confidence {result.confidence:.2f}, "
            f"{len(result.warnings)} warning(s), {result.processing_time_ms}ms"
        )
        return result

    def _load(self, source: Union[bytes, bytearray, str, Path]) -> bytes:
        max_size = self.config.max_file_size
        if isinstance(source, (bytes, bytearray)):
            if len(source) > max_size:
                raise ValueError(f"File too large: {len(source)} bytes (max: {max_size} bytes)")
            return bytes(source)
        return read_input(source, max_size=max_size)

    def _confidence(self, recognition: Recognition) -> float:
        if recognition.confidence is not None:
            return recognition.confidence
        return self.scorer.score(recognition.text)

    def _read_buffer(self, image: PixelBuffer) -> OCRResult:
        preprocessed = self.pipeline.process(image)
        recognition = self.engine.recognize(preprocessed.image)
        return OCRResult(
            text=recognition.text,
            confidence=self._confidence(recognition),
            engine=self.engine.name,
            preprocessing=merge_preprocessing_stats([preprocessed]),
        )

    def _read_pdf(self, data: bytes) -> OCRResult:
        pdf_config = self.config.pdf
        warnings: List[str] = []

        # First, try to extract text directly from the PDF
        direct_text = extract_text_layer(data).strip()
        if len(direct_text) > pdf_config.min_direct_text_length:
            logger.info(f"Extracted {len(direct_text)} chars of text directly from PDF")
            return OCRResult(
                text=direct_text,
                confidence=pdf_config.direct_text_confidence,
                engine=self.engine.name,
            )

        logger.info("PDF has no embedded text, attempting to extract images for OCR")
        warnings.append("PDF appears to be scanned/image-based, extracting images for OCR")

        images, skipped = self.extractor.extract_with_warnings(data)
        warnings.extend(skipped)

        if not images:
            warnings.append("No text or images found in PDF")
            return OCRResult(text="", confidence=0.0, warnings=warnings, engine=self.engine.name)

        texts: List[str] = []
        confidences: List[float] = []
        pipeline_results: List[PipelineResult] = []

        for i, image in enumerate(images):
            logger.info(f"Processing image {i + 1} of {len(images)} from PDF")
            try:
                preprocessed = self.pipeline.process(image)
                recognition = self.engine.recognize(preprocessed.image)
            except (PreprocessingError, RecognitionError) as e:
                warnings.append(f"Failed to OCR image {i + 1}: {e}")
                continue

            pipeline_results.append(preprocessed)
            if recognition.text:
                texts.append(recognition.text)
                confidences.append(self._confidence(recognition))

        combined = pdf_config.page_separator.join(texts)
        confidence = float(np.mean(confidences)) if confidences else 0.0

        return OCRResult(
            text=combined,
            confidence=confidence,
            warnings=warnings,
            engine=self.engine.name,
            preprocessing=merge_preprocessing_stats(pipeline_results),
        )
