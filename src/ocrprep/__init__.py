"""
OCR Preparation Pipeline
========================

Turns raster images and PDFs into pixels a recognition engine can read well,
and judges the text it returns.

Main components:
- Image preprocessing steps and preset pipelines
- Embedded image extraction from PDFs
- Heuristic confidence scoring
- Recognition engine adapters and a document reader
"""

__version__ = "1.0.0"

from .buffer import PixelBuffer
from .confidence import ConfidenceScorer, ConfidenceSignal, score_text
from .errors import (
    DecodeFailure,
    DocumentParseError,
    OcrPrepError,
    PreprocessingError,
    RecognitionError,
    StepError,
    StepFailure,
)
from .pdf_images import PdfColorSpace, PdfRasterExtractor, extract_images
from .pipeline import PipelineResult, Preset, PreprocessingPipeline, StepTiming, preprocess_image
from .reader import DocumentReader, OCRResult
from .recognition import Recognition, RecognitionEngine, TesseractEngine, create_engine

__all__ = [
    "PixelBuffer",
    # Preprocessing
    "Preset", "PreprocessingPipeline", "PipelineResult", "StepTiming", "preprocess_image",
    # PDF
    "PdfRasterExtractor", "PdfColorSpace", "extract_images",
    # Confidence
    "ConfidenceScorer", "ConfidenceSignal", "score_text",
    # Recognition
    "Recognition", "RecognitionEngine", "TesseractEngine", "create_engine",
    "DocumentReader", "OCRResult",
    # Errors
    "OcrPrepError", "StepError", "PreprocessingError", "DecodeFailure", "StepFailure",
    "DocumentParseError", "RecognitionError",
]
