"""
Recognition engine adapters.

Provides:
- The RecognitionEngine interface (pixel buffer -> text, optional confidence)
- A Tesseract adapter, parametrized by confidence strategy
- Engine lookup by name
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .buffer import PixelBuffer
from .config import RecognitionConfig
from .errors import RecognitionError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = [
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/bmp",
    "image/webp",
    "image/tiff",
    "application/pdf",
]


@dataclass
class Recognition:
    """Text recognized from one image."""
    text: str
    # None when the engine has no native certainty signal
    confidence: Optional[float] = None


# ============================================================================
# Engine Interface
# ============================================================================

class RecognitionEngine(ABC):
    """Interface implemented by every recognition backend."""

    name: str = ""
    description: str = ""

    @abstractmethod
    def recognize(self, image: PixelBuffer) -> Recognition:
        """Recognize text in an image."""

    def supported_formats(self) -> List[str]:
        return list(SUPPORTED_FORMATS)

    def supported_languages(self) -> List[str]:
        return []


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine(RecognitionEngine):
    """
    OCR using Tesseract.

    With ``native_confidence=False`` the engine reports no confidence, so the
    caller falls back to the heuristic scorer.
    """

    name = "tesseract"
    description = "Tesseract OCR via pytesseract - requires the tesseract binary"

    def __init__(
        self,
        language: str = "eng",
        config: str = "--oem 3 --psm 3",
        native_confidence: bool = True
    ):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise RecognitionError(
                f"Tesseract not available: {e}\n"
                "Install Tesseract: https://github.com/tesseract-ocr/tesseract"
            ) from e

        self.language = language
        self.config = config
        self.native_confidence = native_confidence

    def supported_languages(self) -> List[str]:
        try:
            return sorted(self.pytesseract.get_languages(config=""))
        except Exception as e:
            logger.warning(f"Could not list Tesseract languages: {e}")
            return [self.language]

    def recognize(self, image: PixelBuffer) -> Recognition:
        """Recognize text using Tesseract."""
        try:
            data = self.pytesseract.image_to_data(
                image.pixels,
                lang=self.language,
                config=self.config,
                output_type=self.pytesseract.Output.DICT
            )
        except Exception as e:
            raise RecognitionError(f"Tesseract error: {e}") from e

        text, confidences = parse_tesseract_data(data)

        if not self.native_confidence:
            return Recognition(text=text)

        confidence = float(np.mean(confidences)) if confidences else 0.0
        return Recognition(text=text, confidence=confidence)


def parse_tesseract_data(data: Dict[str, list]) -> Tuple[str, List[float]]:
    """
    Rebuild line-oriented text from ``image_to_data`` output.

    Returns:
        (text with one line per Tesseract line, word confidences in [0, 1])
    """
    lines: List[List[str]] = []
    confidences: List[float] = []
    current_key = None

    for i in range(len(data['text'])):
        word = str(data['text'][i]).strip()
        conf = float(data['conf'][i])

        if conf < 0 or not word:  # -1 means no valid confidence
            continue

        key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
        if key != current_key:
            lines.append([])
            current_key = key
        lines[-1].append(word)
        confidences.append(conf / 100.0)

    text = '\n'.join(' '.join(words) for words in lines)
    return text, confidences


# ============================================================================
# Engine Lookup
# ============================================================================

ENGINES = {
    "tesseract": TesseractEngine,
}


def create_engine(config: Optional[RecognitionConfig] = None) -> RecognitionEngine:
    """
    Create the engine named in ``config``.

    Raises:
        ValueError: If the engine name is unknown
        RecognitionError: If the engine cannot be initialized
    """
    config = config or RecognitionConfig()
    if config.engine not in ENGINES:
        raise ValueError(
            f"Unknown OCR engine '{config.engine}'. Available engines: {sorted(ENGINES)}"
        )

    engine = ENGINES[config.engine](
        language=config.tesseract_lang,
        config=config.tesseract_config,
        native_confidence=config.native_confidence
    )
    logger.info(f"Initialized OCR engine: {engine.name}")
    return engine
