"""
Configuration and constants for the OCR preparation pipeline.

This module provides:
- Step parameters (resize targets, Sauvola window, deskew search ranges)
- Preprocessing, recognition and PDF settings
- Environment overrides
"""

import os
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# ============================================================================
# Step Parameters
# ============================================================================

# Resize
TARGET_DPI = 300
ASSUMED_INPUT_DPI = 72
MAX_DIMENSION = 4000
MIN_DIMENSION = 300
RESIZE_SKIP_TOLERANCE = (0.95, 1.05)

# Sharpen (discrete Laplacian)
SHARPEN_KERNEL = (
    (0, -1, 0),
    (-1, 5, -1),
    (0, -1, 0),
)

# Deskew
DARK_PIXEL_THRESHOLD = 128
DESKEW_COARSE_RANGE = 5.0
DESKEW_COARSE_STEP = 0.5
DESKEW_FINE_RANGE = 0.5
DESKEW_FINE_STEP = 0.1
DESKEW_MIN_ANGLE = 0.1

# Sauvola threshold
SAUVOLA_WINDOW = 15
SAUVOLA_K = 0.2
SAUVOLA_R = 128.0


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class PreprocessConfig:
    """Image preprocessing configuration."""
    preset: str = "default"  # none, minimal, default, aggressive


@dataclass
class RecognitionConfig:
    """Recognition engine configuration."""
    engine: str = "tesseract"
    tesseract_lang: str = "eng"
    tesseract_config: str = "--oem 3 --psm 3"
    # When False the engine reports no confidence and the heuristic scorer is used
    native_confidence: bool = True


@dataclass
class PdfConfig:
    """PDF handling configuration."""
    # Text layers this short are treated as a scanned document
    min_direct_text_length: int = 10
    page_separator: str = "\n\n"
    direct_text_confidence: float = 0.95


@dataclass
class ReaderConfig:
    """Main reader configuration."""
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    pdf: PdfConfig = field(default_factory=PdfConfig)

    max_file_size: int = 50 * 1024 * 1024
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> ReaderConfig:
    """Get the default reader configuration with environment overrides."""
    from .pipeline import Preset

    config = ReaderConfig()

    preset = os.environ.get("OCRPREP_PRESET")
    if preset:
        config.preprocess.preset = Preset.parse(preset).value

    if os.environ.get("OCRPREP_LANG"):
        config.recognition.tesseract_lang = os.environ["OCRPREP_LANG"]

    if os.environ.get("OCRPREP_ENGINE"):
        config.recognition.engine = os.environ["OCRPREP_ENGINE"]

    if os.environ.get("OCRPREP_DEBUG", "").lower() == "true":
        config.debug_mode = True

    max_size = os.environ.get("OCRPREP_MAX_FILE_SIZE")
    if max_size:
        try:
            config.max_file_size = int(max_size)
        except ValueError:
            logger.warning(f"Ignoring invalid OCRPREP_MAX_FILE_SIZE: {max_size!r}")

    return config
