"""
Exception types raised by the preparation pipeline.
"""

from typing import Optional


class OcrPrepError(Exception):
    """Base class for all errors raised by ocrprep."""


class StepError(OcrPrepError):
    """A single preprocessing step could not transform its input."""


class PreprocessingError(OcrPrepError):
    """Preprocessing of an image failed; no partial image is available."""


class DecodeFailure(PreprocessingError):
    """Encoded image bytes could not be decoded into a pixel buffer."""


class StepFailure(PreprocessingError):
    """A named step failed and the remaining sequence was aborted."""

    def __init__(self, step_name: str, cause: Optional[BaseException] = None):
        self.step_name = step_name
        self.cause = cause
        message = f"Preprocessing step '{step_name}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DocumentParseError(OcrPrepError):
    """The document could not be parsed as a valid PDF."""


class RecognitionError(OcrPrepError):
    """The recognition engine is unavailable or failed on an image."""
