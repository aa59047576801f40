"""
Preset-driven preprocessing pipeline.

A preset selects a fixed sequence of steps from ``ocrprep.steps``. Every step
is timed individually, and a failing step aborts the whole run.
"""

import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Union

from . import steps
from .buffer import PixelBuffer
from .errors import PreprocessingError, StepFailure

logger = logging.getLogger(__name__)


@functools.total_ordering
class Preset(Enum):
    """Preprocessing presets, in order of increasing processing cost."""
    NONE = "none"
    MINIMAL = "minimal"
    DEFAULT = "default"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, name: Union[str, "Preset"]) -> "Preset":
        """Parse a preset name case-insensitively."""
        if isinstance(name, Preset):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown preset '{name}'. Expected one of: {choices}") from None

    @property
    def rank(self) -> int:
        return list(Preset).index(self)

    def __lt__(self, other):
        if not isinstance(other, Preset):
            return NotImplemented
        return self.rank < other.rank

    @property
    def steps(self) -> Tuple[str, ...]:
        return PRESET_STEPS[self]


PRESET_STEPS: Dict[Preset, Tuple[str, ...]] = {
    Preset.NONE: (),
    Preset.MINIMAL: ("grayscale",),
    Preset.DEFAULT: ("grayscale", "resize", "normalize", "sharpen"),
    Preset.AGGRESSIVE: (
        "grayscale", "resize", "denoise", "normalize", "sharpen", "deskew", "threshold"
    ),
}


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class StepTiming:
    """Elapsed time of a single step."""
    name: str
    time_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "time_ms": self.time_ms}


@dataclass
class PipelineResult:
    """Result of running the pipeline on one image."""
    image: PixelBuffer
    preset: str
    total_time_ms: int = 0
    steps: List[StepTiming] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Preprocessing stats, without the image."""
        return {
            "preset": self.preset,
            "total_time_ms": self.total_time_ms,
            "steps": [s.to_dict() for s in self.steps],
        }


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


# ============================================================================
# Pipeline
# ============================================================================

class PreprocessingPipeline:
    """
    Applies the step sequence of a preset to an image.

    Example:
        pipeline = PreprocessingPipeline("aggressive")
        result = pipeline.process(image)
        print([s.name for s in result.steps])
    """

    def __init__(self, preset: Union[str, Preset] = Preset.DEFAULT):
        self.preset = Preset.parse(preset)

    def process(self, image: PixelBuffer) -> PipelineResult:
        """
        Process an image according to the configured preset.

        Args:
            image: Input image

        Returns:
            PipelineResult with the processed image and step timings

        Raises:
            StepFailure: If any step fails; remaining steps are not run
        """
        if not isinstance(image, PixelBuffer):
            raise PreprocessingError(f"Expected a PixelBuffer, got {type(image).__name__}")

        if self.preset is Preset.NONE:
            return PipelineResult(image=image, preset=self.preset.value)

        start = time.perf_counter()
        timings: List[StepTiming] = []
        processed = image

        for name in self.preset.steps:
            processed = self._run_step(name, processed, timings)

        result = PipelineResult(
            image=processed,
            preset=self.preset.value,
            total_time_ms=_elapsed_ms(start),
            steps=timings,
        )
        logger.info(
            f"Preprocessing ({self.preset.value}) complete in {result.total_time_ms}ms: "
            f"{' -> '.join(t.name for t in timings)}"
        )
        return result

    def process_encoded(self, data: bytes) -> PipelineResult:
        """
        Decode an encoded image (PNG, JPEG, ...) and process it.

        Raises:
            DecodeFailure: If the bytes are not a decodable image
            StepFailure: If any step fails
        """
        from .io import decode_image

        return self.process(decode_image(data))

    def _run_step(self, name: str, image: PixelBuffer, timings: List[StepTiming]) -> PixelBuffer:
        step_fn = steps.STEPS[name]
        step_start = time.perf_counter()
        try:
            result = step_fn(image)
        except Exception as e:
            logger.error(f"Preprocessing step '{name}' failed: {e}")
            raise StepFailure(name, e) from e
        timings.append(StepTiming(name=name, time_ms=_elapsed_ms(step_start)))
        return result


def preprocess_image(image: PixelBuffer, preset: Union[str, Preset] = Preset.DEFAULT) -> PipelineResult:
    """Run a one-off pipeline over ``image``."""
    return PreprocessingPipeline(preset).process(image)
