#!/usr/bin/env python
"""
Command-line interface for the OCR preparation pipeline.

Usage:
    ocrprep read <pdf_or_image> [options]
    ocrprep preprocess <image> <output_image> [options]

Examples:
    # Extract text from a scanned PDF
    ocrprep read scan.pdf --preset aggressive

    # Save the JSON result instead of printing it
    ocrprep read receipt.jpg --output result.json

    # Inspect what preprocessing does to an image
    ocrprep preprocess page.png page_clean.png --preset aggressive
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import LOG_FORMAT, get_config
from .errors import OcrPrepError
from .io import detect_input_type, load_image, save_image, save_json, to_json
from .pipeline import Preset, PreprocessingPipeline
from .reader import DocumentReader
from .recognition import ENGINES, create_engine

logger = logging.getLogger("ocrprep")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="ocrprep",
        description="OCR preparation pipeline - extract text from images and PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Extract text from a scanned PDF:
    ocrprep read scan.pdf --preset aggressive

  Use the heuristic confidence scorer instead of Tesseract's:
    ocrprep read photo.jpg --no-native-confidence

  Preprocess an image and save the result:
    ocrprep preprocess page.png page_clean.png --preset default
        """
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    preset_choices = [p.value for p in Preset]
    subparsers = parser.add_subparsers(dest="command", required=True)

    # read
    read_parser = subparsers.add_parser("read", help="Extract text from an image or PDF")
    read_parser.add_argument("input", help="Input image or PDF file")
    read_parser.add_argument(
        "--preset",
        choices=preset_choices,
        default=None,
        help="Preprocessing preset (default: from OCRPREP_PRESET or 'default')"
    )
    read_parser.add_argument(
        "--engine",
        choices=sorted(ENGINES),
        default=None,
        help="OCR engine (default: tesseract)"
    )
    read_parser.add_argument(
        "--lang",
        default=None,
        help="Recognition language (default: eng)"
    )
    read_parser.add_argument(
        "--no-native-confidence",
        action="store_true",
        help="Ignore engine confidence and score the text heuristically"
    )
    read_parser.add_argument(
        "--output", "-o",
        default=None,
        help="Write the JSON result to this file instead of stdout"
    )

    # preprocess
    pre_parser = subparsers.add_parser("preprocess", help="Run the preprocessing pipeline on an image")
    pre_parser.add_argument("input", help="Input image file")
    pre_parser.add_argument("output", help="Output image file")
    pre_parser.add_argument(
        "--preset",
        choices=preset_choices,
        default="default",
        help="Preprocessing preset (default: default)"
    )

    return parser


def run_read(args) -> int:
    """Recognize the text of a document and emit the JSON result."""
    config = get_config()
    if config.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.preset:
        config.preprocess.preset = args.preset
    if args.engine:
        config.recognition.engine = args.engine
    if args.lang:
        config.recognition.tesseract_lang = args.lang
    if args.no_native_confidence:
        config.recognition.native_confidence = False

    input_type = detect_input_type(args.input)
    logger.info(f"Input type detected: {input_type}")
    if input_type == "unknown" and Path(args.input).is_file():
        raise ValueError(f"Unsupported input type: {args.input}")

    engine = create_engine(config.recognition)
    reader = DocumentReader(engine, config=config)
    result = reader.read(args.input)

    for warning in result.warnings:
        logger.warning(warning)

    if args.output:
        path = save_json(result.to_dict(), args.output)
        logger.info(f"Saved JSON: {path}")
    else:
        print(to_json(result.to_dict()))

    return 0


def run_preprocess(args) -> int:
    """Preprocess a single image and save it."""
    if detect_input_type(args.input) == "pdf":
        raise ValueError(f"Expected an image, got a PDF: {args.input}")

    image = load_image(args.input)
    result = PreprocessingPipeline(args.preset).process(image)
    save_image(result.image, args.output)

    if not args.quiet:
        print(f"Preset: {result.preset}")
        for timing in result.steps:
            print(f"  {timing.name}: {timing.time_ms}ms")
        print(f"Total: {result.total_time_ms}ms")
        print(f"Output: {args.output} ({result.image.width}x{result.image.height})")

    return 0


COMMANDS = {
    "read": run_read,
    "preprocess": run_preprocess,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (OcrPrepError, FileNotFoundError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
