import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional
from filmpy.kernel.system.logging import setup_logging, get_logger
from filmpy.kernel.system.config import APP_CONFIG, DEFAULT_EXPORT_CONFIG, DEFAULT_FILM_CONFIG, load_film_config
from filmpy.domain.errors import FilmPipelineError
from filmpy.domain.models import ExportFormat

logger = get_logger("filmpy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filmpy", description="Develop photos with a Portra 400 film look.")
    parser.add_argument("inputs", nargs="+", help="Image files to develop")
    parser.add_argument("--out", default=APP_CONFIG.default_export_dir, help="Export directory")
    parser.add_argument("--format", choices=[f.value for f in ExportFormat], default=ExportFormat.JPEG.value)
    parser.add_argument("--quality", type=int, default=DEFAULT_EXPORT_CONFIG.jpeg_quality, help="JPEG quality")
    parser.add_argument("--ev", type=float, default=0.0, help="Exposure bias to record (EV)")
    parser.add_argument("--config", default=None, help="JSON look definition")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else APP_CONFIG.log_level)

    from filmpy.infrastructure.capture.file_source import FileCaptureSource
    from filmpy.services.capture.coordinator import CaptureCoordinator
    from filmpy.services.export.service import ExportService
    from filmpy.services.rendering.pipeline import FilmPipeline

    try:
        film_config = load_film_config(args.config) if args.config else DEFAULT_FILM_CONFIG
        pipeline = FilmPipeline(film_config)
    except FilmPipelineError as e:
        logger.error(f"Pipeline setup failed: {e}")
        return 2

    store = ExportService(
        replace(
            DEFAULT_EXPORT_CONFIG,
            export_dir=args.out,
            export_fmt=ExportFormat(args.format),
            jpeg_quality=args.quality,
        )
    )

    failures = 0
    for path in args.inputs:
        coordinator = CaptureCoordinator(FileCaptureSource(path), pipeline, store)
        try:
            coordinator.set_exposure_bias(args.ev)
            future = coordinator.capture()
            if future is not None:
                print(future.result())
        except Exception as e:
            failures += 1
            logger.error(f"{path}: {e}")
        finally:
            coordinator.shutdown()

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
