import os
import json
from typing import Any, Dict
from filmpy.domain.types import AppConfig
from filmpy.domain.models import FilmConfig, ExportConfig, ExportFormat
from filmpy.domain.errors import PipelineConfigurationError
from filmpy.features.tone.models import ToneConfig, PORTRA_TONE_POINTS
from filmpy.features.lut.models import LUTConfig
from filmpy.features.highlights.models import HighlightConfig
from filmpy.features.grain.models import GrainConfig


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        raise PipelineConfigurationError(f"{name} must be an integer, got {raw!r}")


BASE_USER_DIR = os.path.abspath(os.getenv("FILMPY_USER_DIR", "user"))
APP_CONFIG = AppConfig(
    user_dir=BASE_USER_DIR,
    default_export_dir=os.path.join(BASE_USER_DIR, "export"),
    # One full-resolution develop at a time
    max_workers=_env_int("FILMPY_MAX_WORKERS", 1),
    log_level=os.getenv("FILMPY_LOG_LEVEL", "INFO"),
)


DEFAULT_FILM_CONFIG = FilmConfig(
    tone=ToneConfig(points=PORTRA_TONE_POINTS),
    lut=LUTConfig(dimension=64),
    highlights=HighlightConfig(threshold=(0.7, 1.0), desaturation_factor=0.7),
    grain=GrainConfig(intensity=0.04, strength=0.3),
)


DEFAULT_EXPORT_CONFIG = ExportConfig(
    export_dir=APP_CONFIG.default_export_dir,
    export_fmt=ExportFormat.JPEG,
    jpeg_quality=90,
)


def load_film_config(path: str) -> FilmConfig:
    """
    Reads a flat JSON look definition. Missing keys keep their defaults.
    """
    try:
        with open(path, "r") as f:
            data: Dict[str, Any] = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PipelineConfigurationError(f"Cannot read film config {path}: {e}") from e

    if not isinstance(data, dict):
        raise PipelineConfigurationError(f"Film config {path} must be a JSON object")

    return FilmConfig.from_flat_dict(data)
