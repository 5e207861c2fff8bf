from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, Any, Optional
from filmpy.features.tone.models import ToneConfig
from filmpy.features.lut.models import LUTConfig
from filmpy.features.highlights.models import HighlightConfig
from filmpy.features.grain.models import GrainConfig


class ExportFormat(StrEnum):
    JPEG = "JPEG"
    TIFF = "TIFF"


@dataclass(frozen=True)
class ExposureBiasRange:
    """
    Device exposure compensation limits (EV). Defaults apply when the device does not report them.
    """

    min_ev: float = -3.0
    max_ev: float = 3.0

    def clamp(self, ev: float) -> float:
        return float(max(self.min_ev, min(self.max_ev, ev)))


@dataclass(frozen=True)
class ExportConfig:
    """
    Encoding parameters for the storage step.
    """

    export_dir: str = "export"
    export_fmt: str = ExportFormat.JPEG
    jpeg_quality: int = 90
    filename_prefix: str = "film"
    icc_profile_path: Optional[str] = None
    software: str = "FilmPy 1.0"


@dataclass(frozen=True)
class FilmConfig:
    """
    Complete look definition. Flat keys match the recognized configuration names.
    """

    tone: ToneConfig = field(default_factory=ToneConfig)
    lut: LUTConfig = field(default_factory=LUTConfig)
    highlights: HighlightConfig = field(default_factory=HighlightConfig)
    grain: GrainConfig = field(default_factory=GrainConfig)

    def to_dict(self) -> Dict[str, Any]:
        """
        Flattens for serialization.
        """
        return {
            "tone_points": [list(p) for p in self.tone.points],
            "lut_dimension": self.lut.dimension,
            "highlight_threshold": list(self.highlights.threshold),
            "desaturation_factor": self.highlights.desaturation_factor,
            "grain_intensity": self.grain.intensity,
            "grain_strength": self.grain.strength,
        }

    @classmethod
    def from_flat_dict(cls, data: Dict[str, Any]) -> "FilmConfig":
        """
        from JSON. Unknown keys are ignored, None falls back to defaults.
        """
        d = {k: v for k, v in data.items() if v is not None}

        tone = ToneConfig(points=tuple(tuple(p) for p in d["tone_points"])) if "tone_points" in d else ToneConfig()
        lut = LUTConfig(dimension=d["lut_dimension"]) if "lut_dimension" in d else LUTConfig()

        highlight_kwargs: Dict[str, Any] = {}
        if "highlight_threshold" in d:
            highlight_kwargs["threshold"] = tuple(d["highlight_threshold"])
        if "desaturation_factor" in d:
            highlight_kwargs["desaturation_factor"] = float(d["desaturation_factor"])

        grain_kwargs: Dict[str, Any] = {}
        if "grain_intensity" in d:
            grain_kwargs["intensity"] = float(d["grain_intensity"])
        if "grain_strength" in d:
            grain_kwargs["strength"] = float(d["grain_strength"])

        return cls(
            tone=tone,
            lut=lut,
            highlights=HighlightConfig(**highlight_kwargs),
            grain=GrainConfig(**grain_kwargs),
        )
