from dataclasses import dataclass
from typing import Tuple
from filmpy.domain.errors import PipelineConfigurationError


@dataclass(frozen=True)
class HighlightConfig:
    """
    Luminance band where desaturation ramps in, and saturation kept there.
    """

    threshold: Tuple[float, float] = (0.7, 1.0)
    desaturation_factor: float = 0.7

    def __post_init__(self) -> None:
        low, high = (float(v) for v in self.threshold)
        object.__setattr__(self, "threshold", (low, high))

        if not (0.0 <= low < high <= 1.0):
            raise PipelineConfigurationError(f"Highlight threshold must satisfy 0 <= low < high <= 1, got {self.threshold}")
        if not (0.0 <= self.desaturation_factor <= 1.0):
            raise PipelineConfigurationError(f"Desaturation factor must be in [0, 1], got {self.desaturation_factor}")
