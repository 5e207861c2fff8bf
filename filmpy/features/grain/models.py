import math
from dataclasses import dataclass
from filmpy.domain.errors import PipelineConfigurationError

GRAIN_CONSTANTS = {
    "mono_weight": 0.33,
    "bias": 0.5,
}


@dataclass(frozen=True)
class GrainConfig:
    """
    Grain amplitude and how much of the overlay result survives.
    """

    intensity: float = 0.04
    strength: float = 0.3

    def __post_init__(self) -> None:
        if not math.isfinite(self.intensity) or self.intensity < 0.0:
            raise PipelineConfigurationError(f"Grain intensity must be a finite value >= 0, got {self.intensity}")
        if not (0.0 <= self.strength <= 1.0):
            raise PipelineConfigurationError(f"Grain strength must be in [0, 1], got {self.strength}")
