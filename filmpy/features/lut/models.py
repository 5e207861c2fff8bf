from dataclasses import dataclass
from typing import Dict, Any
from filmpy.domain.errors import PipelineConfigurationError

# Synthetic Portra 400 cube recipe. Additive shifts, applied in order.
LUT_CONSTANTS: Dict[str, Any] = {
    "default_dimension": 64,
    "midtone_band": (0.2, 0.8),
    "midtone_red": 0.05,
    "midtone_blue": -0.02,
    "shadow_ceiling": 0.3,
    "shadow_blue": 0.04,
    "shadow_green": 0.02,
    "skin_red_floor": 0.4,
    "skin_luma_band": (0.3, 0.7),
    "skin_red": 0.03,
    "skin_green": 0.01,
    "global_red": 0.02,
    "global_green": 0.01,
}


def validate_dimension(dimension: Any) -> int:
    """
    Cube side length must be an integer >= 2.
    """
    if isinstance(dimension, bool) or not isinstance(dimension, int):
        raise PipelineConfigurationError(f"LUT dimension must be an integer, got {dimension!r}")
    if dimension <= 1:
        raise PipelineConfigurationError(f"LUT dimension must be > 1, got {dimension}")
    return dimension


@dataclass(frozen=True)
class LUTConfig:
    dimension: int = LUT_CONSTANTS["default_dimension"]

    def __post_init__(self) -> None:
        validate_dimension(self.dimension)
