from dataclasses import dataclass
from typing import Tuple
from filmpy.domain.errors import PipelineConfigurationError

ControlPoint = Tuple[float, float]

# Portra-style response: lifted black, soft toe, slightly flattened mids,
# shoulder starting at 0.85 and a soft clip below 1.0.
PORTRA_TONE_POINTS: Tuple[ControlPoint, ...] = (
    (0.0, 0.03),
    (0.15, 0.12),
    (0.5, 0.48),
    (0.85, 0.82),
    (1.0, 0.97),
)

TONE_CONSTANTS = {
    "point_count": 5,
    "table_size": 65536,
}


@dataclass(frozen=True)
class ToneConfig:
    """
    Filmic curve control points (input, output).
    """

    points: Tuple[ControlPoint, ...] = PORTRA_TONE_POINTS

    def __post_init__(self) -> None:
        points = tuple((float(x), float(y)) for x, y in self.points)
        object.__setattr__(self, "points", points)

        if len(points) != TONE_CONSTANTS["point_count"]:
            raise PipelineConfigurationError(f"Tone curve needs exactly {TONE_CONSTANTS['point_count']} points, got {len(points)}")

        for x, y in points:
            if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
                raise PipelineConfigurationError(f"Tone curve point {(x, y)} outside [0, 1]")

        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        if any(b <= a for a, b in zip(xs, xs[1:])):
            raise PipelineConfigurationError("Tone curve inputs must be strictly increasing")
        if any(b < a for a, b in zip(ys, ys[1:])):
            raise PipelineConfigurationError("Tone curve outputs must be non-decreasing")
