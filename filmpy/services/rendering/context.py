from dataclasses import dataclass
import numpy as np
from filmpy.domain.errors import PipelineConfigurationError, ColorSpaceMismatchError
from filmpy.domain.types import ColorSpace, FilmImage
from filmpy.kernel.image.logic import float_to_uint8, float_to_uint16


@dataclass(frozen=True)
class RenderContext:
    """
    Shared color configuration for every stage and the single point where
    a processed image becomes integer pixel data.
    """

    working_color_space: ColorSpace = ColorSpace.DISPLAY_P3
    output_color_space: ColorSpace = ColorSpace.DISPLAY_P3

    def __post_init__(self) -> None:
        try:
            working = ColorSpace(self.working_color_space)
            output = ColorSpace(self.output_color_space)
        except ValueError as e:
            raise PipelineConfigurationError(f"Unknown color space: {e}") from e

        # No stage converts color; in and out must agree.
        if working != output:
            raise PipelineConfigurationError(f"Output color space {output} differs from working space {working}")

        object.__setattr__(self, "working_color_space", working)
        object.__setattr__(self, "output_color_space", output)

    def check(self, image: FilmImage) -> None:
        if image.color_space != self.working_color_space:
            raise ColorSpaceMismatchError(f"Image is in {image.color_space}, pipeline works in {self.working_color_space}")

    def render(self, image: FilmImage, bit_depth: int = 8) -> np.ndarray:
        """
        Materializes RGBA pixels (uint8 or uint16) over the image extent.
        """
        self.check(image)
        if bit_depth == 8:
            return float_to_uint8(image.data)
        if bit_depth == 16:
            return float_to_uint16(image.data)
        raise ValueError(f"Unsupported bit depth: {bit_depth}")
