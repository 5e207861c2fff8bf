from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray

ImageBuffer = NDArray[np.float32]
Dimensions = Tuple[int, int]

# Rec. 709 / BT.709
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722


class ColorSpace(StrEnum):
    DISPLAY_P3 = "Display P3"
    SRGB = "sRGB"
    ADOBE_RGB = "Adobe RGB"
    REC2020 = "Rec 2020"


@dataclass(frozen=True)
class Extent:
    """
    Pixel rectangle (origin + size).
    """

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def of(cls, buffer: np.ndarray) -> "Extent":
        h, w = buffer.shape[:2]
        return cls(0, 0, int(w), int(h))

    @property
    def size(self) -> Dimensions:
        """(Height, Width)"""
        return self.height, self.width

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: "Extent") -> "Extent":
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.x + self.width, other.x + other.width)
        y1 = min(self.y + self.height, other.y + other.height)
        return Extent(x0, y0, max(0, x1 - x0), max(0, y1 - y0))


@dataclass(frozen=True)
class FilmImage:
    """
    Immutable RGBA float32 image in a named working color space.
    Takes ownership of `data` and marks it read-only.
    """

    data: ImageBuffer
    color_space: ColorSpace = ColorSpace.DISPLAY_P3
    extent: Optional[Extent] = field(default=None)

    def __post_init__(self) -> None:
        if self.data.ndim != 3 or self.data.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA buffer, got {self.data.shape}")
        if self.data.dtype != np.float32:
            raise ValueError(f"Expected float32 buffer, got {self.data.dtype}")

        extent = self.extent or Extent.of(self.data)
        if extent.size != self.data.shape[:2]:
            raise ValueError(f"Extent {extent} does not match buffer {self.data.shape[:2]}")
        object.__setattr__(self, "extent", extent)
        object.__setattr__(self, "color_space", ColorSpace(self.color_space))
        self.data.flags.writeable = False

    @classmethod
    def from_array(
        cls,
        data: np.ndarray,
        color_space: ColorSpace = ColorSpace.DISPLAY_P3,
        extent: Optional[Extent] = None,
    ) -> "FilmImage":
        """
        Copies an (H, W, 3|4) array into a new image. Missing alpha is opaque.
        """
        from filmpy.kernel.image.validation import ensure_rgba

        return cls(ensure_rgba(np.array(data, dtype=np.float32, copy=True)), color_space, extent)

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    def with_data(self, data: ImageBuffer) -> "FilmImage":
        """Same color space and extent, new pixels."""
        return replace(self, data=data)


@dataclass(frozen=True)
class AppConfig:
    """
    Process-level settings (paths, workers).
    """

    user_dir: str
    default_export_dir: str
    max_workers: int
    log_level: str
