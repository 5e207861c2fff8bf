import os
import numpy as np
import imageio.v3 as iio
from typing import Any, Dict, Tuple
from filmpy.domain.errors import CaptureError
from filmpy.domain.types import ColorSpace, FilmImage
from filmpy.kernel.image.logic import uint8_to_float32, uint16_to_float32
from filmpy.kernel.image.validation import ensure_rgba

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp", ".bmp")


class ImageLoader:
    """
    Decodes 8/16-bit or float files into working-space RGBA.
    The file's pixels are taken as already encoded in `color_space`.
    """

    def __init__(self, color_space: ColorSpace = ColorSpace.DISPLAY_P3) -> None:
        self.color_space = ColorSpace(color_space)

    def load(self, file_path: str) -> Tuple[FilmImage, Dict[str, Any]]:
        ext = os.path.splitext(file_path)[1].lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise CaptureError(f"Unsupported image type: {file_path}")

        try:
            img = iio.imread(file_path)
        except (OSError, ValueError) as e:
            raise CaptureError(f"Cannot decode {file_path}: {e}") from e

        if img.ndim == 2:
            img = img[:, :, np.newaxis]
        if img.ndim != 3 or img.shape[2] not in (1, 3, 4):
            raise CaptureError(f"Unsupported pixel layout {img.shape} in {file_path}")

        if img.dtype == np.uint8:
            f32 = uint8_to_float32(np.ascontiguousarray(img))
        elif img.dtype == np.uint16:
            f32 = uint16_to_float32(np.ascontiguousarray(img))
        else:
            f32 = np.clip(img.astype(np.float32), 0, 1)

        image = FilmImage(ensure_rgba(f32), self.color_space)
        metadata = {
            "source": os.path.basename(file_path),
            "color_space": str(self.color_space),
            "bit_depth": 16 if img.dtype == np.uint16 else 8,
        }
        return image, metadata
