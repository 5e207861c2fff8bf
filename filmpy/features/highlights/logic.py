import numpy as np
import cv2
from numba import njit, prange  # type: ignore
from typing import List, Optional, Tuple
from filmpy.domain.types import ImageBuffer, LUMA_R, LUMA_G, LUMA_B
from filmpy.kernel.image.logic import get_luminance
from filmpy.kernel.image.validation import ensure_image
from filmpy.kernel.system.logging import get_logger

logger = get_logger(__name__)


def saturation_matrix(factor: float) -> np.ndarray:
    """
    3x3 color matrix pulling each channel toward Rec. 709 grey.
    factor=1 is identity, factor=0 is full greyscale.
    """
    weights = np.array([[LUMA_R, LUMA_G, LUMA_B]], dtype=np.float32)
    grey = np.repeat(weights, 3, axis=0)
    return (factor * np.eye(3, dtype=np.float32) + (1.0 - factor) * grey).astype(np.float32)


def luminance_mask(img: ImageBuffer, low: float = 0.7, high: float = 1.0) -> np.ndarray:
    """
    Blend weight per pixel: 0 at or below `low`, ramping to 1 at `high`.
    """
    lum = get_luminance(img)
    clamped = np.clip(lum, low, high)
    return ensure_image((clamped - low) / (high - low))


def desaturate(img: ImageBuffer, factor: float = 0.7) -> ImageBuffer:
    """
    Keeps `factor` of each pixel's saturation. Alpha unchanged.
    """
    rgb = np.ascontiguousarray(img[..., :3], dtype=np.float32)
    res = np.empty_like(img, dtype=np.float32)
    res[..., :3] = cv2.transform(rgb, saturation_matrix(factor)).reshape(rgb.shape)
    res[..., 3:] = img[..., 3:]
    return res


@njit(parallel=True, cache=True, fastmath=True)
def _blend_with_mask_jit(fg: np.ndarray, bg: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    fg where mask=1, bg where mask=0, clamped to [0, 1]. Alpha taken from bg.
    """
    h, w, c = bg.shape
    res = np.empty_like(bg)
    for y in prange(h):
        for x in range(w):
            m = mask[y, x]
            for ch in range(3):
                v = fg[y, x, ch] * m + bg[y, x, ch] * (1.0 - m)
                if v < 0.0:
                    v = 0.0
                elif v > 1.0:
                    v = 1.0
                res[y, x, ch] = v
            for ch in range(3, c):
                res[y, x, ch] = bg[y, x, ch]
    return res


def desaturate_highlights(
    img: ImageBuffer,
    threshold: Tuple[float, float] = (0.7, 1.0),
    factor: float = 0.7,
    failures: Optional[List[str]] = None,
) -> ImageBuffer:
    """
    Mutes color in bright regions, the way film highlights lose chroma.
    Cosmetic: on any failure the input is returned unchanged and the failing
    step is appended to `failures` when given.
    """
    low, high = threshold
    try:
        mask = luminance_mask(img, low, high)
        if not np.any(mask > 0.0):
            return img

        muted = desaturate(img, factor)

        # Fail-soft blend point
        return ensure_image(
            _blend_with_mask_jit(
                np.ascontiguousarray(muted),
                np.ascontiguousarray(img.astype(np.float32)),
                np.ascontiguousarray(mask),
            )
        )
    except Exception as e:
        logger.warning(f"Highlight desaturation skipped: {e}")
        if failures is not None:
            failures.append("desaturate_highlights")
        return img
