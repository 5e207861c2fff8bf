import numpy as np
import cv2
from numba import njit, prange  # type: ignore
from typing import List, Optional, Tuple
from filmpy.domain.types import Extent, ImageBuffer
from filmpy.features.grain.models import GRAIN_CONSTANTS
from filmpy.kernel.image.validation import ensure_image
from filmpy.kernel.system.logging import get_logger

logger = get_logger(__name__)

# Flat channel average
MONO_MATRIX = np.full((3, 3), GRAIN_CONSTANTS["mono_weight"], dtype=np.float32)


def generate_noise(height: int, width: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Uncorrelated uniform [0, 1) RGB noise. A fresh generator is used unless one is injected.
    """
    gen = rng if rng is not None else np.random.default_rng()
    return gen.random((height, width, 3), dtype=np.float32)


def to_monochrome(noise: np.ndarray) -> np.ndarray:
    """
    Same value on every channel, so grain carries no color.
    """
    src = np.ascontiguousarray(noise, dtype=np.float32)
    return ensure_image(cv2.transform(src, MONO_MATRIX).reshape(src.shape))


def scale_grain(mono: np.ndarray, intensity: float, bias: float = GRAIN_CONSTANTS["bias"]) -> np.ndarray:
    """
    Shrinks grain amplitude and lifts it to sit around the overlay neutral point (0.5).
    """
    return ensure_image(mono * np.float32(intensity) + np.float32(bias))


@njit(parallel=True, cache=True, fastmath=True)
def _overlay_blend_jit(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """
    Overlay: multiply below base 0.5, screen above. Alpha taken from base.
    """
    h, w, c = base.shape
    res = np.empty_like(base)
    for y in prange(h):
        for x in range(w):
            for ch in range(3):
                b = base[y, x, ch]
                s = blend[y, x, ch]
                if b <= 0.5:
                    res[y, x, ch] = 2.0 * b * s
                else:
                    res[y, x, ch] = 1.0 - 2.0 * (1.0 - b) * (1.0 - s)
            for ch in range(3, c):
                res[y, x, ch] = base[y, x, ch]
    return res


@njit(parallel=True, cache=True, fastmath=True)
def _source_atop_jit(src: np.ndarray, src_alpha: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """
    Source-atop on straight (non-premultiplied) RGBA.
    Premultiplied Cs*Da + Cd*(1 - Sa) with result alpha Da, divided back by Da,
    leaves S*Sa + D*(1 - Sa) for color. Result keeps dst alpha.
    """
    h, w, c = dst.shape
    res = np.empty_like(dst)
    for y in prange(h):
        for x in range(w):
            a = src_alpha[y, x]
            for ch in range(3):
                v = src[y, x, ch] * a + dst[y, x, ch] * (1.0 - a)
                if v < 0.0:
                    v = 0.0
                elif v > 1.0:
                    v = 1.0
                res[y, x, ch] = v
            for ch in range(3, c):
                res[y, x, ch] = dst[y, x, ch]
    return res


def overlay_blend(base: ImageBuffer, blend: np.ndarray) -> ImageBuffer:
    return ensure_image(
        _overlay_blend_jit(
            np.ascontiguousarray(base.astype(np.float32)),
            np.ascontiguousarray(blend.astype(np.float32)),
        )
    )


def attenuate(layer: ImageBuffer, base: ImageBuffer, strength: float) -> ImageBuffer:
    """
    Keeps `strength` of the layer, the rest from base. Alpha from base.
    """
    res = np.empty_like(base, dtype=np.float32)
    s = np.float32(strength)
    res[..., :3] = layer[..., :3] * s + base[..., :3] * (np.float32(1.0) - s)
    res[..., 3:] = base[..., 3:]
    return res


def source_atop(src: ImageBuffer, src_alpha: np.ndarray, dst: ImageBuffer) -> ImageBuffer:
    return ensure_image(
        _source_atop_jit(
            np.ascontiguousarray(src.astype(np.float32)),
            np.ascontiguousarray(src_alpha.astype(np.float32)),
            np.ascontiguousarray(dst.astype(np.float32)),
        )
    )


def grain_layer(
    image_extent: Extent,
    extent: Extent,
    intensity: float,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Scaled grain cropped to `extent` and placed in image coordinates.
    Returns (rgb, alpha); outside the grain extent rgb is neutral 0.5 and alpha is 0.
    """
    h, w = image_extent.size
    rgb = np.full((h, w, 3), GRAIN_CONSTANTS["bias"], dtype=np.float32)
    alpha = np.zeros((h, w), dtype=np.float32)

    region = extent.intersection(image_extent)
    if region.is_empty:
        return rgb, alpha

    noise = generate_noise(region.height, region.width, rng)
    scaled = scale_grain(to_monochrome(noise), intensity)

    top = region.y - image_extent.y
    left = region.x - image_extent.x
    rgb[top : top + region.height, left : left + region.width] = scaled
    alpha[top : top + region.height, left : left + region.width] = 1.0
    return rgb, alpha


def add_film_grain(
    img: ImageBuffer,
    extent: Extent,
    intensity: float = 0.04,
    strength: float = 0.3,
    image_extent: Optional[Extent] = None,
    rng: Optional[np.random.Generator] = None,
    failures: Optional[List[str]] = None,
) -> ImageBuffer:
    """
    Monochrome grain: noise -> mono -> scale/bias -> overlay -> attenuate -> source-atop.
    Cosmetic: a failing step returns the best result produced so far and is
    appended to `failures` when given.
    """
    image_extent = image_extent or Extent.of(img)

    # Fail-soft blend point 1: input returned as-is
    try:
        layer_rgb, layer_alpha = grain_layer(image_extent, extent, intensity, rng)
        blended = overlay_blend(img, layer_rgb)
    except Exception as e:
        logger.warning(f"Film grain skipped: {e}")
        if failures is not None:
            failures.append("grain_overlay")
        return img

    # Fail-soft blend point 2: full-strength overlay returned
    try:
        faded = attenuate(blended, img, strength)
        return source_atop(faded, layer_alpha, img)
    except Exception as e:
        logger.warning(f"Film grain attenuation skipped: {e}")
        if failures is not None:
            failures.append("grain_composite")
        return blended
