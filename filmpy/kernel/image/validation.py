import numpy as np
from filmpy.domain.types import ImageBuffer


def ensure_image(img: np.ndarray) -> ImageBuffer:
    """
    Contiguous float32 view/copy of a kernel result.
    """
    if img.dtype != np.float32:
        img = img.astype(np.float32)
    return np.ascontiguousarray(img)


def ensure_rgba(img: np.ndarray) -> ImageBuffer:
    """
    Broadens grey, RGB or RGBA arrays to contiguous float32 RGBA with opaque default alpha.
    """
    img = ensure_image(img)

    if img.ndim == 2:
        img = img[:, :, np.newaxis]
    if img.ndim != 3:
        raise ValueError(f"Unsupported image shape {img.shape}")

    channels = img.shape[2]
    if channels == 4:
        return img
    if channels == 1:
        img = np.concatenate([img] * 3, axis=-1)
        channels = 3
    if channels == 3:
        alpha = np.ones(img.shape[:2] + (1,), dtype=np.float32)
        return np.ascontiguousarray(np.concatenate([img, alpha], axis=-1))

    raise ValueError(f"Unsupported channel count {channels}")
