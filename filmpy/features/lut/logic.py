import numpy as np
from numba import njit, prange  # type: ignore
from filmpy.domain.types import ImageBuffer, LUMA_R, LUMA_G, LUMA_B
from filmpy.features.lut.models import LUT_CONSTANTS, validate_dimension
from filmpy.kernel.image.validation import ensure_image


def build_lut(dimension: int = LUT_CONSTANTS["default_dimension"]) -> np.ndarray:
    """
    Synthetic Portra 400 cube, shape (D, D, D, 4) indexed [r, g, b].
    Pure: the same dimension always yields bit-identical tables. Returned read-only.
    """
    d = validate_dimension(dimension)
    k = LUT_CONSTANTS

    axis = (np.arange(d, dtype=np.float32) / np.float32(d - 1)).astype(np.float32)
    r, g, b = np.meshgrid(axis, axis, axis, indexing="ij")
    luma = np.float32(LUMA_R) * r + np.float32(LUMA_G) * g + np.float32(LUMA_B) * b

    out_r = r.copy()
    out_g = g.copy()
    out_b = b.copy()

    # 1. Midtone warmth, peaks at luma 0.5
    mid_lo, mid_hi = k["midtone_band"]
    mid = (luma > mid_lo) & (luma < mid_hi)
    mid_strength = np.where(mid, 1.0 - np.abs(luma - 0.5) * 2.0, 0.0).astype(np.float32)
    out_r += np.float32(k["midtone_red"]) * mid_strength
    out_b += np.float32(k["midtone_blue"]) * mid_strength

    # 2. Shadow lift toward cyan/blue
    ceiling = k["shadow_ceiling"]
    shadow_strength = np.where(luma < ceiling, (ceiling - luma) / ceiling, 0.0).astype(np.float32)
    out_b += np.float32(k["shadow_blue"]) * shadow_strength
    out_g += np.float32(k["shadow_green"]) * shadow_strength

    # 3. Peachy skin tones: red-dominant, r > g > b, mid luma. Tested on the input color.
    skin_lo, skin_hi = k["skin_luma_band"]
    skin = (r > k["skin_red_floor"]) & (r > g) & (g > b) & (luma > skin_lo) & (luma < skin_hi)
    out_r += np.where(skin, np.float32(k["skin_red"]), np.float32(0.0))
    out_g += np.where(skin, np.float32(k["skin_green"]), np.float32(0.0))

    # 4. Overall warmth
    out_r += np.float32(k["global_red"])
    out_g += np.float32(k["global_green"])

    table = np.empty((d, d, d, 4), dtype=np.float32)
    table[..., 0] = np.clip(out_r, 0.0, 1.0)
    table[..., 1] = np.clip(out_g, 0.0, 1.0)
    table[..., 2] = np.clip(out_b, 0.0, 1.0)
    table[..., 3] = 1.0

    table.flags.writeable = False
    return table


@njit(parallel=True, cache=True, fastmath=True)
def _apply_lut_trilinear_jit(img: np.ndarray, table: np.ndarray) -> np.ndarray:
    """
    Trilinear cube interpolation over the 8 surrounding nodes. Alpha is 1.
    """
    h, w, _ = img.shape
    d = table.shape[0]
    scale = d - 1
    res = np.empty((h, w, 4), dtype=np.float32)

    for y in prange(h):
        for x in range(w):
            r = img[y, x, 0]
            g = img[y, x, 1]
            b = img[y, x, 2]
            if r < 0.0:
                r = 0.0
            elif r > 1.0:
                r = 1.0
            if g < 0.0:
                g = 0.0
            elif g > 1.0:
                g = 1.0
            if b < 0.0:
                b = 0.0
            elif b > 1.0:
                b = 1.0

            pr = r * scale
            pg = g * scale
            pb = b * scale

            r0 = min(int(pr), d - 2)
            g0 = min(int(pg), d - 2)
            b0 = min(int(pb), d - 2)

            fr = pr - r0
            fg = pg - g0
            fb = pb - b0

            for ch in range(3):
                c00 = table[r0, g0, b0, ch] * (1.0 - fr) + table[r0 + 1, g0, b0, ch] * fr
                c10 = table[r0, g0 + 1, b0, ch] * (1.0 - fr) + table[r0 + 1, g0 + 1, b0, ch] * fr
                c01 = table[r0, g0, b0 + 1, ch] * (1.0 - fr) + table[r0 + 1, g0, b0 + 1, ch] * fr
                c11 = table[r0, g0 + 1, b0 + 1, ch] * (1.0 - fr) + table[r0 + 1, g0 + 1, b0 + 1, ch] * fr

                c0 = c00 * (1.0 - fg) + c10 * fg
                c1 = c01 * (1.0 - fg) + c11 * fg

                res[y, x, ch] = c0 * (1.0 - fb) + c1 * fb
            res[y, x, 3] = 1.0
    return res


def apply_lut(table: np.ndarray, img: ImageBuffer) -> ImageBuffer:
    """
    Maps every pixel through the cube. Input RGB is clamped to [0, 1] first.
    """
    if table.ndim != 4 or table.shape[0] != table.shape[1] or table.shape[1] != table.shape[2] or table.shape[3] < 3:
        raise ValueError(f"Expected (D, D, D, 3|4) cube, got {table.shape}")
    validate_dimension(int(table.shape[0]))

    res = _apply_lut_trilinear_jit(
        np.ascontiguousarray(img.astype(np.float32)),
        np.ascontiguousarray(table.astype(np.float32, copy=False)),
    )
    return ensure_image(res)
