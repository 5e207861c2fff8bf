import numpy as np
from numba import njit, prange  # type: ignore
from scipy.interpolate import PchipInterpolator
from typing import Any, Optional, Sequence
from filmpy.domain.types import ImageBuffer
from filmpy.features.tone.models import ControlPoint, ToneConfig, TONE_CONSTANTS
from filmpy.kernel.image.validation import ensure_image


@njit(parallel=True, cache=True, fastmath=True)
def _apply_curve_table_jit(img: np.ndarray, table: np.ndarray) -> np.ndarray:
    """
    Per-channel table lookup with linear interpolation. Alpha passes through.
    """
    h, w, c = img.shape
    n = table.shape[0]
    scale = n - 1
    res = np.empty_like(img)

    for y in prange(h):
        for x in range(w):
            for ch in range(3):
                v = img[y, x, ch]
                if v < 0.0:
                    v = 0.0
                elif v > 1.0:
                    v = 1.0

                p = v * scale
                i0 = int(p)
                if i0 > n - 2:
                    i0 = n - 2
                f = p - i0

                res[y, x, ch] = table[i0] * (1.0 - f) + table[i0 + 1] * f
            for ch in range(3, c):
                res[y, x, ch] = img[y, x, ch]
    return res


class FilmicToneCurve:
    """
    Monotone cubic (PCHIP) spline through the control points.
    PCHIP never overshoots between points, so a non-decreasing point set gives a non-decreasing curve.
    """

    def __init__(self, points: Optional[Sequence[ControlPoint]] = None):
        config = ToneConfig(points=tuple(points)) if points is not None else ToneConfig()
        self.points = config.points
        xs = np.array([p[0] for p in self.points], dtype=np.float64)
        ys = np.array([p[1] for p in self.points], dtype=np.float64)
        self._spline = PchipInterpolator(xs, ys, extrapolate=False)
        self._x_min = float(xs[0])
        self._x_max = float(xs[-1])

    def __call__(self, x: Any) -> Any:
        arr = np.clip(np.asarray(x, dtype=np.float64), self._x_min, self._x_max)
        res = self._spline(arr)
        if np.ndim(res) == 0:
            return float(res)
        return res

    def table(self, size: int = TONE_CONSTANTS["table_size"]) -> np.ndarray:
        """
        Dense samples of the curve over [0, 1].
        """
        xs = np.linspace(0.0, 1.0, size)
        return np.ascontiguousarray(self(xs), dtype=np.float64)


DEFAULT_CURVE = FilmicToneCurve()


def apply_filmic_curve(img: ImageBuffer, curve: Optional[FilmicToneCurve] = None, table: Optional[np.ndarray] = None) -> ImageBuffer:
    """
    Maps R, G and B through the filmic curve. Alpha and extent are unchanged.
    Pass a precomputed `table` to skip resampling the spline.
    """
    if table is None:
        table = (curve or DEFAULT_CURVE).table()

    res = _apply_curve_table_jit(
        np.ascontiguousarray(img.astype(np.float32)),
        np.ascontiguousarray(table.astype(np.float64)),
    )
    return ensure_image(res)
