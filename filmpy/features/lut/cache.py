import threading
from typing import Callable, Dict
import numpy as np
from filmpy.features.lut.logic import build_lut
from filmpy.features.lut.models import validate_dimension
from filmpy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class LUTCache:
    """
    Memoized cube tables, one per dimension.
    Each table is built at most once, even when several threads ask for it first.
    Tables are read-only and shared by every pipeline holding this cache.
    """

    def __init__(self, builder: Callable[[int], np.ndarray] = build_lut) -> None:
        self._builder = builder
        self._tables: Dict[int, np.ndarray] = {}
        self._lock = threading.Lock()

    def get(self, dimension: int) -> np.ndarray:
        d = validate_dimension(dimension)

        table = self._tables.get(d)
        if table is not None:
            return table

        with self._lock:
            table = self._tables.get(d)
            if table is None:
                logger.debug(f"Building {d}^3 LUT")
                table = self._builder(d)
                table.flags.writeable = False
                self._tables[d] = table
            return table

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()


# Process-wide default, injected into pipelines unless one is passed explicitly
shared_lut_cache = LUTCache()
