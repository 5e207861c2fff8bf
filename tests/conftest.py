import os
import numpy as np
import pytest

# Keep numba's on-disk kernel cache out of the source tree during CI runs
os.environ.setdefault("NUMBA_CACHE_DIR", "/tmp/filmpy-numba-cache")


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_rgba(rng):
    img = rng.random((48, 64, 4), dtype=np.float32)
    img[..., 3] = 1.0
    return img
