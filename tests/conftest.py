import numpy as np
import pytest

from tests.helpers import png_bytes


@pytest.fixture
def random_rgba() -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(64, 48, 4), dtype=np.uint8)


@pytest.fixture
def gradient_png() -> bytes:
    row = np.linspace(20, 220, 300).astype(np.uint8)
    luma = np.tile(row, (180, 1))
    rgb = np.stack([luma, luma // 2, 255 - luma], axis=-1).astype(np.uint8)
    return png_bytes(rgb)
