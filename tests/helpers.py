from io import BytesIO

import numpy as np
from PIL import Image


def rgba_from_luma(luma: np.ndarray, alpha: int = 255) -> np.ndarray:
    luma = np.asarray(luma, dtype=np.uint8)
    out = np.empty(luma.shape + (4,), dtype=np.uint8)
    out[..., :3] = luma[..., None]
    out[..., 3] = alpha
    return out


def checkerboard(size: int = 256) -> np.ndarray:
    yy, xx = np.mgrid[0:size, 0:size]
    return np.where((xx + yy) % 2 == 0, 0, 255).astype(np.uint8)


def png_bytes(pixels: np.ndarray) -> bytes:
    buf = BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()
