"""
extraction.py

Scalar features computed from a normalized grayscale buffer.

Nine features feed the modality classifier:
- histogram: histMean, histVar, histEntropy
- Sobel edge magnitude: edgeMean, edgeStd, edgeP50, edgeP90, edgeP99
- texture energy: textureE

Every function is pure and allocates its own intermediates. Reductions run
in a fixed order so repeated calls on the same buffer give identical floats.
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence

import numpy as np

from preprocessing.normalize import luma_channel, round_half_up

FEATURE_KEYS = (
    "histMean",
    "histVar",
    "histEntropy",
    "edgeMean",
    "edgeStd",
    "edgeP50",
    "edgeP90",
    "edgeP99",
    "textureE",
)

EDGE_PERCENTILES = (50, 90, 99)

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.int64)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.int64)


# ----------------------------
# Histogram
# ----------------------------

def compute_histogram(norm: np.ndarray) -> np.ndarray:
    """256-bin histogram of luma, normalized to sum to 1."""
    luma = luma_channel(norm).ravel()
    if luma.size == 0:
        raise ValueError("Cannot build a histogram of an empty image")
    counts = np.bincount(luma, minlength=256).astype(np.float64)
    return counts / luma.size


def histogram_features(hist: np.ndarray) -> Dict[str, float]:
    mean = 0.0
    for i, p in enumerate(hist.tolist()):
        mean += p * i

    var = 0.0
    entropy = 0.0
    for i, p in enumerate(hist.tolist()):
        var += p * (i - mean) * (i - mean)
        if p > 0:
            entropy += p * math.log2(p)

    return {"histMean": mean, "histVar": var, "histEntropy": -entropy}


# ----------------------------
# Edges
# ----------------------------

def compute_sobel_edges(norm: np.ndarray) -> np.ndarray:
    """
    Sobel gradient magnitude, float32 array of shape (H, W).

    Neighbours are sampled with edge replication, but the outermost ring of
    the output is never computed and stays 0.
    """
    luma = luma_channel(norm).astype(np.int64)
    h, w = luma.shape
    magnitude = np.zeros((h, w), dtype=np.float32)
    if h < 3 or w < 3:
        return magnitude

    padded = np.pad(luma, 1, mode="edge")
    gx = np.zeros((h - 2, w - 2), dtype=np.int64)
    gy = np.zeros((h - 2, w - 2), dtype=np.int64)
    # output pixel (y, x) for y, x in [1, size-2] sits at (y+1, x+1) in padded
    for ky in range(3):
        for kx in range(3):
            window = padded[ky + 1 : ky + h - 1, kx + 1 : kx + w - 1]
            gx += SOBEL_X[ky, kx] * window
            gy += SOBEL_Y[ky, kx] * window

    magnitude[1:-1, 1:-1] = np.hypot(gx.astype(np.float64), gy.astype(np.float64))
    return magnitude


def mean(values: np.ndarray) -> float:
    flat = np.asarray(values, dtype=np.float64).ravel()
    return float(flat.sum() / flat.size)


def sample_std(values: np.ndarray, mu: float) -> float:
    flat = np.asarray(values, dtype=np.float64).ravel()
    d = flat - mu
    return math.sqrt(float((d * d).sum()) / max(1, flat.size - 1))


def percentiles(values: np.ndarray, ps: Sequence[float]) -> List[float]:
    """Order-statistic percentiles: sorted value at round(p/100 * (n-1))."""
    arr = np.sort(np.asarray(values).ravel())
    n = arr.size
    out: List[float] = []
    for p in ps:
        idx = int(round_half_up((p / 100) * (n - 1)))
        idx = min(n - 1, max(0, idx))
        out.append(float(arr[idx]))
    return out


def edge_features(magnitude: np.ndarray) -> Dict[str, float]:
    mu = mean(magnitude)
    p50, p90, p99 = percentiles(magnitude, EDGE_PERCENTILES)
    return {
        "edgeMean": mu,
        "edgeStd": sample_std(magnitude, mu),
        "edgeP50": p50,
        "edgeP90": p90,
        "edgeP99": p99,
    }


# ----------------------------
# Texture
# ----------------------------

def compute_texture_energy(norm: np.ndarray) -> float:
    """
    Sum of |horizontal| + |vertical| first differences over all pixels except
    the last row and column, divided by the full pixel count.
    """
    luma = luma_channel(norm).astype(np.int64)
    h, w = luma.shape
    if h == 0 or w == 0:
        return 0.0
    core = luma[:-1, :-1]
    dx = np.abs(core - luma[:-1, 1:])
    dy = np.abs(core - luma[1:, :-1])
    energy = int(dx.sum()) + int(dy.sum())
    return energy / (w * h)


# ----------------------------
# All features
# ----------------------------

def extract_features(norm: np.ndarray) -> Dict[str, float]:
    """
    Args:
        norm: normalized grayscale RGBA buffer (H, W, 4)

    Returns:
        dict with exactly the keys in FEATURE_KEYS, in that order
    """
    found: Dict[str, float] = {}
    found.update(histogram_features(compute_histogram(norm)))
    found.update(edge_features(compute_sobel_edges(norm)))
    found["textureE"] = compute_texture_energy(norm)
    return {k: float(found[k]) for k in FEATURE_KEYS}
