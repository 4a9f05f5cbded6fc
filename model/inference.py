"""
inference.py

CT vs MRI modality inference over engineered image statistics.

There are no trained weights here. The classifier is a fixed, hand-authored
linear model over nine histogram / edge / texture features followed by a
logistic squash. It is a demonstration of the pipeline shape:

1) A clean inference contract (image -> features -> label + confidence)
2) A deterministic scoring function with the weights stored as constants
3) An independent visualization branch over the same preprocessed buffer

NOT a medical model. Outputs are not clinical findings.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import numpy as np

from features.extraction import FEATURE_KEYS, extract_features
from preprocessing.normalize import normalize_intensity, to_grayscale
from preprocessing.raster import (
    AnalysisInProgress,
    ArraySurface,
    ImageDecoder,
    ImageSource,
    PillowDecoder,
    RasterSurface,
    draw_to_canvas,
    freeze,
    to_png_bytes,
)
from visualization.heatmap import HEATMAP_ALPHA, HEATMAP_WINDOW, render_heatmap

logger = logging.getLogger(__name__)

DISCLAIMER = "Demo heuristic only. Not medical advice."

# Hand-tuned: CT tends to show hard bone/air edges, MRI softer gradients and
# higher entropy after normalization.
MODEL_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "histMean": -0.01,
    "histVar": -0.002,
    "histEntropy": 0.8,
    "edgeMean": -0.015,
    "edgeStd": -0.02,
    "edgeP50": -0.001,
    "edgeP90": -0.0008,
    "edgeP99": -0.0005,
    "textureE": -0.004,
})
MODEL_BIAS = -1.0  # leans toward CT

MODALITY_CT = "CT"
MODALITY_MRI = "MRI"

# every feature assumes this square canvas
CANVAS_SIZE = 256


# ----------------------------
# Types / Contracts
# ----------------------------

@dataclass(frozen=True)
class ClassificationResult:
    modality: str
    confidence: float
    features: Mapping[str, float]
    prob_mri: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modality": self.modality,
            "confidence": self.confidence,
            "features": dict(self.features),
        }

    def format_features(self) -> Dict[str, str]:
        return {k: f"{v:.3f}" for k, v in self.features.items()}


@dataclass(frozen=True)
class AnalysisArtifacts:
    generation: int
    result: ClassificationResult
    preprocessed: np.ndarray = field(repr=False)
    heatmap: np.ndarray = field(repr=False)


def _sigmoid(z: float) -> float:
    with np.errstate(over="ignore"):
        return float(1.0 / (1.0 + np.exp(-z)))


# ----------------------------
# Linear classifier (fixed)
# ----------------------------

def linear_score(features: Dict[str, float]) -> float:
    missing = [k for k in FEATURE_KEYS if k not in features]
    if missing:
        raise ValueError(f"Missing features: {', '.join(missing)}")

    score = MODEL_BIAS
    for k in FEATURE_KEYS:
        score += features[k] * MODEL_WEIGHTS[k]
    return score


def classify_features(features: Dict[str, float]) -> ClassificationResult:
    prob_mri = _sigmoid(linear_score(features))
    modality = MODALITY_MRI if prob_mri > 0.5 else MODALITY_CT
    confidence = prob_mri if modality == MODALITY_MRI else 1.0 - prob_mri
    return ClassificationResult(
        modality=modality,
        confidence=confidence,
        features=MappingProxyType({k: float(features[k]) for k in FEATURE_KEYS}),
        prob_mri=prob_mri,
    )


# ----------------------------
# Pipeline orchestration
# ----------------------------

def analyze_image(
    source: ImageSource,
    decoder: Optional[ImageDecoder] = None,
    surface: Optional[RasterSurface] = None,
    generation: int = 0,
) -> AnalysisArtifacts:
    """
    decode -> draw onto the square canvas -> grayscale -> normalize
    -> features -> classify, and independently normalize -> heatmap.

    Raises UnsupportedInput / RenderTargetUnavailable; nothing is returned on
    failure.
    """
    decoder = decoder or PillowDecoder()
    surface = surface or ArraySurface()

    raw = decoder.decode(source)
    logger.debug("Decoded %dx%d image", raw.width, raw.height)

    canvas = draw_to_canvas(raw, CANVAS_SIZE, surface)
    norm = normalize_intensity(to_grayscale(canvas.pixels))

    result = classify_features(extract_features(norm))
    heatmap = render_heatmap(norm, surface, window=HEATMAP_WINDOW, alpha=HEATMAP_ALPHA)

    logger.info(
        "Predicted %s (confidence %.4f, p_mri %.4f)",
        result.modality,
        result.confidence,
        result.prob_mri,
    )
    return AnalysisArtifacts(
        generation=generation,
        result=result,
        preprocessed=freeze(norm),
        heatmap=freeze(heatmap),
    )


class AnalysisSession:
    """
    Owns the most recent analysis outputs for one viewer.

    Only one run may be in flight at a time: a second submit while the first
    is still running raises AnalysisInProgress instead of writing into buffers
    that are still being produced. Published artifacts are read-only.
    """

    def __init__(
        self,
        decoder: Optional[ImageDecoder] = None,
        surface: Optional[RasterSurface] = None,
    ):
        self.decoder = decoder or PillowDecoder()
        self.surface = surface or ArraySurface()
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._generation = 0
        self._latest: Optional[AnalysisArtifacts] = None

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    @property
    def latest(self) -> Optional[AnalysisArtifacts]:
        with self._state_lock:
            return self._latest

    @property
    def busy(self) -> bool:
        return self._run_lock.locked()

    def invalidate(self) -> None:
        """Drop published results, e.g. when a new image is selected."""
        with self._state_lock:
            self._generation += 1
            self._latest = None

    def submit(self, source: ImageSource) -> AnalysisArtifacts:
        if not self._run_lock.acquire(blocking=False):
            raise AnalysisInProgress("An analysis is already running")
        try:
            with self._state_lock:
                self._generation += 1
                generation = self._generation

            artifacts = analyze_image(
                source,
                decoder=self.decoder,
                surface=self.surface,
                generation=generation,
            )

            with self._state_lock:
                # invalidate() may have run meanwhile; stale results stay unpublished
                if self._generation == generation:
                    self._latest = artifacts
            return artifacts
        finally:
            self._run_lock.release()


def main() -> None:
    parser = argparse.ArgumentParser(description="Classify an image as CT or MRI (demo heuristic).")
    parser.add_argument("--image", required=True, help="Path to input image (png/jpg).")
    parser.add_argument("--out", default=None, help="Where to write the result JSON (optional).")
    parser.add_argument("--preprocessed_out", default=None, help="PNG path for the normalized view.")
    parser.add_argument("--heatmap_out", default=None, help="PNG path for the variance heatmap.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    artifacts = analyze_image(args.image)
    result = artifacts.result

    if args.out:
        os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump({**result.to_dict(), "disclaimer": DISCLAIMER}, f, indent=2)

    for path, pixels in ((args.preprocessed_out, artifacts.preprocessed), (args.heatmap_out, artifacts.heatmap)):
        if path:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "wb") as f:
                f.write(to_png_bytes(pixels))

    print(f"Predicted: {result.modality}")
    print(f"Confidence: {result.confidence * 100:.1f}%")
    for k, v in result.format_features().items():
        print(f"  {k}: {v}")
    if args.out:
        print(f"Wrote: {args.out}")


if __name__ == "__main__":
    main()
