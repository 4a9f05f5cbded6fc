"""
api/app.py

Minimal REST API for CT vs MRI modality analysis.

This service exposes an analysis endpoint that:
- accepts an image upload (PNG/JPG)
- normalizes it onto the 256x256 analysis canvas
- runs the fixed linear modality classifier
- optionally returns the preprocessed view and variance heatmap as PNGs

NOTE:
This is a demo-grade serving layer. It is not a diagnostic tool.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict

from fastapi import FastAPI, File, HTTPException, UploadFile

from model.inference import DISCLAIMER, AnalysisSession
from preprocessing.raster import (
    AnalysisInProgress,
    RenderTargetUnavailable,
    UnsupportedInput,
    to_png_bytes,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="CT vs MRI Analyzer (Demo)",
    description="Heuristic modality classification with a variance heatmap (non-diagnostic).",
    version="0.1.0",
)

session = AnalysisSession()

ACCEPTED_TYPES = {"image/png", "image/jpeg", "image/jpg"}


def _png_b64(pixels) -> str:
    return base64.b64encode(to_png_bytes(pixels)).decode("ascii")


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/analyze")
def analyze(
    file: UploadFile = File(...),
    include_images: bool = False,
) -> Dict[str, Any]:
    """
    Returns:
      - modality: "CT" or "MRI"
      - confidence: probability of the predicted label (>= 0.5)
      - features: the nine engineered features
      - preprocessed_png / heatmap_png: base64 PNGs when include_images=true
      - disclaimer
    """
    if file.content_type not in ACCEPTED_TYPES:
        raise HTTPException(status_code=400, detail="Only PNG/JPG uploads are supported")

    file_bytes = file.file.read()
    try:
        artifacts = session.submit(file_bytes)
    except UnsupportedInput as e:
        raise HTTPException(status_code=400, detail="Invalid image file") from e
    except AnalysisInProgress as e:
        raise HTTPException(status_code=409, detail="An analysis is already running") from e
    except RenderTargetUnavailable as e:
        logger.error("Render target unavailable: %s", e)
        raise HTTPException(status_code=503, detail="Output surface unavailable") from e

    body: Dict[str, Any] = {
        **artifacts.result.to_dict(),
        "disclaimer": DISCLAIMER,
    }
    if include_images:
        body["preprocessed_png"] = _png_b64(artifacts.preprocessed)
        body["heatmap_png"] = _png_b64(artifacts.heatmap)
    return body
