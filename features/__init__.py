"""
Feature extraction for modality analysis.

Histogram, Sobel edge and texture statistics over the normalized 256x256
analysis canvas.
"""
