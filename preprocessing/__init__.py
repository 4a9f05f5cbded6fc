"""
Preprocessing utilities for CT / MRI modality analysis.

Includes image decoding, drawing onto the fixed analysis canvas and the
grayscale + intensity normalization every downstream step relies on.
"""
