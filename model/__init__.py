"""
Model package for CT / MRI modality analysis.

The classifier is a fixed linear model over engineered features, so the
package runs end-to-end without shipping any weights.
"""
