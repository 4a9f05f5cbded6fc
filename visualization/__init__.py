"""
Visualization helpers: local-variance heatmap overlay.
"""
