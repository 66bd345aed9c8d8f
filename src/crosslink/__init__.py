"""Cross-venue prediction-market matching."""

__version__ = "0.3.0"
