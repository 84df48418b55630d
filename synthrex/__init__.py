"""
synthrex - regime-aware trade signals from probabilistic price forecasts.
"""

__version__ = "1.0.0"
