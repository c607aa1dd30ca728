"""
Core functionality for tiny-digest.
"""

from tiny_digest.core.base import QuantileEstimator, StreamSummary

__all__ = [
    # Base classes
    "StreamSummary",
    "QuantileEstimator",
]
