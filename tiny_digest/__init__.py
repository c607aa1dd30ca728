"""
tiny-digest - Streaming quantile estimation with bounded memory

tiny-digest is a Python library for estimating quantiles and CDF values over
streams of weighted observations using the merging t-digest.
"""

import logging

__version__ = "0.1.0"

# Import main classes to make them available at the top level
from tiny_digest.algorithms.centroid import Centroid, CentroidList
from tiny_digest.algorithms.scale import ArcsineScale
from tiny_digest.algorithms.tdigest import TDigest
from tiny_digest.core.base import QuantileEstimator, StreamSummary

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Core base classes
    "StreamSummary",
    "QuantileEstimator",
    # Algorithm implementations
    "TDigest",
    "Centroid",
    "CentroidList",
    "ArcsineScale",
]
