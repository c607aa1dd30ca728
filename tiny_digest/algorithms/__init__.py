"""
Algorithm implementations for tiny-digest.
"""

from tiny_digest.algorithms.centroid import Centroid, CentroidList
from tiny_digest.algorithms.scale import ArcsineScale
from tiny_digest.algorithms.tdigest import TDigest, weighted_average

__all__ = [
    "Centroid",
    "CentroidList",
    "ArcsineScale",
    "TDigest",
    "weighted_average",
]
