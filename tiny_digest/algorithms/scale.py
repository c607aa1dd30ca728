# tiny_digest/algorithms/scale.py

import math


class ArcsineScale:
    """
    Arcsine scale function of the merging t-digest.

    Maps a normalized centroid index k in [0, compression] to the quantile at
    which that index sits, and back. Steps of one index unit cover very little
    quantile range near q=0 and q=1 and a lot near the median, which is what
    keeps tail centroids small during compaction.
    """

    __slots__ = ["compression"]

    def __init__(self, compression: float):
        if not math.isfinite(compression) or compression <= 0:
            raise ValueError(f"compression must be positive, got {compression}")
        self.compression = float(compression)

    def quantile(self, k: float) -> float:
        """Quantile reached at index k. Indices past compression map to 1.0."""
        c = self.compression
        return (math.sin(min(k, c) * math.pi / c - math.pi / 2.0) + 1.0) / 2.0

    def index(self, q: float) -> float:
        """Inverse of quantile(): the index at which quantile q is reached."""
        # so_far / total can drift just outside [0, 1] by rounding
        q = min(1.0, max(0.0, q))
        return self.compression * (math.asin(2.0 * q - 1.0) + math.pi / 2.0) / math.pi

    def __repr__(self) -> str:
        return f"ArcsineScale(compression={self.compression:g})"
