"""
Basic example of using tiny-digest for stream processing.

This example demonstrates how to use the TDigest to track latency
percentiles over a simulated request stream and compare the estimates
with exact values.
"""

import logging
import random
import time

from tiny_digest.algorithms.tdigest import TDigest


def demonstrate_latency_percentiles():
    """Track p50/p95/p99 of a simulated latency stream."""
    print("\n=== Latency Percentile Demo ===")

    digest = TDigest(compression=200)
    random.seed(42)

    latencies = []
    print("Processing 100000 simulated request latencies...")
    start = time.time()
    for i in range(100000):
        # Mostly fast requests with a slow tail
        if random.random() < 0.02:
            latency = random.uniform(200, 2000)
        else:
            latency = random.lognormvariate(3, 0.5)
        latencies.append(latency)
        digest.add(latency)

        if i % 25000 == 0:
            print(f"  Processed {i} items")
    elapsed = time.time() - start

    latencies.sort()
    print(f"\nIngested {digest.items_processed} values in {elapsed:.2f}s")
    print(f"Centroids kept: {digest.num_centroids}")
    print(f"Approximate memory usage: {digest.estimate_size()} bytes")

    print("\n  pct    estimate      exact")
    for p in (50, 90, 95, 99, 99.9):
        exact = latencies[min(len(latencies) - 1, int(p / 100 * len(latencies)))]
        print(f"  p{p:<5g} {digest.percentile(p):9.2f}  {exact:9.2f}")


def demonstrate_cdf():
    """Use the CDF to answer 'what share of requests beat the SLO'."""
    print("\n=== CDF Demo ===")

    digest = TDigest(compression=100)
    random.seed(7)
    values = [random.gauss(100, 15) for _ in range(50000)]
    for value in values:
        digest.add(value)

    for slo in (80, 100, 130):
        exact = sum(1 for v in values if v <= slo) / len(values)
        print(f"  share <= {slo}: estimate={digest.cdf(slo):.4f} exact={exact:.4f}")


def demonstrate_weighted_batches():
    """Add pre-aggregated (value, count) pairs in one batch."""
    print("\n=== Weighted Batch Demo ===")

    digest = TDigest(compression=50)
    counts = [3, 12, 40, 85, 120, 90, 41, 10, 4, 1]
    histogram = [
        (bucket * 10.0 + 5.0, float(count)) for bucket, count in enumerate(counts)
    ]
    digest.add_centroid_list(histogram)

    print(f"Total weight: {digest.total_weight:g}")
    print(f"Median: {digest.quantile(0.5):.2f}")
    print("Compressed centroids:")
    for mean, weight in digest.export():
        print(f"  mean={mean:7.2f} weight={weight:g}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    demonstrate_latency_percentiles()
    demonstrate_cdf()
    demonstrate_weighted_batches()
