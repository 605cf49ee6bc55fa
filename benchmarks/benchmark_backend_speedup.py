#!/usr/bin/env python3
"""
benchmark_backend_speedup.py

Benchmarks the Numba kernels against the NumPy reference implementations.
Measures the full partition (cost matrix, DP fill, backtracking) for several
vector lengths, group counts and projector kinds.

Output:
    - Prints timing statistics for each backend
    - Generates speedup comparison table
"""

import numpy as np
import time
from scgkit import OptimalPartitioner


def report_stats(name, times):
    """Print timing statistics for a set of runs."""
    if len(times) == 0:
        print(f"{name}: No runs completed")
        return
    print(
        f"{name}: mean={np.mean(times):.3f}s, median={np.median(times):.3f}s, "
        f"std={np.std(times):.3f}s, min={np.min(times):.3f}s, max={np.max(times):.3f}s"
    )


def benchmark_backend(v, nt, matrix, weights, backend, n_runs=5):
    """
    Benchmark a specific backend.

    Parameters
    ----------
    v : np.ndarray
        Values to partition
    nt : int
        Number of groups
    matrix : str
        Projector kind ('symmetric', 'laplacian', 'stochastic')
    weights : np.ndarray or None
        Probability vector for the stochastic kind
    backend : str
        Backend name ('numba', 'numpy')
    n_runs : int
        Number of benchmark runs

    Returns
    -------
    np.ndarray
        Array of timing results in seconds
    """
    times = []
    for i in range(n_runs):
        try:
            partitioner = OptimalPartitioner(v, nt, matrix, weights, backend=backend)

            t0 = time.perf_counter()
            result = partitioner.compute()
            elapsed = time.perf_counter() - t0
            times.append(elapsed)

            del result
            del partitioner
        except Exception as e:
            print(f"  Backend {backend} failed on run {i+1}: {e}")
            break

    return np.array(times)


def main():
    """Main benchmark function."""
    # Configuration
    nt = 10
    n_runs = 3
    backends = ["numba", "numpy"]

    # Test different vector lengths
    sizes = [200, 500, 1000]
    rng = np.random.default_rng(0)

    print("=" * 80)
    print("Backend Speedup Benchmark")
    print("=" * 80)
    print(f"Groups: nt={nt}")
    print(f"Number of runs per backend: {n_runs}")
    print()

    # Warm up the JIT so compilation is not timed
    OptimalPartitioner(rng.normal(size=20), 3, backend="numba").compute()
    OptimalPartitioner(rng.normal(size=20), 3, "stochastic", np.full(20, 0.05), backend="numba").compute()

    results_summary = []

    for matrix in ("symmetric", "stochastic"):
        for n in sizes:
            print(f"\n--- {matrix}, n = {n:,} values ---")
            v = rng.normal(size=n)
            weights = None
            if matrix == "stochastic":
                weights = rng.uniform(0.1, 1.0, size=n)
                weights /= weights.sum()

            backend_times = {}
            for backend in backends:
                print(f"Benchmarking {backend} backend...")
                times = benchmark_backend(v, nt, matrix, weights, backend, n_runs)
                if len(times) > 0:
                    backend_times[backend] = times
                    report_stats(f"  {backend}", times)

            if len(backend_times) > 1:
                numpy_time = np.mean(backend_times["numpy"])
                numba_time = np.mean(backend_times["numba"])
                speedup = numpy_time / numba_time if numba_time > 0 else np.inf
                print(f"\nSpeedup vs NumPy: numba {speedup:.2f}x")

            summary_row = {"matrix": matrix, "n": n}
            for backend in backends:
                if backend in backend_times:
                    summary_row[backend] = np.mean(backend_times[backend])
            results_summary.append(summary_row)

    # Print summary table
    print("\n" + "=" * 80)
    print("Summary Table (mean time in seconds)")
    print("=" * 80)
    if results_summary:
        print(f"{'matrix':>12} {'n':>8} ", end="")
        for backend in backends:
            print(f"{backend:>12} ", end="")
        print()
        print("-" * 80)
        for row in results_summary:
            print(f"{row['matrix']:>12} {row['n']:>8,} ", end="")
            for backend in backends:
                if backend in row:
                    print(f"{row[backend]:>12.3f} ", end="")
                else:
                    print(f"{'N/A':>12} ", end="")
            print()

    print("\nDone.")


if __name__ == "__main__":
    main()
