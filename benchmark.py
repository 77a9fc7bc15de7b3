"""
Benchmark suite for the parallel factorization engine.

Benchmarks:
1. Primality Testing: Miller-Rabin with 15 witnesses
2. Trial Division: JIT kernel vs arbitrary-precision path
3. Rho Lanes: Python lane vs JIT lane on word-sized inputs
4. Coordinator: process pool vs thread pool rounds
5. Complete Factorization: end-to-end engine
6. Timeout: how closely a round honours its budget
"""

import time
import sys
import statistics
from typing import List, Callable

from factorization import FactorizationEngine, is_prime, trial_division
from parallel_rho import ParallelRhoCoordinator, default_lane_count, lane_parameters
from rho_search import rho_search
from simd_operations import _rho_brent_word


# ============================================================================
# BENCHMARK UTILITIES
# ============================================================================

class BenchmarkResult:
    """Store benchmark results with statistics."""

    def __init__(self, name: str, times: List[float], operations: int = 1):
        self.name = name
        self.times = sorted(times)
        self.operations = operations

        self.min = min(times)
        self.max = max(times)
        self.mean = statistics.mean(times)
        self.median = statistics.median(times)
        self.stdev = statistics.stdev(times) if len(times) > 1 else 0

    def __str__(self):
        return (f"{self.name:40} | "
                f"Mean: {self.mean*1000:8.3f}ms | "
                f"Median: {self.median*1000:8.3f}ms | "
                f"StdDev: {self.stdev*1000:8.3f}ms | "
                f"Min: {self.min*1000:8.3f}ms | "
                f"Max: {self.max*1000:8.3f}ms")


def benchmark(func: Callable, *args, iterations: int = 5, **kwargs) -> BenchmarkResult:
    """
    Benchmark a function and return statistics.

    Args:
        func: Function to benchmark
        *args: Positional arguments to function
        iterations: Number of iterations to run
        **kwargs: Keyword arguments to function

    Returns:
        BenchmarkResult with timing statistics
    """
    times = []

    # Warm up (also triggers JIT compilation)
    func(*args, **kwargs)

    for _ in range(iterations):
        start = time.perf_counter()
        func(*args, **kwargs)
        elapsed = time.perf_counter() - start
        times.append(elapsed)

    return BenchmarkResult(func.__name__, times)


def section(title: str) -> None:
    print("\n" + "="*100)
    print(title)
    print("="*100)


# ============================================================================
# 1. PRIMALITY TESTING BENCHMARKS
# ============================================================================

def benchmark_primality():
    """Benchmark Miller-Rabin primality testing."""
    section("PRIMALITY TESTING BENCHMARKS")

    test_cases = [
        (104729, "Small prime (6 digits)"),
        (982451653, "Prime (9 digits)"),
        (2**61 - 1, "Mersenne prime 2^61 - 1"),
        (2**521 - 1, "Mersenne prime 2^521 - 1"),
        ((2**61 - 1) * (2**89 - 1), "150-bit semiprime"),
    ]

    for n, description in test_cases:
        result = benchmark(is_prime, n, iterations=20)
        result.name = description
        print(result)


# ============================================================================
# 2. TRIAL DIVISION BENCHMARKS
# ============================================================================

def benchmark_trial_division():
    """Benchmark trial division through the kernel and the Python path."""
    section("TRIAL DIVISION BENCHMARKS")

    test_cases = [
        (2**40 * 3**10 * 37, "Word-sized (JIT kernel)"),
        (2**100 * 3**10 * 37, "Beyond 2^63 (Python path)"),
        (1000003 * 1000033, "No small factors"),
    ]

    for n, description in test_cases:
        result = benchmark(trial_division, n, iterations=20)
        result.name = description
        print(result)


# ============================================================================
# 3. RHO LANE BENCHMARKS
# ============================================================================

def _run_lanes_python(n: int, count: int) -> None:
    for params in lane_parameters(n, count):
        rho_search(n, params)


def _run_lanes_jit(n: int, count: int) -> None:
    for params in lane_parameters(n, count):
        _rho_brent_word(n, params.polynomial_constant, params.seed, 256, 1 << 24)


def benchmark_rho_lanes():
    """Benchmark a round of lanes run sequentially in Python and in the JIT kernel."""
    section("RHO LANE BENCHMARKS (6 lanes, sequential)")

    test_cases = [
        (10403, "Semiprime 101 * 103"),
        (46337 * 46301, "Composite near 2^31"),
        (1000000007, "Prime (degenerate cycle)"),
    ]

    for n, description in test_cases:
        result = benchmark(_run_lanes_python, n, 6, iterations=3)
        result.name = f"Python lane: {description}"
        print(result)
        result = benchmark(_run_lanes_jit, n, 6, iterations=3)
        result.name = f"JIT lane: {description}"
        print(result)


# ============================================================================
# 4. COORDINATOR BENCHMARKS
# ============================================================================

def benchmark_coordinator():
    """Benchmark one coordination round with processes and with threads."""
    section(f"COORDINATOR BENCHMARKS ({default_lane_count()} lanes)")

    test_cases = [
        (1000003 * 1000033, "10^12 semiprime"),
        (982451653 * 2147483647, "10^18 semiprime"),
        (15485863 * 2**61 - 15485863, "Small factor of an 84-bit composite"),
    ]

    for n, description in test_cases:
        for use_processes in (True, False):
            coordinator = ParallelRhoCoordinator(use_processes=use_processes)
            result = benchmark(coordinator.find_divisor, n, iterations=3)
            result.name = f"{'Processes' if use_processes else 'Threads'}: {description}"
            print(result)


# ============================================================================
# 5. COMPLETE FACTORIZATION BENCHMARKS
# ============================================================================

def benchmark_complete_factorization():
    """Benchmark complete factorization through the engine."""
    section("COMPLETE FACTORIZATION BENCHMARKS")

    engine = FactorizationEngine()
    test_cases = [
        (360, "Small composite (sieve only)"),
        (30030, "Product of first 6 primes"),
        (41 * 43 * 47, "Word-sized cofactors (inline JIT)"),
        (1000003 * 1000033, "10^12 semiprime"),
        (2**10 * 104729 * 1299709 * 15485863, "Four-way split"),
    ]

    for n, description in test_cases:
        result = benchmark(engine.factorize, n, iterations=3)
        result.name = description
        print(result)


# ============================================================================
# 6. TIMEOUT BENCHMARKS
# ============================================================================

def benchmark_timeout():
    """Measure how long an unsplittable round takes compared to its budget."""
    section("TIMEOUT BENCHMARKS (150-bit semiprime, out of reach)")

    n = (2**61 - 1) * (2**89 - 1)
    for budget in (0.25, 0.5, 1.0):
        coordinator = ParallelRhoCoordinator(timeout=budget)
        result = benchmark(coordinator.find_divisor, n, iterations=3)
        result.name = f"Budget {budget:.2f}s"
        print(result)
        print(f"{'':40} | Overshoot: {(result.mean - budget)*1000:8.3f}ms")


# ============================================================================
# MAIN BENCHMARK SUITE
# ============================================================================

def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n")
    print("╔" + "="*98 + "╗")
    print("║" + " "*20 + "PARALLEL FACTORIZATION BENCHMARK SUITE" + " "*40 + "║")
    print("╚" + "="*98 + "╝")

    try:
        benchmark_primality()
        benchmark_trial_division()
        benchmark_rho_lanes()
        benchmark_coordinator()
        benchmark_complete_factorization()
        benchmark_timeout()

        print("\n" + "="*100)
        print("BENCHMARK COMPLETE")
        print("="*100 + "\n")

    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run_all_benchmarks()
