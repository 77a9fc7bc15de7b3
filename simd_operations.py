"""
JIT-compiled kernels for word-sized inputs.

Arbitrary-precision arithmetic stays in pure Python, but whenever every
intermediate value of an algorithm fits in a machine word, the same
algorithm can run under Numba without interpreter overhead.

KERNELS:
1. Trial Division: strips the small-prime basis from n < 2^63
2. Brent's rho lane: full lane search for n < 2^31 (v*v + c fits in int64)

Both kernels produce exactly the results of their pure Python
counterparts in factorization.py and rho_search.py.
"""

import numpy as np
from typing import Tuple, List
from numba import njit

# Largest value accepted by the trial division kernel (int64)
TRIAL_WORD_LIMIT: int = (1 << 63) - 1

# Largest modulus accepted by the rho kernel: (n-1)^2 + n must fit in int64
RHO_WORD_LIMIT: int = 1 << 31


# ============================================================================
# PART 1: TRIAL DIVISION (Numba JIT)
# ============================================================================

@njit
def _trial_division_simd(n: int, primes: np.ndarray) -> Tuple[List[int], int]:
    """
    JIT-compiled trial division over a fixed prime basis.

    Args:
        n: Number to strip (must be below TRIAL_WORD_LIMIT)
        primes: NumPy array of basis primes (int64, ascending)

    Returns:
        (list of factors found, remaining number)
    """
    factors = []
    for p in primes:
        while n % p == 0:
            factors.append(p)
            n //= p
        if n == 1:
            break
    return factors, n


# ============================================================================
# PART 2: BRENT'S RHO LANE (Numba JIT)
# ============================================================================

@njit
def _gcd_word(a: int, b: int) -> int:
    while b:
        a, b = b, a % b
    return a


@njit
def _rho_brent_word(n: int, c: int, y: int, m: int, max_iterations: int) -> Tuple[int, int]:
    """
    Brent's cycle detection for a word-sized modulus.

    Mirrors rho_search.rho_search step for step (same batching, same
    iteration accounting, same backtracking) but has no cancellation
    checks, so it must only be used on moduli small enough to finish
    quickly.

    Args:
        n: Composite modulus, 4 <= n < RHO_WORD_LIMIT
        c: Polynomial constant of f(v) = v^2 + c
        y: Starting value
        m: Batch size for the accumulated product
        max_iterations: Ceiling on applications of f

    Returns:
        (divisor, iterations) where divisor is 0 when the lane exhausted
        its budget. The divisor may equal n (degenerate cycle).
    """
    c = c % n
    y = y % n
    r = 1
    q = 1
    g = 1
    x = y
    ys = y
    iterations = 0

    while g == 1:
        x = y
        k = 0
        while k < r:
            if iterations >= max_iterations:
                return 0, iterations
            step = min(m, r - k)
            for _ in range(step):
                y = (y * y + c) % n
            k += step
            iterations += step
        k = 0
        while k < r and g == 1:
            if iterations >= max_iterations:
                return 0, iterations
            ys = y
            step = min(m, r - k)
            for _ in range(step):
                y = (y * y + c) % n
                q = q * abs(x - y) % n
            g = _gcd_word(q, n)
            k += step
            iterations += step
        r <<= 1

    if g == n:
        g = 1
        for _ in range(m):
            ys = (ys * ys + c) % n
            g = _gcd_word(abs(x - ys), n)
            if g > 1:
                break
        if g == 1:
            return 0, iterations
    return g, iterations


def fits_trial_kernel(n: int) -> bool:
    """Check whether n can be handed to the trial division kernel."""
    return 0 < n <= TRIAL_WORD_LIMIT


def fits_rho_kernel(n: int) -> bool:
    """Check whether n can be handed to the rho lane kernel."""
    return 4 <= n < RHO_WORD_LIMIT


__all__: List[str] = [
    'TRIAL_WORD_LIMIT',
    'RHO_WORD_LIMIT',
    '_trial_division_simd',
    '_rho_brent_word',
    'fits_trial_kernel',
    'fits_rho_kernel',
]
