"""
Integer factorization using trial division, Miller-Rabin and parallel Pollard's Rho (Brent's variant).

PIPELINE:
1. Trial Division: strips the primes up to 37 (Numba kernel for word-sized n)
2. Miller-Rabin: classifies every remaining cofactor with 15 fixed witnesses
3. Parallel Rho: composite cofactors are split by racing Brent lanes in a
   worker pool (see parallel_rho.py); both halves go back on the work stack
4. Cofactors that cannot be split within the round's time or iteration
   budget are kept as single factors and flagged unresolved

GUARANTEES:
- The product of the returned factors always equals the input
- Every factor not flagged unresolved passes the primality test
- Primality is probabilistic: a composite may in principle pass all 15
  witnesses, which is accepted rather than proven away

DEPENDENCIES:
- NumPy: prime basis sieve, lane parameter generation
- Numba: JIT kernels for word-sized inputs
"""
import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache

import numpy as np

from parallel_rho import ParallelRhoCoordinator
from simd_operations import _trial_division_simd, fits_trial_kernel

logger = logging.getLogger(__name__)

# Miller-Rabin witnesses (the first 15 primes)
WITNESSES: tuple[int, ...] = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47)

# Trial division basis bound (primes 2..37)
SIEVE_BOUND = 37

# Smallest value accepted from text input
MINIMUM_VALUE = 1

# Longest digit run converted in one int()/str() call (interpreter limit is 4300)
DECIMAL_CHUNK = 4000

LOG10_2 = math.log10(2)


class InvalidNumberError(ValueError):
    """Raised when text input is not a base-10 integer in the accepted domain."""


@lru_cache(maxsize=8)
def small_primes(limit: int = SIEVE_BOUND) -> tuple[int, ...]:
    """Primes up to limit, from a NumPy sieve of Eratosthenes (memoized)."""
    if limit < 2:
        return ()
    sieve = np.ones(limit + 1, dtype=np.bool_)
    sieve[:2] = False
    for i in range(2, math.isqrt(limit) + 1):
        if sieve[i]:
            sieve[i * i::i] = False
    return tuple(int(p) for p in np.flatnonzero(sieve))


@lru_cache(maxsize=8)
def _prime_basis(limit: int) -> np.ndarray:
    return np.asarray(small_primes(limit), dtype=np.int64)


# Miller–Rabin primality test
def is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n in (2, 3):
        return True
    if (n & 1) == 0:
        return False

    # write n-1 as d * 2^s
    d: int = n - 1
    s: int = 0
    while (d & 1) == 0:
        d >>= 1
        s += 1

    def check(a):
        x: int = pow(a, d, n)
        if x == 1 or x == n - 1:
            return True
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                return True
        return False

    for a in WITNESSES:
        if n <= a:
            break
        if not check(a):
            return False
    return True


# trial division over the small prime basis
def trial_division(n: int, bound: int = SIEVE_BOUND) -> tuple[list[int], int]:
    """
    Strip every prime <= bound from n.

    Args:
        n: Positive integer
        bound: Largest basis prime

    Returns:
        (small factors in ascending order, residual). The residual is 1
        when n was fully factored by the basis.
    """
    if n < 1:
        raise ValueError(f"trial division needs a positive integer, got {n}")

    if fits_trial_kernel(n):
        found, rest = _trial_division_simd(n, _prime_basis(bound))
        return [int(p) for p in found], int(rest)

    factors: list[int] = []
    for p in small_primes(bound):
        while n % p == 0:
            factors.append(p)
            n //= p
        if n == 1:
            break
    return factors, n


@dataclass(frozen=True)
class FactorizationResult:
    """
    Ascending factor multiset of one factorize() call.

    Unresolved composites appear in `factors` like any other factor and are
    listed again in `unresolved`.
    """
    factors: tuple[int, ...]
    unresolved: tuple[int, ...] = ()
    elapsed: float = 0.0

    @property
    def resolved(self) -> bool:
        return not self.unresolved

    @property
    def product(self) -> int:
        return math.prod(self.factors)


class FactorizationEngine:
    """
    Reduces an integer to primes: sieve first, then split composite
    cofactors one coordination round at a time.

    Each factorize() call owns its work stack; the coordinator creates a
    fresh pool per round and keeps last_round per calling thread, so one
    engine may serve calls from several threads.
    """

    def __init__(self, coordinator: ParallelRhoCoordinator | None = None,
                 sieve_bound: int = SIEVE_BOUND):
        self.coordinator = coordinator if coordinator is not None else ParallelRhoCoordinator()
        self.sieve_bound = sieve_bound

    def factorize(self, n: int) -> FactorizationResult:
        started = time.perf_counter()
        if n < 1:
            return FactorizationResult((), (), time.perf_counter() - started)
        if n == 1:
            return FactorizationResult((1,), (), time.perf_counter() - started)

        factors, residual = trial_division(n, self.sieve_bound)
        unresolved: list[int] = []
        stack = [residual] if residual > 1 else []

        while stack:
            cofactor = stack.pop()
            if is_prime(cofactor):
                factors.append(cofactor)
                continue
            d = self.coordinator.find_divisor(cofactor)
            if 1 < d < cofactor and cofactor % d == 0:
                stack.append(d)
                stack.append(cofactor // d)
            else:
                logger.info("could not split %d, keeping it as unresolved", cofactor)
                factors.append(cofactor)
                unresolved.append(cofactor)

        return FactorizationResult(tuple(sorted(factors)), tuple(sorted(unresolved)),
                                   time.perf_counter() - started)


def _parse_digits(digits: str) -> int:
    # int(str) refuses more than sys.get_int_max_str_digits() digits
    if len(digits) <= DECIMAL_CHUNK:
        return int(digits)
    half = len(digits) // 2
    return _parse_digits(digits[:-half]) * 10**half + _parse_digits(digits[-half:])


def digit_count(n: int) -> int:
    """Number of base-10 digits of a positive integer."""
    d = int(n.bit_length() * LOG10_2)
    return d + 1 if n >= 10**d else d


def to_decimal(n: int) -> str:
    """Base-10 text of a non-negative integer of any length."""
    if n < 10**DECIMAL_CHUNK:
        return str(n)
    half = digit_count(n) // 2
    high, low = divmod(n, 10**half)
    return to_decimal(high) + to_decimal(low).zfill(half)


def parse_number(text: str) -> int:
    """
    Parse a base-10 digit string.

    Surrounding whitespace is ignored; signs, separators and any other
    character are rejected, as are values below MINIMUM_VALUE.

    Raises:
        InvalidNumberError: if the text is not an accepted integer
    """
    digits = text.strip()
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise InvalidNumberError(f"not a base-10 integer: {text!r}")
    n = _parse_digits(digits)
    if n < MINIMUM_VALUE:
        raise InvalidNumberError(f"{n} is below the minimum accepted value {MINIMUM_VALUE}")
    return n


def factorize(value: int | str, coordinator: ParallelRhoCoordinator | None = None,
              sieve_bound: int = SIEVE_BOUND) -> FactorizationResult:
    """
    Factorize an integer or a base-10 digit string.

    Args:
        value: Non-negative integer, or digit string (validated by parse_number)
        coordinator: Coordinator to split composites with (fresh default one if None)
        sieve_bound: Trial division basis bound

    Returns:
        FactorizationResult with factors in ascending order
    """
    n = parse_number(value) if isinstance(value, str) else value
    return FactorizationEngine(coordinator, sieve_bound).factorize(n)
