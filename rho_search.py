"""
Single search lane: Brent's variant of Pollard's rho.

A lane is one independent attempt at splitting a composite n with a given
polynomial constant and starting value. Lanes are pure (the same inputs
always give the same outcome) and share no state, so the coordinator can
run any number of them side by side in worker processes or threads.

This module is imported by pool workers and depends on the
standard library only.
"""
import enum
import math
from dataclasses import dataclass, replace

# Number of f() applications folded into one gcd
BATCH_SIZE: int = 256

# Hard ceiling on f() applications for one lane attempt
MAX_ITERATIONS: int = 1 << 24

# Cancel signal installed by the pool initializer in worker processes
_cancel_token = None


class OutcomeKind(enum.Enum):
    FOUND = "found"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LaneParameters:
    """Immutable inputs of one lane: f(v) = v^2 + polynomial_constant, started at seed."""
    polynomial_constant: int
    seed: int
    lane_id: int
    attempt: int = 0

    def retried(self, polynomial_constant: int, seed: int) -> "LaneParameters":
        return replace(self, polynomial_constant=polynomial_constant, seed=seed,
                       attempt=self.attempt + 1)


@dataclass(frozen=True)
class SearchOutcome:
    kind: OutcomeKind
    divisor: int = 0
    iterations: int = 0

    @classmethod
    def found(cls, divisor: int, iterations: int) -> "SearchOutcome":
        return cls(OutcomeKind.FOUND, divisor, iterations)

    @classmethod
    def exhausted(cls, iterations: int) -> "SearchOutcome":
        return cls(OutcomeKind.EXHAUSTED, 0, iterations)

    @classmethod
    def cancelled(cls, iterations: int) -> "SearchOutcome":
        return cls(OutcomeKind.CANCELLED, 0, iterations)

    @property
    def is_found(self) -> bool:
        return self.kind is OutcomeKind.FOUND

    def splits(self, n: int) -> bool:
        """True when this outcome carries a proper divisor of n."""
        return self.is_found and 1 < self.divisor < n and n % self.divisor == 0


def rho_search(n: int, params: LaneParameters, cancel=None,
               batch_size: int = BATCH_SIZE,
               max_iterations: int = MAX_ITERATIONS) -> SearchOutcome:
    """
    Search for a nontrivial divisor of composite n.

    Args:
        n: Composite number to split (odd, at least 4)
        params: Polynomial constant and starting value of this lane
        cancel: Object with an is_set() method (threading or multiprocessing
                Event); polled at lane start, before every advance chunk and
                before every batch
        batch_size: Number of |x - y| terms multiplied before each gcd
        max_iterations: Ceiling on applications of f before giving up

    Returns:
        SearchOutcome. A FOUND divisor is always > 1 but may equal n when
        the cycle closes modulo every prime factor at once.
    """
    if cancel is not None and cancel.is_set():
        return SearchOutcome.cancelled(0)
    if n < 4:
        return SearchOutcome.exhausted(0)

    m = batch_size
    c = params.polynomial_constant % n
    y = params.seed % n
    r = 1
    q = 1
    g = 1
    x = ys = y
    iterations = 0

    while g == 1:
        x = y
        # move the hare r steps ahead of the tortoise
        k = 0
        while k < r:
            if iterations >= max_iterations:
                return SearchOutcome.exhausted(iterations)
            if cancel is not None and cancel.is_set():
                return SearchOutcome.cancelled(iterations)
            step = min(m, r - k)
            for _ in range(step):
                y = (y * y + c) % n
            k += step
            iterations += step
        # batch gcd
        k = 0
        while k < r and g == 1:
            if iterations >= max_iterations:
                return SearchOutcome.exhausted(iterations)
            if cancel is not None and cancel.is_set():
                return SearchOutcome.cancelled(iterations)
            ys = y
            step = min(m, r - k)
            for _ in range(step):
                y = (y * y + c) % n
                q = q * abs(x - y) % n
            g = math.gcd(q, n)
            k += step
            iterations += step
        r <<= 1

    if g == n:
        # overshot: replay the last batch one step at a time
        g = 1
        for _ in range(m):
            ys = (ys * ys + c) % n
            g = math.gcd(abs(x - ys), n)
            if g > 1:
                break
        if g == 1:
            return SearchOutcome.exhausted(iterations)
    return SearchOutcome.found(g, iterations)


def _install_cancel_token(token) -> None:
    """Pool initializer: remember the round's cancel signal in this worker."""
    global _cancel_token
    _cancel_token = token


def _lane_worker(n: int, params: LaneParameters, batch_size: int,
                 max_iterations: int, cancel=None) -> tuple[int, SearchOutcome]:
    """Worker entry point (must be at module level for process pools)."""
    token = cancel if cancel is not None else _cancel_token
    return params.lane_id, rho_search(n, params, token, batch_size, max_iterations)
