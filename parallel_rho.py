"""
Parallel Pollard rho: races a pool of Brent lanes against one composite.

Each call to ParallelRhoCoordinator.find_divisor() is one coordination
round. The round creates its own worker pool and result channel, launches
one lane per worker with distinct parameters, accepts the first verified
divisor, signals every other lane to stop and joins the pool before
returning. Lanes that stay silent for CANCEL_GRACE seconds after the
signal are terminated with the pool. A round that runs out of lanes or
time returns 0.
"""
import logging
import multiprocessing
import os
import queue
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from multiprocessing.pool import ThreadPool

import numpy as np

from rho_search import (
    BATCH_SIZE,
    MAX_ITERATIONS,
    LaneParameters,
    SearchOutcome,
    OutcomeKind,
    _install_cancel_token,
    _lane_worker,
)
from simd_operations import _rho_brent_word, fits_rho_kernel

logger = logging.getLogger(__name__)

# Lane pool size bounds (scaled with available cores in between)
MIN_LANES = 6
MAX_LANES = 16

# Global wall-clock budget of one round, in seconds
ROUND_TIMEOUT = 60.0

# How many times a lane is relaunched with fresh parameters after failing
MAX_RETRIES = 1

# Seconds signalled lanes get to report before the pool is terminated
CANCEL_GRACE = 5.0


def default_lane_count() -> int:
    return max(MIN_LANES, min(os.cpu_count() or MIN_LANES, MAX_LANES))


def lane_parameters(n: int, count: int, seed: int = 0, attempt: int = 0) -> list[LaneParameters]:
    """
    Deterministically derive parameters for `count` lanes against n.

    Constants are drawn from [1, n-3] (0 and -2 give degenerate maps) and
    starting values from [2, n-1]. Colliding constants are bumped to the
    next free value, so lanes of one attempt never share a constant unless
    n is too small to have enough of them.

    Args:
        n: Target composite (at least 4)
        count: Number of lanes
        seed: Explicit seed; same seed, same parameters
        attempt: Retry generation; each attempt gets an independent stream

    Returns:
        List of LaneParameters with lane ids 0..count-1
    """
    if n < 4:
        raise ValueError(f"cannot derive lane parameters for n={n}")
    constant_span = n - 3
    seed_span = n - 2
    words = np.random.SeedSequence(seed, spawn_key=(attempt,)).generate_state(2 * count, dtype=np.uint64)

    used: set[int] = set()
    lanes = []
    for lane_id in range(count):
        c = 1 + int(words[2 * lane_id]) % constant_span
        while c in used and len(used) < constant_span:
            c = c % constant_span + 1
        used.add(c)
        start = 2 + int(words[2 * lane_id + 1]) % seed_span
        lanes.append(LaneParameters(c, start, lane_id, attempt))
    return lanes


@dataclass
class RoundSummary:
    """What happened during one coordination round."""
    n: int
    lanes: int
    outcomes: dict[int, list[SearchOutcome]] = field(default_factory=dict)
    launched: int = 0
    divisor: int = 0
    timed_out: bool = False
    elapsed: float = 0.0

    def record(self, lane_id: int, outcome: SearchOutcome) -> None:
        self.outcomes.setdefault(lane_id, []).append(outcome)

    @property
    def reported(self) -> int:
        return sum(len(found) for found in self.outcomes.values())

    @property
    def outstanding(self) -> int:
        """Launched lane attempts that never reported back."""
        return self.launched - self.reported

    def final_outcomes(self) -> dict[int, SearchOutcome]:
        return {lane_id: found[-1] for lane_id, found in self.outcomes.items()}


class ParallelRhoCoordinator:
    """
    Runs Brent lanes in parallel and returns the first verified divisor.

    Args:
        lanes: Pool size; defaults to the core count clamped to [MIN_LANES, MAX_LANES]
        timeout: Wall-clock budget of one round, in seconds
        seed: Seed of the lane parameter generator
        use_processes: Run lanes in a process pool (True) or a thread pool
        batch_size: Lane batch size
        max_iterations: Lane iteration ceiling
        max_retries: Relaunches per lane after a failed attempt
        launch_order_seed: If given, lanes are launched in an order
                           shuffled with this seed
        cancel_grace: Seconds signalled lanes get to report once the round
                      is decided; lanes still silent after that (a worker
                      process that died) are terminated and recorded as
                      exhausted

    last_round holds the summary of the most recent round started by the
    calling thread.
    """

    def __init__(self, lanes: int | None = None, timeout: float = ROUND_TIMEOUT,
                 seed: int = 0, use_processes: bool = True,
                 batch_size: int = BATCH_SIZE, max_iterations: int = MAX_ITERATIONS,
                 max_retries: int = MAX_RETRIES, launch_order_seed: int | None = None,
                 cancel_grace: float = CANCEL_GRACE):
        if lanes is None:
            lanes = default_lane_count()
        if lanes < 1:
            raise ValueError("at least one lane is required")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if batch_size < 1 or max_iterations < 1:
            raise ValueError("batch_size and max_iterations must be positive")
        if cancel_grace < 0:
            raise ValueError("cancel_grace must not be negative")
        self.lanes = lanes
        self.timeout = timeout
        self.seed = seed
        self.use_processes = use_processes
        self.batch_size = batch_size
        self.max_iterations = max_iterations
        self.max_retries = max_retries
        self.launch_order_seed = launch_order_seed
        self.cancel_grace = cancel_grace
        self._local = threading.local()

    @property
    def last_round(self) -> RoundSummary | None:
        return getattr(self._local, "summary", None)

    def find_divisor(self, n: int) -> int:
        """
        Find a proper divisor of composite n.

        Returns:
            A divisor 1 < d < n with n % d == 0, or 0 if no lane found one
            within the round's budget
        """
        if n < 4:
            return 0
        if n % 2 == 0:
            return 2

        started = time.monotonic()
        deadline = started + self.timeout
        summary = RoundSummary(n, self.lanes)
        self._local.summary = summary

        params = lane_parameters(n, self.lanes, self.seed)
        if self.launch_order_seed is not None:
            random.Random(self.launch_order_seed).shuffle(params)

        try:
            # lanes are pure, so a word-sized round gives the same outcomes inline
            if fits_rho_kernel(n):
                summary.divisor = self._search_inline(n, params, summary, deadline)
            else:
                summary.divisor = self._race(n, params, summary, deadline)
        finally:
            summary.elapsed = time.monotonic() - started

        if summary.divisor:
            logger.debug("split %d -> %d in %.3fs", n, summary.divisor, summary.elapsed)
        elif summary.timed_out:
            logger.info("round on %d timed out after %.3fs", n, summary.elapsed)
        else:
            logger.info("all %d lanes exhausted on %d", self.lanes, n)
        return summary.divisor

    def _retry(self, n: int, lane: LaneParameters) -> LaneParameters | None:
        if lane.attempt >= self.max_retries:
            return None
        fresh = lane_parameters(n, self.lanes, self.seed, lane.attempt + 1)[lane.lane_id]
        return lane.retried(fresh.polynomial_constant, fresh.seed)

    def _accept(self, n: int, lane: LaneParameters, outcome: SearchOutcome) -> bool:
        if outcome.splits(n):
            return True
        if outcome.is_found and outcome.divisor not in (1, n):
            logger.warning("lane %d claimed %d which does not divide %d", lane.lane_id, outcome.divisor, n)
        return False

    def _search_inline(self, n: int, params: list[LaneParameters],
                       summary: RoundSummary, deadline: float) -> int:
        pending = deque(params)
        while pending:
            if time.monotonic() >= deadline:
                summary.timed_out = True
                return 0
            lane = pending.popleft()
            summary.launched += 1
            divisor, iterations = _rho_brent_word(n, lane.polynomial_constant, lane.seed,
                                                  self.batch_size, self.max_iterations)
            if divisor:
                outcome = SearchOutcome.found(int(divisor), int(iterations))
            else:
                outcome = SearchOutcome.exhausted(int(iterations))
            summary.record(lane.lane_id, outcome)
            if self._accept(n, lane, outcome):
                return outcome.divisor
            retry = self._retry(n, lane)
            if retry is not None:
                pending.append(retry)
        return 0

    def _race(self, n: int, params: list[LaneParameters],
              summary: RoundSummary, deadline: float) -> int:
        channel: queue.SimpleQueue = queue.SimpleQueue()
        if self.use_processes:
            context = multiprocessing.get_context()
            cancel = context.Event()
            pool = context.Pool(len(params), initializer=_install_cancel_token, initargs=(cancel,))
            token = None
        else:
            cancel = threading.Event()
            pool = ThreadPool(len(params))
            token = cancel

        pending: dict[int, LaneParameters] = {}

        def launch(lane: LaneParameters) -> None:
            pending[lane.lane_id] = lane
            summary.launched += 1
            pool.apply_async(
                _lane_worker,
                (n, lane, self.batch_size, self.max_iterations, token),
                callback=channel.put,
                error_callback=lambda exc, lane_id=lane.lane_id: channel.put((lane_id, exc)),
            )

        logger.debug("launching %d lanes on %d", len(params), n)
        divisor = 0
        try:
            for lane in params:
                launch(lane)
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    summary.timed_out = True
                    break
                try:
                    lane_id, result = channel.get(timeout=remaining)
                except queue.Empty:
                    summary.timed_out = True
                    break
                lane = pending.pop(lane_id)
                outcome = self._collect(summary, lane_id, result)
                if self._accept(n, lane, outcome):
                    divisor = outcome.divisor
                    break
                retry = self._retry(n, lane)
                if retry is not None:
                    launch(retry)
        finally:
            cancel.set()
            pool.close()
            self._drain(summary, pending, channel, time.monotonic() + self.cancel_grace)
            if pending:
                pool.terminate()
            pool.join()
            self._drain(summary, pending, channel, None)
            for lane_id in pending:
                logger.warning("lane %d on %d never reported, recording it as exhausted", lane_id, n)
                summary.record(lane_id, SearchOutcome.exhausted(0))
        return divisor

    def _drain(self, summary: RoundSummary, pending: dict[int, LaneParameters],
               channel: queue.SimpleQueue, until: float | None) -> None:
        """Record reports of signalled lanes; None means take only what is already queued."""
        while pending:
            try:
                if until is None:
                    lane_id, result = channel.get_nowait()
                else:
                    remaining = until - time.monotonic()
                    if remaining <= 0:
                        return
                    lane_id, result = channel.get(timeout=remaining)
            except queue.Empty:
                return
            pending.pop(lane_id, None)
            self._collect(summary, lane_id, result)

    def _collect(self, summary: RoundSummary, lane_id: int, result) -> SearchOutcome:
        if isinstance(result, BaseException):
            logger.warning("lane %d crashed on %d: %r", lane_id, summary.n, result)
            outcome = SearchOutcome.exhausted(0)
        else:
            outcome = result
        summary.record(lane_id, outcome)
        return outcome


def cancelled_lanes(summary: RoundSummary) -> list[int]:
    """Lane ids whose last reported outcome is CANCELLED."""
    return [lane_id for lane_id, outcome in summary.final_outcomes().items()
            if outcome.kind is OutcomeKind.CANCELLED]
