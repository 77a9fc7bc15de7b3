"""
Reporting on top of the factorization engine.

Turns a FactorizationResult into what a caller displays: a classification
label, the prime density of the input and the execution time. Also hosts
the `factorize` command line tool.
"""
import argparse
import enum
import logging
import math
import sys
from dataclasses import dataclass

from factorization import (
    SIEVE_BOUND,
    FactorizationEngine,
    FactorizationResult,
    InvalidNumberError,
    digit_count,
    parse_number,
    to_decimal,
)
from parallel_rho import ROUND_TIMEOUT, ParallelRhoCoordinator

logger = logging.getLogger(__name__)

LN_10 = math.log(10)


class ClassificationType(enum.Enum):
    PRIME = "Prime"
    SEMIPRIME = "Semiprime"
    COMPOSITE = "Composite"
    NON_PRIME_UNSTABLE = "Non-Prime (Unstable)"
    UNIT = "Unit"


def classify(n: int, result: FactorizationResult) -> ClassificationType:
    """Label n from its factor multiset; any unresolved residual wins over the factor count."""
    if n < 1:
        raise ValueError(f"no classification for {n}")
    if n == 1:
        return ClassificationType.UNIT
    if not result.resolved:
        return ClassificationType.NON_PRIME_UNSTABLE
    if len(result.factors) == 1:
        return ClassificationType.PRIME
    if len(result.factors) == 2:
        return ClassificationType.SEMIPRIME
    return ClassificationType.COMPOSITE


def prime_density(n: int, result: FactorizationResult) -> float:
    """Number of factors per unit of ln(n), with ln(n) estimated from the digit count."""
    if n <= 1:
        return 0.0
    return len(result.factors) / (digit_count(n) * LN_10)


@dataclass(frozen=True)
class AnalysisReport:
    input_number: str
    classification: ClassificationType
    factors: list[str]
    unresolved: list[str]
    resolved: bool
    prime_density: float
    execution_time_ms: float


def analyze_number(text: str, engine: FactorizationEngine | None = None) -> AnalysisReport:
    """
    Validate, factorize and classify a base-10 digit string.

    Raises:
        InvalidNumberError: before any computation, if the text is rejected
    """
    n = parse_number(text)
    if engine is None:
        engine = FactorizationEngine()
    result = engine.factorize(n)
    return AnalysisReport(
        input_number=to_decimal(n),
        classification=classify(n, result),
        factors=[to_decimal(f) for f in result.factors],
        unresolved=[to_decimal(f) for f in result.unresolved],
        resolved=result.resolved,
        prime_density=prime_density(n, result),
        execution_time_ms=result.elapsed * 1000,
    )


def format_report(report: AnalysisReport) -> str:
    unresolved = set(report.unresolved)
    shown = [f + "?" if f in unresolved else f for f in report.factors]
    return (f"{report.input_number} = {' × '.join(shown)}  "
            f"[{report.classification.value}]  ({report.execution_time_ms:.1f} ms)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Factor integers with parallel Pollard-Rho (Brent).")
    parser.add_argument("numbers", nargs="+", help="Base-10 integers to factor")
    parser.add_argument("--timeout", "-t", type=float, default=ROUND_TIMEOUT,
                        help=f"Seconds per coordination round (default: {ROUND_TIMEOUT:g})")
    parser.add_argument("--lanes", "-l", type=int, help="Number of parallel lanes (default: scaled to CPU count)")
    parser.add_argument("--seed", "-s", type=int, default=0, help="Seed for lane parameters (default: 0)")
    parser.add_argument("--threads", action="store_true", help="Run lanes in threads instead of processes")
    parser.add_argument("--sieve-bound", type=int, default=SIEVE_BOUND,
                        help=f"Trial division bound (default: {SIEVE_BOUND})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every coordination round")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    coordinator = ParallelRhoCoordinator(lanes=args.lanes, timeout=args.timeout, seed=args.seed,
                                         use_processes=not args.threads)
    engine = FactorizationEngine(coordinator, sieve_bound=args.sieve_bound)

    status = 0
    for text in args.numbers:
        try:
            report = analyze_number(text, engine)
        except InvalidNumberError as e:
            print(f"error: {e}", file=sys.stderr)
            status = 2
            continue
        print(format_report(report))
        if not report.resolved:
            logger.info("%s left unresolved factors: %s", text, ", ".join(report.unresolved))
    return status


if __name__ == "__main__":
    sys.exit(main())
