import math
import random
import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor

from factorization import (
    FactorizationEngine,
    FactorizationResult,
    InvalidNumberError,
    digit_count,
    factorize,
    is_prime,
    parse_number,
    small_primes,
    to_decimal,
    trial_division,
)
from parallel_rho import ParallelRhoCoordinator

M61 = 2**61 - 1
M89 = 2**89 - 1


def thread_engine(**options) -> FactorizationEngine:
    options.setdefault("lanes", 4)
    options.setdefault("timeout", 30)
    return FactorizationEngine(ParallelRhoCoordinator(use_processes=False, **options))


class TestPrimalityTesting(unittest.TestCase):
    """Test the Miller-Rabin primality test"""

    def test_small_primes(self):
        """Test known small primes"""
        for p in [2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53]:
            self.assertTrue(is_prime(p), f"{p} should be prime")

    def test_small_composites(self):
        """Test known small composites"""
        composites = [4, 6, 8, 9, 10, 12, 14, 15, 16, 18, 20, 21, 22, 24, 25, 45, 49]
        for c in composites:
            self.assertFalse(is_prime(c), f"{c} should be composite")

    def test_edge_cases(self):
        """Test edge cases"""
        self.assertFalse(is_prime(0))
        self.assertFalse(is_prime(1))
        self.assertFalse(is_prime(-5))
        self.assertTrue(is_prime(2))
        self.assertTrue(is_prime(3))

    def test_large_primes(self):
        """Test some larger known primes"""
        large_primes = [
            104729,  # 10,000th prime
            1299709,  # 100,000th prime
            15485863,  # 1,000,000th prime
            982451653,
            2147483647,  # 2^31 - 1
            M61,
            M89,
        ]
        for p in large_primes:
            self.assertTrue(is_prime(p), f"{p} should be prime")

    def test_carmichael_numbers(self):
        """Carmichael numbers fool the Fermat test but not Miller-Rabin"""
        for c in [561, 1105, 1729, 2465, 2821, 6601, 8911]:
            self.assertFalse(is_prime(c), f"{c} is a Carmichael number, should be composite")

    def test_strong_pseudoprimes(self):
        """Strong pseudoprimes to the first few bases are caught by later witnesses"""
        # base 2
        self.assertFalse(is_prime(2047))
        # bases 2, 3, 5, 7
        self.assertFalse(is_prime(3215031751))

    def test_mersenne_composites(self):
        """Test composite Mersenne numbers"""
        self.assertFalse(is_prime(2047))  # 23 * 89
        self.assertFalse(is_prime(8388607))  # 47 * 178481

    def test_large_composite(self):
        self.assertFalse(is_prime(M61 * M89))

    def test_idempotent(self):
        """Repeated calls give the same answer"""
        for n in [97, 561, M61, M61 * M89]:
            first = is_prime(n)
            for _ in range(5):
                self.assertEqual(is_prime(n), first)


class TestTrialDivision(unittest.TestCase):
    """Test trial division over the small prime basis"""

    def test_basis(self):
        self.assertEqual(small_primes(37), (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37))
        self.assertEqual(small_primes(1), ())

    def test_small_number(self):
        """Test stripping a number made of basis primes"""
        factors, remainder = trial_division(360)
        self.assertEqual(remainder, 1)
        # 360 = 2^3 * 3^2 * 5
        self.assertEqual(factors, [2, 2, 2, 3, 3, 5])

    def test_prime_beyond_bound(self):
        """97 is not in the default basis"""
        factors, remainder = trial_division(97)
        self.assertEqual(factors, [])
        self.assertEqual(remainder, 97)

    def test_prime_within_bound(self):
        factors, remainder = trial_division(97, bound=100)
        self.assertEqual(factors, [97])
        self.assertEqual(remainder, 1)

    def test_mixed_factors(self):
        """Test number with both small and large factors"""
        # 2 * 3 * 1000003 = 6000018
        factors, remainder = trial_division(6000018)
        self.assertEqual(factors, [2, 3])
        self.assertEqual(remainder, 1000003)

    def test_power_of_small_prime(self):
        factors, remainder = trial_division(1024)
        self.assertEqual(factors, [2] * 10)
        self.assertEqual(remainder, 1)

    def test_product_of_small_primes(self):
        # 2 * 3 * 5 * 7 * 11 = 2310
        factors, remainder = trial_division(2310)
        self.assertEqual(factors, [2, 3, 5, 7, 11])
        self.assertEqual(remainder, 1)

    def test_beyond_machine_word(self):
        """Inputs above 2^63 take the arbitrary-precision path"""
        n = 2**70 * 3 * 37 * M61
        factors, remainder = trial_division(n)
        self.assertEqual(factors, [2] * 70 + [3, 37])
        self.assertEqual(remainder, M61)

    def test_one(self):
        self.assertEqual(trial_division(1), ([], 1))

    def test_rejects_non_positive(self):
        with self.assertRaises(ValueError):
            trial_division(0)
        with self.assertRaises(ValueError):
            trial_division(-12)

    def test_returns_python_ints(self):
        factors, remainder = trial_division(2 * 3 * 41)
        self.assertTrue(all(type(f) is int for f in factors))
        self.assertIs(type(remainder), int)


class TestInputParsing(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(parse_number("91"), 91)
        self.assertEqual(parse_number("  100\n"), 100)
        self.assertEqual(parse_number(str(M89)), M89)

    def test_rejects_non_digits(self):
        for text in ["", "   ", "12a", "-5", "+5", "1_000", "1.5", "0x10", "١٢"]:
            with self.assertRaises(InvalidNumberError, msg=text):
                parse_number(text)

    def test_rejects_below_minimum(self):
        with self.assertRaises(InvalidNumberError):
            parse_number("0")
        with self.assertRaises(InvalidNumberError):
            parse_number("000")

    def test_is_value_error(self):
        self.assertTrue(issubclass(InvalidNumberError, ValueError))

    def test_longer_than_int_conversion_limit(self):
        """Digit strings beyond the interpreter's int() limit are still accepted"""
        self.assertEqual(parse_number("1" + "0" * 5000), 10**5000)
        self.assertEqual(parse_number(" 7" + "3" * 9000 + "\n"), 7 * 10**9000 + (10**9000 - 1) // 3)

    def test_long_input_factorizes_in_sieve(self):
        result = factorize("1" + "0" * 5000, ParallelRhoCoordinator(lanes=2, use_processes=False))
        self.assertEqual(result.factors, (2,) * 5000 + (5,) * 5000)
        self.assertTrue(result.resolved)

    def test_decimal_text_of_long_values(self):
        n = 10**5000 + 12345
        text = to_decimal(n)
        self.assertEqual(len(text), 5001)
        self.assertTrue(text.startswith("10000"))
        self.assertTrue(text.endswith("012345"))
        self.assertEqual(to_decimal(91), "91")

    def test_digit_count(self):
        for n, digits in [(1, 1), (9, 1), (10, 2), (99, 2), (100, 3), (10**5000 - 1, 5000), (10**5000, 5001)]:
            self.assertEqual(digit_count(n), digits, n)


class TestFactorization(unittest.TestCase):
    """Test the complete factorization engine"""

    @classmethod
    def setUpClass(cls):
        cls.engine = thread_engine()

    def assertReconstructs(self, n, result):
        self.assertEqual(result.product, n)
        self.assertEqual(list(result.factors), sorted(result.factors))
        for f in result.factors:
            if f not in result.unresolved:
                self.assertTrue(is_prime(f), f"{f} should be prime")

    def test_small_number_oracle(self):
        cases = {
            "1": (1,),
            "2": (2,),
            "17": (17,),
            "91": (7, 13),
            "100": (2, 2, 5, 5),
        }
        for text, expected in cases.items():
            result = factorize(text, ParallelRhoCoordinator(lanes=2, use_processes=False))
            self.assertEqual(result.factors, expected, text)
            self.assertTrue(result.resolved, text)

    def test_unit_and_zero(self):
        self.assertEqual(self.engine.factorize(1).factors, (1,))
        self.assertEqual(self.engine.factorize(0).factors, ())
        self.assertEqual(self.engine.factorize(-7).factors, ())

    def test_invalid_text_input(self):
        with self.assertRaises(InvalidNumberError):
            factorize("12x")
        with self.assertRaises(InvalidNumberError):
            factorize("0")

    def test_factor_prime(self):
        self.assertEqual(self.engine.factorize(104729).factors, (104729,))
        self.assertEqual(self.engine.factorize(M61).factors, (M61,))

    def test_word_sized_semiprimes(self):
        cases = [
            (41 * 43, (41, 43)),
            (10403, (101, 103)),
            (8051, (83, 97)),
        ]
        for n, expected in cases:
            self.assertEqual(self.engine.factorize(n).factors, expected)

    def test_large_semiprimes(self):
        cases = [
            (1000003 * 1000033, (1000003, 1000033)),
            (982451653 * 2147483647, (982451653, 2147483647)),
        ]
        for n, expected in cases:
            result = self.engine.factorize(n)
            self.assertEqual(result.factors, expected)
            self.assertTrue(result.resolved)

    def test_mixed_composite(self):
        n = 2**5 * 3 * 41 * 104729 * 1299709
        result = self.engine.factorize(n)
        self.assertEqual(result.factors, (2, 2, 2, 2, 2, 3, 41, 104729, 1299709))

    def test_perfect_powers(self):
        for n in [41**2, 41**5, 104729**2, 1000003**3]:
            result = self.engine.factorize(n)
            self.assertReconstructs(n, result)

    def test_process_pool_engine(self):
        engine = FactorizationEngine(ParallelRhoCoordinator(lanes=3, timeout=60))
        n = 1000003 * 1000033 * 7
        result = engine.factorize(n)
        self.assertEqual(result.factors, (7, 1000003, 1000033))

    def test_random_composites(self):
        """Random products of two numbers reconstruct exactly"""
        rng = random.Random(42)
        for _ in range(15):
            n = rng.randint(1000, 100000) * rng.randint(1000, 100000)
            self.assertReconstructs(n, self.engine.factorize(n))

    def test_large_random_range(self):
        rng = random.Random(44)
        for _ in range(25):
            n = rng.randint(2, 10**9)
            result = self.engine.factorize(n)
            self.assertReconstructs(n, result)
            self.assertTrue(result.resolved)

    def test_elapsed_recorded(self):
        result = self.engine.factorize(10403)
        self.assertGreaterEqual(result.elapsed, 0.0)


class TestUnresolved(unittest.TestCase):
    """Composites that cannot be split within budget are kept and flagged"""

    def test_timeout_marks_unresolved(self):
        n = M61 * M89
        engine = thread_engine(timeout=0.5)
        start = time.monotonic()
        result = engine.factorize(n)
        elapsed = time.monotonic() - start

        self.assertLess(elapsed, 5.0)
        self.assertEqual(result.factors, (n,))
        self.assertEqual(result.unresolved, (n,))
        self.assertFalse(result.resolved)
        self.assertEqual(result.product, n)

    def test_timeout_with_process_pool(self):
        n = M61 * M89
        engine = FactorizationEngine(ParallelRhoCoordinator(lanes=2, timeout=1.0))
        start = time.monotonic()
        result = engine.factorize(n)
        self.assertLess(time.monotonic() - start, 15.0)
        self.assertEqual(result.unresolved, (n,))

    def test_small_factors_survive_next_to_unresolved(self):
        n = 2**3 * 5 * M61 * M89
        result = thread_engine(timeout=0.3).factorize(n)
        self.assertEqual(result.factors, (2, 2, 2, 5, M61 * M89))
        self.assertEqual(result.unresolved, (M61 * M89,))
        self.assertEqual(result.product, n)

    def test_iteration_ceiling_marks_unresolved(self):
        n = M61 * M89
        engine = thread_engine(max_iterations=64)
        result = engine.factorize(n)
        self.assertEqual(result.unresolved, (n,))
        self.assertFalse(engine.coordinator.last_round.timed_out)


class TestConcurrentCalls(unittest.TestCase):

    def test_engines_in_parallel_threads(self):
        """Concurrent factorize() calls share no work stack or pool"""
        engine = thread_engine(lanes=2)
        inputs = [1000003 * 1000033, 982451653 * 104729, 10403, 2**10 * 1299709 * 15485863]
        with ThreadPoolExecutor(max_workers=len(inputs)) as executor:
            results = list(executor.map(engine.factorize, inputs))
        for n, result in zip(inputs, results):
            self.assertEqual(result.product, n)
            self.assertTrue(result.resolved)
            self.assertTrue(all(is_prime(f) for f in result.factors))

    def test_no_threads_left_behind(self):
        engine = thread_engine()
        before = threading.active_count()
        engine.factorize(1000003 * 1000033)
        self.assertEqual(threading.active_count(), before)


class TestResult(unittest.TestCase):

    def test_product_and_flags(self):
        result = FactorizationResult((3, 5, 77), (77,), 0.1)
        self.assertEqual(result.product, 3 * 5 * 77)
        self.assertFalse(result.resolved)
        self.assertTrue(FactorizationResult((2, 2)).resolved)

    def test_empty_product(self):
        self.assertEqual(FactorizationResult(()).product, math.prod(()))


if __name__ == "__main__":
    unittest.main()
