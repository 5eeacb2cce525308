"""
Polynomial Sigmoid Evaluator

Evaluates sigmoid(x) ≈ c0 + c1·x + c3·x^3 + c5·x^5 on a ciphertext with
multiplicative depth 3:

    x2  = x·x                    (L-1)
    x4  = x2·x2                  (L-2)
    c5x = c5·x  -> x4·c5x        (L-1 -> L-3)
    c3x = |c3|·x -> x2·c3x       (L-1 -> L-2, switched to L-3)
    c1x = c1·x                   (L-1, switched to L-3)
    c0 encoded at L, switched to L-3

Naive exponentiation of x^5 would cost depth 5. Each term is brought to
L-3 by the alignment layer before the final sums.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import DepthExhaustedError
from ..fhe import alignment
from ..fhe.backend import HEBackend
from ..fhe.ciphertext import TaggedCiphertext
from ..fhe.schedule import SIGMOID_DEPTH, LevelSchedule, sigmoid_schedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigmoidPolynomial:
    """Odd-plus-constant degree-5 approximation of the logistic function."""
    c0: float = 0.5
    c1: float = 0.25
    c3: float = -0.021
    c5: float = 0.002

    def evaluate(self, x) -> np.ndarray:
        """Plaintext evaluation, the reference for the encrypted result."""
        x = np.asarray(x, dtype=np.float64)
        return self.c0 + self.c1 * x + self.c3 * x ** 3 + self.c5 * x ** 5


DEFAULT_SIGMOID = SigmoidPolynomial()


def _signed_term(
    backend: HEBackend,
    acc: TaggedCiphertext,
    term: TaggedCiphertext,
    coefficient: float,
) -> TaggedCiphertext:
    """Add a magnitude-encoded term, or subtract it when its coefficient is negative."""
    if coefficient < 0:
        return alignment.sub(backend, acc, term)
    return alignment.add(backend, acc, term)


def evaluate_sigmoid(
    backend: HEBackend,
    x: TaggedCiphertext,
    polynomial: SigmoidPolynomial = DEFAULT_SIGMOID,
    schedule: Optional[LevelSchedule] = None,
) -> TaggedCiphertext:
    """
    Evaluate the sigmoid polynomial on an encrypted value.

    Args:
        backend: HE backend
        x: Encrypted linear product ``w·x_i`` at level L >= 3
        polynomial: Coefficient set
        schedule: Level schedule used to verify every intermediate
            (defaults to the sigmoid schedule with entry level L)

    Returns:
        Ciphertext approximating sigmoid(x) at level L-3, nominal scale

    Raises:
        DepthExhaustedError: if ``x`` sits below level 3
    """
    if x.level < SIGMOID_DEPTH:
        raise DepthExhaustedError(
            f"Sigmoid evaluation needs input level >= {SIGMOID_DEPTH}, "
            f"got {x.level}",
            step="sigmoid",
            level=x.level,
            required=SIGMOID_DEPTH,
        )
    schedule = schedule or sigmoid_schedule()
    entry = x.level
    schedule.check("linear_product", x, entry)

    x2 = schedule.check("x_squared", alignment.square(backend, x), entry)
    x4 = schedule.check("x_quartic", alignment.square(backend, x2), entry)

    # c5·x^5 with a single cipher x cipher multiply
    c5_x = schedule.check(
        "c5_x", alignment.multiply_constant(backend, x, abs(polynomial.c5)), entry
    )
    c5_x5 = schedule.check("c5_x5", alignment.multiply(backend, x4, c5_x), entry)

    # c3·x^3
    c3_x = schedule.check(
        "c3_x", alignment.multiply_constant(backend, x, abs(polynomial.c3)), entry
    )
    c3_x3 = schedule.check("c3_x3", alignment.multiply(backend, x2, c3_x), entry)

    # c1·x
    c1_x = schedule.check(
        "c1_x", alignment.multiply_constant(backend, x, abs(polynomial.c1)), entry
    )

    out_level = c5_x5.level
    c0_plain = alignment.encode_constant(backend, polynomial.c0, out_level)

    result = alignment.switch_to_level(backend, c1_x, out_level)
    if polynomial.c1 < 0:
        result = alignment.negate(backend, result)
    result = alignment.add_plain(backend, result, c0_plain)
    result = _signed_term(backend, result, c3_x3, polynomial.c3)
    result = _signed_term(backend, result, c5_x5, polynomial.c5)

    logger.debug(f"Sigmoid evaluated: level {entry} -> {result.level}")
    return schedule.check("sigmoid", result, entry)
