"""
Gradient Engine

Per-sample partial derivatives ``d_i = (y_i - s_i) · x_i`` and their
homomorphic summation across a batch.

Every sample follows the same schedule, so all ``d_i`` share one level and
one scale and the accumulation needs no further alignment. The reduction is
associative: a left fold and a pairwise tree decrypt to the same vector.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence

from ..errors import SetupError
from ..fhe import alignment
from ..fhe.backend import HEBackend
from ..fhe.ciphertext import TaggedCiphertext
from .sigmoid import DEFAULT_SIGMOID, SigmoidPolynomial, evaluate_sigmoid

logger = logging.getLogger(__name__)

REDUCTION_STRATEGIES = ("sequential", "tree")


def partial_derivative(
    backend: HEBackend,
    sigmoid_out: TaggedCiphertext,
    features: TaggedCiphertext,
    label: TaggedCiphertext,
) -> TaggedCiphertext:
    """
    Compute ``(y_i - s_i) · x_i``.

    ``features`` and ``label`` arrive fresh and are switched down to the
    sigmoid output's level, the one place a value drops by several levels
    at once.
    """
    target = sigmoid_out.level
    features = alignment.switch_to_level(backend, features, target)
    label = alignment.switch_to_level(backend, label, target)

    diff = alignment.add(backend, alignment.negate(backend, sigmoid_out), label)
    return alignment.multiply(backend, diff, features)


def _sequential_sum(backend: HEBackend, values: List[TaggedCiphertext]) -> TaggedCiphertext:
    total = values[0]
    for value in values[1:]:
        total = alignment.add(backend, total, value)
    return total


def _tree_sum(backend: HEBackend, values: List[TaggedCiphertext]) -> TaggedCiphertext:
    layer = list(values)
    while len(layer) > 1:
        paired = [
            alignment.add(backend, layer[i], layer[i + 1])
            for i in range(0, len(layer) - 1, 2)
        ]
        if len(layer) % 2:
            paired.append(layer[-1])
        layer = paired
    return layer[0]


def sum_derivatives(
    backend: HEBackend,
    derivatives: Sequence[TaggedCiphertext],
    strategy: str = "sequential",
) -> TaggedCiphertext:
    """
    Reduce the per-sample derivatives to one ciphertext.

    Args:
        backend: HE backend
        derivatives: Non-empty sequence of derivatives sharing level and scale
        strategy: "sequential" (left fold) or "tree" (pairwise)
    """
    if not derivatives:
        raise ValueError("cannot sum an empty batch of derivatives")
    if strategy == "sequential":
        return _sequential_sum(backend, list(derivatives))
    if strategy == "tree":
        return _tree_sum(backend, list(derivatives))
    raise SetupError(
        f"Unknown reduction strategy '{strategy}'. Expected one of {REDUCTION_STRATEGIES}"
    )


def parallel_map(
    fn: Callable[[int], TaggedCiphertext],
    count: int,
    max_workers: int = 1,
) -> List[TaggedCiphertext]:
    """Apply ``fn`` to every sample index, on a thread pool when asked. Keeps order."""
    if max_workers <= 1 or count <= 1:
        return [fn(i) for i in range(count)]
    with ThreadPoolExecutor(max_workers=min(max_workers, count)) as executor:
        return list(executor.map(fn, range(count)))


def evaluate_sigmoids(
    backend: HEBackend,
    linear_products: Sequence[TaggedCiphertext],
    polynomial: SigmoidPolynomial = DEFAULT_SIGMOID,
    max_workers: int = 1,
) -> List[TaggedCiphertext]:
    """Sigmoid of every encrypted ``w·x_i``."""
    return parallel_map(
        lambda i: evaluate_sigmoid(backend, linear_products[i], polynomial),
        len(linear_products),
        max_workers,
    )


def compute_derivatives(
    backend: HEBackend,
    sigmoid_outputs: Sequence[TaggedCiphertext],
    features: Sequence[TaggedCiphertext],
    labels: Sequence[TaggedCiphertext],
    max_workers: int = 1,
) -> List[TaggedCiphertext]:
    """
    Partial derivative of every sample.

    Samples touch disjoint values, so with ``max_workers > 1`` they are
    evaluated on a thread pool. Results keep sample order.
    """
    if not len(sigmoid_outputs) == len(features) == len(labels):
        raise ValueError(
            f"batch sizes differ: {len(sigmoid_outputs)} sigmoid outputs, "
            f"{len(features)} feature vectors, {len(labels)} labels"
        )
    logger.debug(f"Computing {len(features)} derivatives (max_workers={max_workers})")
    return parallel_map(
        lambda i: partial_derivative(backend, sigmoid_outputs[i], features[i], labels[i]),
        len(features),
        max_workers,
    )
