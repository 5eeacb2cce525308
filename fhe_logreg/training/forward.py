"""
Forward pass: the linear products ``w·x_i`` fed to the sigmoid evaluator.

Two modes:

- ``client``: the data owner computes ``w·x_i`` on its own plaintext and
  encrypts the result broadcast to every slot. No level is consumed.
- ``homomorphic``: encrypted features are multiplied slot-wise by the
  encrypted weights and reduced with rotate-and-sum, which leaves the dot
  product in every slot. Costs one level.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..fhe import alignment
from ..fhe.backend import HEBackend
from ..fhe.ciphertext import TaggedCiphertext

logger = logging.getLogger(__name__)


def client_linear_products(
    backend: HEBackend,
    weights: np.ndarray,
    features: np.ndarray,
) -> List[TaggedCiphertext]:
    """Encrypt ``w·x_i`` for every row of ``features``, broadcast, at the top level."""
    products = np.asarray(features, dtype=np.float64) @ np.asarray(weights, dtype=np.float64)
    return [backend.encrypt_values(float(p)) for p in products]


def rotate_and_sum(
    backend: HEBackend,
    ct: TaggedCiphertext,
    span: Optional[int] = None,
) -> TaggedCiphertext:
    """
    Sum the first ``span`` slots into every slot.

    Rotations by 1, 2, 4, ... ``span/2`` are added onto the running value, so
    ``log2(span)`` rotations are needed. ``span`` must be a power of two and
    defaults to the full slot count, which requires the other slots to hold
    zeros (the packing convention zero pads).
    """
    span = span or backend.slot_count
    if span & (span - 1):
        raise ValueError(f"rotate-and-sum span must be a power of two, got {span}")

    total = ct
    step = 1
    while step < span:
        total = alignment.add(backend, total, backend.rotate(total, step))
        step *= 2
    return total


def homomorphic_linear_products(
    backend: HEBackend,
    weights: TaggedCiphertext,
    features: Sequence[TaggedCiphertext],
) -> List[TaggedCiphertext]:
    """Compute every ``w·x_i`` under encryption (one level below the inputs)."""
    products = []
    for x_i in features:
        product = alignment.multiply(backend, x_i, weights)
        products.append(rotate_and_sum(backend, product))
    logger.debug(
        f"Homomorphic forward pass: {len(products)} products at level "
        f"{products[0].level if products else '-'}"
    )
    return products
