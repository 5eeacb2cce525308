"""
Tagged ciphertext and plaintext values.

A tagged value carries the opaque backend payload together with the two
pieces of metadata every combine depends on: the level (position in the
modulus chain) and the scale (fixed-point exponent). Values are frozen;
every homomorphic operation returns a fresh one.
"""

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TaggedCiphertext:
    """Encrypted value with its level and scale."""
    payload: Any = field(repr=False, compare=False)
    level: int
    scale: float

    def __post_init__(self):
        if self.level < 0:
            raise ValueError(f"level must be >= 0, got {self.level}")
        if not self.scale > 0:
            raise ValueError(f"scale must be positive, got {self.scale}")

    @property
    def scale_bits(self) -> float:
        """log2 of the scale."""
        return math.log2(self.scale)


@dataclass(frozen=True)
class TaggedPlaintext:
    """Encoded (not encrypted) value with its level and scale."""
    payload: Any = field(repr=False, compare=False)
    level: int
    scale: float

    def __post_init__(self):
        if self.level < 0:
            raise ValueError(f"level must be >= 0, got {self.level}")
        if not self.scale > 0:
            raise ValueError(f"scale must be positive, got {self.scale}")
