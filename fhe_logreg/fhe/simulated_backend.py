"""
Simulated CKKS Backend

In-process model of leveled CKKS arithmetic. Values are held as scaled
fixed-point slot vectors (``round(value * scale)``), so the scale bookkeeping
behaves like the real scheme:

- products multiply scales, rescaling divides by the actual chain modulus
  (not by a power of two), so raw rescaled scales drift
- overwriting a scale reinterprets the stored integers, exactly like setting
  ``Ciphertext.scale`` in SEAL
- additions require identical level and scale, multiplications identical level
- rescaling at level 0 and multiplying past the modulus bit budget fail

No security is provided. Use it for tests, dry runs and schedule debugging.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .backend import CKKSParameters, HEBackend, Values
from .ciphertext import TaggedCiphertext, TaggedPlaintext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatedPayload:
    """Scaled slot vector plus ciphertext size (2 fresh, 3 before relinearization)."""
    raw: np.ndarray
    size: int = 2


class SimulatedCKKSBackend(HEBackend):
    """
    CKKS simulator enforcing SEAL's level and scale rules.

    Example:
        ```python
        backend = SimulatedCKKSBackend(CKKSParameters())
        ct = backend.encrypt_values([1.0, 2.0, 3.0])
        sq = backend.rescale_to_next(backend.relinearize(backend.square(ct)))
        print(sq.level, sq.scale_bits)
        ```
    """

    name = "simulated"

    def __init__(
        self,
        params: Optional[CKKSParameters] = None,
        noise_stddev: float = 0.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize the simulator.

        Args:
            params: Scheme parameters
            noise_stddev: Standard deviation of the fresh-encryption noise,
                in plaintext units
            seed: Seed for the noise generator
        """
        super().__init__(params)
        self.noise_stddev = noise_stddev
        self._rng = np.random.default_rng(seed)
        self._moduli = self._build_moduli()
        self._has_galois_keys = self.params.generate_galois_keys

        logger.info(
            f"Simulated CKKS backend ready: ring_degree={self.params.ring_degree}, "
            f"max_level={self.max_level}, scale=2^{self.params.scale_bits}"
        )

    def _build_moduli(self) -> List[float]:
        """
        Data moduli, one per level.

        Values follow the NTT-friendly shape ``2^b - k*2N + 1`` so that they
        differ from the nominal power of two like real chain primes do.
        """
        two_n = 2 * self.params.ring_degree
        data_bits = self.params.modulus_chain[:-1]
        return [float(2 ** bits - (i + 1) * two_n + 1) for i, bits in enumerate(data_bits)]

    def _level_bits(self, level: int) -> int:
        return sum(self.params.modulus_chain[:level + 1])

    def modulus_at(self, level: int) -> float:
        """The modulus divided out when rescaling from ``level``."""
        return self._moduli[level]

    # Encoding

    def encode(
        self,
        values: Values,
        level: Optional[int] = None,
        scale: Optional[float] = None,
    ) -> TaggedPlaintext:
        level = self._resolve_level(level)
        scale = scale or self.default_scale
        raw = np.round(self._slot_values(values) * scale)
        return TaggedPlaintext(payload=SimulatedPayload(raw), level=level, scale=scale)

    def decode(self, plain: TaggedPlaintext) -> np.ndarray:
        return plain.payload.raw / plain.scale

    def encrypt(self, plain: TaggedPlaintext) -> TaggedCiphertext:
        raw = plain.payload.raw
        if self.noise_stddev > 0:
            noise = self._rng.normal(0.0, self.noise_stddev * plain.scale, raw.shape)
            raw = np.round(raw + noise)
        self._count("encryptions")
        return TaggedCiphertext(
            payload=SimulatedPayload(raw.copy()), level=plain.level, scale=plain.scale
        )

    def decrypt(self, ct: TaggedCiphertext) -> TaggedPlaintext:
        self._count("decryptions")
        return TaggedPlaintext(
            payload=SimulatedPayload(ct.payload.raw.copy()), level=ct.level, scale=ct.scale
        )

    # Checks mirroring the primitive library

    @staticmethod
    def _require_same_level(a, b) -> None:
        if a.level != b.level:
            raise ValueError(
                f"parameter mismatch: operands at levels {a.level} and {b.level}"
            )

    @classmethod
    def _require_same_scale(cls, a, b) -> None:
        cls._require_same_level(a, b)
        if a.scale != b.scale:
            raise ValueError(f"scale mismatch: {a.scale!r} != {b.scale!r}")

    def _check_scale_bound(self, scale: float, level: int) -> None:
        if np.log2(scale) >= self._level_bits(level):
            raise ValueError(
                f"scale out of bounds: 2^{np.log2(scale):.1f} at level {level} "
                f"({self._level_bits(level)} modulus bits)"
            )

    # Arithmetic

    def add(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        self._require_same_scale(a, b)
        self._count("additions")
        size = max(a.payload.size, b.payload.size)
        return TaggedCiphertext(
            SimulatedPayload(a.payload.raw + b.payload.raw, size), a.level, a.scale
        )

    def sub(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        self._require_same_scale(a, b)
        self._count("additions")
        size = max(a.payload.size, b.payload.size)
        return TaggedCiphertext(
            SimulatedPayload(a.payload.raw - b.payload.raw, size), a.level, a.scale
        )

    def add_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        self._require_same_scale(ct, plain)
        self._count("additions")
        return TaggedCiphertext(
            SimulatedPayload(ct.payload.raw + plain.payload.raw, ct.payload.size),
            ct.level, ct.scale,
        )

    def negate(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        return TaggedCiphertext(
            SimulatedPayload(-ct.payload.raw, ct.payload.size), ct.level, ct.scale
        )

    def multiply(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        self._require_same_level(a, b)
        scale = a.scale * b.scale
        self._check_scale_bound(scale, a.level)
        self._count("multiplications")
        size = a.payload.size + b.payload.size - 1
        return TaggedCiphertext(
            SimulatedPayload(a.payload.raw * b.payload.raw, size), a.level, scale
        )

    def multiply_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        self._require_same_level(ct, plain)
        scale = ct.scale * plain.scale
        self._check_scale_bound(scale, ct.level)
        self._count("plain_multiplications")
        return TaggedCiphertext(
            SimulatedPayload(ct.payload.raw * plain.payload.raw, ct.payload.size),
            ct.level, scale,
        )

    def square(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        return self.multiply(ct, ct)

    def relinearize(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        if ct.payload.size != 3:
            raise ValueError(f"relinearization expects size 3, got {ct.payload.size}")
        self._count("relinearizations")
        return TaggedCiphertext(SimulatedPayload(ct.payload.raw, 2), ct.level, ct.scale)

    def rescale_to_next(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        if ct.level == 0:
            raise ValueError("end of modulus switching chain reached")
        modulus = self.modulus_at(ct.level)
        self._count("rescales")
        return TaggedCiphertext(
            SimulatedPayload(np.round(ct.payload.raw / modulus), ct.payload.size),
            ct.level - 1,
            ct.scale / modulus,
        )

    def switch_to_level(self, ct: TaggedCiphertext, level: int) -> TaggedCiphertext:
        if not 0 <= level <= ct.level:
            raise ValueError(f"cannot switch from level {ct.level} to {level}")
        if level == ct.level:
            return ct
        self._count("level_switches")
        return TaggedCiphertext(ct.payload, level, ct.scale)

    def switch_plain_to_level(self, plain: TaggedPlaintext, level: int) -> TaggedPlaintext:
        if not 0 <= level <= plain.level:
            raise ValueError(f"cannot switch from level {plain.level} to {level}")
        return TaggedPlaintext(plain.payload, level, plain.scale)

    def set_scale(self, ct: TaggedCiphertext, scale: float) -> TaggedCiphertext:
        return TaggedCiphertext(ct.payload, ct.level, scale)

    def rotate(self, ct: TaggedCiphertext, steps: int) -> TaggedCiphertext:
        if not self._has_galois_keys:
            raise ValueError("Galois keys were not generated")
        if ct.payload.size != 2:
            raise ValueError("rotation requires a relinearized ciphertext")
        self._count("rotations")
        return TaggedCiphertext(
            SimulatedPayload(np.roll(ct.payload.raw, -steps)), ct.level, ct.scale
        )
