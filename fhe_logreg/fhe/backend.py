"""
HE Capability Interface

The homomorphic primitive library is an external collaborator. Every planner
function takes an ``HEBackend`` handle explicitly; there is no global
evaluator bound to a context.

Two implementations ship with the package:
- ``SealCKKSBackend``: Microsoft SEAL through TenSEAL's low-level ``sealapi``
- ``SimulatedCKKSBackend``: in-process CKKS arithmetic model that enforces the
  same level/scale rules, used for tests and dry runs

Encode/decode are polymorphic: a scalar is broadcast to every slot, a
sequence is packed into the leading slots and zero padded.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from ..errors import SetupError
from .ciphertext import TaggedCiphertext, TaggedPlaintext

logger = logging.getLogger(__name__)

Values = Union[float, int, Sequence[float], np.ndarray]

# Maximum total coefficient modulus bit count for 128-bit security
# (HomomorphicEncryption.org standard, as enforced by SEAL).
MAX_COEFF_MODULUS_BITS: Dict[int, int] = {
    1024: 27,
    2048: 54,
    4096: 109,
    8192: 218,
    16384: 438,
    32768: 881,
}


@dataclass
class CKKSParameters:
    """Scheme setup parameters."""
    ring_degree: int = 16384
    modulus_chain: List[int] = field(
        default_factory=lambda: [60, 40, 40, 40, 40, 40, 60]
    )
    scale_bits: int = 40
    generate_galois_keys: bool = True

    @property
    def max_level(self) -> int:
        """Top data level. The last prime of the chain is the special prime."""
        return len(self.modulus_chain) - 2

    @property
    def default_scale(self) -> float:
        return 2.0 ** self.scale_bits

    @property
    def slot_count(self) -> int:
        return self.ring_degree // 2

    def validate(self) -> None:
        """Raise SetupError on an invalid ring degree / modulus chain combination."""
        if self.ring_degree not in MAX_COEFF_MODULUS_BITS:
            raise SetupError(
                f"ring_degree must be one of {sorted(MAX_COEFF_MODULUS_BITS)}, "
                f"got {self.ring_degree}"
            )
        if len(self.modulus_chain) < 2:
            raise SetupError(
                "modulus_chain needs at least one data prime and the special prime"
            )
        for bits in self.modulus_chain:
            if not 1 <= bits <= 60:
                raise SetupError(f"modulus bit sizes must be in [1, 60], got {bits}")

        total_bits = sum(self.modulus_chain)
        limit = MAX_COEFF_MODULUS_BITS[self.ring_degree]
        if total_bits > limit:
            raise SetupError(
                f"modulus_chain totals {total_bits} bits, exceeding the "
                f"{limit}-bit limit for ring_degree={self.ring_degree}"
            )
        if self.scale_bits >= self.modulus_chain[0]:
            raise SetupError(
                f"scale_bits ({self.scale_bits}) must be smaller than the first "
                f"prime ({self.modulus_chain[0]} bits)"
            )

        middle = self.modulus_chain[1:-1]
        if any(bits != self.scale_bits for bits in middle):
            logger.warning(
                "Intermediate primes %s differ from scale_bits=%d; rescaled "
                "scales will drift further from nominal",
                middle, self.scale_bits,
            )


class HEBackend(ABC):
    """
    Leveled CKKS capability.

    Implementations return fresh tagged values from every operation and
    never mutate their inputs. Misuse (mismatched levels, exhausted chain)
    raises ValueError, mirroring the primitive library; the alignment layer
    is expected to prevent it.
    """

    name = "abstract"

    def __init__(self, params: Optional[CKKSParameters] = None):
        self.params = params or CKKSParameters()
        self.params.validate()
        self._stats_lock = threading.Lock()
        self._operation_stats = {
            "encryptions": 0,
            "decryptions": 0,
            "additions": 0,
            "multiplications": 0,
            "plain_multiplications": 0,
            "relinearizations": 0,
            "rescales": 0,
            "level_switches": 0,
            "rotations": 0,
        }

    @property
    def max_level(self) -> int:
        return self.params.max_level

    @property
    def slot_count(self) -> int:
        return self.params.slot_count

    @property
    def default_scale(self) -> float:
        return self.params.default_scale

    def nominal_scale(self, level: int) -> float:
        """Canonical scale a value at ``level`` carries after rescaling."""
        return self.default_scale

    def _count(self, key: str, n: int = 1) -> None:
        with self._stats_lock:
            self._operation_stats[key] += n

    def get_stats(self) -> Dict[str, Any]:
        """Get operation statistics."""
        with self._stats_lock:
            stats = dict(self._operation_stats)
        return {
            **stats,
            "backend": self.name,
            "ring_degree": self.params.ring_degree,
            "max_level": self.max_level,
            "num_slots": self.slot_count,
        }

    def _slot_values(self, values: Values) -> np.ndarray:
        """Resolve a scalar or a vector payload to a full slot vector."""
        if np.isscalar(values):
            return np.full(self.slot_count, float(values))

        array = np.asarray(values, dtype=np.float64).ravel()
        if array.size > self.slot_count:
            raise ValueError(
                f"{array.size} values exceed the slot capacity of {self.slot_count}"
            )
        slots = np.zeros(self.slot_count)
        slots[:array.size] = array
        return slots

    def _resolve_level(self, level: Optional[int]) -> int:
        if level is None:
            return self.max_level
        if not 0 <= level <= self.max_level:
            raise ValueError(f"level {level} outside [0, {self.max_level}]")
        return level

    # Convenience wrappers

    def encrypt_values(self, values: Values, level: Optional[int] = None) -> TaggedCiphertext:
        """Encode at the nominal scale and encrypt."""
        return self.encrypt(self.encode(values, level=level))

    def decrypt_values(self, ct: TaggedCiphertext, length: Optional[int] = None) -> np.ndarray:
        """Decrypt and decode, optionally keeping only the leading ``length`` slots."""
        decoded = self.decode(self.decrypt(ct))
        return decoded[:length] if length is not None else decoded

    # Primitive surface

    @abstractmethod
    def encode(
        self,
        values: Values,
        level: Optional[int] = None,
        scale: Optional[float] = None,
    ) -> TaggedPlaintext:
        """Encode a scalar (broadcast) or vector directly at ``level``."""

    @abstractmethod
    def decode(self, plain: TaggedPlaintext) -> np.ndarray:
        """Decode to a real vector of ``slot_count`` values."""

    @abstractmethod
    def encrypt(self, plain: TaggedPlaintext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def decrypt(self, ct: TaggedCiphertext) -> TaggedPlaintext:
        pass

    @abstractmethod
    def add(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def sub(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def add_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def negate(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def multiply(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        """Cipher x cipher product; the result needs relinearization."""

    @abstractmethod
    def multiply_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def square(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def relinearize(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        pass

    @abstractmethod
    def rescale_to_next(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        """Drop one level; the returned scale is the raw, drifted value."""

    @abstractmethod
    def switch_to_level(self, ct: TaggedCiphertext, level: int) -> TaggedCiphertext:
        """Modulus switch down to ``level`` without changing the plaintext."""

    @abstractmethod
    def switch_plain_to_level(self, plain: TaggedPlaintext, level: int) -> TaggedPlaintext:
        pass

    @abstractmethod
    def set_scale(self, ct: TaggedCiphertext, scale: float) -> TaggedCiphertext:
        """Return a copy whose scale metadata is overwritten."""

    @abstractmethod
    def rotate(self, ct: TaggedCiphertext, steps: int) -> TaggedCiphertext:
        """Cyclic left rotation of the packed slots."""


def create_backend(
    kind: str = "simulated",
    params: Optional[CKKSParameters] = None,
    **kwargs: Any,
) -> HEBackend:
    """
    Perform scheme setup and key generation for the requested backend.

    Args:
        kind: "simulated" or "seal"
        params: Scheme parameters
        **kwargs: Backend-specific options (e.g. ``noise_stddev``, ``seed``
            for the simulator)

    Returns:
        Ready-to-use backend handle
    """
    if kind == "simulated":
        from .simulated_backend import SimulatedCKKSBackend
        return SimulatedCKKSBackend(params, **kwargs)
    if kind == "seal":
        from .seal_backend import SealCKKSBackend
        return SealCKKSBackend(params)
    raise SetupError(f"Unknown backend '{kind}'. Expected 'simulated' or 'seal'")
