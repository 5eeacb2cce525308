"""
FHE Planner Module

Level- and scale-consistent scheduling on top of a leveled CKKS capability.

Supported Backends:
- SEAL (CKKS via TenSEAL's ``sealapi``)
- Simulated CKKS (in-process, for tests and dry runs)

Usage:
    from fhe_logreg.fhe import CKKSParameters, create_backend, alignment
    backend = create_backend("simulated", CKKSParameters())
    ct = backend.encrypt_values([1.0, 2.0, 3.0])
    sq = alignment.square(backend, ct)
"""

from . import alignment
from .backend import (
    CKKSParameters,
    HEBackend,
    MAX_COEFF_MODULUS_BITS,
    create_backend,
)
from .ciphertext import TaggedCiphertext, TaggedPlaintext
from .schedule import (
    LevelSchedule,
    ScheduleStep,
    sigmoid_schedule,
    training_schedule,
)
from .simulated_backend import SimulatedCKKSBackend

__all__ = [
    "alignment",
    # Backends
    "CKKSParameters",
    "HEBackend",
    "MAX_COEFF_MODULUS_BITS",
    "SimulatedCKKSBackend",
    "create_backend",
    # Values
    "TaggedCiphertext",
    "TaggedPlaintext",
    # Schedule
    "LevelSchedule",
    "ScheduleStep",
    "sigmoid_schedule",
    "training_schedule",
]
