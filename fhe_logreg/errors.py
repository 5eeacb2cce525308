"""
Error taxonomy for encrypted logistic regression.

Crypto and level errors are never retried automatically: retrying without an
explicit refresh (decrypt + re-encrypt) repeats the same failure. They are
surfaced to the caller that owns the iteration loop.
"""

from typing import Optional


class FHELogRegError(Exception):
    """Base class for all fhe-logreg errors."""


class SetupError(FHELogRegError):
    """Invalid scheme parameters or a modulus chain too short for the schedule."""


class DepthExhaustedError(FHELogRegError):
    """
    A step would need a level below zero.

    Fatal for the current iteration. Recovery requires an external refresh
    of the weight vector before retrying.
    """

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        level: Optional[int] = None,
        required: Optional[int] = None,
    ):
        super().__init__(message)
        self.step = step
        self.level = level
        self.required = required


class AlignmentInvariantViolation(FHELogRegError):
    """
    Operands reached a combine with mismatched level or scale.

    This is a programming error, not a recoverable condition: proceeding
    would produce a numerically wrong result rather than an imprecise one.
    """


class DataFormatError(FHELogRegError):
    """Malformed numeric field or ragged record in an input dataset."""


class CheckpointError(FHELogRegError):
    """Checkpoint file is unreadable, incomplete or fails its integrity hash."""


class ConfigError(FHELogRegError):
    """Configuration file or value is invalid."""
