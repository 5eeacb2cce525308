"""
Alignment Protocol

Pure functions that bring operands to identical level and scale before any
combine, using only level-lowering operations. This is the layer that
enforces the scheme invariants:

1. Add/Subtract operands share level and bit-identical scale
2. Cipher x cipher multiply operands sit at level >= 1
3. A derived value never sits above its inputs; a rescale drops exactly one level

Every multiply is followed immediately by a rescale, and the tracked scale is
then overwritten with the nominal scale of the scheme. The raw scale a
rescale returns drifts by the ratio between the chain prime and the nominal
power of two; keeping it would break exact equality at the next addition.

All functions take the backend handle explicitly and return new values.
"""

import logging
from typing import Optional, Tuple, Union

from ..errors import AlignmentInvariantViolation, DepthExhaustedError
from .backend import HEBackend
from .ciphertext import TaggedCiphertext, TaggedPlaintext

logger = logging.getLogger(__name__)

Tagged = Union[TaggedCiphertext, TaggedPlaintext]

# Largest relative gap between a tracked scale and the nominal scale that may
# be closed by overwriting the scale metadata.
SCALE_DRIFT_TOLERANCE = 1e-3


def switch_to_level(
    backend: HEBackend,
    ct: TaggedCiphertext,
    level: int,
) -> TaggedCiphertext:
    """Modulus switch ``ct`` down to ``level``; never up."""
    if level < 0:
        raise DepthExhaustedError(
            f"Cannot switch to level {level}: the modulus chain is exhausted",
            level=ct.level,
            required=-level,
        )
    if level > ct.level:
        raise AlignmentInvariantViolation(
            f"Refusing to raise a ciphertext from level {ct.level} to {level}"
        )
    if level == ct.level:
        return ct
    logger.debug(f"Switching ciphertext from level {ct.level} down to {level}")
    return backend.switch_to_level(ct, level)


def switch_plain_to_level(
    backend: HEBackend,
    plain: TaggedPlaintext,
    level: int,
) -> TaggedPlaintext:
    """Modulus switch an encoded plaintext down to ``level``."""
    if level < 0:
        raise DepthExhaustedError(f"Cannot switch plaintext to level {level}")
    if level > plain.level:
        raise AlignmentInvariantViolation(
            f"Plaintext at level {plain.level} cannot be raised to {level}; "
            "encode it at the target level instead"
        )
    if level == plain.level:
        return plain
    return backend.switch_plain_to_level(plain, level)


def align_levels(
    backend: HEBackend,
    a: TaggedCiphertext,
    b: TaggedCiphertext,
) -> Tuple[TaggedCiphertext, TaggedCiphertext]:
    """Switch the higher operand down to the lower operand's level."""
    target = min(a.level, b.level)
    return switch_to_level(backend, a, target), switch_to_level(backend, b, target)


def align_scale(
    backend: HEBackend,
    ct: TaggedCiphertext,
    scale: Optional[float] = None,
    tolerance: float = SCALE_DRIFT_TOLERANCE,
) -> TaggedCiphertext:
    """
    Overwrite a drifted scale with the nominal one.

    Args:
        backend: HE backend
        ct: Ciphertext whose scale drifted
        scale: Target scale (defaults to the nominal scale for the level)
        tolerance: Largest relative drift that may be absorbed

    Returns:
        Ciphertext carrying exactly ``scale``

    Raises:
        AlignmentInvariantViolation: when the drift is so large that
            reinterpreting the scale would change the encrypted value
    """
    target = scale if scale is not None else backend.nominal_scale(ct.level)
    if ct.scale == target:
        return ct
    drift = abs(ct.scale / target - 1.0)
    if drift > tolerance:
        raise AlignmentInvariantViolation(
            f"Scale 2^{ct.scale_bits:.3f} is too far from target "
            f"{target!r} (relative drift {drift:.2e}) to reset"
        )
    return backend.set_scale(ct, target)


def _require_level(ct: TaggedCiphertext, minimum: int, operation: str) -> None:
    if ct.level < minimum:
        raise DepthExhaustedError(
            f"{operation} needs level >= {minimum}, operand is at level {ct.level}",
            step=operation,
            level=ct.level,
            required=minimum,
        )


def _require_combinable(a: Tagged, b: Tagged, operation: str) -> None:
    if a.level != b.level or a.scale != b.scale:
        raise AlignmentInvariantViolation(
            f"{operation}: operands differ (levels {a.level}/{b.level}, "
            f"scales {a.scale!r}/{b.scale!r})"
        )


def rescale(backend: HEBackend, ct: TaggedCiphertext) -> TaggedCiphertext:
    """Drop one level and reset the scale to nominal."""
    _require_level(ct, 1, "rescale")
    rescaled = backend.rescale_to_next(ct)
    if rescaled.level != ct.level - 1:
        raise AlignmentInvariantViolation(
            f"Rescale moved level {ct.level} -> {rescaled.level}, expected {ct.level - 1}"
        )
    return align_scale(backend, rescaled, backend.nominal_scale(rescaled.level))


def encode_constant(
    backend: HEBackend,
    value: float,
    level: int,
    scale: Optional[float] = None,
) -> TaggedPlaintext:
    """Encode a constant at use time, directly at ``level``."""
    if level < 0:
        raise DepthExhaustedError(f"Cannot encode a constant at level {level}")
    return backend.encode(value, level=level, scale=scale or backend.nominal_scale(level))


# Additive combines


def add(backend: HEBackend, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
    a, b = align_levels(backend, a, b)
    _require_combinable(a, b, "add")
    return backend.add(a, b)


def sub(backend: HEBackend, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
    a, b = align_levels(backend, a, b)
    _require_combinable(a, b, "sub")
    return backend.sub(a, b)


def add_plain(
    backend: HEBackend,
    ct: TaggedCiphertext,
    plain: TaggedPlaintext,
) -> TaggedCiphertext:
    """Add an encoded plaintext, switching whichever side is higher down."""
    target = min(ct.level, plain.level)
    ct = switch_to_level(backend, ct, target)
    plain = switch_plain_to_level(backend, plain, target)
    _require_combinable(ct, plain, "add_plain")
    return backend.add_plain(ct, plain)


def add_constant(backend: HEBackend, ct: TaggedCiphertext, value: float) -> TaggedCiphertext:
    """Add a scalar, encoded at the ciphertext's level and scale."""
    plain = encode_constant(backend, value, ct.level, ct.scale)
    return add_plain(backend, ct, plain)


def sub_constant(backend: HEBackend, ct: TaggedCiphertext, value: float) -> TaggedCiphertext:
    return add_constant(backend, ct, -value)


def negate(backend: HEBackend, ct: TaggedCiphertext) -> TaggedCiphertext:
    return backend.negate(ct)


# Multiplicative combines


def multiply(backend: HEBackend, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
    """Cipher x cipher product: align, multiply, relinearize, rescale."""
    a, b = align_levels(backend, a, b)
    _require_level(a, 1, "multiply")
    product = backend.relinearize(backend.multiply(a, b))
    return rescale(backend, product)


def square(backend: HEBackend, ct: TaggedCiphertext) -> TaggedCiphertext:
    _require_level(ct, 1, "square")
    return rescale(backend, backend.relinearize(backend.square(ct)))


def multiply_plain(
    backend: HEBackend,
    ct: TaggedCiphertext,
    plain: TaggedPlaintext,
) -> TaggedCiphertext:
    """Cipher x plain product followed by a rescale (no relinearization needed)."""
    target = min(ct.level, plain.level)
    ct = switch_to_level(backend, ct, target)
    plain = switch_plain_to_level(backend, plain, target)
    _require_level(ct, 1, "multiply_plain")
    return rescale(backend, backend.multiply_plain(ct, plain))


def multiply_constant(backend: HEBackend, ct: TaggedCiphertext, value: float) -> TaggedCiphertext:
    """Multiply by a scalar encoded at the ciphertext's level."""
    plain = encode_constant(backend, value, ct.level)
    return multiply_plain(backend, ct, plain)
