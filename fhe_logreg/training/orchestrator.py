"""
Training Orchestrator

Sequences one encrypted gradient-descent step:

    Idle -> ForwardPass -> SigmoidEval -> DerivativeEval -> Accumulate
         -> ScaleAndApply -> Done

1. ``scaled_lr = lr · (1/m)``
2. per sample: sigmoid, then ``d_i = (y_i - s_i) · x_i``; ``sum_d = Σ d_i``
3. ``adjustment = sum_d · scaled_lr`` (scaled_lr switched down first)
4. ``new_weights = weights + adjustment`` (weights switched down first)

Every intermediate is checked against the declarative level schedule. The
returned ciphertext sits at the deepest level of the schedule; a further
step needs the weights refreshed (decrypted and re-encrypted) at the top
level.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..errors import DepthExhaustedError, SetupError
from ..fhe import alignment
from ..fhe.backend import HEBackend
from ..fhe.ciphertext import TaggedCiphertext
from ..fhe.schedule import LevelSchedule, training_schedule
from .forward import homomorphic_linear_products
from .gradient import REDUCTION_STRATEGIES, compute_derivatives, evaluate_sigmoids, sum_derivatives
from .sigmoid import DEFAULT_SIGMOID, SigmoidPolynomial

logger = logging.getLogger(__name__)


class StepPhase(Enum):
    """Phases of one orchestrated step."""
    IDLE = "idle"
    FORWARD_PASS = "forward_pass"
    SIGMOID_EVAL = "sigmoid_eval"
    DERIVATIVE_EVAL = "derivative_eval"
    ACCUMULATE = "accumulate"
    SCALE_AND_APPLY = "scale_and_apply"
    DONE = "done"
    FAILED = "failed"


_PHASE_ORDER = [
    StepPhase.IDLE,
    StepPhase.FORWARD_PASS,
    StepPhase.SIGMOID_EVAL,
    StepPhase.DERIVATIVE_EVAL,
    StepPhase.ACCUMULATE,
    StepPhase.SCALE_AND_APPLY,
    StepPhase.DONE,
]


@dataclass
class StepTrace:
    """Phases visited and the level reached by each checked step."""
    phases: List[StepPhase] = field(default_factory=lambda: [StepPhase.IDLE])
    levels: Dict[str, int] = field(default_factory=dict)

    @property
    def phase(self) -> StepPhase:
        return self.phases[-1]


class TrainingOrchestrator:
    """
    Runs one encrypted gradient step per call.

    The level schedule is validated against the backend's chain at
    construction, so a chain that is too short fails here with a
    ``SetupError`` before any data is encrypted.

    Example:
        ```python
        orchestrator = TrainingOrchestrator(backend, forward_mode="client")
        new_weights = orchestrator.step(
            weights=enc_w,
            features=enc_x,
            labels=enc_y,
            learning_rate=enc_lr,
            linear_products=enc_wx,
        )
        ```
    """

    def __init__(
        self,
        backend: HEBackend,
        forward_mode: str = "client",
        reduction: str = "sequential",
        max_workers: int = 1,
        polynomial: SigmoidPolynomial = DEFAULT_SIGMOID,
    ):
        if reduction not in REDUCTION_STRATEGIES:
            raise SetupError(
                f"Unknown reduction strategy '{reduction}'. "
                f"Expected one of {REDUCTION_STRATEGIES}"
            )
        self.backend = backend
        self.forward_mode = forward_mode
        self.reduction = reduction
        self.max_workers = max_workers
        self.polynomial = polynomial

        self.schedule: LevelSchedule = training_schedule(forward_mode)
        self.schedule.validate(backend.max_level)
        self.trace = StepTrace()

    @property
    def phase(self) -> StepPhase:
        return self.trace.phase

    def _advance(self, phase: StepPhase) -> None:
        expected = _PHASE_ORDER[_PHASE_ORDER.index(self.phase) + 1]
        if phase != expected:
            raise RuntimeError(f"Illegal phase transition {self.phase.value} -> {phase.value}")
        self.trace.phases.append(phase)
        logger.debug(f"Step phase: {phase.value}")

    def _check(
        self,
        name: str,
        ct: TaggedCiphertext,
        entry_level: int,
        fresh_level: Optional[int] = None,
    ) -> TaggedCiphertext:
        self.schedule.check(name, ct, entry_level, fresh_level)
        self.trace.levels[name] = ct.level
        return ct

    def step(
        self,
        weights: TaggedCiphertext,
        features: Sequence[TaggedCiphertext],
        labels: Sequence[TaggedCiphertext],
        learning_rate: TaggedCiphertext,
        linear_products: Optional[Sequence[TaggedCiphertext]] = None,
    ) -> TaggedCiphertext:
        """
        Produce the next encrypted weight vector.

        Args:
            weights: Encrypted weights, fresh at the top level
            features: Encrypted feature vectors, one per sample
            labels: Encrypted labels, broadcast, one per sample
            learning_rate: Encrypted learning rate, broadcast
            linear_products: Encrypted ``w·x_i`` (required in client mode,
                computed under encryption in homomorphic mode)

        Returns:
            Updated weights at the deepest scheduled level

        Raises:
            DepthExhaustedError: if the weights were not refreshed
            AlignmentInvariantViolation: if a value leaves its planned level
        """
        self.trace = StepTrace()
        backend = self.backend
        try:
            m = len(features)
            if m == 0 or len(labels) != m:
                raise ValueError(
                    f"need a non-empty batch with one label per sample "
                    f"({m} feature vectors, {len(labels)} labels)"
                )
            if weights.level != backend.max_level:
                raise DepthExhaustedError(
                    f"Weights at level {weights.level}; a step needs them freshly "
                    f"encrypted at level {backend.max_level}",
                    step="weights",
                    level=weights.level,
                    required=backend.max_level,
                )
            entry = self.schedule.entry_level(backend.max_level)

            self._advance(StepPhase.FORWARD_PASS)
            if linear_products is None:
                if self.forward_mode != "homomorphic":
                    raise ValueError("client forward mode needs precomputed linear products")
                linear_products = homomorphic_linear_products(backend, weights, features)
            if len(linear_products) != m:
                raise ValueError(f"{len(linear_products)} linear products for {m} samples")
            for product in linear_products:
                self._check("linear_product", product, entry)

            scaled_lr = self._check(
                "scaled_learning_rate",
                alignment.multiply_constant(backend, learning_rate, 1.0 / m),
                entry,
                fresh_level=learning_rate.level,
            )

            self._advance(StepPhase.SIGMOID_EVAL)
            sigmoids = evaluate_sigmoids(
                backend, linear_products, self.polynomial, self.max_workers
            )
            for s_i in sigmoids:
                self._check("sigmoid", s_i, entry)

            self._advance(StepPhase.DERIVATIVE_EVAL)
            derivatives = compute_derivatives(
                backend, sigmoids, features, labels, self.max_workers
            )
            for d_i in derivatives:
                self._check("derivative", d_i, entry)

            self._advance(StepPhase.ACCUMULATE)
            sum_d = self._check(
                "derivative_sum",
                sum_derivatives(backend, derivatives, self.reduction),
                entry,
            )

            self._advance(StepPhase.SCALE_AND_APPLY)
            scaled_lr = alignment.switch_to_level(backend, scaled_lr, sum_d.level)
            adjustment = self._check(
                "weight_adjustment", alignment.multiply(backend, sum_d, scaled_lr), entry
            )
            weights = alignment.switch_to_level(backend, weights, adjustment.level)
            updated = self._check(
                "updated_weights", alignment.add(backend, weights, adjustment), entry
            )

            self._advance(StepPhase.DONE)
            logger.debug(f"Step done: {m} samples, result at level {updated.level}")
            return updated

        except Exception as e:
            self.trace.phases.append(StepPhase.FAILED)
            logger.error(f"Training step failed during {self.trace.phases[-2].value}: {e}")
            raise
