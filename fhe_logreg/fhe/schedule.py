"""
Declarative Level Schedule

The training step is a fixed computation graph, so the level every named
intermediate lands on is known before any data is touched. The schedule
records, for each step, how many levels it sits below its origin:

- ``entry`` steps descend from the linear products fed to the sigmoid
- ``fresh`` steps descend from a freshly encrypted input (the learning rate)

It is validated against the configured chain at startup and consulted at
run time to catch a value that drifted off its planned level.

Example:
    ```python
    schedule = training_schedule(forward_mode="client")
    schedule.validate(backend.max_level)       # SetupError if chain too short
    schedule.expected_level("sigmoid", entry)  # entry - 3
    ```
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..errors import AlignmentInvariantViolation, SetupError
from .ciphertext import TaggedCiphertext

logger = logging.getLogger(__name__)

ENTRY = "entry"
FRESH = "fresh"


@dataclass(frozen=True)
class ScheduleStep:
    """One named intermediate and the levels consumed to reach it."""
    name: str
    depth: int
    description: str = ""
    origin: str = ENTRY


@dataclass(frozen=True)
class LevelSchedule:
    """Ordered set of steps plus the depth spent before the entry point."""
    steps: Tuple[ScheduleStep, ...]
    entry_depth: int = 0

    def __post_init__(self):
        names = [step.name for step in self.steps]
        if len(names) != len(set(names)):
            raise ValueError("schedule step names must be unique")

    @property
    def by_name(self) -> Dict[str, ScheduleStep]:
        return {step.name: step for step in self.steps}

    def absolute_depth(self, step: ScheduleStep) -> int:
        """Depth counted from a fresh encryption."""
        if step.origin == FRESH:
            return step.depth
        return self.entry_depth + step.depth

    @property
    def required_depth(self) -> int:
        """Multiplicative depth of the whole schedule."""
        return max(self.absolute_depth(step) for step in self.steps)

    def entry_level(self, max_level: int) -> int:
        """Level of the linear products when the step starts."""
        return max_level - self.entry_depth

    def expected_level(
        self,
        name: str,
        entry_level: int,
        fresh_level: Optional[int] = None,
    ) -> int:
        step = self.by_name[name]
        if step.origin == FRESH:
            if fresh_level is None:
                raise ValueError(f"step '{name}' needs the level of its fresh input")
            return fresh_level - step.depth
        return entry_level - step.depth

    def validate(self, max_level: int) -> None:
        """Fail fast when the modulus chain cannot hold the whole schedule."""
        if max_level < self.required_depth:
            raise SetupError(
                f"Modulus chain supports {max_level} levels but the training step "
                f"needs {self.required_depth}. Add at least "
                f"{self.required_depth - max_level} intermediate prime(s)."
            )
        logger.debug(
            f"Level schedule fits: required_depth={self.required_depth}, "
            f"max_level={max_level}"
        )

    def check(
        self,
        name: str,
        ct: TaggedCiphertext,
        entry_level: int,
        fresh_level: Optional[int] = None,
    ) -> TaggedCiphertext:
        """Assert that ``ct`` sits on the planned level for step ``name``."""
        expected = self.expected_level(name, entry_level, fresh_level)
        if ct.level != expected:
            raise AlignmentInvariantViolation(
                f"Step '{name}' produced level {ct.level}, planned {expected}"
            )
        return ct

    def rows(self, max_level: int) -> List[Dict[str, object]]:
        """Tabular view with absolute levels for a given chain."""
        return [
            {
                "step": step.name,
                "depth": self.absolute_depth(step),
                "level": max_level - self.absolute_depth(step),
                "description": step.description,
            }
            for step in self.steps
        ]


SIGMOID_STEPS: Tuple[ScheduleStep, ...] = (
    ScheduleStep("linear_product", 0, "w·x_i, broadcast to every slot"),
    ScheduleStep("x_squared", 1, "x^2"),
    ScheduleStep("x_quartic", 2, "x^4 by repeated squaring"),
    ScheduleStep("c5_x", 1, "c5·x"),
    ScheduleStep("c5_x5", 3, "x^4 · (c5·x)"),
    ScheduleStep("c3_x", 1, "|c3|·x"),
    ScheduleStep("c3_x3", 2, "x^2 · (|c3|·x)"),
    ScheduleStep("c1_x", 1, "c1·x"),
    ScheduleStep("sigmoid", 3, "c0 + c1·x + c3·x^3 + c5·x^5"),
)

GRADIENT_STEPS: Tuple[ScheduleStep, ...] = (
    ScheduleStep("derivative", 4, "(y_i - s_i) · x_i"),
    ScheduleStep("derivative_sum", 4, "Σ d_i"),
)

UPDATE_STEPS: Tuple[ScheduleStep, ...] = (
    ScheduleStep("scaled_learning_rate", 1, "lr · (1/m)", origin=FRESH),
    ScheduleStep("weight_adjustment", 5, "(lr/m) · Σ d_i"),
    ScheduleStep("updated_weights", 5, "w + adjustment"),
)

# Depth consumed by the homomorphic forward pass (encrypted features times
# encrypted weights, then rotate-and-sum).
HOMOMORPHIC_FORWARD_DEPTH = 1

# Minimum input level for the sigmoid evaluator.
SIGMOID_DEPTH = 3


def sigmoid_schedule() -> LevelSchedule:
    """Schedule of the sigmoid evaluator alone (entry = its input level)."""
    return LevelSchedule(steps=SIGMOID_STEPS)


def training_schedule(forward_mode: str = "client") -> LevelSchedule:
    """
    Full schedule of one gradient-descent step.

    Args:
        forward_mode: "client" when the data owner supplies fresh encrypted
            linear products, "homomorphic" when they are computed under
            encryption (one extra level)
    """
    if forward_mode == "client":
        entry_depth = 0
    elif forward_mode == "homomorphic":
        entry_depth = HOMOMORPHIC_FORWARD_DEPTH
    else:
        raise SetupError(
            f"Unknown forward_mode '{forward_mode}'. Expected 'client' or 'homomorphic'"
        )
    return LevelSchedule(
        steps=SIGMOID_STEPS + GRADIENT_STEPS + UPDATE_STEPS,
        entry_depth=entry_depth,
    )
