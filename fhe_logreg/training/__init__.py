"""
Encrypted Logistic Regression Training

Gradient descent over CKKS-encrypted data.

This module provides:
- Depth-3 polynomial sigmoid evaluation
- Per-sample gradients and their homomorphic summation
- The single-step training orchestrator
- The iteration loop with refresh and checkpoints
- Plaintext reference algorithms
"""

from .trainer import (
    EncryptedLogisticRegression,
    IterationMetrics,
    TrainingConfig,
    TrainingResult,
    TrainingStatus,
)

from .orchestrator import (
    StepPhase,
    StepTrace,
    TrainingOrchestrator,
)

from .sigmoid import (
    DEFAULT_SIGMOID,
    SigmoidPolynomial,
    evaluate_sigmoid,
)

from .gradient import (
    compute_derivatives,
    partial_derivative,
    sum_derivatives,
)

from .checkpoint import (
    CheckpointStore,
    TrainingCheckpoint,
    export_weights_csv,
)

__all__ = [
    # Trainer
    "EncryptedLogisticRegression",
    "IterationMetrics",
    "TrainingConfig",
    "TrainingResult",
    "TrainingStatus",
    # Orchestrator
    "StepPhase",
    "StepTrace",
    "TrainingOrchestrator",
    # Sigmoid
    "DEFAULT_SIGMOID",
    "SigmoidPolynomial",
    "evaluate_sigmoid",
    # Gradient
    "compute_derivatives",
    "partial_derivative",
    "sum_derivatives",
    # Checkpoints
    "CheckpointStore",
    "TrainingCheckpoint",
    "export_weights_csv",
]
