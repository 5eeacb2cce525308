"""
Encrypted Logistic Regression Training

Owns the iteration loop around the single-step orchestrator:

1. Encrypt the batch, the current weights and the learning rate
2. Run one orchestrated step (weights come back at the deepest level)
3. Refresh: decrypt the updated weights so the next iteration can encrypt
   them fresh at the top level
4. Persist ``{iteration, weights}`` to the checkpoint store

Crypto and level errors are not retried; the loop stops and the last good
checkpoint is kept.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..data.dataset import Dataset
from ..errors import CheckpointError, DataFormatError
from ..fhe.backend import HEBackend
from .checkpoint import CheckpointStore, TrainingCheckpoint
from .forward import client_linear_products
from .orchestrator import TrainingOrchestrator
from .plain import compute_accuracy, log_loss
from .sigmoid import DEFAULT_SIGMOID, SigmoidPolynomial

logger = logging.getLogger(__name__)


class TrainingStatus(Enum):
    """Training job status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TrainingConfig:
    """Training configuration."""
    learning_rate: float = 0.1
    iterations: int = 5
    batch_size: Optional[int] = None

    forward_mode: str = "client"     # "client" or "homomorphic"
    reduction: str = "sequential"    # "sequential" or "tree"
    max_workers: int = 1

    # Checkpointing
    checkpoint_dir: Optional[str] = None


@dataclass
class IterationMetrics:
    """Metrics recorded after one iteration (on the refreshed plaintext weights)."""
    iteration: int
    batch_size: int
    accuracy: float
    loss: float
    result_level: int
    seconds: float


@dataclass
class TrainingResult:
    """Final weights and per-iteration history."""
    weights: np.ndarray
    start_iteration: int
    final_iteration: int
    history: List[IterationMetrics] = field(default_factory=list)
    backend_stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def iterations_run(self) -> int:
        return self.final_iteration - self.start_iteration


class EncryptedLogisticRegression:
    """
    Logistic regression trained over encrypted data.

    The trainer plays both roles of the protocol: it encrypts on behalf of
    the data owner and performs the decrypt/re-encrypt refresh between
    iterations, so it holds the secret key throughout.

    Example:
        ```python
        backend = create_backend("simulated")
        trainer = EncryptedLogisticRegression(
            backend,
            TrainingConfig(learning_rate=0.1, iterations=5, checkpoint_dir="./ckpt"),
        )
        result = trainer.train(dataset)
        ```
    """

    def __init__(
        self,
        backend: HEBackend,
        config: Optional[TrainingConfig] = None,
        polynomial: SigmoidPolynomial = DEFAULT_SIGMOID,
    ):
        self.backend = backend
        self.config = config or TrainingConfig()
        self.polynomial = polynomial
        self.orchestrator = TrainingOrchestrator(
            backend,
            forward_mode=self.config.forward_mode,
            reduction=self.config.reduction,
            max_workers=self.config.max_workers,
            polynomial=polynomial,
        )
        self.store = (
            CheckpointStore(self.config.checkpoint_dir) if self.config.checkpoint_dir else None
        )

        self.status = TrainingStatus.PENDING
        self.iteration = 0
        self.history: List[IterationMetrics] = []
        self._progress_callbacks: List[Callable[[IterationMetrics], None]] = []

        logger.info(
            f"Initialized trainer: backend={backend.name}, "
            f"forward_mode={self.config.forward_mode}, reduction={self.config.reduction}"
        )

    def register_progress_callback(self, callback: Callable[[IterationMetrics], None]):
        """Register callback invoked after every completed iteration."""
        self._progress_callbacks.append(callback)

    def run_iteration(self, weights: np.ndarray, batch: Dataset) -> np.ndarray:
        """
        Encrypt one batch, run one orchestrated step and refresh the result.

        Args:
            weights: Current plaintext weights, shape (d,)
            batch: Samples for this iteration

        Returns:
            Updated plaintext weights
        """
        backend = self.backend
        enc_features = [backend.encrypt_values(row) for row in batch.features]
        enc_labels = [backend.encrypt_values(float(label)) for label in batch.labels]
        enc_weights = backend.encrypt_values(weights)
        enc_lr = backend.encrypt_values(self.config.learning_rate)

        linear_products = None
        if self.config.forward_mode == "client":
            linear_products = client_linear_products(backend, weights, batch.features)

        updated = self.orchestrator.step(
            weights=enc_weights,
            features=enc_features,
            labels=enc_labels,
            learning_rate=enc_lr,
            linear_products=linear_products,
        )
        return self.refresh(updated_ct=updated, num_weights=len(weights))

    def refresh(self, updated_ct, num_weights: int) -> np.ndarray:
        """Decrypt the level-exhausted weights for re-encryption next iteration."""
        return np.array(self.backend.decrypt_values(updated_ct, length=num_weights))

    def _initial_state(self, dataset: Dataset, initial_weights: Optional[np.ndarray], resume: bool):
        weights = (
            np.zeros(dataset.num_features)
            if initial_weights is None
            else np.asarray(initial_weights, dtype=np.float64)
        )
        if len(weights) != dataset.num_features:
            raise DataFormatError(
                f"{len(weights)} initial weights for {dataset.num_features} features"
            )
        if not (resume and self.store):
            return 0, weights

        checkpoint = self.store.load()
        if checkpoint is None:
            return 0, weights
        if len(checkpoint.weights) != dataset.num_features:
            raise CheckpointError(
                f"Checkpoint holds {len(checkpoint.weights)} weights, dataset has "
                f"{dataset.num_features} features"
            )
        logger.info(f"Resuming from checkpoint at iteration {checkpoint.iteration}")
        return checkpoint.iteration, checkpoint.weight_vector

    def train(
        self,
        dataset: Dataset,
        initial_weights: Optional[np.ndarray] = None,
        resume: bool = True,
        iterations: Optional[int] = None,
    ) -> TrainingResult:
        """
        Run the iteration loop up to ``iterations`` (total, counting resumed ones).

        Args:
            dataset: Training data
            initial_weights: Starting weights (zeros by default)
            resume: Continue from the checkpoint store when one exists
            iterations: Overrides ``config.iterations``

        Returns:
            TrainingResult with the final plaintext weights
        """
        target = iterations or self.config.iterations
        if dataset.num_features > self.backend.slot_count:
            raise DataFormatError(
                f"{dataset.num_features} features exceed the slot capacity "
                f"{self.backend.slot_count}"
            )

        start, weights = self._initial_state(dataset, initial_weights, resume)
        self.iteration = start
        self.history = []
        self.status = TrainingStatus.RUNNING

        logger.warning(
            "Weights are refreshed by decryption between iterations: the secret "
            "key holder sees the model at every iteration boundary"
        )
        logger.info(
            f"Training {dataset.num_samples} samples x {dataset.num_features} features, "
            f"iterations {start + 1}..{target}"
        )

        try:
            for iteration in range(start + 1, target + 1):
                started = time.time()
                batch = dataset.batch(iteration, self.config.batch_size)
                weights = self.run_iteration(weights, batch)
                self.iteration = iteration

                if self.store:
                    self.store.save(TrainingCheckpoint(iteration=iteration, weights=weights.tolist()))

                metrics = IterationMetrics(
                    iteration=iteration,
                    batch_size=batch.num_samples,
                    accuracy=compute_accuracy(weights, dataset.features, dataset.labels),
                    loss=log_loss(weights, dataset.features, dataset.labels),
                    result_level=self.orchestrator.trace.levels.get("updated_weights", -1),
                    seconds=time.time() - started,
                )
                self.history.append(metrics)
                logger.info(
                    f"Iteration {iteration}/{target}: accuracy={metrics.accuracy:.4f} "
                    f"loss={metrics.loss:.4f} ({metrics.seconds:.2f}s)"
                )
                for cb in self._progress_callbacks:
                    cb(metrics)

        except Exception as e:
            self.status = TrainingStatus.FAILED
            logger.error(f"Training stopped at iteration {self.iteration + 1}: {e}")
            raise

        self.status = TrainingStatus.COMPLETED
        return TrainingResult(
            weights=weights,
            start_iteration=start,
            final_iteration=self.iteration,
            history=list(self.history),
            backend_stats=self.backend.get_stats(),
        )

    def get_status(self) -> Dict[str, Any]:
        """Get training status."""
        return {
            "status": self.status.value,
            "iteration": self.iteration,
            "target_iterations": self.config.iterations,
            "history": [asdict(m) for m in self.history],
        }
