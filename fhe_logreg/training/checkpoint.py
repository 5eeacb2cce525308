"""
Checkpoint store for the training state ``{iteration, weights}``.

The iteration boundary is the only resumption point. A checkpoint is written
after each completed iteration (atomically, via a temporary file and
``os.replace``) and read at the start of a run. Integrity is verified with
a sha256 hash over the iteration and weights.
"""

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from ..errors import CheckpointError

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "checkpoint.json"


@dataclass
class TrainingCheckpoint:
    """Persisted training state."""
    iteration: int
    weights: List[float]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    hash: str = ""

    def __post_init__(self):
        self.weights = [float(w) for w in self.weights]
        if not self.hash:
            self.hash = self._compute_hash()

    def _compute_hash(self) -> str:
        """Compute checkpoint hash for integrity verification."""
        content = json.dumps({
            "iteration": self.iteration,
            "weights": [repr(w) for w in self.weights],
        }, sort_keys=True)
        return f"sha256:{hashlib.sha256(content.encode()).hexdigest()}"

    def verify(self) -> bool:
        return self.hash == self._compute_hash()

    @property
    def weight_vector(self) -> np.ndarray:
        return np.array(self.weights, dtype=np.float64)


class CheckpointStore:
    """
    Directory-backed checkpoint persistence.

    Example:
        ```python
        store = CheckpointStore("./checkpoints")
        store.save(TrainingCheckpoint(iteration=3, weights=[0.1, -0.2, 0.05]))
        state = store.load()
        ```
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / CHECKPOINT_FILE

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, checkpoint: TrainingCheckpoint) -> Path:
        """Write ``checkpoint``, replacing the previous one atomically."""
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(asdict(checkpoint), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CheckpointError(f"Failed to write checkpoint {self.path}: {e}") from e

        logger.info(f"Saved checkpoint at iteration {checkpoint.iteration}: {self.path}")
        return self.path

    def load(self) -> Optional[TrainingCheckpoint]:
        """
        Read the latest checkpoint.

        Returns:
            The checkpoint, or None when the directory holds none

        Raises:
            CheckpointError: unreadable file, missing fields or hash mismatch
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Failed to read checkpoint {self.path}: {e}") from e

        missing = {"iteration", "weights", "hash"} - set(data)
        if missing:
            raise CheckpointError(f"Checkpoint {self.path} lacks fields: {sorted(missing)}")

        try:
            checkpoint = TrainingCheckpoint(**data)
        except (TypeError, ValueError) as e:
            raise CheckpointError(f"Checkpoint {self.path} is malformed: {e}") from e
        if not checkpoint.verify():
            raise CheckpointError(f"Checkpoint {self.path} failed its integrity check")
        return checkpoint

    def clear(self) -> None:
        """Remove the stored checkpoint, if any."""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed checkpoint {self.path}")


def export_weights_csv(weights, path: Union[str, Path], feature_names: Optional[List[str]] = None) -> Path:
    """Write the weight vector to CSV as ``feature,weight`` rows."""
    weights = np.asarray(weights, dtype=np.float64)
    names = feature_names or [f"w{i}" for i in range(len(weights))]
    if len(names) != len(weights):
        raise ValueError(f"{len(names)} feature names for {len(weights)} weights")

    path = Path(path)
    pd.DataFrame({"feature": names, "weight": weights}).to_csv(path, index=False)
    logger.info(f"Exported {len(weights)} weights to {path}")
    return path
