"""
Dataset ingestion for encrypted logistic regression.

Reads delimited text with a header row into fixed-length feature vectors and
one binary label per record. Malformed numeric fields and ragged rows raise
``DataFormatError``; nothing is coerced to zero.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from ..errors import DataFormatError

logger = logging.getLogger(__name__)

BIAS_COLUMN = "bias"


@dataclass
class Dataset:
    """Feature matrix, labels and column names."""
    features: np.ndarray
    labels: np.ndarray
    feature_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.features = np.asarray(self.features, dtype=np.float64)
        self.labels = np.asarray(self.labels, dtype=np.float64)
        if self.features.ndim != 2:
            raise DataFormatError(f"features must be 2-D, got shape {self.features.shape}")
        if len(self.labels) != len(self.features):
            raise DataFormatError(
                f"{len(self.labels)} labels for {len(self.features)} records"
            )
        if not self.feature_names:
            self.feature_names = [f"x{i}" for i in range(self.num_features)]

    @property
    def num_samples(self) -> int:
        return self.features.shape[0]

    @property
    def num_features(self) -> int:
        return self.features.shape[1]

    def batch(self, iteration: int, batch_size: Optional[int] = None) -> "Dataset":
        """
        Deterministic mini-batch for a 1-based iteration number.

        Batches walk the records in order and wrap around, so a resumed run
        sees the same batch for the same iteration. ``None`` means full batch.
        """
        if batch_size is None or batch_size >= self.num_samples:
            return self
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        start = ((iteration - 1) * batch_size) % self.num_samples
        idx = (start + np.arange(batch_size)) % self.num_samples
        return Dataset(self.features[idx], self.labels[idx], list(self.feature_names))


def _to_numeric(df: pd.DataFrame, source: str) -> pd.DataFrame:
    for column in df.columns:
        try:
            df[column] = pd.to_numeric(df[column], errors="raise")
        except (ValueError, TypeError) as e:
            raise DataFormatError(f"{source}: non-numeric value in column '{column}': {e}") from e
        # to_numeric passes True/False through as a bool column
        if pd.api.types.is_bool_dtype(df[column]):
            raise DataFormatError(f"{source}: boolean value in column '{column}'")
    if df.isna().any().any():
        rows = df.index[df.isna().any(axis=1)].tolist()
        raise DataFormatError(
            f"{source}: missing fields in record(s) {[r + 2 for r in rows[:5]]}"
        )
    finite = np.isfinite(df.to_numpy(dtype=np.float64)).all(axis=1)
    if not finite.all():
        rows = df.index[~finite].tolist()
        raise DataFormatError(
            f"{source}: non-finite value in record(s) {[r + 2 for r in rows[:5]]}"
        )
    return df


def standardize(features: np.ndarray) -> np.ndarray:
    """Z-score every column; constant columns are centred only."""
    mean = features.mean(axis=0)
    std = features.std(axis=0)
    std[std == 0] = 1.0
    return (features - mean) / std


def load_dataset(
    path: Union[str, Path],
    label_column: int = -1,
    add_bias: bool = True,
    normalize: bool = False,
    clip: Optional[float] = None,
    delimiter: str = ",",
) -> Dataset:
    """
    Load a delimited file into a ``Dataset``.

    Args:
        path: Input file; the first row is a header and is discarded
        label_column: Index of the label column (negative counts from the end)
        add_bias: Prepend a constant 1.0 column
        normalize: Z-score the feature columns
        clip: Clip standardized features to ``[-clip, clip]``
        delimiter: Field separator

    Returns:
        Parsed dataset

    Raises:
        DataFormatError: unreadable file, ragged rows, non-numeric fields or
            labels outside {0, 1}
    """
    path = Path(path)
    try:
        df = pd.read_csv(path, sep=delimiter, header=0, skipinitialspace=True)
    except FileNotFoundError as e:
        raise DataFormatError(f"Dataset not found: {path}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataFormatError(f"{path}: {e}") from e

    # pandas promotes a leading extra field to an index instead of failing
    if not isinstance(df.index, pd.RangeIndex):
        raise DataFormatError(f"{path}: records have more fields than the header")
    if df.empty:
        raise DataFormatError(f"{path}: no records after the header")
    if df.shape[1] < 2:
        raise DataFormatError(f"{path}: need at least one feature and a label column")

    df = _to_numeric(df, str(path))
    columns = list(df.columns)
    try:
        label_name = columns[label_column]
    except IndexError as e:
        raise DataFormatError(
            f"{path}: label column {label_column} out of range for {len(columns)} columns"
        ) from e

    labels = df[label_name].to_numpy(dtype=np.float64)
    if not np.isin(labels, (0.0, 1.0)).all():
        raise DataFormatError(f"{path}: labels in column '{label_name}' must be 0 or 1")

    feature_df = df.drop(columns=[label_name])
    features = feature_df.to_numpy(dtype=np.float64)
    names = [str(c) for c in feature_df.columns]

    if normalize:
        features = standardize(features)
    if clip is not None:
        features = np.clip(features, -clip, clip)
    if add_bias:
        features = np.hstack([np.ones((features.shape[0], 1)), features])
        names = [BIAS_COLUMN] + names

    logger.info(
        f"Loaded {features.shape[0]} records with {features.shape[1]} features from {path}"
    )
    return Dataset(features=features, labels=labels, feature_names=names)


def write_csv(dataset: Dataset, path: Union[str, Path], label_name: str = "label") -> Path:
    """Write features and labels back to delimited text with a header row."""
    path = Path(path)
    df = pd.DataFrame(dataset.features, columns=dataset.feature_names)
    df[label_name] = dataset.labels
    df.to_csv(path, index=False)
    return path
