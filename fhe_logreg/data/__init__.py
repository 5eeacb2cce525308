"""Dataset ingestion."""

from .dataset import Dataset, load_dataset, standardize, write_csv

__all__ = ["Dataset", "load_dataset", "standardize", "write_csv"]
