"""
Shared fixtures.

Tests run on the simulated CKKS backend, which enforces the same level and
scale rules as SEAL without key material.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def params():
    from fhe_logreg.fhe import CKKSParameters
    return CKKSParameters()


@pytest.fixture
def backend(params):
    from fhe_logreg.fhe import SimulatedCKKSBackend
    return SimulatedCKKSBackend(params)


@pytest.fixture
def deep_backend():
    """Backend with one extra level, enough for the homomorphic forward pass."""
    from fhe_logreg.fhe import CKKSParameters, SimulatedCKKSBackend
    return SimulatedCKKSBackend(
        CKKSParameters(modulus_chain=[60, 40, 40, 40, 40, 40, 40, 60])
    )


@pytest.fixture
def toy_batch():
    """Two samples, two features plus bias."""
    features = np.array([[1.0, 0.0, 1.0], [1.0, 0.0, 3.0]])
    labels = np.array([1.0, 0.0])
    return features, labels


@pytest.fixture
def csv_factory(tmp_path):
    """Write CSV text to a file and return its path."""
    def _write(text: str, name: str = "data.csv") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write
