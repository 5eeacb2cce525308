"""
Plaintext reference algorithms.

Used to check the encrypted step and to score saved weights without any
key material.
"""

from typing import Optional

import numpy as np

from .sigmoid import DEFAULT_SIGMOID, SigmoidPolynomial


def plain_dot(weights: np.ndarray, features: np.ndarray) -> np.ndarray:
    """Linear products ``w·x_i`` for a single row or a matrix of rows."""
    return np.asarray(features, dtype=np.float64) @ np.asarray(weights, dtype=np.float64)


def sigmoid(x) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-np.asarray(x, dtype=np.float64)))


def plain_gradient_step(
    weights: np.ndarray,
    features: np.ndarray,
    labels: np.ndarray,
    learning_rate: float,
    polynomial: Optional[SigmoidPolynomial] = DEFAULT_SIGMOID,
) -> np.ndarray:
    """
    One gradient-ascent step on the log-likelihood:

        w' = w + (lr / m) · Σ (y_i - σ(w·x_i)) · x_i

    Args:
        weights: Current weights, shape (d,)
        features: Batch, shape (m, d)
        labels: Labels in {0, 1}, shape (m,)
        learning_rate: Step size
        polynomial: Sigmoid approximation to use, or None for the exact
            logistic function
    """
    features = np.asarray(features, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.float64)
    z = plain_dot(weights, features)
    s = polynomial.evaluate(z) if polynomial is not None else sigmoid(z)
    gradient = features.T @ (labels - s)
    return np.asarray(weights, dtype=np.float64) + (learning_rate / len(labels)) * gradient


def compute_accuracy(weights: np.ndarray, features: np.ndarray, labels: np.ndarray) -> float:
    """Fraction of rows where ``round(sigmoid(w·x_i))`` equals the label."""
    labels = np.asarray(labels, dtype=np.float64)
    if labels.size == 0:
        return 0.0
    predictions = np.round(sigmoid(plain_dot(weights, features)))
    return float(np.mean(predictions == labels))


def log_loss(
    weights: np.ndarray,
    features: np.ndarray,
    labels: np.ndarray,
    eps: float = 1e-12,
) -> float:
    """Mean binary cross-entropy of the exact logistic model."""
    labels = np.asarray(labels, dtype=np.float64)
    p = np.clip(sigmoid(plain_dot(weights, features)), eps, 1.0 - eps)
    return float(-np.mean(labels * np.log(p) + (1.0 - labels) * np.log(1.0 - p)))
