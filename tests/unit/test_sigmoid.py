"""
Polynomial Sigmoid Evaluator Tests
"""

import numpy as np
import pytest


class TestSigmoidPolynomial:

    def test_coefficients(self):
        from fhe_logreg.training import DEFAULT_SIGMOID

        assert (DEFAULT_SIGMOID.c0, DEFAULT_SIGMOID.c1) == (0.5, 0.25)
        assert (DEFAULT_SIGMOID.c3, DEFAULT_SIGMOID.c5) == (-0.021, 0.002)

    def test_plaintext_evaluation(self):
        from fhe_logreg.training import DEFAULT_SIGMOID

        np.testing.assert_allclose(DEFAULT_SIGMOID.evaluate([0.0, 1.0]), [0.5, 0.731])

    def test_close_to_logistic_near_zero(self):
        from fhe_logreg.training import DEFAULT_SIGMOID
        from fhe_logreg.training.plain import sigmoid

        x = np.linspace(-1.5, 1.5, 31)
        np.testing.assert_allclose(DEFAULT_SIGMOID.evaluate(x), sigmoid(x), atol=1e-2)


class TestEncryptedSigmoid:

    def test_accuracy_over_domain(self, backend):
        from fhe_logreg.training import DEFAULT_SIGMOID, evaluate_sigmoid

        x = np.linspace(-5.0, 5.0, 101)
        result = evaluate_sigmoid(backend, backend.encrypt_values(x))

        decrypted = backend.decrypt_values(result, length=len(x))
        np.testing.assert_allclose(decrypted, DEFAULT_SIGMOID.evaluate(x), atol=1e-2)

    def test_accuracy_under_encryption_noise(self):
        """Test the sigmoid stays within tolerance with noisy encryptions."""
        from fhe_logreg.fhe import CKKSParameters, SimulatedCKKSBackend
        from fhe_logreg.training import DEFAULT_SIGMOID, evaluate_sigmoid

        noisy = SimulatedCKKSBackend(CKKSParameters(), noise_stddev=1e-5, seed=0)
        x = np.linspace(-5.0, 5.0, 101)
        result = evaluate_sigmoid(noisy, noisy.encrypt_values(x))

        decrypted = noisy.decrypt_values(result, length=len(x))
        assert not np.array_equal(decrypted, DEFAULT_SIGMOID.evaluate(x))
        np.testing.assert_allclose(decrypted, DEFAULT_SIGMOID.evaluate(x), atol=1e-2)

    def test_broadcast_input(self, backend):
        from fhe_logreg.training import DEFAULT_SIGMOID, evaluate_sigmoid

        result = evaluate_sigmoid(backend, backend.encrypt_values(0.8))
        decrypted = backend.decrypt_values(result)
        np.testing.assert_allclose(decrypted, DEFAULT_SIGMOID.evaluate(0.8), atol=1e-5)

    def test_three_levels_deep_at_nominal_scale(self, backend):
        from fhe_logreg.training import evaluate_sigmoid

        result = evaluate_sigmoid(backend, backend.encrypt_values(0.3))
        assert result.level == backend.max_level - 3
        assert result.scale == backend.default_scale

    def test_minimum_input_level(self, backend):
        from fhe_logreg.training import evaluate_sigmoid

        result = evaluate_sigmoid(backend, backend.encrypt_values(0.3, level=3))
        assert result.level == 0

    def test_depth_exhaustion(self, backend):
        from fhe_logreg.errors import DepthExhaustedError
        from fhe_logreg.training import evaluate_sigmoid

        with pytest.raises(DepthExhaustedError) as exc_info:
            evaluate_sigmoid(backend, backend.encrypt_values(0.3, level=2))
        assert exc_info.value.required == 3
        assert backend.get_stats()["multiplications"] == 0

    def test_custom_coefficients_with_negative_linear_term(self, backend):
        from fhe_logreg.training import SigmoidPolynomial, evaluate_sigmoid

        poly = SigmoidPolynomial(c0=0.1, c1=-0.5, c3=0.01, c5=-0.001)
        x = np.array([-2.0, -0.5, 0.0, 1.0, 2.0])
        result = evaluate_sigmoid(backend, backend.encrypt_values(x), poly)
        np.testing.assert_allclose(
            backend.decrypt_values(result, length=len(x)), poly.evaluate(x), atol=1e-4
        )

    def test_one_cipher_multiply_per_odd_power(self, backend):
        from fhe_logreg.training import evaluate_sigmoid

        evaluate_sigmoid(backend, backend.encrypt_values(0.5))
        stats = backend.get_stats()
        # x^2, x^4, x^4·c5x, x^2·c3x
        assert stats["multiplications"] == 4
        assert stats["plain_multiplications"] == 3
