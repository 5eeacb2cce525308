"""
Integration tests against Microsoft SEAL (through TenSEAL's sealapi).

Skipped when tenseal is not installed.
"""

import numpy as np
import pytest

pytest.importorskip("tenseal")


@pytest.fixture(scope="module")
def seal_backend():
    from fhe_logreg.fhe import CKKSParameters, create_backend
    return create_backend("seal", CKKSParameters())


class TestSealPrimitives:

    def test_levels_match_chain(self, seal_backend):
        """Test fresh encryptions sit at the top of the chain."""
        assert seal_backend.max_level == 5
        ct = seal_backend.encrypt_values([1.0, 2.0])
        assert ct.level == 5
        assert ct.scale == seal_backend.default_scale

    def test_roundtrip(self, seal_backend):
        """Test encryption/decryption correctness."""
        values = [0.5, -1.25, 3.0]
        ct = seal_backend.encrypt_values(values)
        np.testing.assert_allclose(seal_backend.decrypt_values(ct, length=3), values, atol=1e-4)

    def test_multiply_consumes_one_level(self, seal_backend):
        """Test homomorphic multiplication with rescale."""
        from fhe_logreg.fhe import alignment

        a = seal_backend.encrypt_values([1.5, -2.0])
        b = seal_backend.encrypt_values([2.0, 0.5])
        product = alignment.multiply(seal_backend, a, b)

        assert product.level == 4
        assert product.scale == seal_backend.default_scale
        np.testing.assert_allclose(
            seal_backend.decrypt_values(product, length=2), [3.0, -1.0], atol=1e-4
        )

    def test_set_scale_returns_independent_copy(self, seal_backend):
        """Overwriting the scale leaves the source ciphertext untouched."""
        ct = seal_backend.encrypt_values([1.0, -0.5])
        relabelled = seal_backend.set_scale(ct, 2.0 * ct.scale)

        assert relabelled.level == ct.level
        assert relabelled.scale == 2.0 * ct.scale
        assert ct.payload.scale == seal_backend.default_scale
        np.testing.assert_allclose(
            seal_backend.decrypt_values(relabelled, length=2), [0.5, -0.25], atol=1e-4
        )

    def test_rescale_resets_scale(self, seal_backend):
        """A rescaled product carries exactly the nominal scale."""
        from fhe_logreg.fhe import alignment

        ct = seal_backend.encrypt_values(1.5)
        product = seal_backend.multiply_plain(ct, alignment.encode_constant(seal_backend, 2.0, ct.level))
        rescaled = alignment.rescale(seal_backend, product)

        assert rescaled.level == ct.level - 1
        assert rescaled.scale == seal_backend.default_scale
        assert rescaled.payload.scale == seal_backend.default_scale
        np.testing.assert_allclose(seal_backend.decrypt_values(rescaled, length=1), [3.0], atol=1e-4)

    def test_add_across_levels(self, seal_backend):
        """Test addition of operands on different levels."""
        from fhe_logreg.fhe import alignment

        low = alignment.square(seal_backend, seal_backend.encrypt_values(2.0))
        high = seal_backend.encrypt_values(1.0)
        total = alignment.add(seal_backend, low, high)

        assert total.level == low.level
        np.testing.assert_allclose(seal_backend.decrypt_values(total, length=1), [5.0], atol=1e-4)


class TestSealTraining:

    def test_sigmoid(self, seal_backend):
        """Test polynomial sigmoid on encrypted data."""
        from fhe_logreg.training import DEFAULT_SIGMOID, evaluate_sigmoid

        x = np.linspace(-2.0, 2.0, 9)
        out = evaluate_sigmoid(seal_backend, seal_backend.encrypt_values(x))

        assert out.level == seal_backend.max_level - 3
        np.testing.assert_allclose(
            seal_backend.decrypt_values(out, length=len(x)), DEFAULT_SIGMOID.evaluate(x), atol=1e-3
        )

    def test_single_iteration(self, seal_backend):
        """Test one gradient step against the plaintext update."""
        from fhe_logreg.training import TrainingOrchestrator
        from fhe_logreg.training.forward import client_linear_products
        from fhe_logreg.training.plain import plain_gradient_step

        features = np.array([[1.0, 0.5, -0.3], [1.0, -1.0, 0.8], [1.0, 0.2, 0.1]])
        labels = np.array([1.0, 0.0, 1.0])
        weights = np.array([0.1, -0.2, 0.3])

        result = TrainingOrchestrator(seal_backend).step(
            weights=seal_backend.encrypt_values(weights),
            features=[seal_backend.encrypt_values(row) for row in features],
            labels=[seal_backend.encrypt_values(y) for y in labels],
            learning_rate=seal_backend.encrypt_values(0.1),
            linear_products=client_linear_products(seal_backend, weights, features),
        )

        assert result.level == 0
        np.testing.assert_allclose(
            seal_backend.decrypt_values(result, length=3),
            plain_gradient_step(weights, features, labels, 0.1),
            atol=1e-3,
        )
