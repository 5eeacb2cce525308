"""
Forward Pass Tests
"""

import numpy as np
import pytest


class TestClientForward:

    def test_products_are_broadcast_at_top_level(self, backend, toy_batch):
        from fhe_logreg.training.forward import client_linear_products

        features, _ = toy_batch
        products = client_linear_products(backend, np.array([0.5, 1.0, -0.25]), features)

        assert len(products) == 2
        assert all(p.level == backend.max_level for p in products)
        np.testing.assert_allclose(backend.decrypt_values(products[0]), 0.25)
        np.testing.assert_allclose(backend.decrypt_values(products[1]), -0.25)


class TestRotateAndSum:

    def test_total_lands_in_every_slot(self, backend):
        from fhe_logreg.training.forward import rotate_and_sum

        ct = backend.encrypt_values([1.0, 2.0, 3.0, 4.0])
        total = backend.decrypt_values(rotate_and_sum(backend, ct))
        np.testing.assert_allclose(total[[0, 1, 100, -1]], 10.0, atol=1e-6)
        assert backend.get_stats()["rotations"] == int(np.log2(backend.slot_count))

    def test_partial_span(self, backend):
        from fhe_logreg.training.forward import rotate_and_sum

        ct = backend.encrypt_values([1.0, 2.0, 3.0, 4.0])
        total = backend.decrypt_values(rotate_and_sum(backend, ct, span=4), length=1)
        np.testing.assert_allclose(total, [10.0], atol=1e-6)

    def test_span_must_be_power_of_two(self, backend):
        from fhe_logreg.training.forward import rotate_and_sum

        with pytest.raises(ValueError, match="power of two"):
            rotate_and_sum(backend, backend.encrypt_values(1.0), span=3)


class TestHomomorphicForward:

    def test_dot_products_under_encryption(self, deep_backend):
        from fhe_logreg.training.forward import homomorphic_linear_products

        backend = deep_backend
        weights = backend.encrypt_values([0.5, -1.0, 2.0])
        features = [backend.encrypt_values([1.0, 0.0, 3.0]), backend.encrypt_values([1.0, 2.0, -1.0])]

        products = homomorphic_linear_products(backend, weights, features)
        assert [p.level for p in products] == [backend.max_level - 1] * 2
        np.testing.assert_allclose(backend.decrypt_values(products[0], length=4), 6.5, atol=1e-5)
        np.testing.assert_allclose(backend.decrypt_values(products[1], length=4), -3.5, atol=1e-5)
