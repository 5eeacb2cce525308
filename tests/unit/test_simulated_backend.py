"""
Simulated CKKS Backend Tests

The simulator must follow the same level and scale rules as SEAL, since the
planner is tested against it.
"""

import numpy as np
import pytest


class TestParameters:
    """Scheme setup validation."""

    def test_default_chain_levels(self, params):
        assert params.max_level == 5
        assert params.slot_count == 8192
        assert params.default_scale == 2.0 ** 40

    def test_rejects_unknown_ring_degree(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import CKKSParameters

        with pytest.raises(SetupError, match="ring_degree"):
            CKKSParameters(ring_degree=1000).validate()

    def test_rejects_chain_over_security_limit(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import CKKSParameters

        with pytest.raises(SetupError, match="exceeding"):
            CKKSParameters(ring_degree=16384, modulus_chain=[60] * 8).validate()

    def test_rejects_scale_above_first_prime(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import CKKSParameters

        with pytest.raises(SetupError, match="scale_bits"):
            CKKSParameters(modulus_chain=[40, 40, 40], scale_bits=40).validate()

    def test_rejects_single_prime(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import CKKSParameters

        with pytest.raises(SetupError):
            CKKSParameters(modulus_chain=[60]).validate()

    def test_create_backend_unknown_kind(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import create_backend

        with pytest.raises(SetupError, match="Unknown backend"):
            create_backend("palisade")


class TestEncoding:
    """Polymorphic encode/decode."""

    def test_scalar_is_broadcast(self, backend):
        decoded = backend.decode(backend.encode(2.5))
        assert decoded.shape == (backend.slot_count,)
        np.testing.assert_allclose(decoded, 2.5)

    def test_vector_is_zero_padded(self, backend):
        decoded = backend.decode(backend.encode([1.0, -2.0, 3.5]))
        np.testing.assert_allclose(decoded[:3], [1.0, -2.0, 3.5])
        np.testing.assert_array_equal(decoded[3:], 0.0)

    def test_too_many_values(self, backend):
        with pytest.raises(ValueError, match="slot capacity"):
            backend.encode(np.ones(backend.slot_count + 1))

    def test_encode_at_level(self, backend):
        plain = backend.encode(1.0, level=2)
        assert plain.level == 2
        assert plain.scale == backend.default_scale

    def test_level_out_of_range(self, backend):
        with pytest.raises(ValueError):
            backend.encode(1.0, level=backend.max_level + 1)

    def test_fresh_ciphertext_at_top_level(self, backend):
        ct = backend.encrypt_values([0.25, 0.5])
        assert ct.level == backend.max_level
        np.testing.assert_allclose(backend.decrypt_values(ct, length=2), [0.25, 0.5])

    def test_noise_is_seeded(self, params):
        from fhe_logreg.fhe import SimulatedCKKSBackend

        a = SimulatedCKKSBackend(params, noise_stddev=1e-6, seed=7)
        b = SimulatedCKKSBackend(params, noise_stddev=1e-6, seed=7)
        va = a.decrypt_values(a.encrypt_values([1.0, 2.0]), length=2)
        vb = b.decrypt_values(b.encrypt_values([1.0, 2.0]), length=2)
        np.testing.assert_array_equal(va, vb)
        np.testing.assert_allclose(va, [1.0, 2.0], atol=1e-4)


class TestPrimitiveRules:
    """Misuse raises ValueError like the primitive library."""

    def test_add_requires_identical_scale(self, backend):
        a = backend.encrypt_values(1.0)
        b = backend.set_scale(backend.encrypt_values(1.0), backend.default_scale * (1 + 1e-9))
        with pytest.raises(ValueError, match="scale mismatch"):
            backend.add(a, b)

    def test_add_requires_same_level(self, backend):
        a = backend.encrypt_values(1.0)
        b = backend.encrypt_values(1.0, level=3)
        with pytest.raises(ValueError, match="parameter mismatch"):
            backend.add(a, b)

    def test_rescale_drifts_scale(self, backend):
        ct = backend.encrypt_values(1.5)
        product = backend.relinearize(backend.square(ct))
        rescaled = backend.rescale_to_next(product)

        assert rescaled.level == ct.level - 1
        assert rescaled.scale != backend.default_scale
        assert rescaled.scale == pytest.approx(backend.default_scale, rel=1e-5)
        np.testing.assert_allclose(backend.decrypt_values(rescaled, length=1), [2.25], rtol=1e-9)

    def test_rescale_at_level_zero(self, backend):
        ct = backend.encrypt_values(1.0, level=0)
        with pytest.raises(ValueError, match="end of modulus"):
            backend.rescale_to_next(ct)

    def test_multiply_needs_relinearization(self, backend):
        ct = backend.encrypt_values(2.0)
        product = backend.multiply(ct, ct)
        assert product.payload.size == 3
        with pytest.raises(ValueError, match="relinearization"):
            backend.relinearize(ct)
        with pytest.raises(ValueError, match="relinearized"):
            backend.rotate(product, 1)

    def test_switch_down_only(self, backend):
        ct = backend.encrypt_values(1.0, level=2)
        assert backend.switch_to_level(ct, 1).level == 1
        with pytest.raises(ValueError):
            backend.switch_to_level(ct, 3)

    def test_rotate_left(self, backend):
        ct = backend.encrypt_values([1.0, 2.0, 3.0])
        rotated = backend.decrypt_values(backend.rotate(ct, 1), length=3)
        np.testing.assert_allclose(rotated, [2.0, 3.0, 0.0])

    def test_rotate_without_galois_keys(self):
        from fhe_logreg.fhe import CKKSParameters, SimulatedCKKSBackend

        backend = SimulatedCKKSBackend(CKKSParameters(generate_galois_keys=False))
        with pytest.raises(ValueError, match="Galois"):
            backend.rotate(backend.encrypt_values(1.0), 1)


class TestStats:
    """Operation counters in get_stats()."""

    def test_counts_operations(self, backend):
        ct = backend.encrypt_values(1.0)
        backend.rescale_to_next(backend.relinearize(backend.square(ct)))
        backend.decrypt(ct)

        stats = backend.get_stats()
        assert stats["encryptions"] == 1
        assert stats["decryptions"] == 1
        assert stats["multiplications"] == 1
        assert stats["relinearizations"] == 1
        assert stats["rescales"] == 1
        assert stats["backend"] == "simulated"
        assert stats["max_level"] == 5
