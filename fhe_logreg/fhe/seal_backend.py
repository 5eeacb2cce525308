"""
Production HE Backend using Microsoft SEAL via TenSEAL

TenSEAL's high-level ``CKKSVector`` hides levels and rescaling behind
auto-rescale/auto-mod-switch. The planner needs explicit control over both,
so this backend drives SEAL directly through ``tenseal.sealapi``.

References:
- TenSEAL: https://github.com/OpenMined/TenSEAL
- Microsoft SEAL: https://github.com/microsoft/SEAL
"""

import logging
from typing import Dict, Optional

import numpy as np
from tenseal import sealapi

from ..errors import SetupError
from .backend import CKKSParameters, HEBackend, Values
from .ciphertext import TaggedCiphertext, TaggedPlaintext

logger = logging.getLogger(__name__)


class SealCKKSBackend(HEBackend):
    """
    CKKS capability backed by SEAL.

    Holds the context and all key material; keys are read-only once
    generated, so one backend can serve several worker threads.

    Example:
        ```python
        backend = SealCKKSBackend(CKKSParameters(ring_degree=16384))
        ct = backend.encrypt_values([1.0, 2.0, 3.0])
        print(backend.decrypt_values(ct, length=3))
        ```
    """

    name = "seal"

    def __init__(self, params: Optional[CKKSParameters] = None):
        super().__init__(params)
        self._context = self._create_context()
        self._parms_by_level = self._index_levels()
        if max(self._parms_by_level) != self.max_level:
            raise SetupError(
                f"SEAL reports top data level {max(self._parms_by_level)}, "
                f"expected {self.max_level}"
            )

        keygen = sealapi.KeyGenerator(self._context)
        self._secret_key = keygen.secret_key()
        self._public_key = sealapi.PublicKey()
        keygen.create_public_key(self._public_key)
        self._relin_keys = sealapi.RelinKeys()
        keygen.create_relin_keys(self._relin_keys)
        self._galois_keys = None
        if self.params.generate_galois_keys:
            self._galois_keys = sealapi.GaloisKeys()
            keygen.create_galois_keys(self._galois_keys)

        self._encoder = sealapi.CKKSEncoder(self._context)
        self._encryptor = sealapi.Encryptor(self._context, self._public_key)
        self._decryptor = sealapi.Decryptor(self._context, self._secret_key)
        self._evaluator = sealapi.Evaluator(self._context)

        logger.info(
            f"SEAL CKKS context created: ring_degree={self.params.ring_degree}, "
            f"chain={self.params.modulus_chain}, max_level={self.max_level}"
        )

    def _create_context(self):
        parms = sealapi.EncryptionParameters(sealapi.SCHEME_TYPE.CKKS)
        parms.set_poly_modulus_degree(self.params.ring_degree)
        parms.set_coeff_modulus(
            sealapi.CoeffModulus.Create(self.params.ring_degree, self.params.modulus_chain)
        )
        context = sealapi.SEALContext(parms, True, sealapi.SEC_LEVEL_TYPE.TC128)
        if not context.parameters_set():
            raise SetupError(
                f"SEAL rejected parameters: {context.parameter_error_message()}"
            )
        return context

    def _index_levels(self) -> Dict[int, object]:
        """Map chain index (level) to parms_id for every data level."""
        by_level = {}
        context_data = self._context.first_context_data()
        while context_data is not None:
            by_level[context_data.chain_index()] = context_data.parms_id()
            context_data = context_data.next_context_data()
        return by_level

    def _level_of(self, obj) -> int:
        return self._context.get_context_data(obj.parms_id()).chain_index()

    def _wrap(self, ct) -> TaggedCiphertext:
        return TaggedCiphertext(payload=ct, level=self._level_of(ct), scale=ct.scale)

    def _wrap_plain(self, plain) -> TaggedPlaintext:
        return TaggedPlaintext(payload=plain, level=self._level_of(plain), scale=plain.scale)

    def _new_ciphertext(self):
        return sealapi.Ciphertext(self._context)

    # Encoding

    def encode(
        self,
        values: Values,
        level: Optional[int] = None,
        scale: Optional[float] = None,
    ) -> TaggedPlaintext:
        level = self._resolve_level(level)
        scale = scale or self.default_scale
        plain = sealapi.Plaintext()
        self._encoder.encode(
            self._slot_values(values).tolist(), self._parms_by_level[level], scale, plain
        )
        return self._wrap_plain(plain)

    def decode(self, plain: TaggedPlaintext) -> np.ndarray:
        return np.array(self._encoder.decode_double(plain.payload))

    def encrypt(self, plain: TaggedPlaintext) -> TaggedCiphertext:
        ct = self._new_ciphertext()
        self._encryptor.encrypt(plain.payload, ct)
        self._count("encryptions")
        return self._wrap(ct)

    def decrypt(self, ct: TaggedCiphertext) -> TaggedPlaintext:
        plain = sealapi.Plaintext()
        self._decryptor.decrypt(ct.payload, plain)
        self._count("decryptions")
        return self._wrap_plain(plain)

    # Arithmetic

    def add(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.add(a.payload, b.payload, out)
        self._count("additions")
        return self._wrap(out)

    def sub(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.sub(a.payload, b.payload, out)
        self._count("additions")
        return self._wrap(out)

    def add_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.add_plain(ct.payload, plain.payload, out)
        self._count("additions")
        return self._wrap(out)

    def negate(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.negate(ct.payload, out)
        return self._wrap(out)

    def multiply(self, a: TaggedCiphertext, b: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.multiply(a.payload, b.payload, out)
        self._count("multiplications")
        return self._wrap(out)

    def multiply_plain(self, ct: TaggedCiphertext, plain: TaggedPlaintext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.multiply_plain(ct.payload, plain.payload, out)
        self._count("plain_multiplications")
        return self._wrap(out)

    def square(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.square(ct.payload, out)
        self._count("multiplications")
        return self._wrap(out)

    def relinearize(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.relinearize(ct.payload, self._relin_keys, out)
        self._count("relinearizations")
        return self._wrap(out)

    def rescale_to_next(self, ct: TaggedCiphertext) -> TaggedCiphertext:
        out = self._new_ciphertext()
        self._evaluator.rescale_to_next(ct.payload, out)
        self._count("rescales")
        return self._wrap(out)

    def switch_to_level(self, ct: TaggedCiphertext, level: int) -> TaggedCiphertext:
        if level == ct.level:
            return ct
        out = self._new_ciphertext()
        self._evaluator.mod_switch_to(ct.payload, self._parms_by_level[level], out)
        self._count("level_switches")
        return self._wrap(out)

    def switch_plain_to_level(self, plain: TaggedPlaintext, level: int) -> TaggedPlaintext:
        if level == plain.level:
            return plain
        out = sealapi.Plaintext(plain.payload)
        self._evaluator.mod_switch_to_inplace(out, self._parms_by_level[level])
        return self._wrap_plain(out)

    def set_scale(self, ct: TaggedCiphertext, scale: float) -> TaggedCiphertext:
        # mod_switch_to its own parms_id is a plain copy
        out = self._new_ciphertext()
        self._evaluator.mod_switch_to(ct.payload, ct.payload.parms_id(), out)
        out.scale = scale
        return self._wrap(out)

    def rotate(self, ct: TaggedCiphertext, steps: int) -> TaggedCiphertext:
        if self._galois_keys is None:
            raise ValueError("Galois keys were not generated")
        out = self._new_ciphertext()
        self._evaluator.rotate_vector(ct.payload, steps, self._galois_keys, out)
        self._count("rotations")
        return self._wrap(out)
