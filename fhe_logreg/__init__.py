"""
fhe-logreg - Logistic regression training over CKKS-encrypted data.

A leveled evaluation planner tracks the level and scale of every
intermediate ciphertext, aligns operands before each combine, and sequences
the sigmoid, gradient and update sub-computations within the multiplicative
depth of the configured modulus chain.
"""

__version__ = "1.0.0"
__author__ = "FHE-LogReg Team"
