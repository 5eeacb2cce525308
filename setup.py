#!/usr/bin/env python3
"""
Setup script for the fhe-logreg package.
"""

from setuptools import setup, find_packages

if __name__ == "__main__":
    setup(
        name="fhe-logreg",
        version="1.0.0",
        description="Logistic regression training over CKKS-encrypted data",
        packages=find_packages(include=["fhe_logreg", "fhe_logreg.*"]),
        install_requires=[
            "numpy>=1.24.0",
            "pandas>=2.0.0",
            "tenseal>=0.3.14",
            "click>=8.0.0",
            "rich>=13.0.0",
            "pyyaml>=6.0",
            "pydantic>=2.0.0",
            "python-dotenv>=1.0.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "fhe-logreg=fhe_logreg.cli.main:cli",
            ],
        },
        python_requires=">=3.8",
    )
