"""Build script for rankgrad.

Usage:
    pip install -e .          # editable install
    pip install -e .[test]    # with the test dependencies
"""

from setuptools import setup, find_packages

setup(
    name="rankgrad",
    version="0.1.0",
    description=("LambdaRank / XE_NDCG gradient and hessian computation "
                 "for learning-to-rank gradient boosting"),
    python_requires=">=3.8",
    packages=find_packages(include=["rankgrad", "rankgrad.*"]),
    install_requires=[
        "numpy",
        "scikit-learn",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
