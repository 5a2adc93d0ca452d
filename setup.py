from setuptools import find_packages, setup

LIBRARY_NAME = "ciaopts"

setup(
    name=LIBRARY_NAME,
    version="0.1.0",
    description="Incremental aggregated and variance-reduced proximal gradient methods in JAX",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "jax",
        "numpy",
        "wandb",
    ],
    extras_require={
        "test": ["pytest", "scikit-learn"],
    },
)
