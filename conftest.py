"""
Shared fixtures: small synthetic fits with known structure.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from gllvm_ordination import FittedGLLVM


def _random_covariances(rng, n, k):
    """n random positive-definite k x k matrices."""
    factors = rng.normal(scale=0.3, size=(n, k, k))
    return factors @ np.transpose(factors, (0, 2, 1)) + 0.05 * np.eye(k)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def site_scores(rng):
    return rng.normal(size=(12, 3))


@pytest.fixture
def species_loadings(rng):
    return rng.normal(scale=2.0, size=(6, 3))


@pytest.fixture
def la_model(rng):
    """Laplace fit with 2 latent variables and direct prediction errors."""
    n, p, k = 10, 5, 2
    return FittedGLLVM(
        theta=rng.normal(size=(p, k)),
        lvs=rng.normal(size=(n, k)),
        species_names=[f"sp{j}" for j in range(p)],
        method='LA',
        prediction_errors=_random_covariances(rng, n, k),
        name='la_model',
    )


@pytest.fixture
def va_diagonal_model(rng):
    """Variational fit with diagonal covariances and a random row effect."""
    n, p, k = 8, 4, 2
    return FittedGLLVM(
        theta=rng.normal(size=(p, k)),
        lvs=rng.normal(size=(n, k)),
        method='VA',
        variational_cov=rng.uniform(0.1, 0.5, size=(n, k + 1)),
        variational_adjustment=np.full((n, k + 1), 0.01),
        row_eff='random',
    )


@pytest.fixture
def bare_model(rng):
    """Fit exported without any uncertainty information."""
    return FittedGLLVM(
        theta=rng.normal(size=(5, 2)),
        lvs=rng.normal(size=(7, 2)),
    )
