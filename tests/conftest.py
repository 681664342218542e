"""
Pytest configuration and shared fixtures for gp_pipe tests.

This module provides:
- Warning suppression for expected test warnings
- Shared small GP problems
- The slow test marker
"""

import jax

jax.config.update("jax_enable_x64", True)

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
import warnings

from gp_pipe.gp import GPExact, GPLatent
from gp_pipe.kernels import SquaredExponential
from gp_pipe.likelihood import GaussianLikelihood
from gp_pipe.means import MeanConst
from gp_pipe.priors import Gaussian, PriorDict
from gp_pipe.synthetic import SyntheticGP


# ==============================================================================
# Warning Suppression Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def suppress_expected_warnings():
    """
    Suppress expected warnings during tests.

    Suppressed warnings:
    - matplotlib tight_layout warning (non-compatible axes)
    """
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message="This figure includes Axes that are not compatible with tight_layout",
            category=UserWarning,
        )

        yield


# ==============================================================================
# Small GP Problems
# ==============================================================================


TRUE_PARAMS = {
    'beta': 0.5,
    'log_ell': 0.0,
    'log_sf': 0.0,
    'log_noise': -1.5,
    'log_lik_noise': -1.5,
}


@pytest.fixture(scope="module")
def regression_data():
    """Noisy draw from a GP with constant mean at 20 inputs on [0, 5]."""
    synth = SyntheticGP(TRUE_PARAMS, kernel_type='se', seed=42)
    x = np.linspace(0, 5, 20)
    y = synth.generate(x, likelihood='gaussian')
    return x, y


@pytest.fixture
def gaussian_priors():
    return PriorDict({
        'beta': Gaussian(0.5, 1.0),
        'log_ell': Gaussian(0.0, 1.0),
        'log_sf': Gaussian(0.0, 1.0),
        'log_noise': Gaussian(-1.5, 1.0),
        'log_lik_noise': Gaussian(-1.5, 1.0),
    })


@pytest.fixture
def exact_gp(regression_data, gaussian_priors):
    """Fresh GPExact per test; samplers mutate the model."""
    x, y = regression_data
    priors = PriorDict({
        name: gaussian_priors.get_prior(name)
        for name in ('beta', 'log_ell', 'log_sf', 'log_noise')
    })
    return GPExact(
        x, y, MeanConst(0.5), SquaredExponential(0.0, 0.0), log_noise=-1.5, priors=priors
    )


@pytest.fixture
def latent_gp(regression_data, gaussian_priors):
    """Fresh GPLatent with a Gaussian likelihood per test."""
    x, y = regression_data
    priors = PriorDict({
        name: gaussian_priors.get_prior(name)
        for name in ('beta', 'log_ell', 'log_sf', 'log_lik_noise')
    })
    return GPLatent(
        x, y, MeanConst(0.5), SquaredExponential(0.0, 0.0),
        GaussianLikelihood(-1.5), priors=priors,
    )


# ==============================================================================
# Slow Test Marker
# ==============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
