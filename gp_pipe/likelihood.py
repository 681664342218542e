"""
Likelihood functions for GP models.

Provides JAX-compatible log densities for:
- The marginal likelihood of an exact (Gaussian-noise) GP
- Per-observation likelihoods p(y_i | f_i) of latent GP models

All functions are JIT-compilable and differentiable. Normalisation constants
are included so targets can be compared across models.

Examples
--------
>>> import jax.numpy as jnp
>>> from gp_pipe.likelihood import PoissonLikelihood
>>> lik = PoissonLikelihood()
>>> f = jnp.array([0.1, 0.5])
>>> y = jnp.array([1.0, 2.0])
>>> lik.log_dens(jnp.asarray(lik.theta), f, y).sum()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
import jax.numpy as jnp
from jax.scipy.linalg import solve_triangular
from jax.scipy.special import gammaln
from jax.scipy.stats import norm


def gaussian_log_marginal(
    y: jnp.ndarray,
    mu: jnp.ndarray,
    L: jnp.ndarray,
) -> jnp.ndarray:
    """
    Log density of y ~ N(mu, L L^T).

    Computes
        log p(y) = -0.5 * [n*log(2π) + log(det(Σ)) + r^T Σ^{-1} r]
    using the lower Cholesky factor L of Σ.

    Parameters
    ----------
    y : jnp.ndarray
        Observations, shape (n,).
    mu : jnp.ndarray
        Mean vector, shape (n,).
    L : jnp.ndarray
        Lower Cholesky factor of the covariance, shape (n, n).

    Returns
    -------
    jnp.ndarray
        0-d log density. NaN if L came from a failed factorisation.
    """
    alpha = solve_triangular(L, y - mu, lower=True)
    n = y.shape[0]
    return (
        -0.5 * jnp.dot(alpha, alpha)
        - jnp.sum(jnp.log(jnp.diag(L)))
        - 0.5 * n * jnp.log(2 * jnp.pi)
    )


class Likelihood(ABC):
    '''
    Observation model p(y_i | f_i; theta) for latent GPs.
    '''

    PARAMETER_NAMES: Tuple[str, ...] = ()

    def __init__(self, *values: float) -> None:
        self.theta = np.array(values, dtype=float)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def n_params(self) -> int:
        return len(self.PARAMETER_NAMES)

    @abstractmethod
    def log_dens(self, theta: jnp.ndarray, f: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        '''
        Per-observation log densities, shape (n,).
        '''
        pass


class GaussianLikelihood(Likelihood):
    '''
    y_i ~ N(f_i, exp(log_lik_noise)^2).
    '''

    PARAMETER_NAMES = ('log_lik_noise',)

    def __init__(self, log_lik_noise: float = -1.0) -> None:
        super().__init__(log_lik_noise)

    def log_dens(self, theta: jnp.ndarray, f: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        return norm.logpdf(y, loc=f, scale=jnp.exp(theta[0]))


class PoissonLikelihood(Likelihood):
    '''
    y_i ~ Poisson(exp(f_i)).
    '''

    def __init__(self) -> None:
        super().__init__()

    def log_dens(self, theta: jnp.ndarray, f: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        return y * f - jnp.exp(f) - gammaln(y + 1.0)


class BernoulliProbit(Likelihood):
    '''
    y_i in {0, 1}, p(y_i = 1) = Phi(f_i).
    '''

    def __init__(self) -> None:
        super().__init__()

    def log_dens(self, theta: jnp.ndarray, f: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        sign = 2.0 * y - 1.0
        return norm.logcdf(sign * f)
