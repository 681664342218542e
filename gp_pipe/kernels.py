"""
Stationary isotropic covariance kernels.

Kernels are parameterised on the log scale: ``log_ell`` is the log length
scale and ``log_sf`` the log signal standard deviation, so any real-valued
hyperparameter vector maps to a valid kernel. Positive-definiteness can
still be lost numerically (huge length scales, tiny noise), which the GP
models report as ``LinAlgError``.

Examples
--------
>>> import jax.numpy as jnp
>>> from gp_pipe.kernels import SquaredExponential
>>> kern = SquaredExponential(log_ell=0.0, log_sf=0.0)
>>> x = jnp.linspace(0, 1, 5)[:, None]
>>> K = kern.cov(jnp.asarray(kern.theta), x, x)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
import jax.numpy as jnp


def _sq_dist(x1: jnp.ndarray, x2: jnp.ndarray) -> jnp.ndarray:
    """Pairwise squared Euclidean distances, shape (n1, n2)."""
    diff = x1[:, None, :] - x2[None, :, :]
    return jnp.sum(diff**2, axis=-1)


class Kernel(ABC):
    '''
    A stationary kernel k(x, x'; theta) with log-scale hyperparameters.
    '''

    PARAMETER_NAMES: Tuple[str, ...] = ('log_ell', 'log_sf')

    def __init__(self, log_ell: float = 0.0, log_sf: float = 0.0) -> None:
        self.theta = np.array([log_ell, log_sf], dtype=float)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def n_params(self) -> int:
        return len(self.PARAMETER_NAMES)

    @abstractmethod
    def _profile(self, r2: jnp.ndarray) -> jnp.ndarray:
        '''
        Correlation as a function of squared scaled distance.
        '''
        pass

    def cov(self, theta: jnp.ndarray, x1: jnp.ndarray, x2: jnp.ndarray) -> jnp.ndarray:
        '''
        Covariance matrix between inputs x1 (n1, d) and x2 (n2, d).
        '''
        log_ell, log_sf = theta[0], theta[1]
        r2 = _sq_dist(x1, x2) / jnp.exp(2.0 * log_ell)
        return jnp.exp(2.0 * log_sf) * self._profile(r2)


class SquaredExponential(Kernel):
    '''
    k(r) = sf^2 exp(-r^2 / 2)
    '''

    def _profile(self, r2: jnp.ndarray) -> jnp.ndarray:
        return jnp.exp(-0.5 * r2)


class Matern32(Kernel):
    '''
    k(r) = sf^2 (1 + sqrt(3) r) exp(-sqrt(3) r)
    '''

    def _profile(self, r2: jnp.ndarray) -> jnp.ndarray:
        # sqrt has an infinite derivative at 0; the floor keeps the gradient finite
        s3r = jnp.sqrt(3.0 * jnp.maximum(r2, 1e-30))
        return (1.0 + s3r) * jnp.exp(-s3r)


# Alias matching the usual shorthand
SE = SquaredExponential
