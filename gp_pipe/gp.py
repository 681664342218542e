"""
Reference Gaussian-process target models.

Two models implement the ``TargetModel`` interface:

- ``GPExact``: Gaussian observation noise, latent function marginalised out.
  The target is the log marginal likelihood plus the log hyperprior.
- ``GPLatent``: arbitrary observation likelihood with the latent function
  kept explicitly in whitened form, f = L v + mu with K = L L^T. The target
  is sum_i log p(y_i | f_i) + log N(v; 0, I) plus the log hyperprior.

Hyperparameters live in one flat vector ordered by group
(likelihood, mean, kernel, noise); the ``ParamMask`` passed to
``get_params``/``set_params`` selects the groups that are exposed. Targets
and gradients are JIT-compiled JAX functions of the full vector.

Examples
--------
>>> import numpy as np
>>> from gp_pipe.gp import GPExact
>>> from gp_pipe.means import MeanConst
>>> from gp_pipe.kernels import SquaredExponential
>>> from gp_pipe.parameters import ParamMask
>>>
>>> x = np.linspace(0, 5, 20)
>>> y = np.sin(x)
>>> gp = GPExact(x, y, MeanConst(0.0), SquaredExponential(0.0, 0.0), log_noise=-2.0)
>>> mask = ParamMask()
>>> gp.param_names(mask)
['beta', 'log_ell', 'log_sf', 'log_noise']
>>> gp.update_target_and_grad(mask)
>>> gp.target, gp.dtarget
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Dict, List, Optional, Tuple

import numpy as np
import jax
import jax.numpy as jnp
from jax.scipy.stats import norm

from gp_pipe.kernels import Kernel
from gp_pipe.likelihood import Likelihood, gaussian_log_marginal
from gp_pipe.means import MeanFunction
from gp_pipe.model import TargetModel
from gp_pipe.parameters import GROUP_ORDER, ParamMask
from gp_pipe.priors import PriorDict


class _GPBase(TargetModel):
    """
    Shared parameter bookkeeping for the GP models.

    Subclasses provide ``_group_components`` (names and initial values per
    group) and the JAX function ``_terms`` returning
    ``(target, (log_likelihood, log_prior))``.
    """

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        mean: MeanFunction,
        kernel: Kernel,
        priors: Optional[PriorDict] = None,
    ) -> None:
        super().__init__()

        x = np.asarray(x, dtype=float)
        if x.ndim == 1:
            x = x[:, None]
        y = np.asarray(y, dtype=float).ravel()
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"x has {x.shape[0]} rows but y has {y.shape[0]} observations"
            )

        self.x = jnp.asarray(x)
        self.y = jnp.asarray(y)
        self.mean = mean
        self.kernel = kernel
        self.priors = priors if priors is not None else PriorDict()

        # Lay out the flat hyperparameter vector group by group
        components = self._group_components()
        self._slices: Dict[str, slice] = {}
        names: List[str] = []
        values: List[np.ndarray] = []
        for group in GROUP_ORDER:
            group_names, group_values = components.get(group, ((), np.zeros(0)))
            self._slices[group] = slice(len(names), len(names) + len(group_names))
            names.extend(group_names)
            values.append(np.asarray(group_values, dtype=float))

        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate hyperparameter names: {names}")
        unknown = [name for name in self.priors.names if name not in names]
        if unknown:
            raise ValueError(f"Priors given for unknown hyperparameters: {unknown}")

        self._all_names: Tuple[str, ...] = tuple(names)
        self._hyp = np.concatenate(values) if values else np.zeros(0)

        self._value_fn = jax.jit(self._value)
        self._prior_fn = jax.jit(self._log_prior)
        self._chol_fn = jax.jit(self._chol)
        self._cov_fn = jax.jit(self._cov)
        self._mean_fn = jax.jit(self._mean_vector)

        self._L = self._factorize(self._hyp)

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    @abstractmethod
    def _group_components(self) -> Dict[str, Tuple[Tuple[str, ...], np.ndarray]]:
        pass

    @property
    def n_obs(self) -> int:
        return int(self.y.shape[0])

    @property
    def hyperparameter_names(self) -> Tuple[str, ...]:
        return self._all_names

    @property
    def hyperparameters(self) -> Dict[str, float]:
        """Current values of all hyperparameters by name."""
        return {name: float(v) for name, v in zip(self._all_names, self._hyp)}

    def _indices(self, mask: ParamMask) -> np.ndarray:
        idx = [
            np.arange(self._slices[g].start, self._slices[g].stop)
            for g in mask.active_groups
        ]
        return np.concatenate(idx).astype(int) if idx else np.zeros(0, dtype=int)

    def _hyper_names(self, mask: ParamMask) -> List[str]:
        return [self._all_names[i] for i in self._indices(mask)]

    def param_names(self, mask: ParamMask, latent: bool = False) -> List[str]:
        self._check_latent(latent)
        return self._hyper_names(mask)

    def _check_latent(self, latent: bool) -> None:
        if latent and not self.has_latent:
            raise ValueError(f"{self.__class__.__name__} has no latent function values")

    # -------------------------------------------------------------------------
    # JAX building blocks (functions of the full hyperparameter vector)
    # -------------------------------------------------------------------------

    def _kernel_cov(self, hyp: jnp.ndarray) -> jnp.ndarray:
        return self.kernel.cov(hyp[self._slices['kernel']], self.x, self.x)

    @abstractmethod
    def _cov(self, hyp: jnp.ndarray) -> jnp.ndarray:
        pass

    def _chol(self, hyp: jnp.ndarray) -> jnp.ndarray:
        return jnp.linalg.cholesky(self._cov(hyp))

    def _mean_vector(self, hyp: jnp.ndarray) -> jnp.ndarray:
        return self.mean(hyp[self._slices['mean']], self.x)

    def _log_prior(self, hyp: jnp.ndarray) -> jnp.ndarray:
        return self.priors.log_prior(self._all_names, hyp)

    @abstractmethod
    def _value(self, *args):
        pass

    def _factorize(self, hyp: np.ndarray) -> np.ndarray:
        L = np.asarray(self._chol_fn(jnp.asarray(hyp)))
        if not np.all(np.isfinite(L)):
            raise np.linalg.LinAlgError("Covariance matrix is not positive definite")
        return L

    def _merge(self, theta: np.ndarray, mask: ParamMask) -> np.ndarray:
        idx = self._indices(mask)
        theta = np.asarray(theta, dtype=float).ravel()
        if theta.shape[0] != idx.shape[0]:
            raise ValueError(
                f"Expected {idx.shape[0]} hyperparameters for mask "
                f"{mask.active_groups}, got {theta.shape[0]}"
            )
        hyp = self._hyp.copy()
        hyp[idx] = theta
        return hyp

    # -------------------------------------------------------------------------
    # Priors
    # -------------------------------------------------------------------------

    def sample_params(self, rng_key: jax.Array, mask: ParamMask) -> np.ndarray:
        return np.asarray(self.priors.sample(rng_key, self._hyper_names(mask)))

    def prior_mean(self, mask: ParamMask) -> np.ndarray:
        return np.asarray(self.priors.means(self._hyper_names(mask)), dtype=float)

    def has_gaussian_priors(self, mask: ParamMask) -> bool:
        return self.priors.is_gaussian(self._hyper_names(mask))

    def prior_logpdf(self) -> float:
        """Log hyperprior at the current hyperparameters (all groups)."""
        return float(self._prior_fn(jnp.asarray(self._hyp)))

    # -------------------------------------------------------------------------
    # Derived quantities at the committed state
    # -------------------------------------------------------------------------

    @property
    def cov(self) -> np.ndarray:
        """Covariance matrix at the committed hyperparameters."""
        return np.asarray(self._cov_fn(jnp.asarray(self._hyp)))

    @property
    def chol(self) -> np.ndarray:
        return self._L

    @property
    def mean_vector(self) -> np.ndarray:
        return np.asarray(self._mean_fn(jnp.asarray(self._hyp)))


class GPExact(_GPBase):
    """
    Exact GP regression with Gaussian observation noise.

    y ~ N(m(x), K(x, x) + exp(2 * log_noise) I)

    Parameters
    ----------
    x : np.ndarray
        Inputs, shape (n,) or (n, d).
    y : np.ndarray
        Observations, shape (n,).
    mean : MeanFunction
        Mean function with its initial hyperparameters.
    kernel : Kernel
        Covariance kernel with its initial hyperparameters.
    log_noise : float
        Initial log standard deviation of the observation noise.
    priors : PriorDict, optional
        Hyperpriors by name. Missing entries are flat.
    """

    has_latent = False

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        mean: MeanFunction,
        kernel: Kernel,
        log_noise: float = -2.0,
        priors: Optional[PriorDict] = None,
    ) -> None:
        self._log_noise0 = float(log_noise)
        super().__init__(x, y, mean, kernel, priors)
        self._value_and_grad_fn = jax.jit(jax.value_and_grad(self._value, has_aux=True))

    def _group_components(self):
        return {
            'mean': (self.mean.PARAMETER_NAMES, self.mean.theta),
            'kernel': (self.kernel.PARAMETER_NAMES, self.kernel.theta),
            'noise': (('log_noise',), np.array([self._log_noise0])),
        }

    def _cov(self, hyp: jnp.ndarray) -> jnp.ndarray:
        noise_var = jnp.exp(2.0 * hyp[self._slices['noise']][0])
        return self._kernel_cov(hyp) + noise_var * jnp.eye(self.x.shape[0])

    def _value(self, hyp: jnp.ndarray):
        L = self._chol(hyp)
        log_lik = gaussian_log_marginal(self.y, self._mean_vector(hyp), L)
        log_prior = self._log_prior(hyp)
        return log_lik + log_prior, (log_lik, log_prior)

    def get_params(self, mask: ParamMask, latent: bool = False) -> np.ndarray:
        self._check_latent(latent)
        return self._hyp[self._indices(mask)].copy()

    def set_params(self, theta: np.ndarray, mask: ParamMask, latent: bool = False) -> None:
        self._check_latent(latent)
        hyp = self._merge(theta, mask)
        self._L = self._factorize(hyp)
        self._hyp = hyp

    def update_target(self, mask: ParamMask, latent: bool = False) -> None:
        self._check_latent(latent)
        target, (log_lik, log_prior) = self._value_fn(jnp.asarray(self._hyp))
        self.target = float(target)
        self.log_likelihood = float(log_lik)
        self.log_prior = float(log_prior)

    def update_target_and_grad(self, mask: ParamMask, latent: bool = False) -> None:
        self._check_latent(latent)
        (target, (log_lik, log_prior)), grad = self._value_and_grad_fn(
            jnp.asarray(self._hyp)
        )
        self.target = float(target)
        self.log_likelihood = float(log_lik)
        self.log_prior = float(log_prior)
        self.dtarget = np.asarray(grad)[self._indices(mask)]


class GPLatent(_GPBase):
    """
    GP with explicit latent function values and a general likelihood.

    f = L v + m(x),  L L^T = K(x, x) + jitter I,  v ~ N(0, I)
    y_i ~ p(y_i | f_i)

    With ``latent=True`` the parameter vector is ``[v, hyperparameters]``.

    Parameters
    ----------
    x : np.ndarray
        Inputs, shape (n,) or (n, d).
    y : np.ndarray
        Observations, shape (n,).
    mean : MeanFunction
        Mean function with its initial hyperparameters.
    kernel : Kernel
        Covariance kernel with its initial hyperparameters.
    likelihood : Likelihood
        Observation model with its initial hyperparameters.
    priors : PriorDict, optional
        Hyperpriors by name. Missing entries are flat.
    jitter : float
        Diagonal jitter added to K before factorisation.
    v : np.ndarray, optional
        Initial whitened latent values (zeros by default).
    """

    has_latent = True

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        mean: MeanFunction,
        kernel: Kernel,
        likelihood: Likelihood,
        priors: Optional[PriorDict] = None,
        jitter: float = 1e-6,
        v: Optional[np.ndarray] = None,
    ) -> None:
        self.likelihood = likelihood
        self.jitter = float(jitter)
        super().__init__(x, y, mean, kernel, priors)

        self._v = np.zeros(self.n_obs) if v is None else np.asarray(v, dtype=float).copy()
        if self._v.shape != (self.n_obs,):
            raise ValueError(f"v must have shape ({self.n_obs},), got {self._v.shape}")

        self._value_and_grad_fn = jax.jit(
            jax.value_and_grad(self._value, argnums=(0, 1), has_aux=True)
        )
        self._lik_fn = jax.jit(self._log_lik_density)

    def _group_components(self):
        return {
            'likelihood': (self.likelihood.PARAMETER_NAMES, self.likelihood.theta),
            'mean': (self.mean.PARAMETER_NAMES, self.mean.theta),
            'kernel': (self.kernel.PARAMETER_NAMES, self.kernel.theta),
        }

    def _cov(self, hyp: jnp.ndarray) -> jnp.ndarray:
        return self._kernel_cov(hyp) + self.jitter * jnp.eye(self.x.shape[0])

    def _log_lik_density(self, hyp: jnp.ndarray, f: jnp.ndarray) -> jnp.ndarray:
        return jnp.sum(
            self.likelihood.log_dens(hyp[self._slices['likelihood']], f, self.y)
        )

    def _value(self, v: jnp.ndarray, hyp: jnp.ndarray):
        L = self._chol(hyp)
        f = L @ v + self._mean_vector(hyp)
        log_lik = self._log_lik_density(hyp, f) + jnp.sum(norm.logpdf(v))
        log_prior = self._log_prior(hyp)
        return log_lik + log_prior, (log_lik, log_prior)

    @property
    def v(self) -> np.ndarray:
        """Whitened latent values at the committed state."""
        return self._v.copy()

    def latent_function(self) -> np.ndarray:
        """Latent function values f = L v + mu at the committed state."""
        return self._L @ self._v + self.mean_vector

    def log_lik_density(self, f: np.ndarray) -> float:
        """sum_i log p(y_i | f_i) under the committed likelihood parameters."""
        return float(self._lik_fn(jnp.asarray(self._hyp), jnp.asarray(f, dtype=float)))

    def param_names(self, mask: ParamMask, latent: bool = False) -> List[str]:
        names = self._hyper_names(mask)
        if latent:
            names = [f'v[{i}]' for i in range(self.n_obs)] + names
        return names

    def get_params(self, mask: ParamMask, latent: bool = False) -> np.ndarray:
        hyp = self._hyp[self._indices(mask)]
        if latent:
            return np.concatenate([self._v, hyp])
        return hyp.copy()

    def set_params(self, theta: np.ndarray, mask: ParamMask, latent: bool = False) -> None:
        theta = np.asarray(theta, dtype=float).ravel()
        v = self._v
        if latent:
            if theta.shape[0] < self.n_obs:
                raise ValueError(
                    f"Expected at least {self.n_obs} latent values, got {theta.shape[0]}"
                )
            v, theta = theta[:self.n_obs].copy(), theta[self.n_obs:]
        hyp = self._merge(theta, mask)
        self._L = self._factorize(hyp)
        self._hyp = hyp
        self._v = v

    def update_target(self, mask: ParamMask, latent: bool = False) -> None:
        target, (log_lik, log_prior) = self._value_fn(
            jnp.asarray(self._v), jnp.asarray(self._hyp)
        )
        self.target = float(target)
        self.log_likelihood = float(log_lik)
        self.log_prior = float(log_prior)

    def update_target_and_grad(self, mask: ParamMask, latent: bool = False) -> None:
        (target, (log_lik, log_prior)), (grad_v, grad_hyp) = self._value_and_grad_fn(
            jnp.asarray(self._v), jnp.asarray(self._hyp)
        )
        self.target = float(target)
        self.log_likelihood = float(log_lik)
        self.log_prior = float(log_prior)
        grad = np.asarray(grad_hyp)[self._indices(mask)]
        if latent:
            grad = np.concatenate([np.asarray(grad_v), grad])
        self.dtarget = grad
