"""
Prior distributions for GP hyperparameters.

All priors are JAX-compatible with jittable log_prob methods. GP
hyperparameters are stored on the log scale (length scales, signal and noise
standard deviations), so a ``Gaussian`` prior on a stored value is a
log-normal prior on the physical quantity.

Priors are attached to named hyperparameters through a ``PriorDict``.
Hyperparameters without an entry have a flat (improper) prior that
contributes zero to the log-target.

Examples
--------
>>> from gp_pipe.priors import Gaussian, Uniform, PriorDict
>>>
>>> priors = PriorDict({
...     'log_ell': Gaussian(0.0, 1.0),
...     'log_sigma': Gaussian(0.0, 1.0),
...     'log_noise': Uniform(-5.0, 1.0),
... })
>>> priors.log_prob('log_ell', 0.3)
>>> priors.is_gaussian(['log_ell', 'log_sigma'])   # True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import jax
import jax.numpy as jnp
import jax.random as random


class Prior(ABC):
    """
    Abstract base class for prior distributions.

    All priors must implement:
    - log_prob(value): log probability density (JAX-compatible)
    - sample(rng_key, shape): draw samples from the prior
    - mean: the prior mean, used to centre elliptical slice sampling

    Priors should be immutable after construction.
    """

    @abstractmethod
    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        """
        Compute log probability density at value.

        Must be JAX-jittable. Returns -inf for values outside support.
        """
        pass

    @abstractmethod
    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        """Draw samples of the given shape."""
        pass

    @property
    @abstractmethod
    def mean(self) -> float:
        pass

    @property
    def is_gaussian(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


@dataclass(frozen=True)
class Uniform(Prior):
    """
    Uniform prior on [low, high].

    log p(x) = -log(high - low) if low <= x <= high, else -inf

    Parameters
    ----------
    low : float
        Lower bound of support.
    high : float
        Upper bound of support.
    """

    low: float
    high: float

    def __post_init__(self):
        if self.high <= self.low:
            raise ValueError(f"high ({self.high}) must be > low ({self.low})")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        log_width = jnp.log(self.high - self.low)
        in_bounds = (value >= self.low) & (value <= self.high)
        return jnp.where(in_bounds, -log_width, -jnp.inf)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return random.uniform(rng_key, shape, minval=self.low, maxval=self.high)

    @property
    def mean(self) -> float:
        return 0.5 * (self.low + self.high)

    def __repr__(self) -> str:
        return f"Uniform({self.low}, {self.high})"


@dataclass(frozen=True)
class Gaussian(Prior):
    """
    Gaussian (Normal) prior with mean mu and standard deviation sigma.

    log p(x) = -0.5 * ((x - mu) / sigma)^2 - log(sigma) - 0.5*log(2*pi)

    Gaussian priors are what elliptical slice sampling relies on.

    Parameters
    ----------
    mu : float
        Mean of the distribution.
    sigma : float
        Standard deviation (must be positive).
    """

    mu: float
    sigma: float

    def __post_init__(self):
        if self.sigma <= 0:
            raise ValueError(f"sigma ({self.sigma}) must be positive")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        z = (value - self.mu) / self.sigma
        return -0.5 * z**2 - jnp.log(self.sigma) - 0.5 * jnp.log(2 * jnp.pi)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return self.mu + self.sigma * random.normal(rng_key, shape)

    @property
    def mean(self) -> float:
        return self.mu

    @property
    def is_gaussian(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Gaussian({self.mu}, {self.sigma})"


# Alias for clarity
Normal = Gaussian


class PriorDict:
    """
    Priors for named GP hyperparameters.

    Unlike a plain dict, lookups of hyperparameters without a prior are
    legal and mean "flat prior": ``log_prob`` returns 0 for them.

    Parameters
    ----------
    priors : dict, optional
        Mapping from hyperparameter name to ``Prior``.

    Examples
    --------
    >>> priors = PriorDict({'beta': Gaussian(0, 1)})
    >>> priors.has_prior('beta'), priors.has_prior('log_ell')
    (True, False)
    >>> priors.log_prob('log_ell', 3.0)   # flat
    0.0
    """

    def __init__(self, priors: Optional[Dict[str, Prior]] = None):
        self._priors: Dict[str, Prior] = {}
        for name, prior in (priors or {}).items():
            if not isinstance(prior, Prior):
                raise TypeError(
                    f"Prior for '{name}' must be a Prior instance, got {type(prior)}"
                )
            self._priors[name] = prior

    @property
    def names(self) -> List[str]:
        """Hyperparameter names that carry a prior."""
        return sorted(self._priors)

    def has_prior(self, name: str) -> bool:
        return name in self._priors

    def get_prior(self, name: str) -> Prior:
        if name not in self._priors:
            raise KeyError(f"No prior set for '{name}'")
        return self._priors[name]

    def log_prob(self, name: str, value: jnp.ndarray) -> jnp.ndarray:
        if name not in self._priors:
            return jnp.zeros_like(jnp.asarray(value, dtype=float))
        return self._priors[name].log_prob(value)

    def log_prior(self, names: Iterable[str], values: jnp.ndarray) -> jnp.ndarray:
        """
        Joint log prior of ``values`` laid out in ``names`` order.

        Parameters
        ----------
        names : iterable of str
            Hyperparameter names, one per entry of ``values``.
        values : jnp.ndarray
            Hyperparameter values.

        Returns
        -------
        jnp.ndarray
            Sum of the per-parameter log densities (0-d array).
        """
        total = jnp.array(0.0)
        for i, name in enumerate(names):
            if name in self._priors:
                total = total + self._priors[name].log_prob(values[i])
        return total

    def is_gaussian(self, names: Iterable[str]) -> bool:
        """True if every named hyperparameter has a Gaussian prior."""
        return all(
            name in self._priors and self._priors[name].is_gaussian for name in names
        )

    def means(self, names: Iterable[str]) -> jnp.ndarray:
        return jnp.array([self.get_prior(name).mean for name in names])

    def sample(self, rng_key: jax.Array, names: List[str]) -> jnp.ndarray:
        """
        Draw one joint sample for ``names``.

        Raises
        ------
        KeyError
            If any of the names has no prior (flat priors cannot be sampled).
        """
        missing = [name for name in names if name not in self._priors]
        if missing:
            raise KeyError(f"Cannot sample from flat prior for: {missing}")
        keys = random.split(rng_key, max(len(names), 1))
        return jnp.array(
            [self._priors[name].sample(key) for key, name in zip(keys, names)]
        )

    def __repr__(self) -> str:
        lines = ["PriorDict({"]
        for name in self.names:
            lines.append(f"    '{name}': {self._priors[name]},")
        lines.append("})")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._priors)

    def __contains__(self, name: str) -> bool:
        return name in self._priors
