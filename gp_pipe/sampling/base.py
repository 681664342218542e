"""
Base classes for the GP hyperparameter samplers.

This module defines:
- SamplerResult: Result container shared by all samplers
- ChainStats: Counters updated while a chain runs
- ChainState: The accepted state carried from one iteration to the next
- Sampler: Abstract base class implementing the common chain loop
"""

from __future__ import annotations

import time
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Any, Tuple, Type, TYPE_CHECKING

import numpy as np
import jax
import jax.random as random
from tqdm import tqdm

from gp_pipe.sampling.guard import NumericalGuard

if TYPE_CHECKING:
    from gp_pipe.model import TargetModel
    from gp_pipe.sampling.configs import BaseSamplerConfig


class ShrinkageLimitError(RuntimeError):
    """A slice-sampling shrink loop exceeded ``config.max_shrinks`` proposals."""


@dataclass
class SamplerResult:
    """
    Result container for all samplers.

    Attributes
    ----------
    samples : np.ndarray
        Retained chain states with shape (n_samples, n_params), one row per
        retained iteration after burn-in and thinning.
    log_prob : np.ndarray
        Log-target of each retained state, shape (n_samples,). For ESS this
        is the log-likelihood without the hyperprior.
    param_names : list of str
        Names of the sampled dimensions in column order.
    acceptance_rate : float
        Accepted / iterations for HMC; iterations / proposals for the slice
        samplers.
    n_calls : int
        Number of guarded target evaluations.
    diagnostics : dict
        Run settings and sampler-specific counters.
    metadata : dict
        Additional metadata (timing, backend name).
    """

    samples: np.ndarray
    log_prob: np.ndarray
    param_names: List[str]
    acceptance_rate: float
    n_calls: int
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        """Total number of retained samples."""
        return self.samples.shape[0]

    @property
    def n_params(self) -> int:
        """Number of sampled dimensions."""
        return self.samples.shape[1]

    @property
    def trace(self) -> np.ndarray:
        """Samples as (n_params, n_samples): one column per retained iteration."""
        return self.samples.T

    def get_chain(self, param_name: str) -> np.ndarray:
        """
        Get samples for a specific parameter.

        Raises
        ------
        KeyError
            If parameter name is not found.
        """
        if param_name not in self.param_names:
            raise KeyError(f"Unknown parameter: {param_name}")
        return self.samples[:, self.param_names.index(param_name)]

    def get_summary(
        self,
        quantiles: Tuple[float, ...] = (0.16, 0.5, 0.84),
    ) -> Dict[str, Dict[str, Any]]:
        """
        Compute summary statistics for each parameter.

        Returns
        -------
        dict
            Parameter name -> {'mean', 'std', 'quantiles': {q: value}}.
        """
        summary = {}
        for i, name in enumerate(self.param_names):
            chain = self.samples[:, i]
            summary[name] = {
                'mean': float(np.mean(chain)),
                'std': float(np.std(chain)),
                'quantiles': {q: float(np.quantile(chain, q)) for q in quantiles},
            }
        return summary

    def to_dict(self, include_samples: bool = True) -> Dict[str, Any]:
        """
        Convert result to dictionary for serialization.

        Parameters
        ----------
        include_samples : bool
            If True, include full sample arrays. If False, only include
            summary statistics.
        """
        result = {
            'param_names': self.param_names,
            'n_samples': self.n_samples,
            'n_params': self.n_params,
            'acceptance_rate': self.acceptance_rate,
            'n_calls': self.n_calls,
            'diagnostics': self.diagnostics,
            'metadata': self.metadata,
            'summary': self.get_summary(),
        }
        if include_samples:
            result['samples'] = self.samples.tolist()
            result['log_prob'] = self.log_prob.tolist()
        return result


@dataclass
class ChainStats:
    """
    Counters of a running chain. Reporting only; never drive decisions.

    Attributes
    ----------
    n_calls : int
        Guarded target evaluations.
    n_rejected : int
        Evaluations rejected by the guard.
    n_accepted : int
        Accepted Metropolis proposals (HMC).
    n_proposals : int
        Hyperparameter slice-sampling proposals consumed (ESS/LSS).
    n_leapfrog : int
        Total leapfrog steps drawn (HMC).
    n_latent_proposals : int
        Elliptical slice proposals for the latent values (LSS). These only
        evaluate the likelihood and are not counted in ``n_calls``.
    """

    n_calls: int = 0
    n_rejected: int = 0
    n_accepted: int = 0
    n_proposals: int = 0
    n_leapfrog: int = 0
    n_latent_proposals: int = 0


@dataclass
class ChainState:
    """
    Accepted state of a chain.

    ``theta`` is the masked hyperparameter vector committed at chain end and
    ``log_target`` the value reported in ``SamplerResult.log_prob``.
    """

    theta: np.ndarray
    log_target: float


class Sampler(ABC):
    """
    Abstract base class for the GP hyperparameter samplers.

    ``run`` drives the chain: it reads the initial state from the model,
    calls ``_step`` once per iteration, records one trace row per iteration
    (the previous row again when a proposal is rejected), trims burn-in and
    thinning, commits the final state back into the model and reports.

    Class Attributes
    ----------------
    requires_gradients : bool
        Does this sampler need gradients of the log-target?
    requires_latent : bool
        Does this sampler need a model with latent function values?
    requires_gaussian_priors : bool
        Does this sampler need Gaussian priors on all sampled parameters?
    config_class : Type[BaseSamplerConfig]
        Which config class this sampler expects.

    Parameters
    ----------
    model : TargetModel
        Model whose parameters are sampled. Mutated during the run and left
        at the last accepted state.
    config : BaseSamplerConfig
        Sampler configuration options.
    """

    requires_gradients: bool = False
    requires_latent: bool = False
    requires_gaussian_priors: bool = False
    config_class: Type['BaseSamplerConfig'] = None  # Set by subclasses
    backend: str = 'base'

    def __init__(self, model: 'TargetModel', config: 'BaseSamplerConfig'):
        self.model = model
        self.config = config
        self._validate()

    def _validate(self) -> None:
        """
        Validate that the model and config are compatible with this sampler.

        Override in subclasses for sampler-specific validation.
        """
        if self.config_class is not None:
            if not isinstance(self.config, self.config_class):
                raise TypeError(
                    f"{self.__class__.__name__} expects config of type "
                    f"{self.config_class.__name__}, got {type(self.config).__name__}"
                )

        if self.requires_gradients and not self.model.supports_gradients:
            raise ValueError(
                f"{self.__class__.__name__} requires gradients but "
                f"{type(self.model).__name__} does not provide them"
            )

        if self.requires_latent and not self.model.has_latent:
            raise ValueError(
                f"{self.__class__.__name__} requires a model with latent "
                f"function values, got {type(self.model).__name__}"
            )

        if self.requires_gaussian_priors and not self.model.has_gaussian_priors(
            self.config.mask
        ):
            raise ValueError(
                f"{self.__class__.__name__} requires Gaussian priors on all "
                f"sampled parameters: {self.model.param_names(self.config.mask)}"
            )

    # -------------------------------------------------------------------------
    # Hooks for subclasses
    # -------------------------------------------------------------------------

    @abstractmethod
    def _initial_state(self, guard: NumericalGuard) -> ChainState:
        """Read and evaluate the starting state from the model."""
        pass

    @abstractmethod
    def _step(
        self,
        state: ChainState,
        key: jax.Array,
        guard: NumericalGuard,
        stats: ChainStats,
    ) -> ChainState:
        """Advance the chain by one iteration and return the accepted state."""
        pass

    @abstractmethod
    def _acceptance_rate(self, stats: ChainStats) -> float:
        pass

    def _row(self, state: ChainState) -> np.ndarray:
        """Trace row recorded for ``state``."""
        return state.theta

    def _param_names(self) -> List[str]:
        return self.model.param_names(self.config.mask)

    def _extra_diagnostics(self, stats: ChainStats) -> Dict[str, Any]:
        return {}

    def _finalize(self, state: ChainState) -> None:
        """Commit the final state into the model and refresh its target."""
        self.model.set_params(state.theta, self.config.mask)
        self.model.update_target(self.config.mask)

    def _check_shrinks(self, n_proposals: int) -> None:
        limit = self.config.max_shrinks
        if limit is not None and n_proposals > limit:
            raise ShrinkageLimitError(
                f"{self.name} made {n_proposals} proposals in one iteration "
                f"without landing on the slice (max_shrinks={limit})"
            )

    def _initial_evaluation(self, guard: NumericalGuard, theta: np.ndarray, grad: bool = False):
        ev = guard.evaluate_with_grad(theta) if grad else guard.evaluate(theta)
        ev.raise_if_fatal()
        if not ev.ok:
            raise ValueError(
                f"Initial parameters are not admissible for {type(self.model).__name__}: "
                f"{theta}"
            )
        return ev

    def _make_key(self) -> jax.Array:
        if self.config.seed is not None:
            return random.PRNGKey(self.config.seed)
        return random.PRNGKey(int(time.time() * 1000) % 2**32)

    # -------------------------------------------------------------------------
    # Chain loop
    # -------------------------------------------------------------------------

    def run(self) -> SamplerResult:
        """
        Run the chain and return the trimmed trace.

        Returns
        -------
        SamplerResult
            Retained samples and diagnostics.

        Raises
        ------
        ValueError
            If the model's starting parameters are not admissible.
        ShrinkageLimitError
            If a slice search exceeds ``config.max_shrinks``.
        Exception
            Any non-domain error raised by the model propagates unchanged.
        """
        start_time = time.time()

        config = self.config
        n_iterations = config.n_iterations

        stats = ChainStats()
        guard = NumericalGuard(
            self.model, config.mask, stats, latent=self.requires_latent
        )
        key = self._make_key()

        state = self._initial_state(guard)
        n_dim = self._row(state).shape[0]

        trace = np.empty((n_iterations, n_dim))
        log_prob = np.empty(n_iterations)

        iterations = range(n_iterations)
        if config.progress:
            iterations = tqdm(iterations, desc=self.name)

        for t in iterations:
            key, step_key = random.split(key)
            state = self._step(state, step_key, guard, stats)
            trace[t] = self._row(state)
            log_prob[t] = state.log_target

        keep = slice(config.burn_in - 1, None, config.thin)
        self._finalize(state)

        acceptance_rate = self._acceptance_rate(stats)
        if acceptance_rate == 0:
            warnings.warn(
                f"{self.name} accepted no proposals in {n_iterations} iterations; "
                f"the chain did not move"
            )

        diagnostics = {
            'n_iterations': n_iterations,
            'burn_in': config.burn_in,
            'thin': config.thin,
            'n_proposals': stats.n_proposals,
            'n_rejected': stats.n_rejected,
        }
        diagnostics.update(self._extra_diagnostics(stats))

        result = SamplerResult(
            samples=trace[keep],
            log_prob=log_prob[keep],
            param_names=self._param_names(),
            acceptance_rate=float(acceptance_rate),
            n_calls=stats.n_calls,
            diagnostics=diagnostics,
            metadata={
                'backend': self.backend,
                'elapsed_seconds': time.time() - start_time,
            },
        )

        if config.verbose:
            from gp_pipe.sampling.diagnostics import print_run_summary

            print_run_summary(result)

        return result

    @property
    def name(self) -> str:
        """Name of this sampler."""
        return self.__class__.__name__
