"""
MCMC samplers for Gaussian-process hyperparameters.

Three samplers share one chain driver (``Sampler.run``) and one numerical
guard around model evaluations:

- ``hmc``: Hamiltonian Monte Carlo with random trajectory length
- ``ess``: elliptical slice sampling (Gaussian hyperpriors)
- ``lss``: surrogate-data slice sampling of hyperparameters and latent
  function values jointly (latent GP models)

Quick Start
-----------
>>> import numpy as np
>>> from gp_pipe.gp import GPExact
>>> from gp_pipe.means import MeanConst
>>> from gp_pipe.kernels import SquaredExponential
>>> from gp_pipe.priors import Gaussian, PriorDict
>>> from gp_pipe.sampling import HMCConfig, build_sampler
>>>
>>> priors = PriorDict({
...     'beta': Gaussian(0.0, 1.0),
...     'log_ell': Gaussian(0.0, 1.0),
...     'log_sf': Gaussian(0.0, 1.0),
...     'log_noise': Gaussian(-1.0, 1.0),
... })
>>> gp = GPExact(x, y, MeanConst(0.0), SquaredExponential(), priors=priors)
>>>
>>> config = HMCConfig(n_iterations=2000, burn_in=200, step_size=0.05, seed=0)
>>> result = build_sampler('hmc', gp, config).run()
>>> summary = result.get_summary()
"""

from gp_pipe.sampling.base import (
    Sampler,
    SamplerResult,
    ChainStats,
    ChainState,
    ShrinkageLimitError,
)
from gp_pipe.sampling.configs import (
    BaseSamplerConfig,
    HMCConfig,
    ESSConfig,
    LSSConfig,
    SamplingYAMLConfig,
)
from gp_pipe.sampling.guard import EvalStatus, Evaluation, NumericalGuard
from gp_pipe.sampling.factory import (
    build_sampler,
    get_available_samplers,
    register_sampler,
)

from gp_pipe.sampling.hmc import HMCSampler
from gp_pipe.sampling.ess import EllipticalSliceSampler
from gp_pipe.sampling.lss import LatentSliceSampler, Surrogate, build_surrogate

__all__ = [
    # Core classes
    'Sampler',
    'SamplerResult',
    'ChainStats',
    'ChainState',
    'ShrinkageLimitError',
    # Guard
    'EvalStatus',
    'Evaluation',
    'NumericalGuard',
    # Config classes
    'BaseSamplerConfig',
    'HMCConfig',
    'ESSConfig',
    'LSSConfig',
    'SamplingYAMLConfig',
    # Factory
    'build_sampler',
    'get_available_samplers',
    'register_sampler',
    # Samplers
    'HMCSampler',
    'EllipticalSliceSampler',
    'LatentSliceSampler',
    'Surrogate',
    'build_surrogate',
]
