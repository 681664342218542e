"""
Configuration classes for the GP hyperparameter samplers.

Each sampler has its own config class with only the relevant fields, on top
of the chain options shared by all of them (iterations, burn-in, thinning,
parameter-group mask, seed).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Any, Dict, Union
from pathlib import Path

import yaml

from gp_pipe.parameters import ParamMask


@dataclass
class BaseSamplerConfig:
    """
    Chain options shared by all samplers.

    Attributes
    ----------
    n_iterations : int
        Number of MCMC iterations (trace rows before trimming).
    burn_in : int
        1-based index of the first retained iteration. ``burn_in=1`` keeps
        the whole chain.
    thin : int
        Keep every thin-th iteration from ``burn_in`` onwards.
    mask : ParamMask or dict
        Parameter groups (mean, kernel, noise, likelihood) to sample.
    seed : int, optional
        Random seed for reproducibility. If None, uses system entropy.
    progress : bool
        Whether to show a progress bar during sampling.
    verbose : bool
        Whether to print the run summary when sampling finishes.
    max_shrinks : int, optional
        Upper bound on slice-sampling proposals within one iteration
        (ESS/LSS). None disables the bound.
    """

    n_iterations: int = 1000
    burn_in: int = 1
    thin: int = 1
    mask: ParamMask = field(default_factory=ParamMask)
    seed: Optional[int] = None
    progress: bool = False
    verbose: bool = True
    max_shrinks: Optional[int] = 10_000

    def __post_init__(self):
        if self.n_iterations < 1:
            raise ValueError("n_iterations must be >= 1")
        if not 1 <= self.burn_in <= self.n_iterations:
            raise ValueError("burn_in must be in [1, n_iterations]")
        if self.thin < 1:
            raise ValueError("thin must be >= 1")
        if self.max_shrinks is not None and self.max_shrinks < 1:
            raise ValueError("max_shrinks must be >= 1 or None")
        self.mask = ParamMask.coerce(self.mask)

    @property
    def n_kept(self) -> int:
        """Number of trace rows left after burn-in and thinning."""
        return -(-(self.n_iterations - self.burn_in + 1) // self.thin)


@dataclass
class HMCConfig(BaseSamplerConfig):
    """
    Configuration for Hamiltonian Monte Carlo with random trajectory length.

    Each iteration integrates L leapfrog steps of size ``step_size``, with L
    drawn uniformly from [l_min, l_max].

    Attributes
    ----------
    step_size : float
        Leapfrog step size (> 0).
    l_min, l_max : int
        Inclusive bounds on the number of leapfrog steps.

    Examples
    --------
    >>> config = HMCConfig(
    ...     n_iterations=5000,
    ...     burn_in=500,
    ...     step_size=0.05,
    ...     seed=42,
    ... )
    """

    step_size: float = 0.1
    l_min: int = 5
    l_max: int = 15

    def __post_init__(self):
        super().__post_init__()
        if not self.step_size > 0:
            raise ValueError("step_size must be > 0")
        if not 1 <= self.l_min <= self.l_max:
            raise ValueError("leapfrog bounds must satisfy 1 <= l_min <= l_max")


@dataclass
class ESSConfig(BaseSamplerConfig):
    """
    Configuration for elliptical slice sampling.

    ESS needs no step size; the only requirement is that every sampled
    hyperparameter has a Gaussian prior.
    """


@dataclass
class LSSConfig(BaseSamplerConfig):
    """
    Configuration for surrogate-data slice sampling of latent GPs.

    Attributes
    ----------
    aux_noise : float
        Variance level of the auxiliary surrogate observations (> 0). Must
        be below the prior variance of the latent function.
    width : float
        Side length of the hyper-rectangle the slice search starts from.

    Examples
    --------
    >>> config = LSSConfig(aux_noise=0.1, width=0.5, n_iterations=2000)
    """

    aux_noise: float = 0.1
    width: float = 0.1

    def __post_init__(self):
        super().__post_init__()
        if not self.aux_noise > 0:
            raise ValueError("aux_noise must be > 0")
        if not self.width > 0:
            raise ValueError("width must be > 0")


# =============================================================================
# YAML Configuration Loading
# =============================================================================

# Mapping from YAML prior type names to classes
PRIOR_TYPES = {
    'uniform': 'Uniform',
    'gaussian': 'Gaussian',
    'normal': 'Gaussian',
}

# Mapping from sampler names to config classes
CONFIG_TYPES = {
    'hmc': HMCConfig,
    'mcmc': HMCConfig,
    'ess': ESSConfig,
    'lss': LSSConfig,
}


def parse_prior_spec(spec: dict):
    """
    Parse a prior specification from YAML.

    Parameters
    ----------
    spec : dict
        Must have a 'type' key; remaining keys are passed to the prior.

    Returns
    -------
    Prior
        Prior instance.

    Examples
    --------
    >>> parse_prior_spec({'type': 'gaussian', 'mu': 0, 'sigma': 1})
    Gaussian(0, 1)
    """
    from gp_pipe.priors import Uniform, Gaussian

    if not isinstance(spec, dict):
        raise TypeError(f"Prior spec must be dict, got {type(spec)}")

    if 'type' not in spec:
        raise ValueError("Prior spec dict must have 'type' key")

    prior_type = spec['type'].lower()

    if prior_type not in PRIOR_TYPES:
        available = ', '.join(PRIOR_TYPES.keys())
        raise ValueError(f"Unknown prior type '{prior_type}'. Available: {available}")

    prior_classes = {
        'Uniform': Uniform,
        'Gaussian': Gaussian,
    }
    prior_class = prior_classes[PRIOR_TYPES[prior_type]]

    kwargs = {k: v for k, v in spec.items() if k != 'type'}

    return prior_class(**kwargs)


@dataclass
class SamplingYAMLConfig:
    """
    Complete configuration for a sampling run loaded from YAML.

    Attributes
    ----------
    sampler : str
        Sampler name ('hmc', 'ess', 'lss').
    sampler_config : dict
        Options for the sampler config class.
    model : dict
        Model specification: 'type' ('exact' or 'latent'), 'kernel',
        'mean', 'likelihood' and initial hyperparameter values.
    priors : dict
        Prior specifications per hyperparameter name.
    data : dict
        Data specification (e.g. synthetic data settings).
    output : dict, optional
        Output configuration (paths).

    Examples
    --------
    A minimal file::

        sampler: hmc
        sampler_config:
          n_iterations: 2000
          step_size: 0.05
          mask: {mean: true, kernel: true, noise: true}
        model:
          type: exact
          kernel: se
        priors:
          log_ell: {type: gaussian, mu: 0.0, sigma: 1.0}
    """

    sampler: str
    sampler_config: Dict[str, Any] = field(default_factory=dict)
    model: Dict[str, Any] = field(default_factory=dict)
    priors: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'SamplingYAMLConfig':
        """
        Load configuration from YAML file.

        Parameters
        ----------
        path : str or Path
            Path to YAML configuration file.
        """
        path = Path(path)

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f)

        return cls(**config_dict)

    def get_prior_dict(self):
        """
        Convert priors specification to PriorDict.

        Returns
        -------
        PriorDict
            Prior dictionary with parsed priors.
        """
        from gp_pipe.priors import PriorDict

        return PriorDict(
            {name: parse_prior_spec(spec) for name, spec in self.priors.items()}
        )

    def get_sampler_config(self) -> BaseSamplerConfig:
        """
        Convert sampler_config to the config class of the chosen sampler.

        Raises
        ------
        ValueError
            If the sampler name is unknown.
        """
        sampler_lower = self.sampler.lower()

        if sampler_lower not in CONFIG_TYPES:
            raise ValueError(f"Unknown sampler type: {self.sampler}")

        return CONFIG_TYPES[sampler_lower](**self.sampler_config)
