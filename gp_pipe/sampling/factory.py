"""
Sampler factory and registry.

Provides the `build_sampler()` function for creating sampler instances
by name.
"""

from __future__ import annotations

from typing import Dict, Type, Optional, List, TYPE_CHECKING

if TYPE_CHECKING:
    from gp_pipe.model import TargetModel
    from gp_pipe.sampling.base import Sampler
    from gp_pipe.sampling.configs import BaseSamplerConfig


# Sampler registry
_SAMPLER_REGISTRY: Dict[str, Type['Sampler']] = {}


def register_sampler(name: str, sampler_class: Type['Sampler']) -> None:
    """
    Register a sampler under a name (case-insensitive).

    Examples
    --------
    >>> from gp_pipe.sampling.factory import register_sampler
    >>> register_sampler('my_sampler', MySampler)
    """
    _SAMPLER_REGISTRY[name.lower()] = sampler_class


def get_available_samplers() -> List[str]:
    """
    Get list of registered sampler names.

    Examples
    --------
    >>> from gp_pipe.sampling import get_available_samplers
    >>> print(get_available_samplers())
    ['ess', 'hmc', 'lss', 'mcmc']
    """
    return sorted(_SAMPLER_REGISTRY.keys())


def build_sampler(
    name: str,
    model: 'TargetModel',
    config: Optional['BaseSamplerConfig'] = None,
) -> 'Sampler':
    """
    Build a sampler instance by name.

    Parameters
    ----------
    name : str
        Sampler name (case-insensitive): 'hmc' (alias 'mcmc'), 'ess' or
        'lss'. Use `get_available_samplers()` to see all registered names.
    model : TargetModel
        The model whose parameters are sampled.
    config : BaseSamplerConfig, optional
        Sampler configuration. If None, uses the default config for that
        sampler type.

    Returns
    -------
    Sampler
        Configured sampler instance ready to run.

    Raises
    ------
    ValueError
        If the sampler name is not registered, or the model does not
        provide what the sampler needs.
    TypeError
        If config type doesn't match what the sampler expects.

    Examples
    --------
    >>> from gp_pipe.sampling import build_sampler, HMCConfig
    >>> sampler = build_sampler('hmc', gp, HMCConfig(step_size=0.05))
    >>> result = sampler.run()
    """
    name_lower = name.lower()

    if name_lower not in _SAMPLER_REGISTRY:
        available = ', '.join(get_available_samplers())
        raise ValueError(f"Unknown sampler '{name}'. Available: {available}")

    sampler_class = _SAMPLER_REGISTRY[name_lower]

    if config is None:
        config = sampler_class.config_class()

    return sampler_class(model, config)


def _register_builtins() -> None:
    """Register built-in samplers."""
    from gp_pipe.sampling.hmc import HMCSampler
    from gp_pipe.sampling.ess import EllipticalSliceSampler
    from gp_pipe.sampling.lss import LatentSliceSampler

    register_sampler('hmc', HMCSampler)
    register_sampler('ess', EllipticalSliceSampler)
    register_sampler('lss', LatentSliceSampler)

    register_sampler('mcmc', HMCSampler)


# Auto-register built-in samplers on module import
_register_builtins()
