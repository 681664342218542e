"""
Parameter-group selection for GP target models.

A GP hyperparameter vector is made of four groups (likelihood, mean, kernel,
noise). Samplers choose which groups participate through a ``ParamMask``.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, Tuple, Union


# Order in which groups appear in a flat parameter vector
GROUP_ORDER: Tuple[str, ...] = ('likelihood', 'mean', 'kernel', 'noise')


@dataclass(frozen=True)
class ParamMask:
    """
    Boolean switches selecting which parameter groups are sampled.

    Attributes
    ----------
    mean : bool
        Include mean-function parameters.
    kernel : bool
        Include kernel (covariance) parameters.
    noise : bool
        Include the observation noise parameter (exact GP only).
    likelihood : bool
        Include likelihood parameters (latent GP only).

    Examples
    --------
    >>> mask = ParamMask(mean=False)
    >>> mask.active_groups
    ('likelihood', 'kernel', 'noise')
    """

    mean: bool = True
    kernel: bool = True
    noise: bool = True
    likelihood: bool = True

    @property
    def active_groups(self) -> Tuple[str, ...]:
        """Names of included groups, in flat-vector order."""
        return tuple(g for g in GROUP_ORDER if getattr(self, g))

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)

    @classmethod
    def coerce(cls, value: Union['ParamMask', Dict[str, bool], None]) -> 'ParamMask':
        """
        Build a mask from a ``ParamMask``, a dict of flags or None.

        Raises
        ------
        TypeError
            If ``value`` is of an unsupported type.
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            unknown = set(value) - set(GROUP_ORDER)
            if unknown:
                raise ValueError(f"Unknown parameter groups in mask: {sorted(unknown)}")
            return cls(**{k: bool(v) for k, v in value.items()})
        raise TypeError(f"mask must be ParamMask or dict, got {type(value)}")
