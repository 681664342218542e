"""
Mean functions for GP models.

Each mean function owns a (possibly empty) ordered tuple of hyperparameter
names and evaluates the mean vector as a pure JAX function of a theta array,
so gradients come from ``jax.value_and_grad``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
import jax.numpy as jnp


class MeanFunction(ABC):
    '''
    A GP mean function m(x; theta).
    '''

    PARAMETER_NAMES: Tuple[str, ...] = ()

    def __init__(self, *values: float) -> None:
        if len(values) != len(self.PARAMETER_NAMES):
            raise ValueError(
                f"{self.name} expects {len(self.PARAMETER_NAMES)} parameter(s), "
                f"got {len(values)}"
            )
        self.theta = np.array(values, dtype=float)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def n_params(self) -> int:
        return len(self.PARAMETER_NAMES)

    @abstractmethod
    def __call__(self, theta: jnp.ndarray, x: jnp.ndarray) -> jnp.ndarray:
        '''
        Evaluate the mean at inputs x of shape (n, d). Returns shape (n,).
        '''
        pass


class MeanZero(MeanFunction):
    '''
    m(x) = 0, no hyperparameters.
    '''

    def __call__(self, theta: jnp.ndarray, x: jnp.ndarray) -> jnp.ndarray:
        return jnp.zeros(x.shape[0])


class MeanConst(MeanFunction):
    '''
    m(x) = beta.
    '''

    PARAMETER_NAMES = ('beta',)

    def __init__(self, beta: float = 0.0) -> None:
        super().__init__(beta)

    def __call__(self, theta: jnp.ndarray, x: jnp.ndarray) -> jnp.ndarray:
        return jnp.full(x.shape[0], theta[0])
