"""
The target model interface seen by the samplers.

Samplers in ``gp_pipe.sampling`` never touch model internals: they read and
write a flat parameter vector under a ``ParamMask`` and ask the model to
recompute its log-target. Setting parameters is a side-effecting commit
(covariance factorisation and caches are refreshed), so a model instance must
not be shared between concurrently running chains.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np
import jax

from gp_pipe import linalg
from gp_pipe.parameters import ParamMask


class TargetModel(ABC):
    """
    Abstract base class for models that samplers can drive.

    After ``update_target`` the attributes ``target``, ``log_likelihood`` and
    ``log_prior`` hold the values at the last committed parameters, with
    ``target = log_likelihood + log_prior``. After ``update_target_and_grad``
    ``dtarget`` additionally holds the gradient of ``target`` with respect to
    the masked parameter vector.

    Class Attributes
    ----------------
    has_latent : bool
        Whether the model carries latent function values that can be
        included in the parameter vector (``latent=True``).
    supports_gradients : bool
        Whether ``update_target_and_grad`` is available.

    Raises
    ------
    ValueError
        From ``set_params`` when the vector has the wrong length.
    numpy.linalg.LinAlgError
        From ``set_params`` when the covariance loses positive-definiteness.
    """

    has_latent: bool = False
    supports_gradients: bool = True

    def __init__(self) -> None:
        self.target: float = np.nan
        self.log_likelihood: float = np.nan
        self.log_prior: float = np.nan
        self.dtarget: Optional[np.ndarray] = None

    @abstractmethod
    def param_names(self, mask: ParamMask, latent: bool = False) -> List[str]:
        """Names of the entries of the masked parameter vector."""
        pass

    @abstractmethod
    def get_params(self, mask: ParamMask, latent: bool = False) -> np.ndarray:
        pass

    @abstractmethod
    def set_params(self, theta: np.ndarray, mask: ParamMask, latent: bool = False) -> None:
        pass

    @abstractmethod
    def update_target(self, mask: ParamMask, latent: bool = False) -> None:
        pass

    @abstractmethod
    def update_target_and_grad(self, mask: ParamMask, latent: bool = False) -> None:
        pass

    @abstractmethod
    def sample_params(self, rng_key: jax.Array, mask: ParamMask) -> np.ndarray:
        """Independent draw of the masked hyperparameters from their prior."""
        pass

    @abstractmethod
    def prior_mean(self, mask: ParamMask) -> np.ndarray:
        pass

    @abstractmethod
    def has_gaussian_priors(self, mask: ParamMask) -> bool:
        pass

    @staticmethod
    def whiten(cov: np.ndarray, x: np.ndarray) -> np.ndarray:
        return linalg.whiten(cov, x)

    @staticmethod
    def unwhiten(cov: np.ndarray, z: np.ndarray) -> np.ndarray:
        return linalg.unwhiten(cov, z)

    def n_params(self, mask: ParamMask, latent: bool = False) -> int:
        return len(self.param_names(mask, latent=latent))
