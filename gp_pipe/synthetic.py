"""
Synthetic data generation for testing and validation.

Draws latent functions from a GP prior and observations from a likelihood
using plain NumPy, independently of the JAX model code in ``gp_pipe.gp``,
so recovery tests do not validate the models against themselves.

Examples
--------
>>> import numpy as np
>>> from gp_pipe.synthetic import SyntheticGP
>>>
>>> true_params = {'beta': 0.5, 'log_ell': 0.0, 'log_sf': 0.0, 'log_noise': -1.5}
>>> synth = SyntheticGP(true_params, kernel_type='se', seed=42)
>>> x = np.linspace(0, 5, 30)
>>> y = synth.generate(x, likelihood='gaussian')
>>> synth.f_true   # latent draw
"""

from typing import Dict, Optional

import numpy as np

REQUIRED_PARAMS = {
    'se': {'log_ell', 'log_sf'},
    'matern32': {'log_ell', 'log_sf'},
}


def kernel_matrix_numpy(
    x1: np.ndarray,
    x2: np.ndarray,
    log_ell: float,
    log_sf: float,
    kernel_type: str = 'se',
) -> np.ndarray:
    """
    Stationary kernel matrix computed directly in NumPy.

    Parameters
    ----------
    x1, x2 : ndarray
        Inputs of shape (n1, d) and (n2, d).
    log_ell, log_sf : float
        Log length scale and log signal standard deviation.
    kernel_type : str
        'se' or 'matern32'.
    """
    d2 = np.sum((x1[:, None, :] - x2[None, :, :]) ** 2, axis=-1)
    r = np.sqrt(d2) / np.exp(log_ell)
    sf2 = np.exp(2 * log_sf)
    if kernel_type == 'se':
        return sf2 * np.exp(-0.5 * r**2)
    elif kernel_type == 'matern32':
        return sf2 * (1 + np.sqrt(3) * r) * np.exp(-np.sqrt(3) * r)
    raise ValueError(f"Unknown kernel_type: {kernel_type}")


class SyntheticGP:
    """
    Synthetic GP observation with known true hyperparameters.

    Parameters
    ----------
    true_params : dict
        True hyperparameters. Must contain the kernel parameters; may contain
        'beta' (constant mean, default 0), 'log_noise' (Gaussian noise) and
        'log_lik_noise' (noise of a latent Gaussian likelihood).
    kernel_type : str
        'se' or 'matern32'.
    seed : int, optional
        Random seed for reproducibility.

    Attributes
    ----------
    x : ndarray or None
        Inputs from the most recent call to generate(), shape (n, d).
    f_true : ndarray or None
        Latent function draw.
    data_noisy : ndarray or None
        Observations.
    """

    def __init__(
        self,
        true_params: Dict[str, float],
        kernel_type: str = 'se',
        seed: Optional[int] = None,
    ):
        if kernel_type not in REQUIRED_PARAMS:
            raise ValueError(
                f"Unknown kernel_type '{kernel_type}'. "
                f"Available: {sorted(REQUIRED_PARAMS)}"
            )
        missing = REQUIRED_PARAMS[kernel_type] - set(true_params)
        if missing:
            raise ValueError(f"Missing required parameters: {sorted(missing)}")

        self.true_params = dict(true_params)
        self.kernel_type = kernel_type
        self.seed = seed

        self.x = None
        self.f_true = None
        self.data_noisy = None

    def generate(
        self,
        x: np.ndarray,
        likelihood: str = 'gaussian',
        seed: Optional[int] = None,
    ) -> np.ndarray:
        """
        Draw f ~ GP(beta, k) at x and observations y | f.

        Parameters
        ----------
        x : ndarray
            Inputs, shape (n,) or (n, d).
        likelihood : str
            'gaussian' (uses log_noise, or log_lik_noise), 'poisson' or
            'probit'.
        seed : int, optional
            Overrides self.seed for this draw.

        Returns
        -------
        ndarray
            Observations, shape (n,).
        """
        rng = np.random.default_rng(self.seed if seed is None else seed)

        x = np.asarray(x, dtype=float)
        if x.ndim == 1:
            x = x[:, None]
        n = x.shape[0]

        p = self.true_params
        K = kernel_matrix_numpy(x, x, p['log_ell'], p['log_sf'], self.kernel_type)
        L = np.linalg.cholesky(K + 1e-8 * np.eye(n))
        f = p.get('beta', 0.0) + L @ rng.standard_normal(n)

        if likelihood == 'gaussian':
            log_noise = p.get('log_noise', p.get('log_lik_noise'))
            if log_noise is None:
                raise ValueError("Gaussian likelihood needs 'log_noise' or 'log_lik_noise'")
            y = f + np.exp(log_noise) * rng.standard_normal(n)
        elif likelihood == 'poisson':
            y = rng.poisson(np.exp(f)).astype(float)
        elif likelihood == 'probit':
            y = (f + rng.standard_normal(n) > 0).astype(float)
        else:
            raise ValueError(f"Unknown likelihood: {likelihood}")

        self.x = x
        self.f_true = f
        self.data_noisy = y
        return y
