"""
Dense linear algebra helpers shared by the GP models and the samplers.

Failures of positive-definiteness are reported as
``numpy.linalg.LinAlgError`` so that callers can treat them as
inadmissible parameters rather than bugs.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.linalg import cholesky, solve_triangular


def chol_lower(cov: np.ndarray) -> np.ndarray:
    """
    Lower Cholesky factor of a symmetric positive-definite matrix.

    Raises
    ------
    numpy.linalg.LinAlgError
        If ``cov`` is not positive definite.
    ValueError
        If ``cov`` contains non-finite entries.
    """
    return cholesky(np.asarray(cov, dtype=float), lower=True)


def whiten(cov: np.ndarray, x: np.ndarray, chol: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Map a correlated vector to independent coordinates: ``L^{-1} x``.

    Parameters
    ----------
    cov : np.ndarray
        Covariance matrix with ``cov = L L^T``. Ignored if ``chol`` is given.
    x : np.ndarray
        Vector (or matrix of column vectors) to whiten.
    chol : np.ndarray, optional
        Precomputed lower Cholesky factor of ``cov``.
    """
    L = chol_lower(cov) if chol is None else chol
    return solve_triangular(L, np.asarray(x, dtype=float), lower=True)


def unwhiten(cov: np.ndarray, z: np.ndarray, chol: Optional[np.ndarray] = None) -> np.ndarray:
    """Inverse of ``whiten``: ``L z``."""
    L = chol_lower(cov) if chol is None else chol
    return L @ np.asarray(z, dtype=float)


def mvn_logpdf(x: np.ndarray, mean: np.ndarray, cov: np.ndarray) -> float:
    """
    Log density of a multivariate normal, via Cholesky.

    Raises
    ------
    numpy.linalg.LinAlgError
        If ``cov`` is not positive definite.
    """
    L = chol_lower(cov)
    z = solve_triangular(L, np.asarray(x, dtype=float) - mean, lower=True)
    n = z.shape[0]
    return float(
        -0.5 * z @ z - np.sum(np.log(np.diag(L))) - 0.5 * n * np.log(2 * np.pi)
    )
