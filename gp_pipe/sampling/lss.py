"""
Surrogate-data slice sampling for latent-variable GP models.

Murray & Adams (2010), "Slice sampling covariance hyperparameters of latent
Gaussian models". Hyperparameters theta and latent values f are updated
jointly: auxiliary observations g ~ N(f, S) are drawn, f is reparameterised
as whitened noise eta under the conditional N(m, R) of f given g, and a
hyper-rectangle slice search moves theta while eta stays fixed. Each theta
candidate therefore carries its own f' = chol(R') eta + m'.

Every iteration first moves f alone by elliptical slice sampling under its
GP prior N(mu, K). Without it the chain is reducible whenever K does not
depend on the sampled parameters (mean or likelihood groups only).

Examples
--------
>>> from gp_pipe.sampling import LatentSliceSampler, LSSConfig
>>> config = LSSConfig(aux_noise=0.1, width=0.5, n_iterations=2000, seed=1)
>>> result = LatentSliceSampler(latent_gp, config).run()
>>> result.param_names[:2]
['eta[0]', 'eta[1]']
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List

import numpy as np
import jax
import jax.random as random
from scipy.linalg import solve_triangular

from gp_pipe import linalg
from gp_pipe.sampling.base import Sampler, ChainState, ChainStats
from gp_pipe.sampling.configs import LSSConfig
from gp_pipe.sampling.guard import Evaluation, NumericalGuard


@dataclass(frozen=True)
class Surrogate:
    """
    Auxiliary-data covariances under one kernel matrix K.

    Attributes
    ----------
    s : np.ndarray
        Diagonal of the auxiliary noise covariance S.
    R : np.ndarray
        Covariance of f given g, R = S - S (K + S)^{-1} S.
    chol_R : np.ndarray
        Lower Cholesky factor of R.
    """

    s: np.ndarray
    R: np.ndarray
    chol_R: np.ndarray

    def conditional_mean(self, g: np.ndarray, mu: np.ndarray) -> np.ndarray:
        """Mean of f given g: mu + R S^{-1} (g - mu)."""
        return mu + self.R @ ((g - mu) / self.s)


def build_surrogate(K: np.ndarray, aux_noise: float) -> Surrogate:
    """
    Build the surrogate covariances for kernel matrix ``K``.

    S is chosen per site so that, were K diagonal, the conditional variance
    R_ii would equal ``aux_noise``: s_i = 1 / (1/aux_noise - 1/K_ii).

    Raises
    ------
    numpy.linalg.LinAlgError
        If ``aux_noise`` is not below every prior variance K_ii, or if
        K + S or R is not positive definite.
    """
    K = np.asarray(K, dtype=float)
    k_diag = np.diag(K)
    with np.errstate(divide='ignore'):
        s = np.maximum(0.0, 1.0 / (1.0 / aux_noise - 1.0 / k_diag))
    if not np.all(np.isfinite(s) & (s > 0)):
        raise np.linalg.LinAlgError(
            f"aux_noise={aux_noise} must be below every prior variance "
            f"(min diag K = {k_diag.min():.4g})"
        )

    S = np.diag(s)
    A = solve_triangular(linalg.chol_lower(K + S), S, lower=True)
    R = S - A.T @ A
    R = 0.5 * (R + R.T)
    return Surrogate(s=s, R=R, chol_R=linalg.chol_lower(R))


@dataclass
class LatentState(ChainState):
    """
    Accepted joint state.

    ``log_target`` is log p(theta) + sum_i log p(y_i | f_i) + log N(f; mu, K),
    the unnormalised joint posterior of (f, theta).
    """

    f: np.ndarray
    eta: np.ndarray
    v: np.ndarray
    cov: np.ndarray
    mean: np.ndarray
    log_lik: float
    log_prior: float


class LatentSliceSampler(Sampler):
    """
    Joint slice sampler for hyperparameters and latent function values.

    Trace rows are ``[eta, theta]``; at chain end the model receives the
    last accepted f (whitened under its own K) together with theta.
    """

    requires_latent = True
    config_class = LSSConfig
    backend = 'lss'

    # -------------------------------------------------------------------------
    # Joint evaluation at the committed model state
    # -------------------------------------------------------------------------

    def _joint_terms(self, f: np.ndarray) -> Dict[str, Any]:
        model = self.model
        mu = model.mean_vector
        L = model.chol
        v = linalg.whiten(None, f - mu, chol=L)
        log_f = _whitened_logpdf(v, L)
        log_lik = model.log_lik_density(f)
        log_prior = model.prior_logpdf()
        return dict(
            f=f, v=v, cov=model.cov, mean=mu,
            log_lik=log_lik, log_prior=log_prior,
            log_target=log_prior + log_lik + log_f,
        )

    def _surrogate_target(self, f: np.ndarray, g: np.ndarray, s: np.ndarray):
        """
        Slice density of a committed candidate,
        log p(theta) + sum_i log p(y_i | f_i) + log N(g; mu, K + S),
        together with its joint terms. Does not touch the call counters.
        """
        terms = self._joint_terms(f)
        log_g = linalg.mvn_logpdf(g, terms['mean'], terms['cov'] + np.diag(s))
        return terms['log_prior'] + terms['log_lik'] + log_g, terms

    def _initial_state(self, guard: NumericalGuard) -> LatentState:
        mask = self.config.mask
        full = self.model.get_params(mask, latent=True)
        self._initial_evaluation(guard, full)

        n_obs = self.model.n_obs
        theta = full[n_obs:]
        terms = self._joint_terms(self.model.latent_function())
        try:
            build_surrogate(terms['cov'], self.config.aux_noise)
        except np.linalg.LinAlgError as err:
            raise ValueError(
                f"Initial parameters are not admissible for {self.name}: {err}"
            ) from err

        return LatentState(
            theta=theta,
            log_target=terms['log_target'],
            f=terms['f'],
            eta=np.zeros(n_obs),
            v=terms['v'],
            cov=terms['cov'],
            mean=terms['mean'],
            log_lik=terms['log_lik'],
            log_prior=terms['log_prior'],
        )

    def _step(
        self,
        state: LatentState,
        key: jax.Array,
        guard: NumericalGuard,
        stats: ChainStats,
    ) -> LatentState:
        config = self.config
        mask = config.mask
        n_dim = state.theta.shape[0]
        k_latent, k_g, k_slice, k_box, k_shrink = random.split(key, 5)

        # f alone, under theta fixed
        state = self._update_latent(state, k_latent, stats)

        surrogate = build_surrogate(state.cov, config.aux_noise)
        g = state.f + np.sqrt(surrogate.s) * np.asarray(
            random.normal(k_g, state.f.shape), dtype=float
        )
        m = surrogate.conditional_mean(g, state.mean)
        eta = linalg.whiten(None, state.f - m, chol=surrogate.chol_R)

        log_g = linalg.mvn_logpdf(g, state.mean, state.cov + np.diag(surrogate.s))
        log_y = (
            state.log_prior + state.log_lik + log_g
            + np.log(float(random.uniform(k_slice)))
        )

        # Hyper-rectangle of side `width` placed randomly around theta
        offset = np.asarray(
            random.uniform(k_box, (n_dim,), maxval=config.width), dtype=float
        )
        theta_min = state.theta - offset
        theta_max = theta_min + config.width

        def commit(full: np.ndarray) -> Evaluation:
            self.model.set_params(full, mask, latent=True)
            cand = build_surrogate(self.model.cov, config.aux_noise)
            f = cand.chol_R @ eta + cand.conditional_mean(g, self.model.mean_vector)
            value, terms = self._surrogate_target(f, g, cand.s)
            terms['s'] = cand.s
            return Evaluation.accept(value, terms['log_lik'], extra=terms)

        n_proposals = 0
        while True:
            n_proposals += 1
            self._check_shrinks(n_proposals)
            stats.n_proposals += 1

            k_shrink, k_draw = random.split(k_shrink)
            theta = np.asarray(
                random.uniform(k_draw, (n_dim,), minval=theta_min, maxval=theta_max),
                dtype=float,
            )
            ev = guard.attempt(np.concatenate([eta, theta]), commit).raise_if_fatal()
            if ev.ok:
                # slice test on a fresh evaluation at the committed candidate
                value, terms = self._surrogate_target(ev.extra['f'], g, ev.extra['s'])
                if value > log_y:
                    return LatentState(
                        theta=theta,
                        log_target=terms['log_target'],
                        f=terms['f'],
                        eta=eta,
                        v=terms['v'],
                        cov=terms['cov'],
                        mean=terms['mean'],
                        log_lik=terms['log_lik'],
                        log_prior=terms['log_prior'],
                    )

            below = theta < state.theta
            theta_min = np.where(below, theta, theta_min)
            theta_max = np.where(below, theta_max, theta)

    def _update_latent(
        self,
        state: LatentState,
        key: jax.Array,
        stats: ChainStats,
    ) -> LatentState:
        """
        Elliptical slice update of f under N(mean, K) with theta held fixed.

        The model is committed at ``state.theta`` here, so
        ``log_lik_density`` uses the current likelihood parameters. A
        non-finite log-likelihood counts as off the slice.
        """
        k_nu, k_slice, k_angle, k_shrink = random.split(key, 4)
        L = linalg.chol_lower(state.cov)
        mean = state.mean

        nu = mean + L @ np.asarray(random.normal(k_nu, state.f.shape), dtype=float)
        log_y = state.log_lik + np.log(float(random.uniform(k_slice)))

        angle = float(random.uniform(k_angle, minval=0.0, maxval=2 * np.pi))
        lo, hi = angle - 2 * np.pi, angle

        n_proposals = 0
        while True:
            n_proposals += 1
            self._check_shrinks(n_proposals)
            stats.n_latent_proposals += 1

            f = mean + (state.f - mean) * np.cos(angle) + (nu - mean) * np.sin(angle)
            log_lik = self.model.log_lik_density(f)
            if np.isfinite(log_lik) and log_lik > log_y:
                v = linalg.whiten(None, f - mean, chol=L)
                return replace(
                    state,
                    f=f,
                    v=v,
                    log_lik=log_lik,
                    log_target=state.log_prior + log_lik + _whitened_logpdf(v, L),
                )

            if angle < 0:
                lo = angle
            else:
                hi = angle
            k_shrink, k_draw = random.split(k_shrink)
            angle = float(random.uniform(k_draw, minval=lo, maxval=hi))

    def _row(self, state: LatentState) -> np.ndarray:
        return np.concatenate([state.eta, state.theta])

    def _param_names(self) -> List[str]:
        names = self.model.param_names(self.config.mask)
        return [f'eta[{i}]' for i in range(self.model.n_obs)] + names

    def _finalize(self, state: LatentState) -> None:
        mask = self.config.mask
        self.model.set_params(np.concatenate([state.v, state.theta]), mask, latent=True)
        self.model.update_target(mask, latent=True)

    def _acceptance_rate(self, stats: ChainStats) -> float:
        return self.config.n_iterations / stats.n_proposals

    def _extra_diagnostics(self, stats: ChainStats) -> Dict[str, Any]:
        return {
            'aux_noise': self.config.aux_noise,
            'width': self.config.width,
            'n_latent': self.model.n_obs,
            'mean_proposals': stats.n_proposals / self.config.n_iterations,
            'n_latent_proposals': stats.n_latent_proposals,
        }


def _whitened_logpdf(v: np.ndarray, L: np.ndarray) -> float:
    """log N(f; mu, L L^T) given the whitened residual v = L^{-1} (f - mu)."""
    return float(
        -0.5 * v @ v - np.sum(np.log(np.diag(L))) - 0.5 * v.shape[0] * np.log(2 * np.pi)
    )
