"""
Hamiltonian Monte Carlo over GP hyperparameters.

Unit mass matrix, fixed step size and a trajectory length drawn uniformly
from [l_min, l_max] every iteration. A trajectory that steps into an
inadmissible region (non-finite values, covariance no longer positive
definite) is abandoned and the proposal rejected.

Examples
--------
>>> from gp_pipe.sampling import HMCSampler, HMCConfig
>>> config = HMCConfig(n_iterations=2000, burn_in=200, step_size=0.05, seed=0)
>>> result = HMCSampler(gp, config).run()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np
import jax
import jax.random as random

from gp_pipe.sampling.base import Sampler, ChainState, ChainStats
from gp_pipe.sampling.configs import HMCConfig
from gp_pipe.sampling.guard import NumericalGuard


@dataclass
class HMCState(ChainState):
    """Accepted position with its cached gradient."""

    grad: np.ndarray


class HMCSampler(Sampler):
    """
    Metropolis-corrected leapfrog sampler.

    One iteration:

    1. Draw momentum nu0 ~ N(0, I) and take a half step nu = nu0 + eps/2 grad.
    2. Draw L ~ U{l_min, ..., l_max} and take L leapfrog steps, each moving
       theta by eps * nu and updating nu by eps * grad at the new position.
    3. Undo half of the last momentum update, nu -= eps/2 grad.
    4. Accept with probability min(1, exp(H0 - H1)), H = -target + |nu|^2 / 2.

    The current target and gradient are cached in the chain state, so the
    candidates committed to the model along a rejected trajectory never
    reach the trace.
    """

    requires_gradients = True
    config_class = HMCConfig
    backend = 'hmc'

    def _initial_state(self, guard: NumericalGuard) -> HMCState:
        theta = self.model.get_params(self.config.mask)
        ev = self._initial_evaluation(guard, theta, grad=True)
        return HMCState(theta=theta, log_target=ev.log_target, grad=ev.grad)

    def _step(
        self,
        state: HMCState,
        key: jax.Array,
        guard: NumericalGuard,
        stats: ChainStats,
    ) -> HMCState:
        eps = self.config.step_size
        k_mom, k_len, k_acc = random.split(key, 3)

        nu0 = np.asarray(random.normal(k_mom, state.theta.shape), dtype=float)
        nu = nu0 + 0.5 * eps * state.grad

        n_steps = int(random.randint(k_len, (), self.config.l_min, self.config.l_max + 1))
        stats.n_leapfrog += n_steps

        theta = state.theta
        for _ in range(n_steps):
            theta = theta + eps * nu
            ev = guard.evaluate_with_grad(theta).raise_if_fatal()
            if not ev.ok:
                return state
            nu = nu + eps * ev.grad
        nu = nu - 0.5 * eps * ev.grad

        log_u = np.log(float(random.uniform(k_acc)))
        h_new = ev.log_target - 0.5 * nu @ nu
        h_old = state.log_target - 0.5 * nu0 @ nu0
        if log_u < h_new - h_old:
            stats.n_accepted += 1
            return HMCState(theta=theta, log_target=ev.log_target, grad=ev.grad)
        return state

    def _acceptance_rate(self, stats: ChainStats) -> float:
        return stats.n_accepted / self.config.n_iterations

    def _extra_diagnostics(self, stats: ChainStats) -> Dict[str, Any]:
        return {
            'step_size': self.config.step_size,
            'n_accepted': stats.n_accepted,
            'mean_leapfrog_steps': stats.n_leapfrog / self.config.n_iterations,
        }
