"""
Numerical guard around target-model evaluations.

Samplers regularly propose inadmissible hyperparameters: non-finite values,
values the model refuses (``ValueError``) or values for which the covariance
stops being positive definite (``numpy.linalg.LinAlgError``). The guard turns
those into an ``Evaluation`` with status REJECTED. Every other exception is
a bug, not a property of the proposal, and comes back as status FATAL so the
chain driver can re-raise it; absorbing it would silently bias the chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from gp_pipe.model import TargetModel
    from gp_pipe.parameters import ParamMask
    from gp_pipe.sampling.base import ChainStats


# Exceptions that mean "this candidate is outside the admissible domain"
REJECTABLE_ERRORS = (ValueError, np.linalg.LinAlgError)


class EvalStatus(str, Enum):
    """Outcome of a guarded evaluation."""

    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    FATAL = 'fatal'


@dataclass(frozen=True)
class Evaluation:
    """
    Result of committing a candidate to the model and evaluating it.

    Attributes
    ----------
    status : EvalStatus
        ACCEPTED (values are valid), REJECTED (domain failure) or FATAL.
    log_target : float
        Log-target at the candidate; -inf unless ACCEPTED.
    log_likelihood : float
        Log-target without the hyperprior; -inf unless ACCEPTED.
    grad : np.ndarray, optional
        Gradient of the log-target, when requested.
    error : Exception, optional
        The exception behind a FATAL outcome.
    extra : Any
        Sampler-specific payload computed alongside the target.
    """

    status: EvalStatus
    log_target: float = -np.inf
    log_likelihood: float = -np.inf
    grad: Optional[np.ndarray] = None
    error: Optional[BaseException] = None
    extra: Any = None

    @classmethod
    def accept(cls, log_target: float, log_likelihood: float = -np.inf,
               grad: Optional[np.ndarray] = None, extra: Any = None) -> 'Evaluation':
        return cls(EvalStatus.ACCEPTED, float(log_target), float(log_likelihood), grad,
                   None, extra)

    @classmethod
    def reject(cls) -> 'Evaluation':
        return cls(EvalStatus.REJECTED)

    @classmethod
    def fail(cls, error: BaseException) -> 'Evaluation':
        return cls(EvalStatus.FATAL, error=error)

    @property
    def ok(self) -> bool:
        return self.status is EvalStatus.ACCEPTED

    @property
    def rejected(self) -> bool:
        return self.status is EvalStatus.REJECTED

    def raise_if_fatal(self) -> 'Evaluation':
        """Re-raise the original exception of a FATAL outcome; else return self."""
        if self.status is EvalStatus.FATAL:
            raise self.error
        return self


class NumericalGuard:
    """
    Commit-and-evaluate wrapper shared by all samplers.

    Parameters
    ----------
    model : TargetModel
        The model candidates are committed to.
    mask : ParamMask
        Parameter groups in the candidate vector.
    stats : ChainStats
        Counters of the running chain; ``n_calls`` is incremented exactly
        once per evaluation, ``n_rejected`` once per domain rejection.
    latent : bool
        Whether candidate vectors carry latent values in front.

    Examples
    --------
    >>> guard = NumericalGuard(model, ParamMask(), ChainStats())
    >>> ev = guard.evaluate_with_grad(theta).raise_if_fatal()
    >>> if ev.ok:
    ...     target, grad = ev.log_target, ev.grad
    """

    def __init__(
        self,
        model: 'TargetModel',
        mask: 'ParamMask',
        stats: 'ChainStats',
        latent: bool = False,
    ):
        self.model = model
        self.mask = mask
        self.stats = stats
        self.latent = latent

    def attempt(self, theta: np.ndarray, fn: Callable[[np.ndarray], Evaluation]) -> Evaluation:
        """
        Run ``fn(theta)`` with the guard's classification of failures.

        ``fn`` commits ``theta`` to the model and returns an ACCEPTED
        ``Evaluation``. Non-finite ``theta`` is rejected before ``fn`` runs.
        """
        self.stats.n_calls += 1
        theta = np.asarray(theta, dtype=float)
        if not np.all(np.isfinite(theta)):
            self.stats.n_rejected += 1
            return Evaluation.reject()
        try:
            return fn(theta)
        except REJECTABLE_ERRORS:
            self.stats.n_rejected += 1
            return Evaluation.reject()
        except Exception as err:
            return Evaluation.fail(err)

    def evaluate(self, theta: np.ndarray) -> Evaluation:
        """Commit ``theta`` and recompute the log-target."""
        return self.attempt(theta, self._commit)

    def evaluate_with_grad(self, theta: np.ndarray) -> Evaluation:
        """Commit ``theta`` and recompute the log-target and its gradient."""
        return self.attempt(theta, self._commit_with_grad)

    def _commit(self, theta: np.ndarray) -> Evaluation:
        self.model.set_params(theta, self.mask, latent=self.latent)
        self.model.update_target(self.mask, latent=self.latent)
        return Evaluation.accept(self.model.target, self.model.log_likelihood)

    def _commit_with_grad(self, theta: np.ndarray) -> Evaluation:
        self.model.set_params(theta, self.mask, latent=self.latent)
        self.model.update_target_and_grad(self.mask, latent=self.latent)
        return Evaluation.accept(
            self.model.target,
            self.model.log_likelihood,
            grad=np.array(self.model.dtarget, dtype=float),
        )
