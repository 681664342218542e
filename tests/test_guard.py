"""
Tests for the numerical guard around model evaluations.
"""

import pytest
import numpy as np

from gp_pipe.parameters import ParamMask
from gp_pipe.sampling import (
    ChainStats,
    EvalStatus,
    Evaluation,
    HMCConfig,
    HMCSampler,
    NumericalGuard,
)

from test_utils import ConjugateGaussianModel


def raising(error):
    def fail(theta):
        raise error
    return fail


class TestEvaluation:
    """Tests for the evaluation result variant."""

    def test_constructors(self):
        ev = Evaluation.accept(-1.0, -2.0, grad=np.ones(2))
        assert ev.ok and not ev.rejected
        assert ev.status is EvalStatus.ACCEPTED

        ev = Evaluation.reject()
        assert ev.rejected and not ev.ok
        assert ev.log_target == -np.inf

    def test_raise_if_fatal(self):
        ev = Evaluation.fail(KeyError('boom'))
        with pytest.raises(KeyError):
            ev.raise_if_fatal()

        ok = Evaluation.accept(0.0)
        assert ok.raise_if_fatal() is ok


class TestNumericalGuard:
    """Tests for rejection and failure classification."""

    def test_accept(self):
        model = ConjugateGaussianModel([1.0, 2.0])
        stats = ChainStats()
        guard = NumericalGuard(model, ParamMask(), stats)

        ev = guard.evaluate_with_grad(np.array([0.0, 1.0]))
        assert ev.ok
        assert ev.log_target == pytest.approx(model.target)
        assert ev.log_likelihood == pytest.approx(model.log_likelihood)
        np.testing.assert_allclose(ev.grad, model.dtarget)
        assert stats.n_calls == 1
        assert stats.n_rejected == 0

    @pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
    def test_non_finite_rejected_before_commit(self, bad):
        model = ConjugateGaussianModel([1.0, 2.0])
        stats = ChainStats()
        guard = NumericalGuard(model, ParamMask(), stats)

        ev = guard.evaluate(np.array([0.0, bad]))
        assert ev.rejected
        assert stats.n_calls == 1
        assert stats.n_rejected == 1
        assert model.n_commits == 0

    @pytest.mark.parametrize("error", [
        ValueError("bad argument"),
        np.linalg.LinAlgError("not positive definite"),
    ])
    def test_domain_errors_rejected(self, error):
        model = ConjugateGaussianModel([1.0], fail=raising(error))
        stats = ChainStats()
        guard = NumericalGuard(model, ParamMask(), stats)

        ev = guard.evaluate_with_grad(np.array([0.3]))
        assert ev.rejected
        assert stats.n_calls == 1
        assert stats.n_rejected == 1

    @pytest.mark.parametrize("error", [RuntimeError("bug"), KeyError("bug"), ZeroDivisionError()])
    def test_other_errors_fatal(self, error):
        model = ConjugateGaussianModel([1.0], fail=raising(error))
        stats = ChainStats()
        guard = NumericalGuard(model, ParamMask(), stats)

        ev = guard.evaluate(np.array([0.3]))
        assert ev.status is EvalStatus.FATAL
        assert ev.error is error
        assert stats.n_rejected == 0
        with pytest.raises(type(error)):
            ev.raise_if_fatal()

    def test_attempt_custom_function(self):
        model = ConjugateGaussianModel([1.0])
        stats = ChainStats()
        guard = NumericalGuard(model, ParamMask(), stats)

        def commit(theta):
            raise np.linalg.LinAlgError("surrogate not positive definite")

        assert guard.attempt(np.array([0.1]), commit).rejected
        assert guard.attempt(np.array([0.1]), lambda t: Evaluation.accept(1.0)).ok
        assert stats.n_calls == 2
        assert stats.n_rejected == 1


class TestFatalPropagation:
    """Fatal model errors leave the chain driver unchanged."""

    def test_run_reraises_original_exception(self):
        calls = {'n': 0}

        def fail_later(theta):
            calls['n'] += 1
            if calls['n'] > 5:
                raise RuntimeError("model bug")

        model = ConjugateGaussianModel([1.0], fail=fail_later)
        sampler = HMCSampler(model, HMCConfig(n_iterations=50, seed=0, verbose=False))

        with pytest.raises(RuntimeError, match="model bug"):
            sampler.run()

    def test_inadmissible_initial_state(self):
        model = ConjugateGaussianModel([1.0], fail=raising(ValueError("never")))
        sampler = HMCSampler(model, HMCConfig(n_iterations=5, seed=0, verbose=False))

        with pytest.raises(ValueError, match="not admissible"):
            sampler.run()
