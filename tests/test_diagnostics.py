"""
Tests for run summaries and trace plots.
"""

import pytest
import numpy as np
import matplotlib.pyplot as plt

from gp_pipe.sampling import SamplerResult
from gp_pipe.sampling.diagnostics import (
    check_convergence_warnings,
    plot_trace,
    print_run_summary,
    print_summary,
)

from test_utils import get_output_dir


@pytest.fixture(scope="module")
def output_dir():
    return get_output_dir("diagnostics")


def make_result(n=200, names=('beta', 'log_ell'), **diagnostics):
    rng = np.random.default_rng(0)
    samples = rng.standard_normal((n, len(names)))
    base = {'n_iterations': n, 'burn_in': 1, 'thin': 1}
    base.update(diagnostics)
    return SamplerResult(
        samples=samples,
        log_prob=rng.standard_normal(n),
        param_names=list(names),
        acceptance_rate=0.75,
        n_calls=3 * n,
        diagnostics=base,
        metadata={'backend': 'hmc'},
    )


class TestPrinting:
    """Console summaries."""

    def test_run_summary_hmc(self, capsys):
        print_run_summary(make_result(step_size=0.05, mean_leapfrog_steps=9.5))
        out = capsys.readouterr().out
        assert "Number of iterations = 200, Thinning = 1, Burn-in = 1" in out
        assert "Step size = 0.05" in out
        assert "9.50" in out
        assert "Number of function calls: 600" in out
        assert "Acceptance rate: 0.7500" in out

    def test_run_summary_slice(self, capsys):
        print_run_summary(make_result())
        out = capsys.readouterr().out
        assert "Step size" not in out
        assert "Number of function calls: 600" in out

    def test_summary_table(self, capsys):
        result = make_result(names=('eta[0]', 'beta'))
        print_summary(result, true_values={'beta': 0.0})
        out = capsys.readouterr().out
        assert "SAMPLING SUMMARY" in out
        assert "beta" in out
        # latent columns are not tabulated
        assert "eta[0]" not in out


class TestConvergenceWarnings:
    """Stuck-chain detection."""

    def test_zero_variance(self):
        result = make_result()
        result.samples[:, 1] = 1.0
        warnings = check_convergence_warnings(result)
        assert warnings['has_warnings']
        assert warnings['zero_variance_params'] == ['log_ell']

    def test_clean(self):
        assert not check_convergence_warnings(make_result())['has_warnings']


class TestTracePlot:
    """Trace plots are written to tests/out/diagnostics."""

    def test_plot_all(self, output_dir):
        out_path = output_dir / "trace_all.png"
        fig = plot_trace(make_result(), true_values={'beta': 0.0}, output_path=out_path)
        assert out_path.exists()
        assert len(fig.axes) == 2
        plt.close(fig)

    def test_latent_columns_skipped(self, output_dir):
        result = make_result(names=('eta[0]', 'eta[1]', 'beta'))
        fig = plot_trace(result, output_path=output_dir / "trace_latent.png")
        assert len(fig.axes) == 1
        plt.close(fig)
