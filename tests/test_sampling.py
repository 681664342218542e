"""
Integration tests for the sampling infrastructure.

Tests the sampling module:
- Config validation and YAML loading
- Sampler factory
- SamplerResult container and trace trimming
- Parameter recovery against closed-form posteriors (marked slow)
"""

import pytest
import numpy as np
import yaml

from gp_pipe.gp import GPExact, GPLatent
from gp_pipe.kernels import SquaredExponential
from gp_pipe.likelihood import GaussianLikelihood
from gp_pipe.means import MeanConst
from gp_pipe.parameters import ParamMask
from gp_pipe.priors import Gaussian, PriorDict
from gp_pipe.sampling import (
    SamplerResult,
    BaseSamplerConfig,
    HMCConfig,
    ESSConfig,
    LSSConfig,
    SamplingYAMLConfig,
    HMCSampler,
    EllipticalSliceSampler,
    LatentSliceSampler,
    build_sampler,
    get_available_samplers,
    register_sampler,
)
from gp_pipe.sampling.configs import parse_prior_spec

from test_utils import (
    ConjugateGaussianModel,
    batch_means_se,
    constant_mean_posterior,
    get_output_dir,
)


# ==============================================================================
# Config Tests
# ==============================================================================


class TestConfigs:
    """Tests for configuration classes."""

    def test_defaults(self):
        config = BaseSamplerConfig()
        assert config.n_iterations == 1000
        assert config.burn_in == 1
        assert config.thin == 1
        assert config.mask == ParamMask()
        assert config.max_shrinks == 10_000

        hmc = HMCConfig()
        assert (hmc.step_size, hmc.l_min, hmc.l_max) == (0.1, 5, 15)

        lss = LSSConfig()
        assert (lss.aux_noise, lss.width) == (0.1, 0.1)

    @pytest.mark.parametrize("kwargs", [
        dict(n_iterations=0),
        dict(n_iterations=10, burn_in=0),
        dict(n_iterations=10, burn_in=11),
        dict(thin=0),
        dict(max_shrinks=0),
    ])
    def test_base_validation(self, kwargs):
        with pytest.raises(ValueError):
            BaseSamplerConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        dict(step_size=0.0),
        dict(step_size=-0.1),
        dict(l_min=0),
        dict(l_min=6, l_max=5),
    ])
    def test_hmc_validation(self, kwargs):
        with pytest.raises(ValueError):
            HMCConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [dict(aux_noise=0.0), dict(width=-1.0)])
    def test_lss_validation(self, kwargs):
        with pytest.raises(ValueError):
            LSSConfig(**kwargs)

    def test_mask_from_dict(self):
        config = ESSConfig(mask={'noise': False})
        assert config.mask == ParamMask(noise=False)

    def test_no_shrink_bound(self):
        assert ESSConfig(max_shrinks=None).max_shrinks is None

    @pytest.mark.parametrize("n, burn, thin, expected", [
        (10, 1, 1, 10),
        (10, 3, 4, 2),
        (10, 10, 3, 1),
        (1000, 100, 7, 129),
    ])
    def test_n_kept(self, n, burn, thin, expected):
        assert BaseSamplerConfig(n_iterations=n, burn_in=burn, thin=thin).n_kept == expected


class TestYAMLConfig:
    """Tests for YAML-driven configuration."""

    def test_from_yaml(self, tmp_path):
        spec = {
            'sampler': 'ESS',
            'sampler_config': {'n_iterations': 200, 'burn_in': 20,
                               'mask': {'noise': False}},
            'model': {'type': 'exact', 'kernel': 'se'},
            'priors': {
                'beta': {'type': 'gaussian', 'mu': 0.0, 'sigma': 1.0},
                'log_ell': {'type': 'normal', 'mu': 0.0, 'sigma': 0.5},
                'log_sf': {'type': 'uniform', 'low': -2.0, 'high': 2.0},
            },
        }
        path = tmp_path / 'run.yaml'
        path.write_text(yaml.safe_dump(spec))

        config = SamplingYAMLConfig.from_yaml(path)
        sampler_config = config.get_sampler_config()
        assert isinstance(sampler_config, ESSConfig)
        assert sampler_config.n_iterations == 200
        assert sampler_config.mask == ParamMask(noise=False)

        priors = config.get_prior_dict()
        assert priors.names == ['beta', 'log_ell', 'log_sf']
        assert priors.is_gaussian(['beta', 'log_ell'])
        assert not priors.is_gaussian(['log_sf'])

    def test_mcmc_alias(self):
        config = SamplingYAMLConfig(sampler='mcmc', sampler_config={'step_size': 0.2})
        assert isinstance(config.get_sampler_config(), HMCConfig)

    def test_unknown_sampler(self):
        with pytest.raises(ValueError, match="Unknown sampler"):
            SamplingYAMLConfig(sampler='nuts').get_sampler_config()

    def test_parse_prior_spec_errors(self):
        with pytest.raises(ValueError):
            parse_prior_spec({'mu': 0.0})
        with pytest.raises(ValueError):
            parse_prior_spec({'type': 'cauchy'})
        with pytest.raises(TypeError):
            parse_prior_spec(1.0)


# ==============================================================================
# Factory Tests
# ==============================================================================


class TestFactory:
    """Tests for the sampler factory."""

    def test_available_samplers(self):
        available = get_available_samplers()
        for name in ['hmc', 'mcmc', 'ess', 'lss']:
            assert name in available

    def test_case_insensitive(self):
        model = ConjugateGaussianModel([1.0])
        assert isinstance(build_sampler('HMC', model), HMCSampler)
        assert isinstance(build_sampler('Ess', model), EllipticalSliceSampler)
        assert isinstance(build_sampler('mcmc', model), HMCSampler)

    def test_default_config(self):
        sampler = build_sampler('hmc', ConjugateGaussianModel([1.0]))
        assert isinstance(sampler.config, HMCConfig)

    def test_lss(self, latent_gp):
        sampler = build_sampler('lss', latent_gp, LSSConfig(aux_noise=0.05))
        assert isinstance(sampler, LatentSliceSampler)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown sampler"):
            build_sampler('nuts', ConjugateGaussianModel([1.0]))

    def test_wrong_config_type(self):
        with pytest.raises(TypeError):
            build_sampler('ess', ConjugateGaussianModel([1.0]), HMCConfig())

    def test_register_sampler(self):
        register_sampler('My_HMC', HMCSampler)
        assert 'my_hmc' in get_available_samplers()
        assert isinstance(build_sampler('my_hmc', ConjugateGaussianModel([1.0])), HMCSampler)


# ==============================================================================
# Result Tests
# ==============================================================================


class TestSamplerResult:
    """Tests for the result container."""

    @pytest.fixture
    def result(self):
        rng = np.random.default_rng(0)
        return SamplerResult(
            samples=rng.standard_normal((100, 3)),
            log_prob=rng.standard_normal(100),
            param_names=['a', 'b', 'c'],
            acceptance_rate=0.8,
            n_calls=1234,
            metadata={'backend': 'test'},
        )

    def test_shapes(self, result):
        assert result.n_samples == 100
        assert result.n_params == 3
        assert result.trace.shape == (3, 100)
        np.testing.assert_array_equal(result.trace, result.samples.T)

    def test_get_chain(self, result):
        np.testing.assert_array_equal(result.get_chain('b'), result.samples[:, 1])
        with pytest.raises(KeyError):
            result.get_chain('d')

    def test_summary(self, result):
        summary = result.get_summary()
        assert set(summary) == {'a', 'b', 'c'}
        assert summary['a']['mean'] == pytest.approx(result.samples[:, 0].mean())
        assert set(summary['a']['quantiles']) == {0.16, 0.5, 0.84}

    def test_to_dict(self, result):
        d = result.to_dict(include_samples=False)
        assert 'samples' not in d
        assert d['n_calls'] == 1234
        assert len(result.to_dict()['samples']) == 100


class TestTrimming:
    """Burn-in and thinning of the trace."""

    @pytest.mark.parametrize("burn, thin", [(1, 1), (3, 4), (10, 1), (7, 3)])
    def test_rows_kept(self, burn, thin):
        n = 10
        config = HMCConfig(n_iterations=n, burn_in=burn, thin=thin, step_size=0.1,
                           l_min=1, l_max=1, seed=0, verbose=False)
        result = HMCSampler(ConjugateGaussianModel([1.0]), config).run()

        assert result.n_samples == config.n_kept
        assert result.n_samples == len(range(burn - 1, n, thin))

    def test_rows_match_full_chain(self):
        full_config = ESSConfig(n_iterations=20, seed=9, verbose=False)
        full = EllipticalSliceSampler(ConjugateGaussianModel([1.0, 2.0]), full_config).run()

        thin_config = ESSConfig(n_iterations=20, burn_in=5, thin=3, seed=9, verbose=False)
        thinned = EllipticalSliceSampler(ConjugateGaussianModel([1.0, 2.0]), thin_config).run()

        np.testing.assert_array_equal(thinned.samples, full.samples[4::3])
        np.testing.assert_array_equal(thinned.log_prob, full.log_prob[4::3])

    def test_final_state_is_last_iteration_not_last_kept_row(self):
        # with thinning the last iteration may be dropped from the trace
        config = HMCConfig(n_iterations=10, thin=4, step_size=0.2, l_min=2, l_max=2,
                           seed=1, verbose=False)
        model = ConjugateGaussianModel([1.0])
        full = HMCSampler(ConjugateGaussianModel([1.0]), HMCConfig(
            n_iterations=10, step_size=0.2, l_min=2, l_max=2, seed=1, verbose=False,
        )).run()
        HMCSampler(model, config).run()
        np.testing.assert_array_equal(model.get_params(ParamMask()), full.samples[-1])


class TestVerbose:
    """Run summary printing."""

    def test_run_summary_printed(self, capsys):
        config = HMCConfig(n_iterations=5, step_size=0.1, seed=0, verbose=True)
        HMCSampler(ConjugateGaussianModel([1.0]), config).run()
        out = capsys.readouterr().out
        assert "Number of iterations = 5" in out
        assert "Number of function calls" in out
        assert "Acceptance rate" in out

    def test_quiet(self, capsys):
        config = ESSConfig(n_iterations=5, seed=0, verbose=False)
        EllipticalSliceSampler(ConjugateGaussianModel([1.0]), config).run()
        assert capsys.readouterr().out == ""


# ==============================================================================
# Recovery Tests (slow)
# ==============================================================================


N_RECOVERY = 5000
BURN_RECOVERY = 500
PRIOR_MU, PRIOR_SD = 0.5, 1.0


def _beta_priors():
    return PriorDict({'beta': Gaussian(PRIOR_MU, PRIOR_SD)})


def _check_recovery(chain, expected_mean, name):
    se = batch_means_se(chain)
    print(f"{name}: mean={chain.mean():.4f} expected={expected_mean:.4f} se={se:.4f}")
    assert abs(chain.mean() - expected_mean) < 3 * se + 1e-3


@pytest.mark.slow
class TestRecovery:
    """
    Sample only the constant mean of a GP; its posterior is Gaussian in
    closed form, so each sampler must reproduce its mean within Monte Carlo
    error.
    """

    MASK = ParamMask(kernel=False, noise=False, likelihood=False)

    def test_hmc(self, regression_data):
        x, y = regression_data
        gp = GPExact(x, y, MeanConst(0.0), SquaredExponential(), log_noise=-1.5,
                     priors=_beta_priors())
        expected, sd = constant_mean_posterior(gp.cov, y, PRIOR_MU, PRIOR_SD)

        config = HMCConfig(n_iterations=N_RECOVERY, burn_in=BURN_RECOVERY,
                           step_size=0.3 * sd, l_min=3, l_max=10, mask=self.MASK,
                           seed=10, verbose=False)
        result = build_sampler('hmc', gp, config).run()

        _check_recovery(result.get_chain('beta'), expected, 'hmc')
        assert result.get_chain('beta').std() == pytest.approx(sd, rel=0.15)

    def test_ess(self, regression_data):
        x, y = regression_data
        gp = GPExact(x, y, MeanConst(0.0), SquaredExponential(), log_noise=-1.5,
                     priors=_beta_priors())
        expected, sd = constant_mean_posterior(gp.cov, y, PRIOR_MU, PRIOR_SD)

        config = ESSConfig(n_iterations=N_RECOVERY, burn_in=BURN_RECOVERY,
                           mask=self.MASK, seed=11, verbose=False)
        result = build_sampler('ess', gp, config).run()

        _check_recovery(result.get_chain('beta'), expected, 'ess')
        assert result.get_chain('beta').std() == pytest.approx(sd, rel=0.15)

    def test_lss(self, regression_data):
        x, y = regression_data
        gp = GPLatent(x, y, MeanConst(0.0), SquaredExponential(),
                      GaussianLikelihood(-1.5), priors=_beta_priors())
        # f marginalised: y ~ N(beta 1, K + jitter I + sigma^2 I)
        cov = gp.cov + np.exp(-3.0) * np.eye(len(y))
        expected, sd = constant_mean_posterior(cov, y, PRIOR_MU, PRIOR_SD)

        config = LSSConfig(n_iterations=2 * N_RECOVERY, burn_in=BURN_RECOVERY,
                           aux_noise=0.1, width=2.0, mask=self.MASK,
                           seed=12, verbose=False)
        result = build_sampler('lss', gp, config).run()

        _check_recovery(result.get_chain('beta'), expected, 'lss')

    def test_trace_plot(self, regression_data):
        from gp_pipe.sampling.diagnostics import plot_trace

        x, y = regression_data
        gp = GPExact(x, y, MeanConst(0.0), SquaredExponential(), log_noise=-1.5,
                     priors=_beta_priors())
        config = ESSConfig(n_iterations=1000, mask=self.MASK, seed=13, verbose=False)
        result = build_sampler('ess', gp, config).run()

        out_path = get_output_dir("sampling") / "ess_beta_trace.png"
        plot_trace(result, output_path=out_path)
        assert out_path.exists()
