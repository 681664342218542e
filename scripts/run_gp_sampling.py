#!/usr/bin/env python3

"""
Sample GP hyperparameters on synthetic data from a YAML run configuration.

Draws a synthetic data set with known hyperparameters, builds the GP model
described in the config, runs the configured sampler and writes a summary,
the trimmed trace and trace plots.

Usage
-----
    python scripts/run_gp_sampling.py configs/gp_regression.yaml
    python scripts/run_gp_sampling.py configs/gp_regression.yaml --sampler ess
    python scripts/run_gp_sampling.py configs/gp_latent.yaml --progress --out out/lss

YAML layout
-----------
    sampler: hmc
    sampler_config: {n_iterations: 2000, burn_in: 200, step_size: 0.05}
    model:
      type: exact            # or 'latent'
      kernel: se             # or 'matern32'
      mean: const            # or 'zero'
      likelihood: gaussian   # latent models: gaussian, poisson, probit
      init: {log_ell: 0.0, log_sf: 0.0, log_noise: -1.0}
    priors:
      log_ell: {type: gaussian, mu: 0.0, sigma: 1.0}
    data:
      n_points: 30
      x_max: 5.0
      seed: 42
      true_params: {beta: 0.5, log_ell: 0.0, log_sf: 0.0, log_noise: -1.5}
    output:
      dir: out/gp_sampling
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np
import matplotlib

matplotlib.use('Agg')

from gp_pipe.gp import GPExact, GPLatent
from gp_pipe.kernels import SquaredExponential, Matern32
from gp_pipe.likelihood import GaussianLikelihood, PoissonLikelihood, BernoulliProbit
from gp_pipe.means import MeanConst, MeanZero
from gp_pipe.model import TargetModel
from gp_pipe.priors import PriorDict
from gp_pipe.synthetic import SyntheticGP
from gp_pipe.sampling import SamplingYAMLConfig, build_sampler
from gp_pipe.sampling.configs import CONFIG_TYPES
from gp_pipe.sampling.diagnostics import plot_trace, print_summary

KERNELS = {'se': SquaredExponential, 'matern32': Matern32}
LIKELIHOODS = {
    'gaussian': GaussianLikelihood,
    'poisson': PoissonLikelihood,
    'probit': BernoulliProbit,
}


def parse_args() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed arguments with fields: config, sampler, seed, progress, out.
    """
    parser = argparse.ArgumentParser(
        description='Sample GP hyperparameters on synthetic data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        'config',
        type=Path,
        help='YAML run configuration',
    )
    parser.add_argument(
        '--sampler',
        choices=sorted(CONFIG_TYPES),
        default=None,
        help='Override the sampler named in the config',
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Override the sampler seed',
    )
    parser.add_argument(
        '--progress',
        action='store_true',
        help='Show a progress bar',
    )
    parser.add_argument(
        '--out',
        type=Path,
        default=None,
        help='Output directory (overrides output.dir)',
    )
    return parser.parse_args()


def build_model(
    model_spec: Dict[str, Any],
    priors: PriorDict,
    x: np.ndarray,
    y: np.ndarray,
) -> TargetModel:
    """Build the GP target model described by the ``model`` section."""
    init = dict(model_spec.get('init', {}))

    kernel_name = model_spec.get('kernel', 'se').lower()
    if kernel_name not in KERNELS:
        raise ValueError(f"Unknown kernel '{kernel_name}'. Available: {sorted(KERNELS)}")
    kernel = KERNELS[kernel_name](init.get('log_ell', 0.0), init.get('log_sf', 0.0))

    if model_spec.get('mean', 'const').lower() == 'zero':
        mean = MeanZero()
    else:
        mean = MeanConst(init.get('beta', 0.0))

    model_type = model_spec.get('type', 'exact').lower()
    if model_type == 'exact':
        return GPExact(x, y, mean, kernel, log_noise=init.get('log_noise', -1.0), priors=priors)
    if model_type == 'latent':
        lik_name = model_spec.get('likelihood', 'gaussian').lower()
        if lik_name not in LIKELIHOODS:
            raise ValueError(
                f"Unknown likelihood '{lik_name}'. Available: {sorted(LIKELIHOODS)}"
            )
        if lik_name == 'gaussian':
            likelihood = GaussianLikelihood(init.get('log_lik_noise', -1.0))
        else:
            likelihood = LIKELIHOODS[lik_name]()
        return GPLatent(
            x, y, mean, kernel, likelihood, priors=priors,
            jitter=model_spec.get('jitter', 1e-6),
        )
    raise ValueError(f"Unknown model type '{model_type}'. Use 'exact' or 'latent'")


def main() -> int:
    """
    Main entry point.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure).
    """
    args = parse_args()

    config = SamplingYAMLConfig.from_yaml(args.config)
    if args.sampler is not None:
        config.sampler = args.sampler
    if args.seed is not None:
        config.sampler_config['seed'] = args.seed
    if args.progress:
        config.sampler_config['progress'] = True

    data_spec = config.data
    true_params = data_spec.get('true_params', {})
    synth = SyntheticGP(true_params, kernel_type=config.model.get('kernel', 'se').lower(),
                        seed=data_spec.get('seed'))
    x = np.linspace(0.0, data_spec.get('x_max', 5.0), data_spec.get('n_points', 30))
    likelihood = 'gaussian'
    if config.model.get('type', 'exact').lower() == 'latent':
        likelihood = config.model.get('likelihood', 'gaussian').lower()
    y = synth.generate(x, likelihood=likelihood)

    model = build_model(config.model, config.get_prior_dict(), x, y)
    sampler_config = config.get_sampler_config()

    print(f"Sampler: {config.sampler}")
    print(f"Parameters: {model.param_names(sampler_config.mask)}")

    try:
        result = build_sampler(config.sampler, model, sampler_config).run()
    except (ValueError, TypeError, RuntimeError) as err:
        print(f"Sampling failed: {err}", file=sys.stderr)
        return 1

    print_summary(result, true_values=true_params)

    out_dir = args.out or Path(config.output.get('dir', 'out/gp_sampling'))
    out_dir.mkdir(parents=True, exist_ok=True)

    np.savez(
        out_dir / f'{config.sampler}_trace.npz',
        samples=result.samples,
        log_prob=result.log_prob,
        param_names=np.array(result.param_names),
    )
    plot_trace(result, true_values=true_params,
               output_path=out_dir / f'{config.sampler}_trace.png')
    print(f"Outputs written to {out_dir}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
