"""
Reporting utilities for sampler output.

- Run summary printed at the end of every verbose run
- Per-parameter summary tables, optionally against known true values
- Trace plots for convergence assessment
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, List, Dict, Tuple, TYPE_CHECKING

import numpy as np
import matplotlib.pyplot as plt

if TYPE_CHECKING:
    from gp_pipe.sampling.base import SamplerResult


def print_run_summary(result: 'SamplerResult') -> None:
    """
    Print the chain settings and acceptance statistics of a finished run.
    """
    d = result.diagnostics
    print(
        f"Number of iterations = {d.get('n_iterations')}, "
        f"Thinning = {d.get('thin')}, Burn-in = {d.get('burn_in')}"
    )
    if 'step_size' in d:
        print(
            f"Step size = {d['step_size']}, "
            f"Average number of leapfrog steps = {d['mean_leapfrog_steps']:.2f}"
        )
    print(f"Number of function calls: {result.n_calls}")
    print(f"Acceptance rate: {result.acceptance_rate:.4f}")


def check_convergence_warnings(result: 'SamplerResult') -> Dict[str, any]:
    """
    Check for potential convergence issues in sampling results.

    Returns
    -------
    dict
        - 'has_warnings': bool, True if any warnings detected
        - 'warnings': list of warning strings
        - 'zero_variance_params': parameter names whose chain never moved
    """
    warnings_list = []
    zero_variance_params = []

    for name in result.param_names:
        if np.var(result.get_chain(name)) < 1e-12:
            zero_variance_params.append(name)
            warnings_list.append(f"Parameter '{name}' has zero variance (chain not moving)")

    if result.n_samples < 100:
        warnings_list.append(
            f"Small sample size ({result.n_samples}) - results may be unreliable"
        )

    return {
        'has_warnings': len(warnings_list) > 0,
        'warnings': warnings_list,
        'zero_variance_params': zero_variance_params,
    }


def plot_trace(
    result: 'SamplerResult',
    params: Optional[List[str]] = None,
    true_values: Optional[Dict[str, float]] = None,
    figsize: Tuple[float, float] = (12, 3),
    output_path: Optional[Path] = None,
) -> plt.Figure:
    """
    Create trace plots for sampled parameters.

    Parameters
    ----------
    result : SamplerResult
        Sampling results.
    params : list of str, optional
        Parameters to plot. If None, plots all hyperparameters (latent
        ``eta[i]`` columns of LSS runs are skipped).
    true_values : dict, optional
        True values, drawn as horizontal reference lines.
    figsize : tuple
        Figure size per parameter (width, height).
    output_path : Path, optional
        If provided, save figure to this path.

    Examples
    --------
    >>> from gp_pipe.sampling.diagnostics import plot_trace
    >>> fig = plot_trace(result, output_path='traces.png')
    """
    if params is None:
        params = [p for p in result.param_names if not p.startswith('eta[')]

    n_params = len(params)
    fig, axes = plt.subplots(n_params, 1, figsize=(figsize[0], figsize[1] * n_params))

    if n_params == 1:
        axes = [axes]

    for ax, param in zip(axes, params):
        chain = result.get_chain(param)
        ax.plot(chain, alpha=0.7, linewidth=0.5)
        ax.set_ylabel(param)
        mean_val = np.mean(chain)
        ax.axhline(mean_val, color='red', linestyle='--', alpha=0.7, label=f'Mean: {mean_val:.3f}')
        if true_values and param in true_values:
            ax.axhline(true_values[param], color='black', alpha=0.7, label='True')
        ax.legend(loc='upper right', fontsize=8)

    axes[-1].set_xlabel('Sample')
    backend = result.metadata.get('backend', '')
    fig.suptitle(f'Trace Plots ({backend})' if backend else 'Trace Plots', fontsize=14)

    conv = check_convergence_warnings(result)
    if conv['zero_variance_params']:
        fig.text(
            0.5, 0.01,
            f"Zero variance in: {', '.join(conv['zero_variance_params'])}",
            ha='center', va='bottom', color='red', fontsize=10,
        )

    plt.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=150, bbox_inches='tight')

    return fig


def print_summary(result: 'SamplerResult', true_values: Optional[Dict[str, float]] = None) -> None:
    """
    Print a per-parameter summary of the sampling results.

    Parameters
    ----------
    result : SamplerResult
        Sampling results.
    true_values : dict, optional
        True parameter values for comparison.

    Examples
    --------
    >>> from gp_pipe.sampling.diagnostics import print_summary
    >>> print_summary(result, true_values=synth.true_params)
    """
    summary = result.get_summary()

    print("=" * 70)
    print("SAMPLING SUMMARY")
    print("=" * 70)
    print(f"Sampler: {result.metadata.get('backend', 'unknown')}")
    print(f"N samples: {result.n_samples}")
    print(f"N params: {result.n_params}")
    print(f"Acceptance: {result.acceptance_rate:.1%}")
    print(f"Function calls: {result.n_calls}")

    print("-" * 70)
    print(f"{'Parameter':<15} {'Median':>12} {'Std':>12} {'[16%, 84%]':>20}", end='')
    if true_values:
        print(f" {'True':>12} {'Error':>10}")
    else:
        print()
    print("-" * 70)

    for name in result.param_names:
        if name.startswith('eta['):
            continue
        s = summary[name]
        median = s['quantiles'][0.5]
        q16 = s['quantiles'][0.16]
        q84 = s['quantiles'][0.84]

        print(f"{name:<15} {median:>12.4f} {s['std']:>12.4f} [{q16:>8.4f}, {q84:>8.4f}]", end='')

        if true_values and name in true_values:
            true_val = true_values[name]
            print(f" {true_val:>12.4f} {median - true_val:>+10.4f}")
        else:
            print()

    print("=" * 70)
