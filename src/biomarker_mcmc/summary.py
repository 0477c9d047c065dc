"""
Posterior summaries and convergence diagnostics.

Thin layer over ArviZ: the sample set is converted to InferenceData and
summarised with ``az.summary`` (mean, sd, HDI, split R-hat, bulk ESS).
Sampler counters (acceptance, degeneracies) are reported alongside.
"""

import arviz as az
import numpy as np
import pandas as pd
from typing import Dict, Optional, Sequence

from .posterior import PosteriorSampleSet


def summarize_posterior(samples: PosteriorSampleSet,
                        credible_interval: float = 0.95,
                        var_names: Optional[Sequence[str]] = None) -> Dict[str, Dict]:
    """Generate summary statistics from the posterior.

    Args:
        samples: PosteriorSampleSet from ChainManager.run
        credible_interval: HDI width (0.95 = 95% interval)
        var_names: quantities to summarise (all by default)

    Returns:
        Dict keyed by table column with mean, median, std, ci_lower,
        ci_upper, rhat and ess
    """
    if len(samples) == 0:
        raise ValueError("Sample set holds no draws")

    idata = samples.to_inference_data()
    names = list(var_names) if var_names is not None else samples.names
    az_summary = az.summary(idata, var_names=names, hdi_prob=credible_interval,
                            round_to="none")
    alpha = 1 - credible_interval
    lower_col = f'hdi_{100 * alpha / 2:g}%'
    upper_col = f'hdi_{100 * (1 - alpha / 2):g}%'
    medians = samples.frame.median(numeric_only=True)

    summary = {}
    for label in az_summary.index:
        row = az_summary.loc[label]
        summary[label] = {
            'mean': float(row['mean']),
            'median': float(medians[label]) if label in medians.index else float('nan'),
            'std': float(row['sd']),
            'ci_lower': float(row[lower_col]),
            'ci_upper': float(row[upper_col]),
            'rhat': float(row['r_hat']) if 'r_hat' in az_summary.columns else None,
            'ess': float(row['ess_bulk']) if 'ess_bulk' in az_summary.columns else None,
        }
    return summary


def check_convergence(samples: PosteriorSampleSet,
                      rhat_threshold: float = 1.01,
                      var_names: Optional[Sequence[str]] = None,
                      verbose: bool = True) -> Dict[str, Dict]:
    """Check R-hat and effective sample size of every quantity.

    R-hat needs at least two chains; with one chain only ESS is reported.

    Returns:
        Dict keyed by table column with 'rhat', 'ess' and 'converged'
    """
    idata = samples.to_inference_data()
    names = list(var_names) if var_names is not None else samples.names
    total = len(samples)

    ess = az.ess(idata, var_names=names)
    rhat = az.rhat(idata, var_names=names) if samples.n_chains > 1 else None

    if verbose:
        print("\n[Diagnostics] Convergence:")
        print(f"  R-hat target < {rhat_threshold}, {samples.n_chains} chains, {total} draws")

    results = {}
    for name in names:
        shape = samples.shapes[name]
        ess_values = np.atleast_1d(ess[name].values).ravel()
        rhat_values = (np.atleast_1d(rhat[name].values).ravel()
                       if rhat is not None else np.full(ess_values.shape, np.nan))
        labels = [name] if not shape else [f"{name}[{i}]" for i in range(ess_values.size)]

        for label, r, e in zip(labels, rhat_values, ess_values):
            converged = bool(np.isnan(r) or r < rhat_threshold)
            results[label] = {'rhat': float(r), 'ess': float(e), 'converged': converged}
            if verbose:
                status = "✓" if converged else "✗ WARNING"
                print(f"    {label}: R-hat={r:.4f} ESS={e:.0f} ({e / total:.1%}) {status}")

    return results


def sampler_report(samples: PosteriorSampleSet) -> pd.DataFrame:
    """Per-chain, per-block acceptance and rejection counters as a table."""
    rows = []
    for stats in samples.chain_stats:
        for name, counters in stats.as_dict().items():
            rows.append({'chain': stats.chain_id, 'parameter': name,
                         'init_resamples': stats.init_resamples, **counters})
    return pd.DataFrame(rows)
