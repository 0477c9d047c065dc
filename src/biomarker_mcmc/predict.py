"""
Biomarker MCMC — Predictor
==========================
Evaluate a fitted model's mean trajectory on a grid of time/covariate values.

The mean is computed by ``model.mean``, the method the likelihood calls
while sampling, so predicted and fitted curves are the same function.

Usage:
    grid = make_grid(data, times=np.linspace(0, 12, 49), dose=[0, 15, 30, 45, 60])
    curve = predict_mean(model, samples, grid)            # posterior means
    band = predict_band(model, samples, grid, n_draws=500, seed=1)

License: MIT
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional, Sequence, Union

from .data import LongitudinalData, TIME_COLUMN
from .posterior import PosteriorSampleSet


def make_grid(data: LongitudinalData,
              times: Sequence[float],
              **levels: Sequence[float]) -> pd.DataFrame:
    """Cartesian grid over times and the given covariate levels.

    Covariates not listed in ``levels`` are held at their sample mean.
    """
    axes = {TIME_COLUMN: np.asarray(times, dtype=float)}
    for name in data.covariate_names:
        if name in levels:
            axes[name] = np.asarray(levels[name], dtype=float)
    unknown = set(levels) - set(data.covariate_names)
    if unknown:
        raise KeyError(f"Unknown covariates: {sorted(unknown)}")

    index = pd.MultiIndex.from_product(list(axes.values()), names=list(axes.keys()))
    grid = index.to_frame(index=False)
    for name in data.covariate_names:
        if name not in grid.columns:
            grid[name] = float(np.mean(data.covariate(name)))
    return grid


def _grid_arrays(model, grid: pd.DataFrame):
    missing = [c for c in (TIME_COLUMN, *model.covariates) if c not in grid.columns]
    if missing:
        raise KeyError(f"Grid is missing columns: {missing}")
    return (grid[TIME_COLUMN].to_numpy(dtype=float),
            grid[list(model.covariates)].to_numpy(dtype=float))


def _subject_index(n: int, subject, data: Optional[LongitudinalData]):
    if subject is None:
        return None
    if data is None:
        raise ValueError("data is required to look up a subject's random intercept")
    return np.full(n, data.subject_position(subject), dtype=np.intp)


def predict_mean(model,
                 estimates: Union[Dict, PosteriorSampleSet],
                 grid: pd.DataFrame,
                 subject=None,
                 data: Optional[LongitudinalData] = None) -> pd.DataFrame:
    """Mean function at each grid row.

    Args:
        model: the model variant that was fitted (LinearQuadraticModel, ...)
        estimates: ParameterVector, or a PosteriorSampleSet whose posterior
            means are used
        grid: DataFrame with the time column and every model covariate
        subject: original subject id to include its random intercept
            (population-level curve when None)
        data: the fitted data, needed to map ``subject`` to its index

    Returns:
        Copy of ``grid`` with a 'mean' column
    """
    params = estimates.posterior_means() if isinstance(estimates, PosteriorSampleSet) else estimates
    time, covariates = _grid_arrays(model, grid)
    out = grid.copy()
    out['mean'] = model.mean(params, time, covariates, _subject_index(len(grid), subject, data))
    return out


def predict_band(model,
                 samples: PosteriorSampleSet,
                 grid: pd.DataFrame,
                 credible_interval: float = 0.95,
                 n_draws: Optional[int] = None,
                 seed: Optional[int] = None,
                 subject=None,
                 data: Optional[LongitudinalData] = None) -> pd.DataFrame:
    """Pointwise posterior mean and equal-tailed credible band of the mean curve.

    Args:
        n_draws: evaluate a random subset of draws (all draws when None)
        seed: seed for the subset selection

    Returns:
        Copy of ``grid`` with 'mean', 'lower' and 'upper' columns
    """
    if len(samples) == 0:
        raise ValueError("Sample set holds no draws")
    rows = np.arange(len(samples))
    if n_draws is not None and n_draws < len(rows):
        rows = np.sort(np.random.default_rng(seed).choice(rows, size=n_draws, replace=False))

    time, covariates = _grid_arrays(model, grid)
    subject_index = _subject_index(len(grid), subject, data)
    curves = np.vstack([
        model.mean(params, time, covariates, subject_index)
        for params in samples.iter_parameter_vectors(rows)
    ])

    alpha = (1.0 - credible_interval) / 2.0
    out = grid.copy()
    out['mean'] = curves.mean(axis=0)
    out['lower'] = np.quantile(curves, alpha, axis=0)
    out['upper'] = np.quantile(curves, 1.0 - alpha, axis=0)
    return out
