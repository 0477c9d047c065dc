"""
Biomarker MCMC — Dose-Response Model Variants
==============================================
Hierarchical Normal regression models for serum biomarker trajectories.

Both variants share the same random-effects skeleton:

    y_ij   ~ Normal(mu_ij, tau_e)                   (precision)
    mu_ij  = f(t_ij, x_ij; theta) + b0_j
    b0_j   ~ Normal(0, tau_b)
    tau_e, tau_b ~ Gamma(0.001, 0.001)

and differ only in the fixed-effect mean f:

    LinearQuadraticModel:
        f = beta' [1, t, t^2, dose*t, dose*t^2, dose, male, bmi, chol, age]

    LogisticGrowthModel (four-parameter logistic in time):
        f = beta' [1, male, bmi, chol, age]
            + (asym + asym_dose * dose) / (1 + exp(-k * (t - xmid)))

The mean function is a method of the model object and is called both by
the likelihood during sampling and by the predictor afterwards, so fitted
and predicted trajectories use the same numeric form.

Sweep order (fixed):
    linear-quadratic: beta, b0, tau_e, tau_b
    logistic:         beta, asym, asym_dose, xmid, k, b0, tau_e, tau_b

License: MIT
"""

import numpy as np
from scipy.special import expit
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .conjugate import (
    sample_linear_coefficients,
    sample_precision,
    sample_random_intercepts,
)
from .data import DEFAULT_COVARIATES, LongitudinalData
from .exceptions import SetupError
from .model_spec import (
    Conjugate,
    MetropolisBlock,
    ModelSpec,
    ModelSpecBuilder,
    ParameterVector,
)
from .priors import LOG_2PI, Gamma, Normal, Uniform


def logistic_curve(t, k, xmid):
    """Logistic link ``1 / (1 + exp(-k * (t - xmid)))``, overflow-safe."""
    return expit(k * (np.asarray(t, dtype=float) - xmid))


def normal_log_likelihood(residuals: np.ndarray, tau_e: float) -> float:
    """Sum of Normal log-densities of residuals with precision tau_e."""
    if not tau_e > 0:
        return -np.inf
    n = residuals.size
    return 0.5 * n * (np.log(tau_e) - LOG_2PI) - 0.5 * tau_e * float(np.dot(residuals, residuals))


# ═══════════════════════════════════════════════════════════════
# Shared hierarchical skeleton
# ═══════════════════════════════════════════════════════════════

class HierarchicalNormalModel:
    """Random-intercept Normal regression; subclasses supply the fixed-effect mean."""

    name = 'hierarchical_normal'

    def __init__(self,
                 covariates: Sequence[str] = DEFAULT_COVARIATES,
                 coef_prior_precision: float = 1e-4,
                 precision_prior: Tuple[float, float] = (0.001, 0.001)):
        """
        Args:
            covariates: covariate columns, in the order they appear in the data
            coef_prior_precision: precision of the Normal(0, .) priors on
                regression coefficients
            precision_prior: (shape, rate) of the Gamma priors on tau_e and tau_b
        """
        self.covariates = tuple(covariates)
        self.coef_prior_precision = coef_prior_precision
        self.precision_prior = precision_prior

    # ── mean function ─────────────────────────────────────────

    def fixed_mean(self, params: ParameterVector, time: np.ndarray,
                   covariates: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def mean(self, params: ParameterVector, time, covariates,
             subject_index: Optional[np.ndarray] = None) -> np.ndarray:
        """Model-implied mean; random intercepts added when subject_index is given."""
        time = np.asarray(time, dtype=float)
        covariates = np.asarray(covariates, dtype=float).reshape(time.shape[0], len(self.covariates))
        mu = self.fixed_mean(params, time, covariates)
        if subject_index is not None:
            mu = mu + np.asarray(params['b0'])[subject_index]
        return mu

    def residuals(self, params: ParameterVector, data: LongitudinalData) -> np.ndarray:
        return data.response - self.mean(params, data.time, data.covariates, data.subject_index)

    def log_likelihood(self, params: ParameterVector, data: LongitudinalData) -> float:
        return normal_log_likelihood(self.residuals(params, data), params['tau_e'])

    def covariate_column(self, covariates: np.ndarray, name: str) -> np.ndarray:
        return covariates[:, self.covariates.index(name)]

    def check_data(self, data: LongitudinalData):
        if tuple(data.covariate_names) != self.covariates:
            raise SetupError(
                f"Data covariates {data.covariate_names} do not match model covariates {self.covariates}")

    # ── conjugate blocks shared by every variant ──────────────

    def _sample_b0(self, params, data, rng):
        partial = data.response - self.fixed_mean(params, data.time, data.covariates)
        return sample_random_intercepts(partial, data.subject_index, data.n_subjects,
                                        params['tau_e'], params['tau_b'], rng)

    def _sample_tau_e(self, params, data, rng):
        shape, rate = self.precision_prior
        return sample_precision(shape, rate, self.residuals(params, data), rng)

    def _sample_tau_b(self, params, data, rng):
        shape, rate = self.precision_prior
        return sample_precision(shape, rate, np.asarray(params['b0']), rng)

    def _add_random_effects(self, builder: ModelSpecBuilder, n_subjects: int):
        shape, rate = self.precision_prior
        (builder
         .parameter('b0', prior=Normal(0.0, precision='tau_b'),
                    update=Conjugate(self._sample_b0),
                    init=lambda rng: rng.normal(0.0, 1.0, size=n_subjects),
                    shape=n_subjects)
         .parameter('tau_e', prior=Gamma(shape, rate),
                    update=Conjugate(self._sample_tau_e),
                    init=lambda rng: rng.uniform(0.0, 1.0))
         .parameter('tau_b', prior=Gamma(shape, rate),
                    update=Conjugate(self._sample_tau_b),
                    init=lambda rng: rng.uniform(0.0, 1.0))
         .derived('sigma_e', lambda p: 1.0 / np.sqrt(p['tau_e']))
         .derived('sigma_b', lambda p: 1.0 / np.sqrt(p['tau_b'])))

    def build_spec(self, data: LongitudinalData) -> ModelSpec:
        raise NotImplementedError


# ═══════════════════════════════════════════════════════════════
# Linear-quadratic in time
# ═══════════════════════════════════════════════════════════════

class LinearQuadraticModel(HierarchicalNormalModel):
    """Quadratic time trend with dose-by-time interactions and linear covariates."""

    name = 'linear_quadratic'

    def __init__(self,
                 covariates: Sequence[str] = DEFAULT_COVARIATES,
                 time_varying: Sequence[str] = ('dose',),
                 coefficient_update: str = 'conjugate',
                 proposal_scale: Union[float, Sequence[float]] = 0.1,
                 **kwargs):
        """
        Args:
            covariates: covariates entering linearly
            time_varying: covariates that also interact with t and t^2
            coefficient_update: 'conjugate' (Gibbs) or 'metropolis' for beta
            proposal_scale: random-walk scale for beta when coefficient_update
                is 'metropolis'
        """
        super().__init__(covariates=covariates, **kwargs)
        missing = [c for c in time_varying if c not in self.covariates]
        if missing:
            raise SetupError(f"Time-varying covariates not in covariates: {missing}")
        if coefficient_update not in ('conjugate', 'metropolis'):
            raise SetupError(f"Unknown coefficient_update: {coefficient_update!r}")
        self.time_varying = tuple(time_varying)
        self.coefficient_update = coefficient_update
        self.proposal_scale = proposal_scale

    @property
    def coefficient_names(self) -> List[str]:
        names = ['intercept', 'month', 'month^2']
        for c in self.time_varying:
            names += [f'{c}:month', f'{c}:month^2']
        return names + list(self.covariates)

    def design_matrix(self, time: np.ndarray, covariates: np.ndarray) -> np.ndarray:
        columns = [np.ones_like(time), time, time ** 2]
        for c in self.time_varying:
            x = self.covariate_column(covariates, c)
            columns += [x * time, x * time ** 2]
        return np.column_stack(columns + [covariates[:, j] for j in range(covariates.shape[1])])

    def fixed_mean(self, params, time, covariates):
        return self.design_matrix(time, covariates) @ np.asarray(params['beta'])

    def _sample_beta(self, params, data, rng):
        partial = data.response - np.asarray(params['b0'])[data.subject_index]
        return sample_linear_coefficients(
            self.design_matrix(data.time, data.covariates), partial,
            params['tau_e'], 0.0, self.coef_prior_precision, rng)

    def build_spec(self, data: LongitudinalData) -> ModelSpec:
        self.check_data(data)
        p = len(self.coefficient_names)
        if self.coefficient_update == 'conjugate':
            update = Conjugate(self._sample_beta)
        else:
            update = MetropolisBlock(scale=np.broadcast_to(
                np.asarray(self.proposal_scale, dtype=float), (p,)).copy())

        builder = (ModelSpecBuilder(self.name)
                   .parameter('beta', prior=Normal(0.0, precision=self.coef_prior_precision),
                              update=update,
                              init=lambda rng: rng.normal(0.0, 1.0, size=p),
                              shape=p))
        self._add_random_effects(builder, data.n_subjects)
        return builder.likelihood(self.log_likelihood).build()


# ═══════════════════════════════════════════════════════════════
# Four-parameter logistic in time
# ═══════════════════════════════════════════════════════════════

DEFAULT_LOGISTIC_SCALES = {'asym': 5.0, 'asym_dose': 0.1, 'xmid': 0.5, 'k': 0.1}


class LogisticGrowthModel(HierarchicalNormalModel):
    """Baseline level plus a dose-dependent logistic rise over time."""

    name = 'logistic_growth'

    def __init__(self,
                 covariates: Sequence[str] = DEFAULT_COVARIATES,
                 dose_column: str = 'dose',
                 xmid_bounds: Tuple[float, float] = (0.0, 24.0),
                 k_prior: Tuple[float, float] = (1.0, 1.0),
                 proposal_scales: Optional[Dict[str, float]] = None,
                 **kwargs):
        """
        Args:
            covariates: all covariate columns; every one except dose_column
                enters the baseline linearly
            dose_column: covariate that scales the asymptote
            xmid_bounds: Uniform prior bounds on the time midpoint
            k_prior: (shape, rate) of the Gamma prior on the growth rate
            proposal_scales: random-walk scales for asym, asym_dose, xmid, k
        """
        super().__init__(covariates=covariates, **kwargs)
        if dose_column not in self.covariates:
            raise SetupError(f"Dose column '{dose_column}' not in covariates {self.covariates}")
        self.dose_column = dose_column
        self.xmid_bounds = tuple(xmid_bounds)
        self.k_prior = tuple(k_prior)
        self.proposal_scales = dict(DEFAULT_LOGISTIC_SCALES)
        self.proposal_scales.update(proposal_scales or {})

    @property
    def linear_covariates(self) -> Tuple[str, ...]:
        return tuple(c for c in self.covariates if c != self.dose_column)

    @property
    def coefficient_names(self) -> List[str]:
        return ['intercept'] + list(self.linear_covariates)

    def design_matrix(self, time: np.ndarray, covariates: np.ndarray) -> np.ndarray:
        columns = [np.ones_like(time)]
        columns += [self.covariate_column(covariates, c) for c in self.linear_covariates]
        return np.column_stack(columns)

    def growth(self, params, time, covariates) -> np.ndarray:
        dose = self.covariate_column(covariates, self.dose_column)
        amplitude = params['asym'] + params['asym_dose'] * dose
        return amplitude * logistic_curve(time, params['k'], params['xmid'])

    def fixed_mean(self, params, time, covariates):
        baseline = self.design_matrix(time, covariates) @ np.asarray(params['beta'])
        return baseline + self.growth(params, time, covariates)

    def _sample_beta(self, params, data, rng):
        partial = (data.response
                   - np.asarray(params['b0'])[data.subject_index]
                   - self.growth(params, data.time, data.covariates))
        return sample_linear_coefficients(
            self.design_matrix(data.time, data.covariates), partial,
            params['tau_e'], 0.0, self.coef_prior_precision, rng)

    def build_spec(self, data: LongitudinalData) -> ModelSpec:
        self.check_data(data)
        p = len(self.coefficient_names)
        lo, hi = self.xmid_bounds
        scales = self.proposal_scales

        builder = (ModelSpecBuilder(self.name)
                   .parameter('beta', prior=Normal(0.0, precision=self.coef_prior_precision),
                              update=Conjugate(self._sample_beta),
                              init=lambda rng: rng.normal(0.0, 1.0, size=p),
                              shape=p)
                   .parameter('asym', prior=Normal(0.0, precision=self.coef_prior_precision),
                              update=MetropolisBlock(scale=scales['asym']),
                              init=lambda rng: rng.normal(0.0, 1.0))
                   .parameter('asym_dose', prior=Normal(0.0, precision=self.coef_prior_precision),
                              update=MetropolisBlock(scale=scales['asym_dose']),
                              init=lambda rng: rng.normal(0.0, 0.1))
                   .parameter('xmid', prior=Uniform(lo, hi),
                              update=MetropolisBlock(scale=scales['xmid']),
                              init=lambda rng: rng.uniform(lo, hi))
                   .parameter('k', prior=Gamma(*self.k_prior),
                              update=MetropolisBlock(scale=scales['k']),
                              init=lambda rng: rng.uniform(0.0, 1.0)))
        self._add_random_effects(builder, data.n_subjects)
        return builder.likelihood(self.log_likelihood).build()
