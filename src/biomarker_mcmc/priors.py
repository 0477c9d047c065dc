"""
Biomarker MCMC — Prior Distributions & Proposals
=================================================
Log-densities for parameter priors and the random-walk proposal used by
Metropolis blocks.

Hyperparameters are either numbers or the *name* of another parameter, which
is looked up in the current ParameterVector at evaluation time. This is how
hierarchical priors are declared:

    b0 ~ Normal(0, precision='tau_b')     # one intercept per subject
    tau_b ~ Gamma(0.001, 0.001)

Densities are written with numpy/scipy.special directly instead of
scipy.stats because they are evaluated several times per sweep.

License: MIT
"""

import numpy as np
from scipy.special import gammaln
from typing import Dict, Optional, Union

Hyper = Union[float, str]

LOG_2PI = float(np.log(2.0 * np.pi))


def _resolve(value: Hyper, params: Optional[Dict]) -> float:
    """Return a numeric hyperparameter, looking up parameter names in params."""
    if isinstance(value, str):
        if params is None or value not in params:
            raise KeyError(f"Hyperparameter '{value}' is not in the parameter vector")
        return params[value]
    return value


# ═══════════════════════════════════════════════════════════════
# Priors
# ═══════════════════════════════════════════════════════════════

class Prior:
    """Base class for prior distributions.

    Subclasses implement ``_logpdf`` on arrays; ``logpdf`` sums over all
    components of vector parameters and returns ``-inf`` outside support.
    """

    def in_support(self, value) -> bool:
        return bool(np.all(np.isfinite(value)))

    def logpdf(self, value, params: Optional[Dict] = None) -> float:
        if not self.in_support(value):
            return -np.inf
        return float(np.sum(self._logpdf(np.asarray(value, dtype=float), params)))

    def _logpdf(self, value: np.ndarray, params: Optional[Dict]) -> np.ndarray:
        raise NotImplementedError

    def hyperparameter_names(self):
        """Names of other parameters this prior depends on."""
        return [v for v in vars(self).values() if isinstance(v, str)]


class Normal(Prior):
    """Normal prior parameterised by sigma or by precision (JAGS style)."""

    def __init__(self, mu: Hyper = 0.0, sigma: Optional[Hyper] = None,
                 precision: Optional[Hyper] = None):
        if (sigma is None) == (precision is None):
            raise ValueError("Normal prior needs exactly one of sigma or precision")
        self.mu = mu
        self.sigma = sigma
        self.precision = precision

    def _precision(self, params):
        if self.precision is not None:
            return _resolve(self.precision, params)
        sigma = _resolve(self.sigma, params)
        return 1.0 / (sigma * sigma)

    def _logpdf(self, value, params):
        mu = _resolve(self.mu, params)
        tau = self._precision(params)
        if not np.all(np.asarray(tau) > 0):
            return np.full(value.shape, -np.inf)
        return 0.5 * (np.log(tau) - LOG_2PI) - 0.5 * tau * (value - mu) ** 2

    def __repr__(self):
        scale = f"precision={self.precision!r}" if self.precision is not None else f"sigma={self.sigma!r}"
        return f"Normal(mu={self.mu!r}, {scale})"


class Gamma(Prior):
    """Gamma(shape, rate) prior; support is the positive reals."""

    def __init__(self, shape: Hyper, rate: Hyper):
        self.shape = shape
        self.rate = rate

    def in_support(self, value) -> bool:
        value = np.asarray(value, dtype=float)
        return bool(np.all(np.isfinite(value)) and np.all(value > 0))

    def _logpdf(self, value, params):
        a = _resolve(self.shape, params)
        b = _resolve(self.rate, params)
        return a * np.log(b) - gammaln(a) + (a - 1.0) * np.log(value) - b * value

    def __repr__(self):
        return f"Gamma(shape={self.shape!r}, rate={self.rate!r})"


class Uniform(Prior):
    """Uniform(lower, upper) prior with open bounds."""

    def __init__(self, lower: float, upper: float):
        if not lower < upper:
            raise ValueError(f"Uniform prior needs lower < upper, got ({lower}, {upper})")
        self.lower = lower
        self.upper = upper

    def in_support(self, value) -> bool:
        value = np.asarray(value, dtype=float)
        return bool(np.all(value > self.lower) and np.all(value < self.upper))

    def _logpdf(self, value, params):
        return np.full(value.shape, -np.log(self.upper - self.lower))

    def __repr__(self):
        return f"Uniform(lower={self.lower!r}, upper={self.upper!r})"


class HalfNormal(Prior):
    """Half-normal prior on the non-negative reals."""

    def __init__(self, sigma: Hyper):
        self.sigma = sigma

    def in_support(self, value) -> bool:
        value = np.asarray(value, dtype=float)
        return bool(np.all(np.isfinite(value)) and np.all(value >= 0))

    def _logpdf(self, value, params):
        sigma = _resolve(self.sigma, params)
        return 0.5 * (np.log(2.0 / np.pi)) - np.log(sigma) - 0.5 * (value / sigma) ** 2

    def __repr__(self):
        return f"HalfNormal(sigma={self.sigma!r})"


# ═══════════════════════════════════════════════════════════════
# Proposals
# ═══════════════════════════════════════════════════════════════

class NormalProposal:
    """Symmetric Gaussian random-walk proposal.

    ``scale`` is the standard deviation, either a scalar or one value per
    component of a vector parameter.
    """

    def __call__(self, current, scale, rng: np.random.Generator):
        if np.ndim(current) == 0:
            return float(current + scale * rng.standard_normal())
        current = np.asarray(current, dtype=float)
        return current + scale * rng.standard_normal(current.shape)

    def __repr__(self):
        return "NormalProposal()"
