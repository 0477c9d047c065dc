"""
Biomarker MCMC — Conjugate Full Conditionals
=============================================
Closed-form full-conditional distributions for the Gibbs blocks of a
Normal-likelihood hierarchical regression.

Model skeleton (precision parameterisation):

    y_ij  ~ Normal(m_ij + b_j, tau_e)
    b_j   ~ Normal(0, tau_b)
    beta  ~ Normal(beta_0, diag(lambda_0))        (m_ij = x_ij' beta + offset_ij)
    tau_* ~ Gamma(a, b)

Full conditionals:

    tau | r      ~ Gamma(a + n/2, b + sum(r^2)/2)
    b_j | r      ~ Normal(tau_e * sum_j(r) / P_j, 1/P_j),   P_j = tau_b + n_j tau_e
    beta | r     ~ Normal(Q^-1 (lambda_0 beta_0 + tau_e X'r), Q^-1),
                   Q = diag(lambda_0) + tau_e X'X

Each ``*_posterior`` function returns the posterior parameters (so they can
be checked against hand-derived values); the matching ``sample_*`` function
draws from it with the chain's generator.

License: MIT
"""

import numpy as np
from scipy.linalg import cho_factor, cho_solve, solve_triangular
from typing import Tuple


# ═══════════════════════════════════════════════════════════════
# Precision (Normal-Gamma)
# ═══════════════════════════════════════════════════════════════

def gamma_precision_posterior(shape: float, rate: float,
                              residuals: np.ndarray) -> Tuple[float, float]:
    """Posterior (shape, rate) of a precision given zero-mean Normal residuals."""
    residuals = np.asarray(residuals, dtype=float)
    return (shape + 0.5 * residuals.size,
            rate + 0.5 * float(np.dot(residuals, residuals)))


def sample_precision(shape: float, rate: float, residuals: np.ndarray,
                     rng: np.random.Generator) -> float:
    post_shape, post_rate = gamma_precision_posterior(shape, rate, residuals)
    # numpy parameterises Gamma by scale
    return float(rng.gamma(post_shape, 1.0 / post_rate))


# ═══════════════════════════════════════════════════════════════
# Random intercepts
# ═══════════════════════════════════════════════════════════════

def random_intercept_posterior(residuals: np.ndarray, group_index: np.ndarray,
                               n_groups: int, tau_e: float, tau_b: float,
                               prior_mean: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
    """Posterior mean and precision of every group intercept.

    Args:
        residuals: response minus the fixed-effect mean (intercepts excluded)
        group_index: dense group index of each residual, in [0, n_groups)
        n_groups: number of groups (length of the intercept array)
        tau_e: residual precision
        tau_b: intercept precision

    Returns:
        (mean, precision), both arrays of length n_groups. Groups without
        observations get the prior back.
    """
    counts = np.bincount(group_index, minlength=n_groups)
    sums = np.bincount(group_index, weights=residuals, minlength=n_groups)
    precision = tau_b + counts * tau_e
    mean = (tau_b * prior_mean + tau_e * sums) / precision
    return mean, precision


def sample_random_intercepts(residuals: np.ndarray, group_index: np.ndarray,
                             n_groups: int, tau_e: float, tau_b: float,
                             rng: np.random.Generator,
                             prior_mean: float = 0.0) -> np.ndarray:
    mean, precision = random_intercept_posterior(
        residuals, group_index, n_groups, tau_e, tau_b, prior_mean)
    return mean + rng.standard_normal(n_groups) / np.sqrt(precision)


# ═══════════════════════════════════════════════════════════════
# Linear coefficients
# ═══════════════════════════════════════════════════════════════

def linear_coefficient_posterior(design: np.ndarray, residuals: np.ndarray,
                                 tau_e: float, prior_mean,
                                 prior_precision) -> Tuple[np.ndarray, np.ndarray]:
    """Posterior mean vector and precision matrix of regression coefficients.

    Args:
        design: [n, p] design matrix
        residuals: response minus every mean term that does not involve beta
        tau_e: residual precision
        prior_mean: scalar or [p] prior mean
        prior_precision: scalar or [p] prior precision (independent priors)
    """
    p = design.shape[1]
    prior_mean = np.broadcast_to(np.asarray(prior_mean, dtype=float), (p,))
    prior_precision = np.broadcast_to(np.asarray(prior_precision, dtype=float), (p,))

    precision = tau_e * (design.T @ design)
    precision[np.diag_indices(p)] += prior_precision
    rhs = prior_precision * prior_mean + tau_e * (design.T @ residuals)
    mean = cho_solve(cho_factor(precision, lower=True), rhs)
    return mean, precision


def sample_linear_coefficients(design: np.ndarray, residuals: np.ndarray,
                               tau_e: float, prior_mean, prior_precision,
                               rng: np.random.Generator) -> np.ndarray:
    mean, precision = linear_coefficient_posterior(
        design, residuals, tau_e, prior_mean, prior_precision)
    # If Q = L L', then L'^-1 z ~ Normal(0, Q^-1)
    chol = np.linalg.cholesky(precision)
    z = rng.standard_normal(mean.shape[0])
    return mean + solve_triangular(chol.T, z, lower=False)
