"""
Unit tests for closed-form full conditionals.

Expected values are derived by hand from the Normal-Gamma and Normal-Normal
update formulas on two- and three-observation datasets.
"""

import pytest
import numpy as np

from biomarker_mcmc.conjugate import (
    gamma_precision_posterior,
    linear_coefficient_posterior,
    random_intercept_posterior,
    sample_linear_coefficients,
    sample_precision,
    sample_random_intercepts,
)


class TestPrecisionUpdate:
    """tau | r ~ Gamma(a + n/2, b + sum(r^2)/2)"""

    def test_two_observation_hand_values(self):
        """Shape and rate updated by n/2 and SSR/2."""
        # a = 1, b = 1, r = (1, 3): shape 1 + 2/2 = 2, rate 1 + (1 + 9)/2 = 6
        shape, rate = gamma_precision_posterior(1.0, 1.0, np.array([1.0, 3.0]))
        assert shape == 2.0
        assert rate == 6.0

    def test_vague_prior_hand_values(self):
        """Vague Gamma(0.001, 0.001) prior update."""
        # a = b = 0.001, r = (-2, 2): shape 1.001, rate 0.001 + 4
        shape, rate = gamma_precision_posterior(0.001, 0.001, np.array([-2.0, 2.0]))
        assert shape == pytest.approx(1.001)
        assert rate == pytest.approx(4.001)

    def test_sample_mean_matches_shape_over_rate(self):
        """Precision draws average shape / rate."""
        rng = np.random.default_rng(0)
        draws = np.array([sample_precision(1.0, 1.0, np.array([1.0, 3.0]), rng)
                          for _ in range(50000)])
        assert draws.mean() == pytest.approx(2.0 / 6.0, rel=0.02)
        assert np.all(draws > 0)


class TestRandomIntercepts:
    """b_j | r ~ Normal(tau_e * S_j / P_j, 1 / P_j), P_j = tau_b + n_j * tau_e"""

    def test_hand_values(self):
        """Per-group mean and precision from residual sums."""
        residuals = np.array([1.0, 3.0, 2.0])
        groups = np.array([0, 0, 1])
        mean, precision = random_intercept_posterior(residuals, groups, 3, tau_e=1.0, tau_b=2.0)
        # counts (2, 1, 0), sums (4, 2, 0)
        np.testing.assert_allclose(precision, [4.0, 3.0, 2.0])
        np.testing.assert_allclose(mean, [1.0, 2.0 / 3.0, 0.0])

    def test_empty_group_returns_prior(self):
        """A group with no rows keeps the prior."""
        mean, precision = random_intercept_posterior(
            np.array([5.0]), np.array([0]), 2, tau_e=1.0, tau_b=0.5, prior_mean=0.0)
        assert mean[1] == 0.0
        assert precision[1] == 0.5

    def test_sampling_moments(self):
        """Intercept draws match the conditional moments."""
        rng = np.random.default_rng(1)
        residuals = np.array([1.0, 3.0, 2.0])
        groups = np.array([0, 0, 1])
        draws = np.array([sample_random_intercepts(residuals, groups, 2, 1.0, 2.0, rng)
                          for _ in range(40000)])
        np.testing.assert_allclose(draws.mean(axis=0), [1.0, 2.0 / 3.0], atol=0.02)
        np.testing.assert_allclose(draws.var(axis=0), [1 / 4.0, 1 / 3.0], rtol=0.05)


class TestLinearCoefficients:
    """beta | r ~ Normal(Q^-1 (L b0 + tau_e X'r), Q^-1), Q = L + tau_e X'X"""

    def test_single_coefficient_hand_values(self):
        """One coefficient reduces to the scalar formula."""
        X = np.array([[1.0], [1.0]])
        mean, precision = linear_coefficient_posterior(X, np.array([1.0, 3.0]), 1.0, 0.0, 2.0)
        np.testing.assert_allclose(precision, [[4.0]])
        np.testing.assert_allclose(mean, [1.0])

    def test_two_coefficient_hand_values(self):
        """Two coefficients match a hand-solved system."""
        # X'X + I = [[3, 1], [1, 2]], X'r = (4, 3) -> mean (1, 1)
        X = np.array([[1.0, 0.0], [1.0, 1.0]])
        mean, precision = linear_coefficient_posterior(X, np.array([1.0, 3.0]), 1.0, 0.0, 1.0)
        np.testing.assert_allclose(precision, [[3.0, 1.0], [1.0, 2.0]])
        np.testing.assert_allclose(mean, [1.0, 1.0])

    def test_prior_mean_pulls_estimate(self):
        """A strong prior mean pulls the estimate toward it."""
        X = np.array([[1.0]])
        mean, _ = linear_coefficient_posterior(X, np.array([0.0]), 1.0, 4.0, 1.0)
        np.testing.assert_allclose(mean, [2.0])

    def test_sampling_covariance(self):
        """Coefficient draws match the posterior covariance."""
        rng = np.random.default_rng(2)
        X = np.array([[1.0, 0.0], [1.0, 1.0]])
        r = np.array([1.0, 3.0])
        draws = np.array([sample_linear_coefficients(X, r, 1.0, 0.0, 1.0, rng)
                          for _ in range(40000)])
        expected_cov = np.linalg.inv([[3.0, 1.0], [1.0, 2.0]])
        np.testing.assert_allclose(draws.mean(axis=0), [1.0, 1.0], atol=0.02)
        np.testing.assert_allclose(np.cov(draws.T), expected_cov, atol=0.02)
