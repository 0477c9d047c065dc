"""
Unit tests for prior log-densities and the random-walk proposal
"""

import pytest
import numpy as np
from scipy import stats

from biomarker_mcmc.priors import Gamma, HalfNormal, Normal, NormalProposal, Uniform


class TestNormalPrior:
    """Normal prior in sigma and precision parameterisations."""

    def test_matches_scipy_sigma(self):
        """Normal(mu, sigma) matches scipy."""
        prior = Normal(1.0, sigma=2.0)
        assert prior.logpdf(0.3) == pytest.approx(stats.norm(1.0, 2.0).logpdf(0.3))

    def test_matches_scipy_precision(self):
        """Normal(mu, precision) matches scipy."""
        prior = Normal(0.0, precision=0.25)
        assert prior.logpdf(1.5) == pytest.approx(stats.norm(0.0, 2.0).logpdf(1.5))

    def test_vector_sums_components(self):
        """Vector densities sum over components."""
        prior = Normal(0.0, sigma=1.0)
        x = np.array([-1.0, 0.0, 2.0])
        assert prior.logpdf(x) == pytest.approx(stats.norm.logpdf(x).sum())

    def test_hierarchical_precision_by_name(self):
        """Precision given as a parameter name is read from the parameter vector."""
        prior = Normal(0.0, precision='tau_b')
        x = np.array([0.5, -0.5])
        expected = stats.norm(0.0, 1.0 / np.sqrt(4.0)).logpdf(x).sum()
        assert prior.logpdf(x, {'tau_b': 4.0}) == pytest.approx(expected)
        assert prior.hyperparameter_names() == ['tau_b']

    def test_missing_hyperparameter(self):
        """A named hyperparameter must be present."""
        with pytest.raises(KeyError):
            Normal(0.0, precision='tau_b').logpdf(0.0, {})

    def test_needs_exactly_one_scale(self):
        """Give sigma or precision, not both."""
        with pytest.raises(ValueError):
            Normal(0.0)
        with pytest.raises(ValueError):
            Normal(0.0, sigma=1.0, precision=1.0)

    def test_non_finite_outside_support(self):
        """Outside support the density is -inf."""
        assert Normal(0.0, sigma=1.0).logpdf(np.inf) == -np.inf


class TestPositivePriors:
    """Gamma, half-normal and uniform supports and densities."""

    def test_gamma_matches_scipy(self):
        """Gamma(shape, rate) matches scipy."""
        prior = Gamma(2.0, 3.0)
        assert prior.logpdf(0.7) == pytest.approx(stats.gamma(2.0, scale=1.0 / 3.0).logpdf(0.7))

    def test_gamma_support(self):
        """Gamma support is strictly positive."""
        prior = Gamma(0.001, 0.001)
        assert prior.in_support(0.5)
        assert not prior.in_support(0.0)
        assert not prior.in_support(-1.0)
        assert prior.logpdf(-1.0) == -np.inf

    def test_halfnormal_matches_scipy(self):
        """HalfNormal matches scipy."""
        prior = HalfNormal(2.0)
        assert prior.logpdf(1.2) == pytest.approx(stats.halfnorm(scale=2.0).logpdf(1.2))
        assert not prior.in_support(-0.1)

    def test_uniform(self):
        """Uniform density inside open bounds."""
        prior = Uniform(0.0, 24.0)
        assert prior.logpdf(12.0) == pytest.approx(-np.log(24.0))
        assert prior.logpdf(25.0) == -np.inf
        assert not prior.in_support(0.0)

    def test_uniform_bounds_ordered(self):
        """Uniform needs lower < upper."""
        with pytest.raises(ValueError):
            Uniform(1.0, 1.0)


class TestNormalProposal:
    """Gaussian random-walk proposal."""

    def test_scalar_stays_scalar(self):
        """Scalar proposals return floats."""
        candidate = NormalProposal()(1.0, np.asarray(0.5), np.random.default_rng(0))
        assert isinstance(candidate, float)

    def test_vector_shape_and_scale(self):
        """Vector proposals keep shape and scale."""
        rng = np.random.default_rng(0)
        current = np.zeros(3)
        scale = np.array([0.1, 1.0, 10.0])
        draws = np.array([NormalProposal()(current, scale, rng) for _ in range(20000)])
        assert draws.shape == (20000, 3)
        np.testing.assert_allclose(draws.std(axis=0), scale, rtol=0.05)

    def test_does_not_mutate_current(self):
        """The current value is never modified."""
        current = np.ones(4)
        NormalProposal()(current, 1.0, np.random.default_rng(1))
        np.testing.assert_array_equal(current, np.ones(4))
