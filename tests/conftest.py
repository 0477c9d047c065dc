"""
Pytest configuration and fixtures shared by the test suite.

Provides:
- the 'slow' marker for long MCMC runs
- a seeded synthetic dose-response dataset
- a small normal-mean model for fast sampler tests
"""
import pytest
import numpy as np

from biomarker_mcmc.conjugate import sample_precision
from biomarker_mcmc.data import simulate_dataset
from biomarker_mcmc.model_spec import Conjugate, MetropolisBlock, ModelSpecBuilder
from biomarker_mcmc.models import LinearQuadraticModel, normal_log_likelihood
from biomarker_mcmc.priors import Gamma, Normal


# Generating values for the default linear-quadratic design:
# intercept, month, month^2, dose:month, dose:month^2, dose, male, bmi, chol, age
LQ_TRUE = {
    'beta': np.array([150.0, 8.0, -0.4, 0.3, -0.01, 0.2, -10.0, -1.5, 0.1, 0.5]),
    'tau_e': 1.0 / 15.0 ** 2,
    'tau_b': 1.0 / 30.0 ** 2,
}


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running MCMC tests")


@pytest.fixture(scope="session")
def lq_true():
    return LQ_TRUE


@pytest.fixture(scope="session")
def lq_model():
    return LinearQuadraticModel()


@pytest.fixture(scope="session")
def lq_data(lq_model):
    """10 subjects x 5 time points from the linear-quadratic model."""
    return simulate_dataset(lq_model, LQ_TRUE, n_subjects=10, seed=7)


@pytest.fixture(scope="session")
def toy_observations():
    return np.random.default_rng(3).normal(3.0, 1.0, size=20)


@pytest.fixture
def make_toy_spec():
    """Factory for y ~ Normal(mu, tau): mu by Metropolis, tau conjugate.

    Keyword overrides:
        proposal: proposal callable for mu
        scale: proposal scale for mu
        log_likelihood: replacement likelihood
        init_mu: initial-value generator for mu
        fixed_tau: drop the tau block and hold tau at this value
    """
    def factory(proposal=None, scale=0.5, log_likelihood=None,
                init_mu=None, fixed_tau=None):
        def loglik(params, y):
            tau = params['tau'] if fixed_tau is None else fixed_tau
            return normal_log_likelihood(y - params['mu'], tau)

        def sample_tau(params, y, rng):
            return sample_precision(1.0, 1.0, y - params['mu'], rng)

        update = (MetropolisBlock(scale=scale) if proposal is None
                  else MetropolisBlock(scale=scale, proposal=proposal))
        builder = ModelSpecBuilder('toy').parameter(
            'mu', prior=Normal(0.0, sigma=10.0), update=update,
            init=init_mu or (lambda rng: rng.normal(0.0, 1.0)))
        if fixed_tau is None:
            builder.parameter('tau', prior=Gamma(1.0, 1.0), update=Conjugate(sample_tau),
                              init=lambda rng: rng.uniform(0.0, 1.0))
            builder.derived('sigma', lambda p: 1.0 / np.sqrt(p['tau']))
        return builder.likelihood(log_likelihood or loglik).build()

    return factory


@pytest.fixture(scope="session")
def lq_samples(lq_model, lq_data):
    """Short two-chain fit of the linear-quadratic model."""
    from biomarker_mcmc.chains import ChainManager, SamplerConfig

    config = SamplerConfig(n_chains=2, n_burnin=100, n_iter=400, thin=2, seed=31)
    return ChainManager(config, verbose=False).run(lq_model.build_spec(lq_data), lq_data)
