"""
Biomarker MCMC - Bayesian hierarchical models for longitudinal biomarkers

Metropolis-within-Gibbs sampling of random-intercept regression models for
serum beta-carotene and vitamin E trajectories in a dose-response study,
with multi-chain execution, posterior summaries and trajectory prediction.
"""

__version__ = "0.1.0"

# Errors
from .exceptions import (
    BiomarkerMCMCError,
    SetupError,
    InitializationError,
    SamplerStateError,
    NumericDegeneracy,
    SupportViolation,
    SamplingCancelled,
    SamplerWarning,
)

# Model specification
from .priors import Normal, Gamma, Uniform, HalfNormal, NormalProposal
from .model_spec import (
    Conjugate,
    MetropolisBlock,
    ParameterSpec,
    ModelSpec,
    ModelSpecBuilder,
)

# Data
from .data import (
    LongitudinalData,
    DOSE_LEVELS,
    load_biomarker_csv,
    simulate_dataset,
    write_biomarker_csv,
)

# Model variants
from .models import LinearQuadraticModel, LogisticGrowthModel, logistic_curve

# Sampling
from .sampler import ChainState, Draw, MarkovChain
from .chains import ChainManager, SamplerConfig
from .posterior import PosteriorSampleSet

# Downstream
from .summary import summarize_posterior, check_convergence, sampler_report
from .predict import make_grid, predict_mean, predict_band

__all__ = [
    "BiomarkerMCMCError",
    "SetupError",
    "InitializationError",
    "SamplerStateError",
    "NumericDegeneracy",
    "SupportViolation",
    "SamplingCancelled",
    "SamplerWarning",
    "Normal",
    "Gamma",
    "Uniform",
    "HalfNormal",
    "NormalProposal",
    "Conjugate",
    "MetropolisBlock",
    "ParameterSpec",
    "ModelSpec",
    "ModelSpecBuilder",
    "LongitudinalData",
    "DOSE_LEVELS",
    "load_biomarker_csv",
    "simulate_dataset",
    "write_biomarker_csv",
    "LinearQuadraticModel",
    "LogisticGrowthModel",
    "logistic_curve",
    "ChainState",
    "Draw",
    "MarkovChain",
    "ChainManager",
    "SamplerConfig",
    "PosteriorSampleSet",
    "summarize_posterior",
    "check_convergence",
    "sampler_report",
    "make_grid",
    "predict_mean",
    "predict_band",
]
