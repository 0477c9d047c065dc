"""
Biomarker MCMC — Error Taxonomy
===============================
Exceptions raised by the sampler stack.

Fatal (abort the whole run, raised before or at chain start):
- SetupError: malformed ModelSpec or sampler configuration
- InitializationError: initial values cannot be placed in support, or the
  log-density at the initial values is not finite

Recovered locally (raised inside a sweep, caught by the Metropolis step and
counted in ChainStats, never propagated to the caller):
- NumericDegeneracy: non-finite log-density for a candidate or current value
- SupportViolation: a proposed or initial value outside the parameter domain

License: MIT
"""


class BiomarkerMCMCError(Exception):
    """Base class for all errors raised by biomarker_mcmc."""


class SetupError(BiomarkerMCMCError):
    """Malformed model specification or sampler configuration."""


class InitializationError(SetupError):
    """A chain could not be started from its initial values."""


class SamplerStateError(BiomarkerMCMCError):
    """Operation not allowed in the chain's current state."""


class NumericDegeneracy(BiomarkerMCMCError):
    """Non-finite log-density encountered during a Metropolis step."""

    def __init__(self, parameter: str, value: float):
        self.parameter = parameter
        self.value = value
        super().__init__(f"Non-finite log-density ({value}) while updating '{parameter}'")


class SupportViolation(BiomarkerMCMCError):
    """Value outside the valid domain of a parameter."""

    def __init__(self, parameter: str, value=None):
        self.parameter = parameter
        self.value = value
        super().__init__(f"Value for '{parameter}' is outside the prior support: {value!r}")


class SamplingCancelled(BiomarkerMCMCError):
    """A run was stopped through its cancel event."""


class SamplerWarning(UserWarning):
    """Diagnostic warning about acceptance rates or degeneracies."""
