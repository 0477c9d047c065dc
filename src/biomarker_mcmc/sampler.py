"""
Biomarker MCMC — Sampler Engine
===============================
Metropolis-within-Gibbs sampler for one Markov chain.

Key Features:
- Explicit chain state machine: UNINITIALIZED → BURNING_IN → SAMPLING → TERMINATED
- Conjugate (Gibbs) blocks drawn from closed-form full conditionals
- Random-walk Metropolis blocks with log-space acceptance
- Local recovery from non-finite densities and out-of-support proposals,
  every occurrence counted in ChainStats
- Optional proposal-scale adaptation restricted to burn-in
- Burn-in discard and thinning applied as draws are produced

Algorithm (one sweep, blocks in ModelSpec declaration order):

    Conjugate block:   θ_b ← draw from p(θ_b | θ_-b, y)
    Metropolis block:  θ* = θ_b + ε,  ε ~ N(0, s_b²)
                       log r = log p(θ*, θ_-b | y) − log p(θ_b, θ_-b | y)
                       accept if U(0,1) < exp(min(0, log r))

Each chain owns its ParameterVector and its np.random.Generator. Nothing in
a chain touches shared mutable state, so chains can run on separate threads.

Usage:
    chain = MarkovChain(spec, data, chain_id=0,
                        rng=np.random.default_rng(1),
                        n_burnin=1000, n_iter=5000, thin=5)
    draws = chain.run()
    print(chain.stats.acceptance_rate('k'))

License: MIT
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from tqdm.auto import tqdm

from .exceptions import (
    InitializationError,
    NumericDegeneracy,
    SamplerStateError,
    SamplingCancelled,
    SetupError,
    SupportViolation,
)
from .model_spec import ModelSpec, ParameterSpec, ParameterValue, ParameterVector


class ChainState(Enum):
    """Lifecycle of a Markov chain."""
    UNINITIALIZED = "uninitialized"
    BURNING_IN = "burning_in"
    SAMPLING = "sampling"
    TERMINATED = "terminated"


def acceptance_probability(log_ratio: float) -> float:
    """Metropolis acceptance probability exp(min(0, log_ratio))."""
    return float(np.exp(min(0.0, log_ratio)))


def _freeze(value: ParameterValue) -> ParameterValue:
    if isinstance(value, np.ndarray):
        value = value.copy()
        value.setflags(write=False)
        return value
    return float(value)


# ═══════════════════════════════════════════════════════════════
# Draws & statistics
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Draw:
    """Immutable snapshot of one retained iteration."""
    chain_id: int
    iteration: int
    values: Mapping[str, ParameterValue]

    def __getitem__(self, name: str) -> ParameterValue:
        return self.values[name]


@dataclass
class BlockStats:
    """Update counters for one parameter block."""
    proposals: int = 0             # Metropolis proposals
    accepted: int = 0              # Metropolis acceptances
    support_violations: int = 0    # proposals/draws outside prior support
    degeneracies: int = 0          # non-finite log-density, candidate rejected
    conjugate_updates: int = 0     # closed-form draws

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.proposals if self.proposals else float('nan')

    @property
    def rejection_rate(self) -> float:
        return 1.0 - self.acceptance_rate if self.proposals else float('nan')


@dataclass
class ChainStats:
    """Per-chain diagnostic counters."""
    chain_id: int
    blocks: Dict[str, BlockStats] = field(default_factory=dict)
    init_resamples: int = 0
    iterations: int = 0

    def acceptance_rate(self, name: str) -> float:
        return self.blocks[name].acceptance_rate

    def rejection_rate(self, name: str) -> float:
        return self.blocks[name].rejection_rate

    @property
    def degeneracies(self) -> int:
        return sum(b.degeneracies for b in self.blocks.values())

    @property
    def support_violations(self) -> int:
        return sum(b.support_violations for b in self.blocks.values())

    def as_dict(self) -> Dict[str, Dict]:
        return {
            name: {
                'proposals': b.proposals,
                'accepted': b.accepted,
                'acceptance_rate': b.acceptance_rate,
                'support_violations': b.support_violations,
                'degeneracies': b.degeneracies,
                'conjugate_updates': b.conjugate_updates,
            }
            for name, b in self.blocks.items()
        }


# ═══════════════════════════════════════════════════════════════
# Markov chain
# ═══════════════════════════════════════════════════════════════

class MarkovChain:
    """One Metropolis-within-Gibbs chain.

    Iterations are counted globally: sweeps 1..n_burnin are burn-in, sweeps
    n_burnin+1..n_burnin+n_iter are sampling sweeps. Sampling sweep s
    (counted from 1) is retained when s % thin == 0, so each chain keeps
    exactly n_iter // thin draws.
    """

    def __init__(self,
                 model: ModelSpec,
                 data,
                 chain_id: int = 0,
                 rng: Optional[np.random.Generator] = None,
                 n_burnin: int = 0,
                 n_iter: int = 1000,
                 thin: int = 1,
                 adapt: bool = False,
                 adapt_interval: int = 100,
                 max_init_attempts: int = 100):
        """
        Args:
            model: validated ModelSpec
            data: observations passed through to the likelihood and
                conjugate samplers (read-only)
            chain_id: identifier stamped on every Draw
            rng: this chain's private generator
            n_burnin: discarded sweeps
            n_iter: sampling sweeps after burn-in
            thin: keep every thin-th sampling sweep
            adapt: tune Metropolis scales during burn-in
            adapt_interval: burn-in sweeps between scale adjustments
            max_init_attempts: draws allowed per parameter to land in support
        """
        if n_burnin < 0 or n_iter <= 0 or thin < 1:
            raise SetupError(f"Invalid chain lengths: n_burnin={n_burnin}, n_iter={n_iter}, thin={thin}")
        if adapt and adapt_interval < 1:
            raise SetupError(f"adapt_interval must be >= 1, got {adapt_interval}")

        self.model = model
        self.data = data
        self.chain_id = chain_id
        self.rng = rng if rng is not None else np.random.default_rng()
        self.n_burnin = n_burnin
        self.n_iter = n_iter
        self.thin = thin
        self.adapt = adapt
        self.adapt_interval = adapt_interval
        self.max_init_attempts = max_init_attempts

        self.state = ChainState.UNINITIALIZED
        self.iteration = 0
        self.params: ParameterVector = {}
        self.stats = ChainStats(chain_id, {spec.name: BlockStats() for spec in model})
        self.scales: Dict[str, np.ndarray] = {
            spec.name: np.asarray(spec.update.scale, dtype=float).copy()
            for spec in model if not spec.is_conjugate
        }
        self._window: Dict[str, List[int]] = {name: [0, 0] for name in self.scales}
        self._draws: List[Draw] = []
        # log_joint at self.params, reset whenever a conjugate block moves
        self._current_lp: Optional[float] = None

    # ── state ─────────────────────────────────────────────────

    @property
    def total_iterations(self) -> int:
        return self.n_burnin + self.n_iter

    @property
    def n_retained(self) -> int:
        return self.n_iter // self.thin

    @property
    def draws(self) -> Tuple[Draw, ...]:
        return tuple(self._draws)

    def _coerce(self, spec: ParameterSpec, value) -> ParameterValue:
        if not spec.shape:
            if np.ndim(value) != 0:
                raise SetupError(f"Parameter '{spec.name}' is scalar, got shape {np.shape(value)}")
            return float(value)
        value = np.array(value, dtype=float)
        if value.shape != spec.shape:
            raise SetupError(f"Parameter '{spec.name}' expects shape {spec.shape}, got {value.shape}")
        return value

    def initialize(self):
        """Draw initial values, resampling any that fall outside support."""
        if self.state is not ChainState.UNINITIALIZED:
            raise SamplerStateError(f"Chain {self.chain_id} is already {self.state.value}")

        for spec in self.model:
            for _ in range(self.max_init_attempts):
                value = self._coerce(spec, spec.init(self.rng))
                if spec.prior.in_support(value):
                    break
                self.stats.init_resamples += 1
            else:
                raise InitializationError(
                    f"Chain {self.chain_id}: no initial value for '{spec.name}' inside "
                    f"the prior support after {self.max_init_attempts} attempts")
            self.params[spec.name] = value

        log_lik = float(self.model.log_likelihood(self.params, self.data))
        log_prior = self.model.log_prior(self.params)
        if not (np.isfinite(log_lik) and np.isfinite(log_prior)):
            raise InitializationError(
                f"Chain {self.chain_id}: log-density at the initial values is not finite "
                f"(log-likelihood={log_lik}, log-prior={log_prior})")

        self._current_lp = log_prior + log_lik
        self.state = ChainState.BURNING_IN
        self._end_burnin_if_done()

    def _end_burnin_if_done(self):
        if self.state is ChainState.BURNING_IN and self.iteration >= self.n_burnin:
            self.state = ChainState.SAMPLING

    # ── block updates ─────────────────────────────────────────

    def _log_target(self, name: str) -> float:
        log_lik = float(self.model.log_likelihood(self.params, self.data))
        if not np.isfinite(log_lik):
            raise NumericDegeneracy(name, log_lik)
        log_post = self.model.log_prior(self.params) + log_lik
        if not np.isfinite(log_post):
            raise NumericDegeneracy(name, log_post)
        return log_post

    def _conjugate_update(self, spec: ParameterSpec):
        block = self.stats.blocks[spec.name]
        value = self._coerce(spec, spec.update.sampler(self.params, self.data, self.rng))
        if not spec.prior.in_support(value):
            # e.g. a precision draw that underflowed to zero
            block.support_violations += 1
            return
        self.params[spec.name] = value
        block.conjugate_updates += 1
        self._current_lp = None

    def _metropolis_update(self, spec: ParameterSpec) -> bool:
        name = spec.name
        block = self.stats.blocks[name]
        block.proposals += 1
        self._window[name][0] += 1

        current = self.params[name]
        candidate = self._coerce(spec, spec.update.proposal(current, self.scales[name], self.rng))
        try:
            if not spec.prior.in_support(candidate):
                raise SupportViolation(name, candidate)
            if self._current_lp is None:
                self._current_lp = self._log_target(name)
            current_lp = self._current_lp
            self.params[name] = candidate
            candidate_lp = self._log_target(name)
        except SupportViolation:
            block.support_violations += 1
            self.params[name] = current
            return False
        except NumericDegeneracy:
            block.degeneracies += 1
            self.params[name] = current
            return False

        if self.rng.uniform() < acceptance_probability(candidate_lp - current_lp):
            block.accepted += 1
            self._window[name][1] += 1
            self._current_lp = candidate_lp
            return True
        self.params[name] = current
        return False

    def _adapt_scales(self):
        for name, (proposals, accepted) in self._window.items():
            if proposals:
                rate = accepted / proposals
                if rate > 0.5:
                    self.scales[name] = self.scales[name] * 1.2
                elif rate < 0.2:
                    self.scales[name] = self.scales[name] * 0.8
            self._window[name] = [0, 0]

    def _record(self) -> Draw:
        values = {name: _freeze(value) for name, value in self.params.items()}
        for name, value in self.model.compute_derived(self.params).items():
            values[name] = _freeze(value)
        draw = Draw(self.chain_id, self.iteration, MappingProxyType(values))
        self._draws.append(draw)
        return draw

    # ── iteration ─────────────────────────────────────────────

    def step(self) -> Optional[Draw]:
        """Run one full sweep; return the Draw if this iteration is retained."""
        if self.state is ChainState.UNINITIALIZED:
            raise SamplerStateError(f"Chain {self.chain_id} must be initialized before stepping")
        if self.state is ChainState.TERMINATED:
            raise SamplerStateError(f"Chain {self.chain_id} has terminated")

        burning_in = self.state is ChainState.BURNING_IN
        for spec in self.model:
            if spec.is_conjugate:
                self._conjugate_update(spec)
            else:
                self._metropolis_update(spec)
        self.iteration += 1
        self.stats.iterations = self.iteration

        if burning_in:
            if self.adapt and self.scales and self.iteration % self.adapt_interval == 0:
                self._adapt_scales()
            self._end_burnin_if_done()
            return None

        draw = None
        sweep = self.iteration - self.n_burnin
        if sweep % self.thin == 0:
            draw = self._record()
        if sweep >= self.n_iter:
            self.state = ChainState.TERMINATED
        return draw

    def run(self, progressbar: bool = False, cancel_event=None) -> Tuple[Draw, ...]:
        """Run the chain to completion and return its retained draws.

        Args:
            progressbar: show a tqdm bar for this chain
            cancel_event: threading.Event checked between sweeps
        """
        if self.state is ChainState.UNINITIALIZED:
            self.initialize()

        sweeps = range(self.iteration, self.total_iterations)
        if progressbar:
            sweeps = tqdm(sweeps, desc=f"Chain {self.chain_id}",
                          position=self.chain_id, leave=False)

        for _ in sweeps:
            if cancel_event is not None and cancel_event.is_set():
                raise SamplingCancelled(
                    f"Chain {self.chain_id} cancelled at iteration {self.iteration}")
            self.step()

        return self.draws
