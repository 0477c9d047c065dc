"""
Biomarker MCMC — Chain Manager
==============================
Runs independent Markov chains and aggregates their retained draws.

Key Features:
- One np.random.Generator per chain, derived from a master seed and the
  chain index (SeedSequence spawn keys), so runs are reproducible
- Chains executed on a thread pool or serially; no shared mutable state
- A failing chain cancels its siblings and its error is re-raised
- Setup errors are raised before any chain starts
- (chain, iteration) provenance preserved in the PosteriorSampleSet

Usage:
    from biomarker_mcmc import ChainManager, SamplerConfig, LinearQuadraticModel

    model = LinearQuadraticModel()
    spec = model.build_spec(data)
    manager = ChainManager(SamplerConfig(n_chains=3, n_burnin=1000,
                                         n_iter=50000, thin=5, seed=2024))
    samples = manager.run(spec, data)
    samples.frame.head()

License: MIT
"""

import threading
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import List, Optional

import numpy as np

from .exceptions import SamplerWarning, SamplingCancelled, SetupError
from .model_spec import ModelSpec
from .posterior import PosteriorSampleSet
from .sampler import MarkovChain


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

BACKENDS = ('thread', 'serial')


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass
class SamplerConfig:
    """Configuration for a multi-chain MCMC run."""
    n_chains: int = 3              # Independent chains
    n_burnin: int = 1000           # Discarded sweeps per chain
    n_iter: int = 50000            # Sampling sweeps per chain (after burn-in)
    thin: int = 5                  # Keep every thin-th sampling sweep
    seed: Optional[int] = None     # Master seed (None = fresh OS entropy)

    # Metropolis tuning
    adapt: bool = False            # Tune proposal scales during burn-in
    adapt_interval: int = 100      # Burn-in sweeps between adjustments
    max_init_attempts: int = 100   # Initial draws allowed to land in support

    # Computational
    backend: str = 'thread'        # 'thread' or 'serial'
    max_workers: Optional[int] = None
    progressbar: bool = False      # tqdm bar per chain

    # Diagnostics
    min_acceptance: float = 0.1    # Warn below this Metropolis acceptance
    max_acceptance: float = 0.9    # Warn above this Metropolis acceptance

    @property
    def total_iterations(self) -> int:
        return self.n_burnin + self.n_iter

    @property
    def retained_per_chain(self) -> int:
        return (self.total_iterations - self.n_burnin) // self.thin

    def validate(self):
        """Raise SetupError for configurations that cannot be run."""
        checks = [
            (_is_int(self.n_chains) and self.n_chains >= 1,
             f"n_chains must be an integer >= 1, got {self.n_chains!r}"),
            (_is_int(self.n_burnin) and self.n_burnin >= 0,
             f"n_burnin must be an integer >= 0, got {self.n_burnin!r}"),
            (_is_int(self.n_iter) and self.n_iter > 0,
             f"n_iter must be an integer > 0, got {self.n_iter!r}"),
            (_is_int(self.thin) and self.thin >= 1,
             f"thin must be an integer >= 1, got {self.thin!r}"),
            (self.seed is None or (_is_int(self.seed) and self.seed >= 0),
             f"seed must be None or an integer >= 0, got {self.seed!r}"),
            (_is_int(self.adapt_interval) and self.adapt_interval >= 1,
             f"adapt_interval must be an integer >= 1, got {self.adapt_interval!r}"),
            (_is_int(self.max_init_attempts) and self.max_init_attempts >= 1,
             f"max_init_attempts must be an integer >= 1, got {self.max_init_attempts!r}"),
            (self.max_workers is None or (_is_int(self.max_workers) and self.max_workers >= 1),
             f"max_workers must be None or an integer >= 1, got {self.max_workers!r}"),
            (self.backend in BACKENDS, f"backend must be one of {BACKENDS}, got {self.backend!r}"),
        ]
        for ok, message in checks:
            if not ok:
                raise SetupError(message)
        if self.thin > self.n_iter:
            warnings.warn(f"thin={self.thin} > n_iter={self.n_iter}: no draws will be retained",
                          SamplerWarning)


def chain_rng(master_seed: int, chain_id: int) -> np.random.Generator:
    """Independent generator for one chain: SeedSequence(master, spawn_key=(chain_id,))."""
    return np.random.default_rng(np.random.SeedSequence(master_seed, spawn_key=(chain_id,)))


class _StopSignal:
    """Stop flag shared by the chains of one run.

    A failing chain raises the private flag; the caller's event is only
    read, so it stays reusable across runs.
    """

    def __init__(self, external: Optional[threading.Event] = None):
        self.external = external
        self._failed = threading.Event()

    def fail(self):
        self._failed.set()

    def is_set(self) -> bool:
        return self._failed.is_set() or (self.external is not None and self.external.is_set())


# ═══════════════════════════════════════════════════════════════
# Chain Manager
# ═══════════════════════════════════════════════════════════════

class ChainManager:
    """Drive N independent chains to completion and collect their draws."""

    def __init__(self, config: Optional[SamplerConfig] = None, verbose: bool = True):
        """
        Args:
            config: default sampler configuration (overridable per run)
            verbose: print run progress messages
        """
        self.config = config or SamplerConfig()
        self.verbose = verbose
        self.chains: List[MarkovChain] = []

    def _log(self, message: str):
        if self.verbose:
            print(f"[Chains] {message}")

    def run(self, model_spec: ModelSpec, data,
            n_chains: Optional[int] = None,
            n_burnin: Optional[int] = None,
            n_iter: Optional[int] = None,
            thin: Optional[int] = None,
            seed: Optional[int] = None,
            cancel_event: Optional[threading.Event] = None) -> PosteriorSampleSet:
        """Sample the posterior of ``model_spec`` given ``data``.

        Keyword arguments override the manager's SamplerConfig for this run.

        Returns:
            PosteriorSampleSet holding n_chains * (n_iter // thin) draws

        Raises:
            SetupError: malformed spec or configuration (before any chain starts)
            InitializationError: a chain's initial values have non-finite density
            SamplingCancelled: cancel_event was set during the run
        """
        overrides = {k: v for k, v in dict(n_chains=n_chains, n_burnin=n_burnin,
                                            n_iter=n_iter, thin=thin, seed=seed).items()
                     if v is not None}
        config = replace(self.config, **overrides)
        config.validate()
        if not isinstance(model_spec, ModelSpec):
            raise SetupError(f"Expected a ModelSpec, got {type(model_spec).__name__}")
        model_spec.validate()

        master_seed = config.seed
        if master_seed is None:
            master_seed = int(np.random.SeedSequence().entropy)

        self.chains = [
            MarkovChain(model_spec, data,
                        chain_id=i,
                        rng=chain_rng(master_seed, i),
                        n_burnin=config.n_burnin,
                        n_iter=config.n_iter,
                        thin=config.thin,
                        adapt=config.adapt,
                        adapt_interval=config.adapt_interval,
                        max_init_attempts=config.max_init_attempts)
            for i in range(config.n_chains)
        ]

        self._log(f"Model '{model_spec.name}': {len(model_spec)} blocks "
                  f"{model_spec.parameter_names}")
        self._log(f"Chains: {config.n_chains}, burn-in: {config.n_burnin}, "
                  f"iterations: {config.n_iter}, thin: {config.thin}, seed: {master_seed}")

        stop = _StopSignal(cancel_event)
        if config.backend == 'serial' or config.n_chains == 1:
            results = [chain.run(config.progressbar, stop) for chain in self.chains]
        else:
            results = self._run_threaded(config, stop)

        self._check_diagnostics(config)
        samples = PosteriorSampleSet(model_spec, results,
                                     chain_stats=[c.stats for c in self.chains],
                                     seed=master_seed)
        self._log(f"Sampling complete: {len(samples)} draws "
                  f"({config.n_chains} x {config.retained_per_chain})")
        return samples

    def _run_threaded(self, config: SamplerConfig, stop: _StopSignal):
        workers = config.max_workers or config.n_chains

        def run_chain(chain: MarkovChain):
            try:
                return chain.run(config.progressbar, stop)
            except BaseException:
                stop.fail()
                raise

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(run_chain, chain) for chain in self.chains]
            errors = [f.exception() for f in futures]

        # Report the root cause, not a sibling's SamplingCancelled
        primary = next((e for e in errors
                        if e is not None and not isinstance(e, SamplingCancelled)), None)
        if primary is None:
            primary = next((e for e in errors if e is not None), None)
        if primary is not None:
            raise primary
        return [f.result() for f in futures]

    def _check_diagnostics(self, config: SamplerConfig):
        for chain in self.chains:
            stats = chain.stats
            for name, block in stats.blocks.items():
                rate = block.acceptance_rate
                if block.proposals and not (config.min_acceptance <= rate <= config.max_acceptance):
                    warnings.warn(f"Chain {chain.chain_id}: acceptance rate for '{name}' is "
                                  f"{rate:.1%}", SamplerWarning)
            if stats.degeneracies:
                warnings.warn(f"Chain {chain.chain_id}: {stats.degeneracies} proposals rejected "
                              f"for non-finite log-density", SamplerWarning)

