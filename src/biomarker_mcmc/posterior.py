"""
Biomarker MCMC — Posterior Sample Set
=====================================
Aggregated draws from all chains, with (chain, iteration) provenance kept
for between-chain diagnostics.

Table layout (``PosteriorSampleSet.frame``):

    chain | iteration | <param> ... | <derived> ...

Scalar parameters keep their declared name as the column name. Vector
parameters expand to one column per component, ``name[i]`` with 0-based i
(``b0[0]``, ``b0[1]``, ...), matching ArviZ's labelling.

License: MIT
"""

import arviz as az
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence

from .model_spec import ModelSpec, ParameterVector
from .sampler import ChainStats, Draw


def column_names(name: str, shape) -> List[str]:
    """Table columns of one parameter."""
    if not shape:
        return [name]
    return [f"{name}[{','.join(map(str, idx))}]" for idx in np.ndindex(*shape)]


class PosteriorSampleSet:
    """Read-only posterior draws of one model fit."""

    def __init__(self, model: ModelSpec, chains: Sequence[Sequence[Draw]],
                 chain_stats: Optional[Sequence[ChainStats]] = None,
                 seed: Optional[int] = None):
        """
        Args:
            model: the ModelSpec that was sampled
            chains: retained draws of each chain, in chain-id order
            chain_stats: per-chain counters from the sampler
            seed: master seed the chains were derived from
        """
        self.model_name = model.name
        self.seed = seed
        self.chain_stats = tuple(chain_stats or ())

        first = next((c[0] for c in chains if len(c)), None)
        self.shapes: Dict[str, tuple] = {spec.name: spec.shape for spec in model}
        for name in model.derived_names:
            self.shapes[name] = np.shape(first[name]) if first is not None else ()
        self.parameter_names = model.parameter_names
        self.derived_names = model.derived_names

        self.n_chains = len(chains)
        self.draws_per_chain = [len(c) for c in chains]
        self.frame = self._build_frame(chains)

    def _build_frame(self, chains: Sequence[Sequence[Draw]]) -> pd.DataFrame:
        names = self.parameter_names + self.derived_names
        columns = [col for name in names for col in column_names(name, self.shapes[name])]
        rows = [
            np.concatenate([np.ravel(draw[name]) for name in names]) if names else np.empty(0)
            for chain in chains for draw in chain
        ]
        values = np.vstack(rows) if rows else np.empty((0, len(columns)))
        frame = pd.DataFrame(values, columns=columns)
        frame.insert(0, 'iteration', np.array([d.iteration for c in chains for d in c], dtype=np.int64))
        frame.insert(0, 'chain', np.array([d.chain_id for c in chains for d in c], dtype=np.int64))
        return frame

    # ── access ────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def names(self) -> List[str]:
        return self.parameter_names + self.derived_names

    def get(self, name: str) -> np.ndarray:
        """Draws of one quantity shaped [chain, draw, *shape].

        Chains with different draw counts cannot be stacked; that only happens
        for sample sets assembled by hand.
        """
        if name not in self.shapes:
            raise KeyError(f"Unknown quantity '{name}'")
        shape = self.shapes[name]
        cols = column_names(name, shape)
        out = []
        for chain_id in sorted(self.frame['chain'].unique()):
            block = self.frame.loc[self.frame['chain'] == chain_id, cols].to_numpy()
            out.append(block.reshape((block.shape[0],) + tuple(shape)))
        return np.stack(out)

    def posterior_means(self) -> ParameterVector:
        """Posterior mean of every parameter and derived quantity, original shapes."""
        means = {}
        for name in self.names:
            shape = self.shapes[name]
            values = self.frame[column_names(name, shape)].to_numpy().mean(axis=0)
            means[name] = float(values[0]) if not shape else values.reshape(shape)
        return means

    def iter_parameter_vectors(self, rows: Optional[Sequence[int]] = None):
        """Yield one ParameterVector per table row (all rows by default)."""
        rows = range(len(self.frame)) if rows is None else rows
        blocks = {name: self.frame[column_names(name, self.shapes[name])].to_numpy()
                  for name in self.names}
        for i in rows:
            yield {
                name: float(blocks[name][i, 0]) if not self.shapes[name]
                else blocks[name][i].reshape(self.shapes[name])
                for name in self.names
            }

    def to_inference_data(self):
        """Convert to an arviz.InferenceData with (chain, draw) dimensions."""
        posterior = {name: self.get(name) for name in self.names}
        return az.from_dict(posterior=posterior)

    def to_csv(self, filepath, **kwargs):
        self.frame.to_csv(filepath, index=False, **kwargs)

    def __repr__(self):
        return (f"PosteriorSampleSet(model={self.model_name!r}, chains={self.n_chains}, "
                f"draws={len(self.frame)})")
