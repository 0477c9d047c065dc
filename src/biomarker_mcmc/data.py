"""
Longitudinal biomarker data for the sampler.

Supports:
- Fixed-schema CSV files from the dose-response study
- pandas DataFrames already in memory
- Synthetic datasets drawn from known parameter values (for recovery checks)

Expected CSV format:
    ptid,month,bcarot,vite,dose,male,bmi,chol,age
    1,0,180,870,0,1,24.8,210,61
    1,3,236,905,0,1,24.8,210,61
    ...

Subject ids are remapped to a dense index in [0, n_subjects) so that random
intercepts live in one contiguous array. All arrays are read-only once loaded;
chains share them without copying.
"""
import numpy as np
import pandas as pd
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

SUBJECT_COLUMN = 'ptid'
TIME_COLUMN = 'month'
RESPONSE_COLUMNS = ('bcarot', 'vite')
DEFAULT_COVARIATES = ('dose', 'male', 'bmi', 'chol', 'age')
DOSE_LEVELS = (0.0, 15.0, 30.0, 45.0, 60.0)


def _read_only(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class LongitudinalData:
    """Column-wise observations: one entry per (subject, time) row."""
    subject_index: np.ndarray          # [n] dense subject index
    subject_ids: np.ndarray            # [n_subjects] original id of each dense index
    time: np.ndarray                   # [n]
    covariates: np.ndarray             # [n, k]
    covariate_names: Tuple[str, ...]
    response: np.ndarray               # [n]
    response_name: str = 'response'

    @property
    def n_obs(self) -> int:
        return int(self.response.shape[0])

    @property
    def n_subjects(self) -> int:
        return int(self.subject_ids.shape[0])

    def covariate(self, name: str) -> np.ndarray:
        """Return one covariate column by name."""
        try:
            return self.covariates[:, self.covariate_names.index(name)]
        except ValueError:
            raise KeyError(f"Covariate '{name}' not in {self.covariate_names}") from None

    def subject_position(self, subject_id) -> int:
        """Dense index of an original subject id."""
        hits = np.flatnonzero(self.subject_ids == subject_id)
        if hits.size == 0:
            raise KeyError(f"Unknown subject id: {subject_id!r}")
        return int(hits[0])

    @classmethod
    def from_frame(cls, df: pd.DataFrame,
                   response: str = 'bcarot',
                   covariates: Sequence[str] = DEFAULT_COVARIATES,
                   subject: str = SUBJECT_COLUMN,
                   time: str = TIME_COLUMN) -> 'LongitudinalData':
        """Build from a DataFrame holding the subject, time, covariate and response columns."""
        required = [subject, time, response, *covariates]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df[required].dropna()
        codes, uniques = pd.factorize(df[subject], sort=True)

        return cls(
            subject_index=_read_only(codes, np.intp),
            subject_ids=_read_only(np.asarray(uniques), None),
            time=_read_only(df[time].to_numpy(), np.float64),
            covariates=_read_only(df[list(covariates)].to_numpy().reshape(len(df), len(covariates)),
                                  np.float64),
            covariate_names=tuple(covariates),
            response=_read_only(df[response].to_numpy(), np.float64),
            response_name=response,
        )

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.covariates, columns=list(self.covariate_names))
        frame.insert(0, TIME_COLUMN, self.time)
        frame.insert(0, SUBJECT_COLUMN, self.subject_ids[self.subject_index])
        frame[self.response_name] = self.response
        return frame


def load_biomarker_csv(filepath: Union[str, Path],
                       response: str = 'bcarot',
                       covariates: Sequence[str] = DEFAULT_COVARIATES,
                       delimiter: str = ',',
                       verbose: bool = True) -> LongitudinalData:
    """Load the study CSV and keep the rows complete in the requested columns.

    Args:
        filepath: path to the CSV file
        response: response column, 'bcarot' or 'vite'
        covariates: covariate columns, in the order used by the models
        delimiter: column delimiter

    Returns:
        LongitudinalData with dense subject indices
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    df = pd.read_csv(filepath, sep=delimiter)
    n_rows = len(df)
    data = LongitudinalData.from_frame(df, response=response, covariates=covariates)

    if verbose:
        dropped = n_rows - data.n_obs
        print(f"[OK] Loaded {data.n_obs} observations of '{response}' "
              f"from {data.n_subjects} subjects")
        if dropped:
            print(f"  Dropped {dropped} rows with missing values")
        print(f"  Time range: {data.time.min():.1f} - {data.time.max():.1f}")

    return data


# ═══════════════════════════════════════════════════════════════
# Synthetic data
# ═══════════════════════════════════════════════════════════════

def simulate_covariates(n_subjects: int, rng: np.random.Generator) -> pd.DataFrame:
    """Per-subject baseline covariates on the study's scales."""
    return pd.DataFrame({
        SUBJECT_COLUMN: np.arange(1, n_subjects + 1),
        'dose': rng.choice(DOSE_LEVELS, size=n_subjects),
        'male': rng.integers(0, 2, size=n_subjects).astype(float),
        'bmi': np.round(rng.normal(26.0, 4.0, size=n_subjects), 1),
        'chol': np.round(rng.normal(220.0, 35.0, size=n_subjects)),
        'age': np.round(rng.normal(58.0, 8.0, size=n_subjects)),
    })


def simulate_dataset(model, params: Dict, n_subjects: int = 10,
                     times: Sequence[float] = (0.0, 3.0, 6.0, 9.0, 12.0),
                     response: str = 'bcarot',
                     seed: Optional[int] = None) -> LongitudinalData:
    """Draw a dataset from a model's mean function with known parameters.

    ``params`` must hold every fixed effect of ``model`` plus ``tau_e`` and
    ``tau_b``; random intercepts are drawn from Normal(0, 1/tau_b) and are
    returned through the generated response only.
    """
    rng = np.random.default_rng(seed)
    baseline = simulate_covariates(n_subjects, rng)
    times = np.asarray(times, dtype=float)

    df = baseline.loc[baseline.index.repeat(len(times))].reset_index(drop=True)
    df.insert(1, TIME_COLUMN, np.tile(times, n_subjects))

    covariate_names = list(model.covariates)
    b0 = rng.normal(0.0, 1.0 / np.sqrt(params['tau_b']), size=n_subjects)
    fixed = model.mean(params, df[TIME_COLUMN].to_numpy(),
                       df[covariate_names].to_numpy(dtype=float))
    noise = rng.normal(0.0, 1.0 / np.sqrt(params['tau_e']), size=len(df))
    df[response] = fixed + b0[df[SUBJECT_COLUMN].to_numpy() - 1] + noise

    return LongitudinalData.from_frame(df, response=response, covariates=covariate_names)


def write_biomarker_csv(data: LongitudinalData, filepath: Union[str, Path]) -> Path:
    """Write data back in the study CSV layout."""
    filepath = Path(filepath)
    data.to_frame().to_csv(filepath, index=False)
    return filepath
