# luxury_forecaster_src/regressor_utils.py

import numpy as np
import pandas as pd
from typing import Callable, Dict, List, Mapping, Sequence, Union
import logging

from .errors import DuplicateYear, RegressorMisalignment, YearNotFound

logger = logging.getLogger(__name__)


class RegressorSet:
    """
    Named, year-aligned matrix of exogenous covariates.

    Rows are keyed by year and columns keep the order in which covariates were
    supplied; that order is part of the contract with fitted models and with
    future regressor rows used for forecasting.
    """

    def __init__(self, name: str, matrix: pd.DataFrame):
        if matrix.index.has_duplicates:
            dupes = sorted(set(matrix.index[matrix.index.duplicated()]))
            raise DuplicateYear(f"Duplicate years in regressor set '{name}': {dupes}")
        self.name = name
        self._matrix = matrix.astype(float).copy()
        self._matrix.index = pd.Index([int(y) for y in self._matrix.index], name="year")

    @classmethod
    def build(cls,
              name: str,
              covariate_map: Mapping[str, Sequence[float]],
              years: Sequence[int]) -> "RegressorSet":
        """
        Validate and assemble a regressor set.

        Parameters
        ----------
        name : str
            Label of the set (e.g. "macro").
        covariate_map : Mapping[str, Sequence[float]]
            Covariate label -> one value per year, in the order of ``years``.
        years : Sequence[int]
            Years the rows correspond to.

        Raises
        ------
        RegressorMisalignment
            If any covariate sequence length differs from ``len(years)``.
        DuplicateYear
            If ``years`` contains repeats.
        """
        years = [int(y) for y in years]
        n_years = len(years)
        columns: Dict[str, np.ndarray] = {}
        for label, seq in covariate_map.items():
            arr = np.asarray(list(seq), dtype=float)
            if arr.ndim != 1 or arr.shape[0] != n_years:
                raise RegressorMisalignment(
                    f"Covariate '{label}' in set '{name}' has {arr.shape[0] if arr.ndim else 0} "
                    f"values for {n_years} years."
                )
            columns[str(label)] = arr
        if not columns:
            raise RegressorMisalignment(f"Regressor set '{name}' has no covariates.")

        matrix = pd.DataFrame(columns, index=pd.Index(years, name="year"))
        return cls(name, matrix)

    @classmethod
    def from_frame(cls, name: str, frame: pd.DataFrame, columns: Sequence[str]) -> "RegressorSet":
        """Build a set from selected columns of a year-indexed DataFrame."""
        missing = [c for c in columns if c not in frame.columns]
        if missing:
            raise RegressorMisalignment(f"Columns {missing} not found for regressor set '{name}'.")
        return cls.build(name, {c: frame[c].to_numpy() for c in columns}, list(frame.index))

    # ------------------------------------------------------------------ accessors

    @property
    def columns(self) -> List[str]:
        return list(self._matrix.columns)

    @property
    def years(self) -> pd.Index:
        return self._matrix.index

    @property
    def matrix(self) -> pd.DataFrame:
        """Copy of the underlying year x covariate matrix."""
        return self._matrix.copy()

    def __len__(self) -> int:
        return len(self._matrix)

    def __repr__(self) -> str:
        return f"RegressorSet(name={self.name!r}, columns={self.columns}, n={len(self)})"

    def aligned_with(self, years: Union[pd.Index, Sequence[int]]) -> bool:
        """True when the set's rows correspond one-to-one with ``years``."""
        return list(self._matrix.index) == [int(y) for y in years]

    # ------------------------------------------------------------------ views

    def slice(self, year_predicate: Callable[[int], bool]) -> "RegressorSet":
        """
        Row-filtered copy keeping the years for which ``year_predicate`` holds.

        Column order is preserved, which lets callers truncate regressors in
        lockstep with ``SeriesStore.window``.
        """
        mask = [bool(year_predicate(int(y))) for y in self._matrix.index]
        return RegressorSet(self.name, self._matrix.loc[mask])

    def row(self, year: int) -> pd.Series:
        """
        Covariate values of a single year, labelled by covariate.

        Raises
        ------
        YearNotFound
            If ``year`` is not a row of the set.
        """
        if year not in self._matrix.index:
            raise YearNotFound(f"Year {year} not present in regressor set '{self.name}'.")
        out = self._matrix.loc[year].copy()
        out.name = int(year)
        return out


def zero_variance_columns(frame: pd.DataFrame) -> List[str]:
    """
    Columns of ``frame`` with no spread over its rows.

    Non-finite spreads (all-missing columns) count as zero variance, and every
    column of an empty frame is reported.
    """
    if len(frame) == 0:
        return [str(c) for c in frame.columns]
    spread = frame.max(axis=0) - frame.min(axis=0)
    return [c for c in frame.columns if not np.isfinite(spread[c]) or spread[c] == 0.0]
