# luxury_forecaster_src/series_utils.py

import math
import numpy as np
import pandas as pd
from typing import Iterable, Tuple, Optional
import logging

from .errors import DuplicateYear, EmptySeries, InsufficientLength, InvalidWindow

logger = logging.getLogger(__name__)


class SeriesStore:
    """
    Ordered annual series of growth-rate values keyed by integer year.

    The store is immutable: windowing and differencing return new objects and
    never modify the underlying values.

    Parameters
    ----------
    values : pd.Series
        Values indexed by strictly increasing, unique integer years. Use
        ``SeriesStore.load`` or ``SeriesStore.from_series`` to build a store from
        raw input; they drop missing values and sort by year.
    name : str, default="growth"
        Label of the series, carried into fitted-model summaries.
    """

    def __init__(self, values: pd.Series, name: str = "growth"):
        if values.empty:
            raise EmptySeries("Series has no valid (year, value) points.")
        if values.index.has_duplicates:
            dupes = sorted(set(values.index[values.index.duplicated()]))
            raise DuplicateYear(f"Duplicate years in series: {dupes}")
        if not values.index.is_monotonic_increasing:
            raise ValueError("Series years must be strictly increasing.")
        self._values = values.astype(float).copy()
        self._values.index = self._values.index.astype(int)
        self._values.index.name = "year"
        self._values.name = name
        self.name = name

    @classmethod
    def load(cls, points: Iterable[Tuple[int, Optional[float]]], name: str = "growth") -> "SeriesStore":
        """
        Build a store from raw (year, value) pairs.

        Entries whose value is missing (None or NaN) are dropped and the rest is
        sorted by year.

        Raises
        ------
        EmptySeries
            If no valid point remains.
        DuplicateYear
            If a year occurs twice among the valid points.
        """
        years, vals = [], []
        dropped = 0
        for year, value in points:
            try:
                val = float(value)
            except (TypeError, ValueError):
                dropped += 1
                continue
            if math.isnan(val):
                dropped += 1
                continue
            years.append(int(year))
            vals.append(val)

        if not years:
            raise EmptySeries("No valid (year, value) points after dropping missing values.")

        s = pd.Series(vals, index=pd.Index(years, name="year"), name=name).sort_index(kind="mergesort")
        if dropped:
            logger.debug("Dropped %d points with missing values while loading '%s'", dropped, name)
        return cls(s, name=name)

    @classmethod
    def from_series(cls, series: pd.Series, name: Optional[str] = None) -> "SeriesStore":
        """Build a store from a pandas Series indexed by year (missing values dropped)."""
        label = name or (str(series.name) if series.name is not None else "growth")
        numeric = pd.to_numeric(series, errors="coerce")
        return cls.load(zip(series.index, numeric.values), name=label)

    # ------------------------------------------------------------------ accessors

    @property
    def values(self) -> pd.Series:
        """Copy of the values indexed by year."""
        return self._values.copy()

    @property
    def years(self) -> pd.Index:
        return self._values.index

    @property
    def start_year(self) -> int:
        return int(self._values.index[0])

    @property
    def end_year(self) -> int:
        return int(self._values.index[-1])

    def value_at(self, year: int) -> Optional[float]:
        """Observed value for ``year`` or None when the year is not in the store."""
        if year in self._values.index:
            return float(self._values.loc[year])
        return None

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SeriesStore(name={self.name!r}, years={self.start_year}-{self.end_year}, n={len(self)})"

    # ------------------------------------------------------------------ views

    def window(self, end_year: int) -> "SeriesStore":
        """
        Return a new store truncated to years <= ``end_year``.

        Raises
        ------
        InvalidWindow
            If ``end_year`` precedes the first year of the series.
        """
        if end_year < self.start_year:
            raise InvalidWindow(
                f"Window end {end_year} precedes first year {self.start_year} of '{self.name}'."
            )
        return SeriesStore(self._values.loc[self._values.index <= end_year], name=self.name)

    def difference(self, order: int) -> pd.Series:
        """
        Return the ``order``-th successive difference of the series.

        The result has ``len(self) - order`` values, indexed by the trailing
        years (the first ``order`` years are consumed).

        Raises
        ------
        InsufficientLength
            If ``order`` >= series length.
        """
        if order < 0:
            raise ValueError(f"Differencing order must be non-negative, got {order}")
        n = len(self._values)
        if order >= n:
            raise InsufficientLength(
                f"Cannot take difference of order {order} of a series with {n} points."
            )
        arr = np.diff(self._values.to_numpy(), n=order) if order else self._values.to_numpy().copy()
        return pd.Series(arr, index=self._values.index[order:], name=self.name)

    def integration_anchors(self, order: int) -> Tuple[float, ...]:
        """
        Last value of each differencing stage 0..order-1.

        These are the constants needed to turn a forecast of the
        ``order``-th difference back into a forecast of the level.
        """
        return tuple(float(self.difference(k).iloc[-1]) for k in range(order))

    def stationarity_check(self, order: int = 0) -> Tuple[float, float]:
        """
        Augmented Dickey-Fuller statistic and p-value of the ``order``-th difference.

        Exploratory only: the differencing order of candidate models always
        comes from the caller's grid.

        Returns
        -------
        Tuple[float, float]
            (test_statistic, p_value); both NaN when the differenced series is
            too short for the test.
        """
        from statsmodels.tsa.stattools import adfuller

        diffed = self.difference(order)
        if len(diffed) < 6:
            logger.debug("ADF skipped for '%s' (d=%d): only %d points", self.name, order, len(diffed))
            return float("nan"), float("nan")
        try:
            res = adfuller(diffed.to_numpy(), autolag="AIC")
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.debug("ADF failed for '%s' (d=%d): %s", self.name, order, e)
            return float("nan"), float("nan")
        return float(res[0]), float(res[1])
