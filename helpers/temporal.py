# -*- coding: utf-8 -*-
"""
Temporal utilities for frequency alignment and aggregation.

Functions
---------
- to_annual_mean(frame, date_column): Aggregate irregular observations
  (daily quotes, brand-level filings, monthly indicators) to one arithmetic
  mean per calendar year and indicator, indexed by integer year. Only
  observations inside a year contribute to that year.
"""

from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd


def _year_labels(values: pd.Series) -> pd.Series:
    """
    Calendar year for each entry of a date-like column.

    - Integer-like values (e.g. 2015) are taken as years directly.
    - Anything else is parsed with ``pd.to_datetime``; unparsable entries become NaN.
    """
    if pd.api.types.is_integer_dtype(values):
        return values.astype("Int64")
    if pd.api.types.is_float_dtype(values):
        # Integer years with gaps are read back as floats
        return values.round().astype("Int64")
    if isinstance(values.dtype, pd.PeriodDtype):
        return pd.Series(values.dt.year, index=values.index, dtype="Int64")
    parsed = pd.to_datetime(values, errors="coerce")
    return parsed.dt.year.astype("Int64")


def to_annual_mean(frame: pd.DataFrame,
                   date_column: str = "date",
                   columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Aggregate observations to annual frequency by within-year mean.

    Parameters
    ----------
    frame : pd.DataFrame
        Observations with a date-like column and numeric indicator columns.
    date_column : str, default="date"
        Column holding dates (or integer years).
    columns : Sequence[str], optional
        Indicators to aggregate. Defaults to every column except ``date_column``.

    Returns
    -------
    pd.DataFrame
        One row per year present in the data, index named ``year`` (int),
        sorted ascending. Non-numeric entries are ignored; a year with no
        numeric entry for an indicator gets NaN.

    Notes
    -----
    - Rows whose date cannot be parsed are dropped.
    - No interpolation across years is performed.
    """
    if not isinstance(frame, pd.DataFrame):
        raise TypeError("frame must be a pandas DataFrame")
    if date_column not in frame.columns:
        raise KeyError(f"Date column '{date_column}' not found in frame")

    value_cols = list(columns) if columns is not None else [c for c in frame.columns if c != date_column]
    missing = [c for c in value_cols if c not in frame.columns]
    if missing:
        raise KeyError(f"Columns not found in frame: {missing}")

    years = _year_labels(frame[date_column])
    values = frame[value_cols].apply(pd.to_numeric, errors="coerce")
    values = values.assign(year=years).dropna(subset=["year"])
    values["year"] = values["year"].astype(int)

    annual = values.groupby("year", sort=True)[value_cols].mean()
    annual.index.name = "year"
    return annual
