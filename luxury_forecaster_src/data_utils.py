# luxury_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple
import logging

from helpers.temporal import to_annual_mean

from .regressor_utils import RegressorSet
from .series_utils import SeriesStore

logger = logging.getLogger(__name__)


def load_observations_csv(csv_path: Path, date_column: str = "year") -> pd.DataFrame:
    """
    Load observations from CSV and aggregate them to one row per year.

    The file may already be annual (a ``year`` column of integers) or hold
    irregular dated observations, which are averaged within each calendar year.

    Parameters
    ----------
    csv_path : Path
        CSV file with ``date_column`` and one column per indicator.
    date_column : str, default="year"
        Column holding years or dates.

    Returns
    -------
    pd.DataFrame
        Annual frame indexed by integer ``year``.

    Raises
    ------
    SystemExit
        If the file doesn't exist, lacks the date column, or contains no valid rows.
    """
    if not csv_path.exists():
        raise SystemExit(f"Observations CSV not found: {csv_path}")

    logger.info("Loading observations from: %s", csv_path)
    df = pd.read_csv(csv_path)

    if date_column not in df.columns:
        raise SystemExit(f"Observations CSV must contain a '{date_column}' column.")

    annual = to_annual_mean(df, date_column)
    if annual.empty:
        raise SystemExit("No valid rows found in observations CSV after parsing.")

    logger.info("Loaded %d annual rows (%d-%d) with columns %s",
                len(annual), annual.index.min(), annual.index.max(), list(annual.columns))
    return annual


def build_model_inputs(annual: pd.DataFrame,
                       target: str,
                       regressor_sets: Mapping[str, Sequence[str]]
                       ) -> Tuple[SeriesStore, List[RegressorSet]]:
    """
    Build the target series and the named regressor sets from an annual frame.

    Years with a missing target are dropped from the series first; every
    regressor set is then restricted to exactly the series years so that
    series and regressors align year for year.

    Parameters
    ----------
    annual : pd.DataFrame
        Output of ``load_observations_csv``.
    target : str
        Column holding the target growth rate.
    regressor_sets : Mapping[str, Sequence[str]]
        Set name -> covariate columns.

    Returns
    -------
    Tuple[SeriesStore, List[RegressorSet]]

    Raises
    ------
    KeyError
        If the target or a covariate column is absent.
    RegressorMisalignment
        If a covariate has no value for a year of the series.
    """
    if target not in annual.columns:
        raise KeyError(f"Target column '{target}' not found; available: {list(annual.columns)}")

    series = SeriesStore.load(
        [(int(year), value) for year, value in annual[target].items()], name=target
    )
    dropped = len(annual) - len(series)
    if dropped:
        logger.info("Dropped %d year(s) with missing '%s'", dropped, target)

    rows = annual.loc[list(series.years)]
    sets: List[RegressorSet] = []
    for name, columns in regressor_sets.items():
        missing = [c for c in columns if c not in annual.columns]
        if missing:
            raise KeyError(f"Regressor set '{name}' references unknown columns {missing}")
        covariates: Dict[str, List[float]] = {
            col: rows[col].dropna().tolist() for col in columns
        }
        rs = RegressorSet.build(name, covariates, list(series.years))
        logger.debug("Regressor set %r", rs)
        sets.append(rs)

    return series, sets
