"""Shared synthetic data for the forecaster tests."""

import numpy as np
import pandas as pd
import pytest

from luxury_forecaster_src.regressor_utils import RegressorSet
from luxury_forecaster_src.series_utils import SeriesStore


def make_luxury_frame(seed: int = 7, start: int = 2003, n: int = 20) -> pd.DataFrame:
    """Annual frame with a growth target and three covariates, indexed by year."""
    rng = np.random.default_rng(seed)
    years = np.arange(start, start + n)
    gdp = 2.0 + rng.normal(0.0, 1.0, n)
    gini = 0.40 + rng.normal(0.0, 0.01, n)
    hnwi = 5.0 + np.cumsum(rng.normal(0.2, 0.5, n))
    growth = 3.0 + 1.2 * gdp - 15.0 * (gini - 0.40) + np.cumsum(rng.normal(0.0, 0.8, n))
    frame = pd.DataFrame(
        {"growth": growth, "GDP": gdp, "Gini": gini, "HNWI": hnwi},
        index=pd.Index(years, name="year"),
    )
    return frame


@pytest.fixture
def luxury_frame() -> pd.DataFrame:
    return make_luxury_frame()


@pytest.fixture
def series(luxury_frame) -> SeriesStore:
    return SeriesStore.from_series(luxury_frame["growth"], name="growth")


@pytest.fixture
def macro_set(luxury_frame) -> RegressorSet:
    return RegressorSet.from_frame("macro", luxury_frame, ["GDP", "Gini"])


@pytest.fixture
def wealth_set(luxury_frame) -> RegressorSet:
    return RegressorSet.from_frame("wealth", luxury_frame, ["HNWI"])
