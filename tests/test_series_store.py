import logging
import math

import numpy as np
import pandas as pd
import pytest

from luxury_forecaster_src.errors import (
    DuplicateYear, EmptySeries, ForecasterError, InsufficientLength, InvalidWindow
)
from luxury_forecaster_src.series_utils import SeriesStore


def test_load_drops_missing_and_sorts():
    points = [(2005, 3.0), (2003, 1.0), (2004, None), (2006, float("nan")), (2007, "n/a"), (2008, "4.5")]
    store = SeriesStore.load(points, name="growth")

    assert list(store.years) == [2003, 2005, 2008]
    assert store.values.tolist() == [1.0, 3.0, 4.5]
    assert store.start_year == 2003
    assert store.end_year == 2008
    assert len(store) == 3


def test_load_all_missing_raises_empty_series():
    with pytest.raises(EmptySeries):
        SeriesStore.load([(2003, None), (2004, float("nan"))])
    with pytest.raises(EmptySeries):
        SeriesStore.load([])


def test_duplicate_years_rejected():
    with pytest.raises(DuplicateYear):
        SeriesStore.load([(2003, 1.0), (2003, 2.0)])


def test_errors_are_value_errors_too():
    with pytest.raises(ValueError):
        SeriesStore.load([])
    assert issubclass(EmptySeries, ForecasterError)


def test_window_truncates_without_mutating(series):
    window = series.window(2010)

    assert window.end_year == 2010
    assert len(window) == 8
    assert len(series) == 20
    assert window.values.equals(series.values.loc[:2010])


def test_window_before_start_raises(series):
    with pytest.raises(InvalidWindow):
        series.window(2002)


def test_window_between_years_keeps_earlier_points():
    store = SeriesStore.load([(2003, 1.0), (2005, 2.0), (2007, 3.0)])
    assert list(store.window(2006).years) == [2003, 2005]


@pytest.mark.parametrize("d", [0, 1, 2, 5, 19])
def test_difference_length(series, d):
    diffed = series.difference(d)
    assert len(diffed) == len(series) - d
    assert list(diffed.index) == list(series.years[d:])


def test_difference_of_constant_series_is_zero():
    store = SeriesStore.load([(y, 4.2) for y in range(2003, 2013)])
    assert np.all(store.difference(1).to_numpy() == 0.0)
    assert np.all(store.difference(3).to_numpy() == 0.0)


def test_difference_values():
    store = SeriesStore.load([(2003, 1.0), (2004, 4.0), (2005, 9.0), (2006, 16.0)])
    assert store.difference(1).tolist() == [3.0, 5.0, 7.0]
    assert store.difference(2).tolist() == [2.0, 2.0]


def test_difference_too_long_raises():
    store = SeriesStore.load([(2003, 1.0), (2004, 2.0), (2005, 3.0)])
    with pytest.raises(InsufficientLength):
        store.difference(3)
    with pytest.raises(ValueError):
        store.difference(-1)


def test_integration_anchors():
    store = SeriesStore.load([(2003, 1.0), (2004, 4.0), (2005, 9.0), (2006, 16.0)])
    assert store.integration_anchors(0) == ()
    assert store.integration_anchors(1) == (16.0,)
    assert store.integration_anchors(2) == (16.0, 7.0)


def test_value_at(series):
    assert series.value_at(2003) == pytest.approx(series.values.iloc[0])
    assert series.value_at(1999) is None


def test_values_is_a_copy(series):
    vals = series.values
    vals.iloc[0] = -999.0
    assert series.values.iloc[0] != -999.0


def test_stationarity_check_short_series_is_nan():
    store = SeriesStore.load([(2003, 1.0), (2004, 2.0), (2005, 1.5)])
    stat, pval = store.stationarity_check()
    assert math.isnan(stat) and math.isnan(pval)


def test_stationarity_check_returns_pvalue():
    rng = np.random.default_rng(3)
    walk = np.cumsum(rng.normal(0.0, 1.0, 80))
    store = SeriesStore.load(zip(range(1940, 2020), walk))
    _, pval = store.stationarity_check(order=1)
    assert 0.0 <= pval <= 1.0


def test_from_series_logs_dropped_points(caplog):
    s = pd.Series([1.0, np.nan, 3.0, None], index=[2019, 2020, 2021, 2022], name="growth")
    with caplog.at_level(logging.DEBUG, logger="luxury_forecaster_src.series_utils"):
        store = SeriesStore.from_series(s)

    assert list(store.years) == [2019, 2021]
    assert "Dropped 2 points" in caplog.text
