import math

import numpy as np
import pytest

from luxury_forecaster_src.errors import DimensionMismatch, EstimationFailure
from luxury_forecaster_src.estimation_utils import ArimaxEstimator, ModelOrder, information_criteria
from luxury_forecaster_src.regressor_utils import RegressorSet
from luxury_forecaster_src.series_utils import SeriesStore


def test_model_order_validation():
    assert str(ModelOrder(1, 1, 2)) == "(1,1,2)"
    assert ModelOrder.coerce((2, 1, 1)) == ModelOrder(2, 1, 1)
    assert ModelOrder.coerce([0, 0, 0]).as_tuple() == (0, 0, 0)
    with pytest.raises(ValueError):
        ModelOrder(-1, 0, 0)
    with pytest.raises(ValueError):
        ModelOrder(True, 0, 0)
    with pytest.raises(ValueError):
        ModelOrder(1.5, 0, 0)


def test_information_criteria_formula():
    aic, bic = information_criteria(-10.0, 3, 20)
    assert aic == pytest.approx(26.0)
    assert bic == pytest.approx(20.0 + 3 * math.log(20))


def test_fit_residuals_on_differenced_scale(series, macro_set):
    model = ArimaxEstimator().fit(series, (1, 1, 1), macro_set)

    assert len(model.residuals) == len(series) - 1
    assert len(model.fitted_values) == len(series) - 1
    assert model.residuals.index[0] == 2004
    assert model.n_obs == 19
    assert model.end_year == 2022
    assert model.integration_anchors == (series.value_at(2022),)


def test_fit_parameter_count_and_criteria(series, macro_set):
    model = ArimaxEstimator().fit(series, ModelOrder(1, 1, 1), macro_set)

    # AR + MA + two covariates + intercept
    assert model.n_params == 5
    assert model.exog_columns == ["GDP", "Gini"]
    assert model.intercept is not None
    assert len(model.ar_params) == 1
    assert len(model.ma_params) == 1
    assert model.sigma2 > 0
    assert model.aic == pytest.approx(-2 * model.log_likelihood + 2 * 5)
    assert model.bic == pytest.approx(-2 * model.log_likelihood + 5 * math.log(19))


def test_fit_without_intercept(series, macro_set):
    model = ArimaxEstimator(include_intercept=False).fit(series, (1, 1, 0), macro_set)
    assert model.intercept is None
    assert model.n_params == 3


def test_fit_level_model(series, macro_set):
    model = ArimaxEstimator().fit(series, (1, 0, 0), macro_set)
    assert len(model.residuals) == len(series)
    assert model.integration_anchors == ()


def test_misaligned_years_raise_dimension_mismatch(series, luxury_frame):
    shifted = RegressorSet.from_frame("macro", luxury_frame.loc[2004:], ["GDP", "Gini"])
    with pytest.raises(DimensionMismatch):
        ArimaxEstimator().fit(series, (1, 1, 1), shifted)

    other_years = RegressorSet.build(
        "macro", {"GDP": np.arange(20.0)}, list(range(2002, 2022))
    )
    with pytest.raises(DimensionMismatch):
        ArimaxEstimator().check_alignment(series, other_years)


def test_too_few_observations_fail_with_order():
    short = SeriesStore.load(zip(range(2018, 2023), [1.0, 2.5, 1.8, 3.1, 2.2]))
    rs = RegressorSet.build("macro", {"GDP": [1.0, 2.0, 1.5, 2.5, 3.0], "Gini": [0.3, 0.35, 0.31, 0.4, 0.38]},
                            list(range(2018, 2023)))
    with pytest.raises(EstimationFailure) as excinfo:
        ArimaxEstimator().fit(short, (2, 1, 1), rs)
    assert excinfo.value.order == ModelOrder(2, 1, 1)


def test_differencing_beyond_length_is_estimation_failure():
    short = SeriesStore.load([(2020, 1.0), (2021, 2.0)])
    rs = RegressorSet.build("macro", {"GDP": [1.0, 2.0]}, [2020, 2021])
    with pytest.raises(EstimationFailure):
        ArimaxEstimator().fit(short, (0, 2, 0), rs)


def test_collinear_regressors_fail(series, luxury_frame):
    rs = RegressorSet.build(
        "dup", {"GDP": luxury_frame["GDP"], "GDP2": 2.0 * luxury_frame["GDP"]}, list(luxury_frame.index)
    )
    with pytest.raises(EstimationFailure, match="singular"):
        ArimaxEstimator().fit(series, (1, 1, 1), rs)


def test_constant_regressor_is_absorbed_by_intercept(series, luxury_frame):
    rs = RegressorSet.build(
        "flat", {"GDP": luxury_frame["GDP"], "Flat": [1.0] * 20}, list(luxury_frame.index)
    )
    model = ArimaxEstimator().fit(series, (1, 1, 1), rs)
    assert model.exog_columns == ["GDP", "Flat"]
    assert model.n_params == 1 + 1 + 2 + 1


def test_zero_regressor_without_intercept_fails(series):
    rs = RegressorSet.build("zeros", {"Zero": [0.0] * 20}, list(range(2003, 2023)))
    with pytest.raises(EstimationFailure, match="singular"):
        ArimaxEstimator(include_intercept=False).fit(series, (1, 1, 1), rs)


def test_missing_regressor_value_fails(series, luxury_frame):
    gdp = luxury_frame["GDP"].to_numpy().copy()
    gdp[5] = np.nan
    rs = RegressorSet.build("gappy", {"GDP": gdp}, list(luxury_frame.index))
    with pytest.raises(EstimationFailure, match="non-finite"):
        ArimaxEstimator().fit(series, (1, 1, 1), rs)


def test_summary_row(series, macro_set):
    row = ArimaxEstimator().fit(series, (1, 1, 1), macro_set).summary_row()
    assert row["order"] == "(1,1,1)"
    assert row["regressor_set"] == "macro"
    assert np.isfinite(row["AIC"])
