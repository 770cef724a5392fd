# luxury_forecaster_src/forecasting_utils.py

import hashlib
import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

from scipy import stats
from statsmodels.tsa.arima_process import arma2ma

from .errors import EstimationFailure, InvalidWindow, RegressorShapeMismatch, YearNotFound
from .estimation_utils import ArimaxEstimator, FittedModel, ModelOrder
from .metrics_utils import forecast_errors
from .regressor_utils import RegressorSet
from .series_utils import SeriesStore

logger = logging.getLogger(__name__)

FutureRow = Union[pd.Series, pd.DataFrame, Mapping[str, float]]


@dataclass(frozen=True)
class ForecastResult:
    """Out-of-sample forecast of the level series with its interval and errors."""

    order: str
    regressor_set: str
    horizon: int
    target_year: int
    point_forecast: float
    lower: float
    upper: float
    confidence: float
    std_error: float
    path: Tuple[float, ...]
    actual: Optional[float] = None
    absolute_error: Optional[float] = None
    percentage_error: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out.pop("path")
        return out


class Forecaster:
    """
    Project a fitted ARIMAX model forward and report an interval.

    Forecasts are produced on the differenced scale by the statsmodels state
    space model and integrated back to the level of the series with the last
    observed value of each differencing stage.

    Parameters
    ----------
    horizon : int, default=1
        Steps ahead to predict.
    confidence : float, default=0.95
        Interval coverage.
    """

    def __init__(self, horizon: int = 1, confidence: float = 0.95):
        self.horizon = self._check_horizon(horizon)
        self.confidence = self._check_confidence(confidence)

    @staticmethod
    def _check_horizon(horizon: int) -> int:
        if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or horizon < 1:
            raise ValueError(f"horizon must be a positive integer, got {horizon!r}")
        return int(horizon)

    @staticmethod
    def _check_confidence(confidence: float) -> float:
        if not 0.0 < float(confidence) < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence!r}")
        return float(confidence)

    def forecast(self,
                 model: FittedModel,
                 future_row: FutureRow,
                 horizon: Optional[int] = None,
                 confidence: Optional[float] = None,
                 actual: Optional[float] = None) -> ForecastResult:
        """
        Point forecast and symmetric interval ``horizon`` years after the fit window.

        Parameters
        ----------
        model : FittedModel
            Fitted candidate (typically refit on a truncated window).
        future_row : pd.Series, Mapping or pd.DataFrame
            Regressor values for the forecast horizon with exactly the model's
            covariates, in the same order. A DataFrame must have ``horizon``
            rows; a single row is held constant over the horizon.
        horizon : int, optional
            Overrides the instance default.
        confidence : float, optional
            Overrides the instance default.
        actual : float, optional
            Observed value of the target year for error reporting.

        Raises
        ------
        RegressorShapeMismatch
            If ``future_row`` does not match the model covariates.
        """
        h = self._check_horizon(self.horizon if horizon is None else horizon)
        level = self._check_confidence(self.confidence if confidence is None else confidence)
        exog = future_exog_matrix(model, future_row, h)

        res = model.results
        fc = res.get_forecast(steps=h, exog=exog)
        diff_mean = np.asarray(fc.predicted_mean, dtype=float)

        if model.order.d == 0:
            path = diff_mean
            variance = np.asarray(fc.var_pred_mean, dtype=float)
        else:
            path = integrate_forecast(diff_mean, model.integration_anchors)
            variance = integrated_variance(model, h)

        point = float(path[-1])
        std_error = float(np.sqrt(variance[-1]))
        z = float(stats.norm.ppf(0.5 + level / 2.0))

        abs_err = pct_err = None
        if actual is not None:
            abs_err, pct_err = forecast_errors(actual, point)

        result = ForecastResult(
            order=str(model.order),
            regressor_set=model.regressors.name,
            horizon=h,
            target_year=model.end_year + h,
            point_forecast=point,
            lower=point - z * std_error,
            upper=point + z * std_error,
            confidence=level,
            std_error=std_error,
            path=tuple(float(v) for v in path),
            actual=None if actual is None else float(actual),
            absolute_error=abs_err,
            percentage_error=pct_err,
        )
        logger.info("ARIMAX%s forecast for %d: %.3f [%.3f, %.3f] (%.0f%%)",
                    model.order, result.target_year, point, result.lower, result.upper, level * 100)
        return result


def future_exog_matrix(model: FittedModel, future_row: FutureRow, horizon: int) -> np.ndarray:
    """
    Validate future regressor values against the model covariates.

    Returns
    -------
    np.ndarray
        ``(horizon, n_covariates)`` matrix in the model's column order.
    """
    expected = model.exog_columns

    if isinstance(future_row, pd.DataFrame):
        labels = [str(c) for c in future_row.columns]
        values = future_row.to_numpy(dtype=float)
    elif isinstance(future_row, pd.Series):
        labels = [str(c) for c in future_row.index]
        values = future_row.to_numpy(dtype=float).reshape(1, -1)
    elif isinstance(future_row, Mapping):
        labels = [str(c) for c in future_row.keys()]
        values = np.asarray([list(future_row.values())], dtype=float)
    else:
        raise RegressorShapeMismatch(
            f"Future regressors must be labelled (Series, mapping or DataFrame), got {type(future_row).__name__}"
        )

    if labels != expected:
        raise RegressorShapeMismatch(
            f"Future regressors {labels} do not match model covariates {expected} (names and order)."
        )
    if values.shape[0] == 1 and horizon > 1:
        logger.debug("Holding single future regressor row constant over %d steps", horizon)
        values = np.repeat(values, horizon, axis=0)
    if values.shape[0] != horizon:
        raise RegressorShapeMismatch(
            f"Expected {horizon} future regressor rows, got {values.shape[0]}."
        )
    if not np.all(np.isfinite(values)):
        raise RegressorShapeMismatch("Future regressor values must be finite.")
    return values


def integrate_forecast(diff_path: np.ndarray, anchors: Tuple[float, ...]) -> np.ndarray:
    """
    Undo differencing of a forecast path.

    ``anchors[k]`` is the last observed value of the k-th difference; stages
    are integrated from the innermost outwards.
    """
    path = np.asarray(diff_path, dtype=float)
    for anchor in reversed(anchors):
        path = anchor + np.cumsum(path)
    return path


def integrated_variance(model: FittedModel, horizon: int) -> np.ndarray:
    """
    Forecast error variance of the level for steps 1..horizon.

    Uses the psi-weights of the ARMA polynomial multiplied by (1 - L)^d:
    Var(h) = sigma2 * sum_{j<h} psi_j^2.
    """
    ar_poly = np.r_[1.0, -np.asarray(model.ar_params, dtype=float)]
    for _ in range(model.order.d):
        ar_poly = np.convolve(ar_poly, [1.0, -1.0])
    ma_poly = np.r_[1.0, np.asarray(model.ma_params, dtype=float)]
    psi = arma2ma(ar_poly, ma_poly, lags=horizon)
    return model.sigma2 * np.cumsum(psi ** 2)


def fit_on_window(estimator: ArimaxEstimator,
                  series: SeriesStore,
                  regressors: RegressorSet,
                  order,
                  end_year: int) -> FittedModel:
    """Refit an order on the series and regressors truncated in lockstep to ``end_year``."""
    window = series.window(end_year)
    window_regressors = regressors.slice(lambda year: year <= end_year)
    logger.info("Refitting ARIMAX%s on %d-%d (%d points)",
                ModelOrder.coerce(order), window.start_year, window.end_year, len(window))
    return estimator.fit(window, order, window_regressors)


def rolling_one_step_predictions(series: SeriesStore,
                                 regressors: RegressorSet,
                                 order,
                                 start_year: int,
                                 estimator: Optional[ArimaxEstimator] = None,
                                 forecaster: Optional[Forecaster] = None
                                 ) -> Tuple[List[ForecastResult], Dict[int, str]]:
    """
    Leak-free one-step-ahead forecasts for every year from ``start_year`` on.

    For target year t the model is refit on years <= t-1 only and forecast with
    the regressor row of year t, so no information beyond t-1 reaches the fit.

    Returns
    -------
    Tuple[List[ForecastResult], Dict[int, str]]
        Forecasts for the years that could be fit, and failure reasons keyed by
        target year for those that could not.
    """
    estimator = estimator or ArimaxEstimator()
    forecaster = forecaster or Forecaster()
    results: List[ForecastResult] = []
    failures: Dict[int, str] = {}

    for target in [int(y) for y in series.years if y >= start_year]:
        try:
            fitted = fit_on_window(estimator, series, regressors, order, target - 1)
            results.append(forecaster.forecast(
                fitted, regressors.row(target), horizon=1, actual=series.value_at(target)
            ))
        except (EstimationFailure, InvalidWindow, YearNotFound) as e:
            logger.warning("One-step forecast for %d failed: %s", target, e)
            failures[target] = str(e)

    return results, failures


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    16-character SHA-1 fingerprint of a forecast sequence.

    Useful for checking that repeated runs reproduce the same forecasts.
    """
    arr = np.asarray(seq, dtype=np.float64)
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]
