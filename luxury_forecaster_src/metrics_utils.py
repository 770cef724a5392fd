# luxury_forecaster_src/metrics_utils.py

import numpy as np
import pandas as pd
from typing import Dict, List, Tuple, Union
import logging

logger = logging.getLogger(__name__)


def to_1d_array(x: Union[List[float], np.ndarray, pd.Series]) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def absolute_error(actual: float, forecast: float) -> float:
    """|actual - forecast|"""
    return float(abs(float(actual) - float(forecast)))


def percentage_error(actual: float, forecast: float) -> float:
    """
    Absolute error as a percentage of the absolute actual value.

    Returns NaN instead of raising when ``actual`` is zero.
    """
    actual = float(actual)
    if actual == 0.0:
        logger.debug("Percentage error undefined for actual == 0; reporting NaN")
        return float("nan")
    return 100.0 * absolute_error(actual, forecast) / abs(actual)


def forecast_errors(actual: float, forecast: float) -> Tuple[float, float]:
    """
    Absolute and percentage error of a point forecast.

    Examples
    --------
    >>> forecast_errors(9.0, 7.5)
    (1.5, 16.666666666666668)
    """
    return absolute_error(actual, forecast), percentage_error(actual, forecast)


def mae(y_true: Union[List[float], np.ndarray, pd.Series],
        y_hat: Union[List[float], np.ndarray, pd.Series]) -> float:
    """
    Calculate Mean Absolute Error.

    Returns
    -------
    float
        Mean absolute error, or NaN if no valid data
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    n = min(len(yt), len(yh))
    if n == 0:
        return float("nan")
    return float(np.mean(np.abs(yh[:n] - yt[:n])))


def rmse(y_true: Union[List[float], np.ndarray, pd.Series],
         y_hat: Union[List[float], np.ndarray, pd.Series]) -> float:
    """
    Calculate Root Mean Square Error.

    Returns
    -------
    float
        Root mean square error, or NaN if no valid data
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    n = min(len(yt), len(yh))
    if n == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yh[:n] - yt[:n]) ** 2)))


def interval_hit_rate(actuals: List[float], lowers: List[float], uppers: List[float]) -> float:
    """Share of actual values that fall inside their forecast interval."""
    y = np.asarray(actuals, dtype=float)
    lo = np.asarray(lowers, dtype=float)
    hi = np.asarray(uppers, dtype=float)
    if y.size == 0:
        return float("nan")
    return float(np.mean((y >= lo) & (y <= hi)))


def summarize_one_step(actuals: List[float], points: List[float],
                       lowers: List[float], uppers: List[float]) -> Dict[str, float]:
    """
    Aggregate accuracy of a sequence of one-step forecasts.

    Returns
    -------
    Dict[str, float]
        ``n``, ``MAE``, ``RMSE`` and ``hit_rate`` (interval coverage).
    """
    return {
        "n": float(len(actuals)),
        "MAE": mae(actuals, points),
        "RMSE": rmse(actuals, points),
        "hit_rate": interval_hit_rate(actuals, lowers, uppers),
    }
