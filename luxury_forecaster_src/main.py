# luxury_forecaster_src/main.py

"""
ARIMAX forecasting of annual luxury-market growth from macroeconomic covariates.

This is the main entry point of the luxury forecasting system.

Purpose
-------
- Load yearly observations (or irregular dated observations averaged per year)
- Build the target growth series and one or more named regressor sets
- Grid-search ARIMAX orders per regressor set, in parallel, ranking candidates
  by AIC (ties by BIC) among those whose residuals pass Ljung-Box,
  Shapiro-Wilk and Breusch-Pagan at a common significance level
- Refit the winning candidate on a window ending at a training cut-off year
- Forecast the following year with a confidence interval and report the
  absolute and percentage error against the observed value

Configuration-Driven Workflow
-----------------------------
Search grid, diagnostic threshold and forecast settings are managed via the
YAML configuration file in the config/ directory. CLI arguments override
configuration values where applicable.
"""

import argparse
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

import pandas as pd

from diagnostics.residual_diagnostics import DiagnosticSuite

from .config_utils import ForecastSettings, get_config_value, initialize_config
from .data_utils import build_model_inputs, load_observations_csv
from .errors import ForecasterError, YearNotFound
from .estimation_utils import ArimaxEstimator, FittedModel
from .file_utils import append_forecast_row, ensure_dir, resolve_path, write_ranked_table
from .forecasting_utils import (
    Forecaster, ForecastResult, fit_on_window, hash_forecast, rolling_one_step_predictions
)
from .metrics_utils import summarize_one_step
from .parsing_utils import (
    build_order_grid, parse_future_row, parse_range_arg, parse_regressor_sets, validate_log_level
)
from .regressor_utils import RegressorSet
from .search_utils import CandidateEvaluation, ModelSearch, SearchResult, best_across
from .series_utils import SeriesStore

logger = logging.getLogger(__name__)


@dataclass
class WorkflowReport:
    """Everything produced by one run of ``run_forecast_workflow``."""

    target: str
    train_end_year: int
    search_results: Dict[str, SearchResult]
    selected: Optional[CandidateEvaluation] = None
    refit: Optional[FittedModel] = field(default=None, repr=False)
    forecast: Optional[ForecastResult] = None
    forecast_hash: Optional[str] = None
    used_invalid_fallback: bool = False
    backtest: Optional[Dict[str, float]] = None
    backtest_failures: Dict[int, str] = field(default_factory=dict)

    @property
    def has_forecast(self) -> bool:
        return self.forecast is not None


def _future_regressors(regressors: RegressorSet,
                       train_end_year: int,
                       horizon: int,
                       future_row: Optional[Mapping[str, float]]) -> Union[pd.DataFrame, Mapping[str, float]]:
    """
    Regressor values for the forecast horizon.

    Caller-supplied values win; a mapping covering more covariates than the
    selected set is narrowed to the set's columns. Otherwise the observed
    rows after ``train_end_year`` are used.
    """
    if future_row is not None:
        if set(regressors.columns).issubset(future_row):
            return {col: future_row[col] for col in regressors.columns}
        return future_row

    future = regressors.slice(lambda year: train_end_year < year <= train_end_year + horizon)
    if len(future) < horizon:
        raise YearNotFound(
            f"Regressor set '{regressors.name}' has {len(future)} observed row(s) after "
            f"{train_end_year}; {horizon} needed. Supply future regressor values."
        )
    return future.matrix


def run_forecast_workflow(series: SeriesStore,
                          regressor_sets: Sequence[RegressorSet],
                          settings: Optional[ForecastSettings] = None,
                          train_end_year: Optional[int] = None,
                          future_row: Optional[Mapping[str, float]] = None,
                          actual: Optional[float] = None,
                          backtest_start: Optional[int] = None,
                          show_progress: bool = False) -> WorkflowReport:
    """
    Search, select, refit and forecast.

    Parameters
    ----------
    series : SeriesStore
        Target growth series.
    regressor_sets : Sequence[RegressorSet]
        Candidate covariate sets, each aligned by year with ``series``.
    settings : ForecastSettings, optional
        Defaults to ``ForecastSettings()``.
    train_end_year : int, optional
        Last year of the refit window. Defaults to the year before the last
        observation, so the forecast can be scored against the observed value.
    future_row : Mapping[str, float], optional
        Regressor values for the forecast horizon.
    actual : float, optional
        Observed value of the target year; looked up in ``series`` if omitted.
    show_progress : bool, default=False
        Display tqdm progress bars during the search.
    backtest_start : int, optional
        When given, the selected order is also evaluated by leak-free one-step
        forecasts for every year from ``backtest_start`` on; summary in
        ``report.backtest``.

    Returns
    -------
    WorkflowReport
        ``selected`` and ``forecast`` are None when no candidate qualifies.

    Raises
    ------
    DimensionMismatch
        If a regressor set is not aligned with the series.
    EstimationFailure
        If the selected order cannot be refit on the truncated window.
    InvalidWindow
        If ``train_end_year`` precedes the first observation.
    """
    settings = settings or ForecastSettings()
    settings.validate()
    train_end_year = series.end_year - 1 if train_end_year is None else int(train_end_year)

    logger.info("Forecast workflow for '%s': %d years (%d-%d), %d regressor set(s), %d orders",
                series.name, len(series), series.start_year, series.end_year,
                len(regressor_sets), len(settings.order_grid))

    estimator = ArimaxEstimator(
        include_intercept=settings.include_intercept,
        maxiter=settings.maxiter,
        require_convergence=settings.require_convergence,
    )
    diagnostics = DiagnosticSuite(
        significance_level=settings.significance_level,
        ljung_box_lags=settings.ljung_box_lags,
    )
    search = ModelSearch(
        estimator=estimator,
        diagnostics=diagnostics,
        max_workers=settings.max_workers,
        timeout=settings.search_timeout,
        show_progress=show_progress,
    )
    results = search.search_all(series, regressor_sets, settings.order_grid)
    report = WorkflowReport(target=series.name, train_end_year=train_end_year, search_results=results)

    selected = best_across(results, allow_invalid=settings.allow_invalid)
    if selected is None:
        logger.warning("No candidate qualified for forecasting; nothing to refit")
        return report
    report.selected = selected
    report.used_invalid_fallback = not selected.valid

    regressors = selected.model.regressors
    logger.info("Selected ARIMAX%s with regressor set '%s' (AIC=%.3f, BIC=%.3f, valid=%s)",
                selected.order, regressors.name, selected.aic, selected.bic, selected.valid)

    refit = fit_on_window(estimator, series, regressors, selected.order, train_end_year)
    report.refit = refit

    target_year = train_end_year + settings.horizon
    if actual is None:
        actual = series.value_at(target_year)
    future = _future_regressors(regressors, train_end_year, settings.horizon, future_row)

    forecaster = Forecaster(horizon=settings.horizon, confidence=settings.confidence)
    report.forecast = forecaster.forecast(refit, future, actual=actual)
    report.forecast_hash = hash_forecast(report.forecast.path)

    if report.forecast.actual is not None:
        logger.info("Forecast for %d: %.3f vs actual %.3f (abs error %.3f, pct error %.2f%%)",
                    target_year, report.forecast.point_forecast, report.forecast.actual,
                    report.forecast.absolute_error, report.forecast.percentage_error)

    if backtest_start is not None:
        one_step, failures = rolling_one_step_predictions(
            series, regressors, selected.order, int(backtest_start),
            estimator=estimator,
            forecaster=Forecaster(horizon=1, confidence=settings.confidence),
        )
        report.backtest_failures = failures
        report.backtest = summarize_one_step(
            [r.actual for r in one_step], [r.point_forecast for r in one_step],
            [r.lower for r in one_step], [r.upper for r in one_step],
        )
        logger.info("One-step backtest from %d: n=%d MAE=%.3f RMSE=%.3f hit rate=%.2f (%d failed)",
                    backtest_start, len(one_step), report.backtest["MAE"], report.backtest["RMSE"],
                    report.backtest["hit_rate"], len(failures))
    return report


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Options left unset fall back to the configuration file, then to built-in
    defaults.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="ARIMAX forecasting of annual luxury-market growth."
    )

    # Data and output arguments
    parser.add_argument(
        "--data-csv", type=str, default=None,
        help="CSV with a year (or date) column, the target and covariate columns."
    )
    parser.add_argument(
        "--date-column", type=str, default=None,
        help="Name of the year/date column (default 'year')."
    )
    parser.add_argument(
        "--target", type=str, default=None,
        help="Target growth column (default 'growth')."
    )
    parser.add_argument(
        "--regressor-sets", type=str, default=None,
        help="Named covariate sets, e.g. 'macro=GDP,Gini;wealth=HNWI'."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to YAML configuration file (default config/forecaster.yaml)."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Directory for ranked model tables (one CSV per regressor set)."
    )
    parser.add_argument(
        "--forecast-log", type=str, default=None,
        help="If provided, append the forecast row to this CSV."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )
    parser.add_argument(
        "--progress", action="store_true",
        help="Show progress bars during the grid search."
    )

    # Grid search controls
    parser.add_argument(
        "--orders", type=str, default=None,
        help="Explicit order grid, e.g. '1,1,1;2,1,1'. Overrides the range options."
    )
    parser.add_argument(
        "--p-range", type=str, default=None,
        help="Range or list for AR order p (e.g., '1-3' or '1,2')."
    )
    parser.add_argument(
        "--d-range", type=str, default=None,
        help="Range or list for differencing order d."
    )
    parser.add_argument(
        "--q-range", type=str, default=None,
        help="Range or list for MA order q."
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Thread pool size for the grid search."
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Seconds allowed for the grid search of one regressor set."
    )
    parser.add_argument(
        "--allow-invalid", action="store_true", default=None,
        help="Forecast with the best AIC candidate even if none passes diagnostics."
    )

    # Diagnostics
    parser.add_argument(
        "--alpha", type=float, default=None,
        help="Significance level of the residual tests (default 0.05)."
    )
    parser.add_argument(
        "--ljung-box-lags", type=int, default=None,
        help="Maximum Ljung-Box lag (capped at n-1)."
    )

    # Forecast
    parser.add_argument(
        "--train-end-year", type=int, default=None,
        help="Last year of the refit window (default: year before the last observation)."
    )
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Years ahead to forecast (default 1)."
    )
    parser.add_argument(
        "--confidence", type=float, default=None,
        help="Forecast interval coverage (default 0.95)."
    )
    parser.add_argument(
        "--future", type=str, default=None,
        help="Future covariate values, e.g. 'GDP=2.1,Gini=0.41'."
    )
    parser.add_argument(
        "--actual", type=float, default=None,
        help="Observed value of the target year, if not in the data."
    )
    parser.add_argument(
        "--backtest-start", type=int, default=None,
        help="Also run leak-free one-step forecasts of the selected order from this year on."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def _resolve_order_args(args: argparse.Namespace) -> None:
    """Fold --p-range/--d-range/--q-range into ``args.orders`` when no explicit grid is given."""
    if args.orders is not None:
        return
    if args.p_range is None and args.d_range is None and args.q_range is None:
        return
    args.orders = build_order_grid(
        parse_range_arg(args.p_range, "1-3", "model.p_range", args),
        parse_range_arg(args.d_range, "1", "model.d_range", args),
        parse_range_arg(args.q_range, "1-3", "model.q_range", args),
    )


def main() -> None:
    """
    Main entry point for the ARIMAX forecasting application.

    Loads the data, runs the search and forecast, writes ranked tables and
    the forecast log, and logs a summary.
    """
    parser = setup_cli_parser()
    args = parser.parse_args()

    # Setup logging
    setup_logging(args.log_level)

    # Initialize configuration system
    base_dir = Path(__file__).resolve().parent.parent
    initialize_config(resolve_path(args.config, base_dir) if args.config else None)

    data_csv = get_config_value("data.csv", None, args, "data_csv")
    if data_csv is None:
        parser.error("--data-csv is required (or set data.csv in the configuration file)")
    sets_value = get_config_value("data.regressor_sets", None, args, "regressor_sets")
    if sets_value is None:
        parser.error("--regressor-sets is required (or set data.regressor_sets in the configuration file)")

    _resolve_order_args(args)
    try:
        settings = ForecastSettings.from_config(args)
        regressor_spec = parse_regressor_sets(sets_value)
        future_row = parse_future_row(args.future)
    except ValueError as e:
        parser.error(str(e))

    annual = load_observations_csv(
        resolve_path(str(data_csv), base_dir),
        get_config_value("data.date_column", "year", args, "date_column"),
    )
    target = get_config_value("data.target", "growth", args, "target")

    try:
        series, regressor_sets = build_model_inputs(annual, target, regressor_spec)
        train_end_year = get_config_value("forecast.train_end_year", None, args, "train_end_year")
        report = run_forecast_workflow(
            series, regressor_sets, settings,
            train_end_year=train_end_year,
            future_row=future_row,
            actual=args.actual,
            backtest_start=get_config_value("forecast.backtest_start", None, args, "backtest_start"),
            show_progress=args.progress,
        )
    except (ForecasterError, KeyError) as e:
        logger.error("Forecast workflow failed: %s", e)
        raise SystemExit(1) from e

    for name, result in report.search_results.items():
        logger.info("Ranked candidates for '%s':\n%s",
                    name, result.to_frame(valid_only=False).to_string(index=False))

    output_dir = get_config_value("output.dir", None, args, "output_dir")
    if output_dir:
        out = resolve_path(str(output_dir), base_dir)
        ensure_dir(out)
        for name, result in report.search_results.items():
            write_ranked_table(result, out / f"ranked_{target}_{name}.csv")

    if not report.has_forecast:
        logger.warning("No forecast produced for '%s'", target)
        return

    forecast_log = get_config_value("output.forecast_log", None, args, "forecast_log")
    if forecast_log:
        append_forecast_row(resolve_path(str(forecast_log), base_dir), report)

    fc = report.forecast
    logger.info("ARIMAX%s [%s] forecast for %d: %.3f, %.0f%% interval [%.3f, %.3f]%s",
                fc.order, fc.regressor_set, fc.target_year, fc.point_forecast,
                fc.confidence * 100, fc.lower, fc.upper,
                " (candidate failed diagnostics)" if report.used_invalid_fallback else "")


if __name__ == "__main__":
    main()
