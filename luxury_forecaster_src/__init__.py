# luxury_forecaster_src/__init__.py

"""
Luxury Forecaster ARIMAX - Annual Growth Forecasting Package

This package forecasts the annual growth of a luxury-goods market from a
short yearly series and a handful of macroeconomic covariates, using
ARIMAX models selected by information criteria and residual diagnostics.

Key Components
--------------
- series_utils: Year-indexed target series, windowing and differencing
- regressor_utils: Named covariate sets aligned by year
- estimation_utils: ARIMAX estimation on statsmodels SARIMAX
- search_utils: Concurrent order grid search and ranking
- forecasting_utils: Out-of-sample forecasts with confidence intervals
- metrics_utils: Forecast error metrics
- config_utils: Configuration management and CLI override support
- data_utils: CSV loading and annual aggregation of observations
- parsing_utils: Command-line argument parsing
- file_utils: Ranked tables and forecast logs on disk
- main: Main entry point and workflow orchestration

Residual tests live in the sibling ``diagnostics`` package.

Usage
-----
    # Command-line usage
    python -m luxury_forecaster_src.main --data-csv data/luxury.csv --target growth \\
        --regressor-sets "macro=GDP,Gini"

    # Programmatic usage
    from luxury_forecaster_src import SeriesStore, RegressorSet, ArimaxEstimator
"""

__version__ = "1.0.0"
__author__ = "Luxury Forecaster Development Team"

# Search and workflow modules import the diagnostics package, which in turn
# imports luxury_forecaster_src.errors; keep them out of package init.
from .errors import (
    ForecasterError,
    EmptySeries,
    InvalidWindow,
    InsufficientLength,
    DuplicateYear,
    RegressorMisalignment,
    DimensionMismatch,
    RegressorShapeMismatch,
    YearNotFound,
    EstimationFailure,
    InsufficientSamples,
    DiagnosticInconclusive,
)
from .series_utils import SeriesStore
from .regressor_utils import RegressorSet
from .estimation_utils import ArimaxEstimator, FittedModel, ModelOrder
from .forecasting_utils import Forecaster, ForecastResult
from .config_utils import initialize_config, get_config_value

__all__ = [
    # Core types
    "SeriesStore",
    "RegressorSet",
    "ModelOrder",
    "FittedModel",
    "ArimaxEstimator",
    "Forecaster",
    "ForecastResult",
    # Configuration
    "initialize_config",
    "get_config_value",
    # Errors
    "ForecasterError",
    "EmptySeries",
    "InvalidWindow",
    "InsufficientLength",
    "DuplicateYear",
    "RegressorMisalignment",
    "DimensionMismatch",
    "RegressorShapeMismatch",
    "YearNotFound",
    "EstimationFailure",
    "InsufficientSamples",
    "DiagnosticInconclusive",
    # Version info
    "__version__",
    "__author__",
]
