# luxury_forecaster_src/errors.py

"""
Exception hierarchy for the ARIMAX forecasting core.

Construction-time errors (EmptySeries, RegressorMisalignment, DimensionMismatch,
RegressorShapeMismatch, ...) propagate to the caller. Per-candidate errors raised
while searching (EstimationFailure, InsufficientSamples, DiagnosticInconclusive)
are recovered by the search and recorded against the candidate.
"""

from typing import Optional


class ForecasterError(Exception):
    """Base class for all errors raised by the forecasting core."""


class EmptySeries(ForecasterError, ValueError):
    """No valid (year, value) points remain after dropping missing values."""


class InvalidWindow(ForecasterError, ValueError):
    """Requested window end precedes the first year of the series."""


class InsufficientLength(ForecasterError, ValueError):
    """Series is too short for the requested differencing order."""


class DuplicateYear(ForecasterError, ValueError):
    """The same year appears more than once in a series or regressor set."""


class RegressorMisalignment(ForecasterError, ValueError):
    """A covariate sequence does not line up with the year vector."""


class YearNotFound(ForecasterError, LookupError):
    """Requested year is not present in a regressor set."""


class DimensionMismatch(ForecasterError, ValueError):
    """Series and regressor rows do not correspond after alignment."""


class RegressorShapeMismatch(ForecasterError, ValueError):
    """Future regressor values do not match the covariates a model was fit with."""


class EstimationFailure(ForecasterError):
    """Fitting one (order, regressor set) candidate failed."""

    def __init__(self, message: str, order: Optional[object] = None):
        super().__init__(message)
        self.order = order


class InsufficientSamples(ForecasterError):
    """Too few residuals for a diagnostic test."""


class DiagnosticInconclusive(ForecasterError):
    """A diagnostic test could not produce a p-value for this fit."""

    def __init__(self, test_name: str, message: str):
        super().__init__(f"{test_name}: {message}")
        self.test_name = test_name
