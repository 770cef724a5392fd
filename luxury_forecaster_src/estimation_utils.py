# luxury_forecaster_src/estimation_utils.py

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import logging

from statsmodels.tsa.statespace.sarimax import SARIMAX

from .errors import DimensionMismatch, EstimationFailure, InsufficientLength
from .regressor_utils import RegressorSet, zero_variance_columns
from .series_utils import SeriesStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ModelOrder:
    """ARIMA order (p, d, q) of non-negative integers."""

    p: int
    d: int
    q: int

    def __post_init__(self):
        for label, value in (("p", self.p), ("d", self.d), ("q", self.q)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
                raise ValueError(f"Order component {label} must be a non-negative integer, got {value!r}")

    @classmethod
    def coerce(cls, order) -> "ModelOrder":
        """Accept a ModelOrder or any (p, d, q) triple."""
        if isinstance(order, cls):
            return order
        p, d, q = order
        return cls(int(p), int(d), int(q))

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    def __str__(self) -> str:
        return f"({self.p},{self.d},{self.q})"


@dataclass(frozen=True)
class FittedModel:
    """
    Immutable result of fitting one (order, regressor set) candidate.

    Residuals and fitted values live on the differenced scale and are indexed by
    the years of the differenced series (length = series length - d).
    """

    order: ModelOrder
    regressors: RegressorSet
    series_name: str
    ar_params: Tuple[float, ...]
    ma_params: Tuple[float, ...]
    exog_params: Dict[str, float]
    intercept: Optional[float]
    sigma2: float
    fitted_values: pd.Series = field(repr=False, compare=False)
    residuals: pd.Series = field(repr=False, compare=False)
    log_likelihood: float
    aic: float
    bic: float
    n_params: int
    n_obs: int
    end_year: int
    integration_anchors: Tuple[float, ...] = field(repr=False)
    converged: bool = True
    results: Any = field(default=None, repr=False, compare=False)

    @property
    def exog_columns(self):
        return list(self.exog_params.keys())

    def summary_row(self) -> Dict[str, Any]:
        """Flat summary used by the ranked model table."""
        return {
            "order": str(self.order),
            "regressor_set": self.regressors.name,
            "AIC": self.aic,
            "BIC": self.bic,
            "log_likelihood": self.log_likelihood,
            "n_params": self.n_params,
            "n_obs": self.n_obs,
            "converged": self.converged,
        }


def information_criteria(log_likelihood: float, n_params: int, n_obs: int) -> Tuple[float, float]:
    """
    AIC and BIC from a log-likelihood.

    AIC = -2 logLik + 2k and BIC = -2 logLik + k ln(n).
    """
    aic = -2.0 * log_likelihood + 2.0 * n_params
    bic = -2.0 * log_likelihood + n_params * math.log(n_obs)
    return aic, bic


class ArimaxEstimator:
    """
    Fit ARIMAX candidates by exact maximum likelihood.

    The series is differenced ``d`` times before fitting; the regressors are
    not. The differenced series is modelled as an intercept plus a linear
    regression on the undifferenced regressors, with ARMA(p, q) errors.

    Parameters
    ----------
    include_intercept : bool, default=True
        Estimate a constant term (counted in the parameter total k).
    maxiter : int, default=200
        Optimizer iteration cap passed to statsmodels.
    require_convergence : bool, default=False
        Treat a non-converged optimizer as an EstimationFailure. When False the
        fit is kept and a warning is logged.
    """

    def __init__(self,
                 include_intercept: bool = True,
                 maxiter: int = 200,
                 require_convergence: bool = False):
        self.include_intercept = include_intercept
        self.maxiter = maxiter
        self.require_convergence = require_convergence

    def check_alignment(self, series: SeriesStore, regressors: RegressorSet) -> None:
        """
        Ensure regressor rows correspond to the series years.

        Raises
        ------
        DimensionMismatch
            If the year vectors differ in length or content.
        """
        if len(regressors) != len(series):
            raise DimensionMismatch(
                f"Series '{series.name}' has {len(series)} rows but regressor set "
                f"'{regressors.name}' has {len(regressors)}."
            )
        if not regressors.aligned_with(series.years):
            raise DimensionMismatch(
                f"Regressor set '{regressors.name}' years do not match series '{series.name}' years."
            )

    def fit(self, series: SeriesStore, order, regressors: RegressorSet) -> FittedModel:
        """
        Fit one candidate.

        Parameters
        ----------
        series : SeriesStore
            Level series.
        order : ModelOrder or (p, d, q)
            Candidate order.
        regressors : RegressorSet
            Covariates aligned by year to ``series``.

        Returns
        -------
        FittedModel

        Raises
        ------
        DimensionMismatch
            Series and regressor rows do not correspond.
        EstimationFailure
            Any numerical failure of this candidate.
        """
        order = ModelOrder.coerce(order)
        self.check_alignment(series, regressors)

        try:
            endog = series.difference(order.d)
        except InsufficientLength as e:
            raise EstimationFailure(str(e), order=order) from e

        # Regressors stay undifferenced; drop the rows consumed by differencing.
        exog = regressors.matrix.loc[endog.index]
        n_obs = len(endog)
        n_params = order.p + order.q + exog.shape[1] + (1 if self.include_intercept else 0)

        if n_obs <= n_params:
            raise EstimationFailure(
                f"{n_obs} observations are not enough for {n_params} parameters", order=order
            )
        self._check_design(exog, order)

        logger.debug("Fitting ARIMAX%s on '%s' with %s (n=%d, k=%d)",
                     order, series.name, regressors.columns, n_obs, n_params)
        try:
            model = SARIMAX(
                endog.to_numpy(),
                exog.to_numpy(),
                order=(order.p, 0, order.q),
                trend="c" if self.include_intercept else "n",
                enforce_stationarity=True,
                enforce_invertibility=True,
            )
            res = model.fit(disp=False, maxiter=self.maxiter)
        except Exception as e:
            raise EstimationFailure(f"optimizer failed: {e}", order=order) from e

        llf = float(res.llf)
        if not np.isfinite(llf):
            raise EstimationFailure("non-finite log-likelihood", order=order)

        retvals = getattr(res, "mle_retvals", None) or {}
        converged = bool(retvals.get("converged", True))
        if not converged:
            if self.require_convergence:
                raise EstimationFailure("optimizer did not converge", order=order)
            logger.warning("ARIMAX%s on '%s' did not fully converge; keeping estimates", order, series.name)

        aic, bic = information_criteria(llf, n_params, n_obs)
        params = self._split_params(res, order, list(exog.columns))

        return FittedModel(
            order=order,
            regressors=regressors,
            series_name=series.name,
            ar_params=params["ar"],
            ma_params=params["ma"],
            exog_params=params["exog"],
            intercept=params["intercept"],
            sigma2=params["sigma2"],
            fitted_values=pd.Series(np.asarray(res.fittedvalues), index=endog.index, name="fitted"),
            residuals=pd.Series(np.asarray(res.resid), index=endog.index, name="residuals"),
            log_likelihood=llf,
            aic=aic,
            bic=bic,
            n_params=n_params,
            n_obs=n_obs,
            end_year=series.end_year,
            integration_anchors=series.integration_anchors(order.d),
            converged=converged,
            results=res,
        )

    def _check_design(self, exog: pd.DataFrame, order: ModelOrder) -> None:
        """
        Reject regression designs that cannot be identified.

        With an intercept, covariates that are flat over the fit window are
        absorbed by the constant and left out of the rank check; the
        Breusch-Pagan diagnostic reports them as inconclusive instead.
        """
        x = exog.to_numpy(dtype=float)
        if not np.all(np.isfinite(x)):
            raise EstimationFailure("regressors contain missing or non-finite values", order=order)
        if self.include_intercept:
            flat = zero_variance_columns(exog)
            if flat:
                logger.warning("ARIMAX%s: regressors %s are constant over the fit window", order, flat)
                x = exog.drop(columns=flat).to_numpy(dtype=float)
            x = np.column_stack([np.ones(len(x)), x])
        if x.shape[1] and np.linalg.matrix_rank(x) < x.shape[1]:
            raise EstimationFailure("singular design matrix (collinear or constant regressors)", order=order)

    def _split_params(self, res, order: ModelOrder, exog_cols) -> Dict[str, Any]:
        """Name the flat statsmodels parameter vector."""
        values = np.asarray(res.params, dtype=float)
        pos = 0
        intercept = None
        if self.include_intercept:
            intercept = float(values[pos])
            pos += 1
        exog_params = {c: float(v) for c, v in zip(exog_cols, values[pos:pos + len(exog_cols)])}
        pos += len(exog_cols)
        ar = tuple(float(v) for v in values[pos:pos + order.p])
        pos += order.p
        ma = tuple(float(v) for v in values[pos:pos + order.q])
        pos += order.q
        sigma2 = float(values[pos])
        return {"intercept": intercept, "exog": exog_params, "ar": ar, "ma": ma, "sigma2": sigma2}
