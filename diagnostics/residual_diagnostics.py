"""Residual diagnostics for fitted ARIMAX candidates.

This module decides whether a fitted model is statistically trustworthy by
running three tests on its residuals and combining them into a verdict.

Features:
- Ljung-Box test for serial correlation
- Shapiro-Wilk test for normality
- Breusch-Pagan test for heteroskedasticity against the model regressors
- Verdict: every p-value must exceed a single significance threshold
- Per-test failures recorded as inconclusive instead of aborting evaluation
"""

import logging
import math
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd
import numpy as np
from scipy import stats

# Statistical tests
from statsmodels.stats.diagnostic import acorr_ljungbox

from luxury_forecaster_src.errors import DiagnosticInconclusive, InsufficientSamples
from .heteroskedasticity import HeteroskedasticityTester

logger = logging.getLogger(__name__)


class DiagnosticTest(Enum):
    """Types of residual diagnostic tests."""
    LJUNG_BOX = "ljung_box"
    SHAPIRO_WILK = "shapiro_wilk"
    BREUSCH_PAGAN = "breusch_pagan"


@dataclass
class DiagnosticResult:
    """Results from a single diagnostic test."""

    test_name: str
    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    degrees_of_freedom: Optional[int] = None

    # Additional test-specific information
    test_description: Optional[str] = None

    @property
    def is_significant(self) -> bool:
        """Check if test rejects null hypothesis."""
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        if self.test_type == DiagnosticTest.LJUNG_BOX:
            if self.is_significant:
                return "Serial correlation detected in residuals"
            else:
                return "No significant serial correlation in residuals"
        elif self.test_type == DiagnosticTest.SHAPIRO_WILK:
            if self.is_significant:
                return "Residuals not normally distributed"
            else:
                return "Residuals appear normally distributed"
        else:
            if self.is_significant:
                return "Residual variance depends on the regressors"
            else:
                return "No heteroskedasticity detected against the regressors"


@dataclass(frozen=True)
class DiagnosticVerdict:
    """Pass/fail verdict over the three residual tests.

    A test that could not be run carries a NaN p-value and an entry in
    ``notes``; NaN never exceeds the threshold, so such a fit is not valid.
    """

    ljung_box_p: float
    shapiro_wilk_p: float
    breusch_pagan_p: float
    threshold: float = 0.05
    notes: Dict[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_pvalues(cls, p_values: Dict[str, float], threshold: float = 0.05,
                     notes: Optional[Dict[str, str]] = None) -> "DiagnosticVerdict":
        return cls(
            ljung_box_p=float(p_values.get(DiagnosticTest.LJUNG_BOX.value, math.nan)),
            shapiro_wilk_p=float(p_values.get(DiagnosticTest.SHAPIRO_WILK.value, math.nan)),
            breusch_pagan_p=float(p_values.get(DiagnosticTest.BREUSCH_PAGAN.value, math.nan)),
            threshold=threshold,
            notes=dict(notes or {}),
        )

    @property
    def p_values(self) -> Dict[str, float]:
        return {
            DiagnosticTest.LJUNG_BOX.value: self.ljung_box_p,
            DiagnosticTest.SHAPIRO_WILK.value: self.shapiro_wilk_p,
            DiagnosticTest.BREUSCH_PAGAN.value: self.breusch_pagan_p,
        }

    @property
    def valid(self) -> bool:
        return all(p > self.threshold for p in self.p_values.values())

    @property
    def inconclusive(self) -> List[str]:
        return [name for name, p in self.p_values.items() if math.isnan(p)]

    @property
    def issues(self) -> List[str]:
        """Tests that did not pass, with the reason."""
        out = []
        for name, p in self.p_values.items():
            if math.isnan(p):
                out.append(f"{name}: inconclusive ({self.notes.get(name, 'no p-value')})")
            elif p <= self.threshold:
                out.append(f"{name}: p={p:.4f} <= {self.threshold}")
        return out


class DiagnosticSuite:
    """Residual diagnostic battery for ARIMAX fits."""

    def __init__(self, significance_level: float = 0.05, ljung_box_lags: int = 10):
        """Initialize residual diagnostics.

        Parameters
        ----------
        significance_level : float, default 0.05
            Threshold every p-value must exceed for a fit to be valid
        ljung_box_lags : int, default 10
            Ljung-Box lag; capped at n - 1 for short residual series
        """
        if not 0.0 < significance_level < 1.0:
            raise ValueError(f"significance_level must be in (0, 1), got {significance_level}")
        if ljung_box_lags < 1:
            raise ValueError(f"ljung_box_lags must be positive, got {ljung_box_lags}")
        self.significance_level = significance_level
        self.ljung_box_lags = ljung_box_lags
        self._het_tester = HeteroskedasticityTester(significance_level)

    def ljung_box_test(self, residuals: pd.Series, lags: Optional[int] = None) -> DiagnosticResult:
        """Ljung-Box test for serial correlation in residuals.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals
        lags : int, optional
            Number of lags to test (default from the suite); reduced to
            n - 1 when the residual series is shorter

        Returns
        -------
        DiagnosticResult
            Ljung-Box test results at the effective lag
        """
        resid = np.asarray(residuals, dtype=float)
        n = resid.shape[0]
        if n < 2:
            raise InsufficientSamples(f"Ljung-Box needs at least 2 residuals, got {n}")

        lags = min(lags or self.ljung_box_lags, n - 1)
        logger.debug("Running Ljung-Box test with %d lags", lags)

        try:
            lb_result = acorr_ljungbox(resid, lags=[lags], return_df=True)
        except (ValueError, np.linalg.LinAlgError, ZeroDivisionError) as e:
            raise DiagnosticInconclusive("ljung_box", str(e)) from e

        test_stat = float(lb_result["lb_stat"].iloc[-1])
        p_value = float(lb_result["lb_pvalue"].iloc[-1])
        if not np.isfinite(p_value):
            raise DiagnosticInconclusive("ljung_box", "non-finite p-value (constant residuals?)")

        return DiagnosticResult(
            test_name="Ljung-Box Test",
            test_type=DiagnosticTest.LJUNG_BOX,
            test_statistic=test_stat,
            p_value=p_value,
            degrees_of_freedom=lags,
            significance_level=self.significance_level,
            test_description=f"Test for serial correlation in residuals (H0: No serial correlation, lags={lags})"
        )

    def shapiro_wilk_test(self, residuals: pd.Series) -> DiagnosticResult:
        """Shapiro-Wilk test for normality of residuals.

        Raises
        ------
        InsufficientSamples
            Below the test's minimum of 3 observations.
        """
        resid = np.asarray(residuals, dtype=float)
        resid = resid[np.isfinite(resid)]
        if resid.shape[0] < 3:
            raise InsufficientSamples(f"Shapiro-Wilk needs at least 3 residuals, got {resid.shape[0]}")

        logger.debug("Running Shapiro-Wilk normality test")
        if np.ptp(resid) == 0.0:
            raise DiagnosticInconclusive("shapiro_wilk", "residuals are constant")

        sw_stat, sw_pval = stats.shapiro(resid)
        if not np.isfinite(sw_pval):
            raise DiagnosticInconclusive("shapiro_wilk", "non-finite p-value")

        return DiagnosticResult(
            test_name="Shapiro-Wilk Test",
            test_type=DiagnosticTest.SHAPIRO_WILK,
            test_statistic=float(sw_stat),
            p_value=float(sw_pval),
            significance_level=self.significance_level,
            test_description="Test for normality of residuals (H0: Residuals are normally distributed)"
        )

    def breusch_pagan_test(self, residuals: pd.Series, regressors: pd.DataFrame) -> DiagnosticResult:
        """Breusch-Pagan test of squared residuals on the model regressors."""
        bp = self._het_tester.test_breusch_pagan(residuals, regressors)
        return DiagnosticResult(
            test_name=bp.test_name,
            test_type=DiagnosticTest.BREUSCH_PAGAN,
            test_statistic=bp.test_statistic,
            p_value=bp.p_value,
            degrees_of_freedom=bp.degrees_of_freedom,
            significance_level=self.significance_level,
            test_description=bp.test_description
        )

    def run_tests(self, residuals: pd.Series,
                  regressors: Optional[pd.DataFrame]) -> Dict[str, Any]:
        """Run all three tests, isolating per-test failures.

        Returns
        -------
        dict
            ``{"results": {name: DiagnosticResult}, "notes": {name: reason}}``
        """
        results: Dict[str, DiagnosticResult] = {}
        notes: Dict[str, str] = {}

        test_functions = [
            (DiagnosticTest.LJUNG_BOX.value, lambda: self.ljung_box_test(residuals)),
            (DiagnosticTest.SHAPIRO_WILK.value, lambda: self.shapiro_wilk_test(residuals)),
            (DiagnosticTest.BREUSCH_PAGAN.value, lambda: self.breusch_pagan_test(residuals, regressors)),
        ]

        for test_name, test_func in test_functions:
            try:
                results[test_name] = test_func()
                logger.debug("%s: %s", results[test_name].test_name, results[test_name].interpretation)
            except (InsufficientSamples, DiagnosticInconclusive) as e:
                logger.debug("Test %s inconclusive: %s", test_name, e)
                notes[test_name] = str(e)

        return {"results": results, "notes": notes}

    def evaluate_residuals(self, residuals: pd.Series,
                           regressors: Optional[pd.DataFrame]) -> DiagnosticVerdict:
        """Verdict for a residual series and its aligned regressor rows."""
        outcome = self.run_tests(residuals, regressors)
        p_values = {name: res.p_value for name, res in outcome["results"].items()}
        return DiagnosticVerdict.from_pvalues(p_values, self.significance_level, outcome["notes"])

    def evaluate(self, model) -> DiagnosticVerdict:
        """Verdict for a FittedModel.

        The Breusch-Pagan auxiliary regression uses the model's regressor rows
        for the residual years (the first ``d`` years are consumed by
        differencing).
        """
        residuals = model.residuals
        regressors = model.regressors.matrix.loc[residuals.index]
        verdict = self.evaluate_residuals(residuals, regressors)
        if not verdict.valid:
            logger.debug("ARIMAX%s on '%s' failed diagnostics: %s",
                         model.order, model.regressors.name, "; ".join(verdict.issues))
        return verdict


def run_comprehensive_diagnostics(model,
                                  significance_level: float = 0.05,
                                  ljung_box_lags: int = 10) -> DiagnosticVerdict:
    """Convenience function for the residual verdict of a fitted model."""
    return DiagnosticSuite(significance_level, ljung_box_lags).evaluate(model)
