"""Heteroskedasticity testing for ARIMAX residuals.

This module provides the Breusch-Pagan test used to validate fitted ARIMAX
candidates: squared residuals are regressed on the same exogenous regressors
the model was fit with, and the LM statistic tests whether that auxiliary
regression explains any of their variance.

Features:
- Breusch-Pagan LM test against the model's own regressors
- Detection of degenerate auxiliary regressions (constant covariates,
  rank-deficient designs) reported as inconclusive instead of raising
"""

import logging
from typing import Optional
from dataclasses import dataclass

import pandas as pd
import numpy as np
from statsmodels.stats.diagnostic import het_breuschpagan

from luxury_forecaster_src.errors import DiagnosticInconclusive, InsufficientSamples
from luxury_forecaster_src.regressor_utils import zero_variance_columns

logger = logging.getLogger(__name__)


@dataclass
class HeteroskedasticityResult:
    """Results from heteroskedasticity testing."""

    test_name: str
    test_statistic: float
    p_value: float
    significance_level: float = 0.05

    # Additional test information
    degrees_of_freedom: Optional[int] = None
    f_statistic: Optional[float] = None
    f_p_value: Optional[float] = None
    test_description: Optional[str] = None

    @property
    def is_heteroskedastic(self) -> bool:
        """Check if heteroskedasticity is detected."""
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        if self.is_heteroskedastic:
            return f"Heteroskedasticity detected (p={self.p_value:.4f} < {self.significance_level})"
        else:
            return f"No heteroskedasticity detected (p={self.p_value:.4f} >= {self.significance_level})"


class HeteroskedasticityTester:
    """Heteroskedasticity testing against a model's exogenous regressors."""

    def __init__(self, significance_level: float = 0.05):
        """Initialize the heteroskedasticity tester.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level for hypothesis tests
        """
        self.significance_level = significance_level

    def test_breusch_pagan(self, residuals: pd.Series,
                          regressors: Optional[pd.DataFrame]) -> HeteroskedasticityResult:
        """Test for heteroskedasticity using the Breusch-Pagan LM test.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals
        regressors : pd.DataFrame
            Regressor rows aligned with ``residuals`` (same length, same order).
            A constant column is added for the auxiliary regression.

        Returns
        -------
        HeteroskedasticityResult
            Breusch-Pagan test results

        Raises
        ------
        InsufficientSamples
            If there are fewer residuals than auxiliary parameters + 1.
        DiagnosticInconclusive
            If the auxiliary regression is degenerate: no regressors, a
            zero-variance regressor, a rank-deficient design, or a
            non-finite statistic.
        """
        logger.debug("Running Breusch-Pagan test")

        if regressors is None or regressors.shape[1] == 0:
            raise DiagnosticInconclusive("breusch_pagan", "no regressors for the auxiliary regression")

        resid = np.asarray(residuals, dtype=float)
        x = regressors.to_numpy(dtype=float)
        if x.shape[0] != resid.shape[0]:
            raise DiagnosticInconclusive(
                "breusch_pagan",
                f"{x.shape[0]} regressor rows for {resid.shape[0]} residuals",
            )

        n_aux = x.shape[1] + 1
        if resid.shape[0] <= n_aux:
            raise InsufficientSamples(
                f"Breusch-Pagan needs more than {n_aux} residuals, got {resid.shape[0]}"
            )

        constant = zero_variance_columns(regressors)
        if constant:
            raise DiagnosticInconclusive("breusch_pagan", f"zero-variance regressors {constant}")

        design = np.column_stack([np.ones(len(x)), x])
        if np.linalg.matrix_rank(design) < design.shape[1]:
            raise DiagnosticInconclusive("breusch_pagan", "rank-deficient auxiliary regression")

        try:
            lm_stat, lm_pval, f_stat, f_pval = het_breuschpagan(resid, design)
        except (ValueError, np.linalg.LinAlgError, ZeroDivisionError) as e:
            raise DiagnosticInconclusive("breusch_pagan", f"auxiliary regression failed: {e}") from e

        if not (np.isfinite(lm_stat) and np.isfinite(lm_pval)):
            raise DiagnosticInconclusive("breusch_pagan", "non-finite test statistic")

        return HeteroskedasticityResult(
            test_name="Breusch-Pagan Test",
            test_statistic=float(lm_stat),
            p_value=float(lm_pval),
            degrees_of_freedom=design.shape[1] - 1,  # Exclude constant
            f_statistic=float(f_stat),
            f_p_value=float(f_pval),
            significance_level=self.significance_level,
            test_description="Test for heteroskedasticity against model regressors (H0: Homoskedasticity)"
        )
