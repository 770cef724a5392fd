"""Residual diagnostic testing for ARIMAX candidates.

This package decides whether a fitted ARIMAX candidate is statistically
trustworthy:
- Serial correlation (Ljung-Box)
- Normality (Shapiro-Wilk)
- Heteroskedasticity against the model regressors (Breusch-Pagan)
- A pass/fail verdict at a single significance threshold
"""

from .heteroskedasticity import (
    HeteroskedasticityTester,
    HeteroskedasticityResult,
)

from .residual_diagnostics import (
    DiagnosticSuite,
    DiagnosticResult,
    DiagnosticTest,
    DiagnosticVerdict,
    run_comprehensive_diagnostics
)

__all__ = [
    # Heteroskedasticity testing
    'HeteroskedasticityTester',
    'HeteroskedasticityResult',

    # Residual diagnostics
    'DiagnosticSuite',
    'DiagnosticResult',
    'DiagnosticTest',
    'DiagnosticVerdict',
    'run_comprehensive_diagnostics'
]

# Version info
__version__ = '1.0.0'
