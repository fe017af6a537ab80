"""Diagnostics for guild data alignment and production model fits.

Usage:
    from pysurplus.validation import (
        ValidationResult,
        ValidationIssue,
        IssueSeverity,
        IssueCategory,
        FitDiagnostics,
    )

    diagnostics = FitDiagnostics(beta_rel_tol=1e-3)
    result = diagnostics.check(fit_result, observations)
"""

from .result import (
    IssueSeverity,
    IssueCategory,
    ValidationIssue,
    ValidationResult,
)
from .fit_diagnostics import FitDiagnostics

__all__ = [
    # Result types
    "IssueSeverity",
    "IssueCategory",
    "ValidationIssue",
    "ValidationResult",
    # Checks
    "FitDiagnostics",
]
