"""Diagnostic result types for data alignment and fitting checks.

Provides structured results with categorized issues, severity levels,
and actionable guidance.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class IssueSeverity(Enum):
    """Severity level of a diagnostic issue."""
    ERROR = auto()    # Fit is unusable as-is
    WARNING = auto()  # Usable with caution - review recommended
    INFO = auto()     # Informational - no action required


class IssueCategory(Enum):
    """Category of diagnostic issue for grouping and filtering."""
    DATA_ALIGNMENT = auto()  # Dropped years, missing rows
    CONVERGENCE = auto()     # Optimizer did not succeed
    DEGENERACY = auto()      # Estimates at a degenerate or uninformative point
    UNCERTAINTY = auto()     # Curvature / standard error problems


@dataclass
class ValidationIssue:
    """A single diagnostic issue with context and guidance.

    Attributes:
        code: Unique identifier (e.g., "OF001", "DF001")
        category: Issue category for grouping
        severity: Issue severity level
        message: User-friendly description of the issue
        guidance: Actionable next step for resolution
        details: Context data (values, thresholds, etc.)
    """
    code: str
    category: IssueCategory
    severity: IssueSeverity
    message: str
    guidance: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format issue as string for display."""
        return f"[{self.code}] {self.severity.name}: {self.message}"

    # --- Factory methods for common issue patterns ---

    @staticmethod
    def years_dropped(stock: str, years: list) -> "ValidationIssue":
        """Create DA001: Years dropped by the guild inner join."""
        return ValidationIssue(
            code="DA001",
            category=IssueCategory.DATA_ALIGNMENT,
            severity=IssueSeverity.INFO,
            message=f"{len(years)} year(s) of {stock} not shared by all stocks",
            guidance="Only years present in every stock are used for guild totals",
            details={"stock": stock, "dropped_count": len(years), "years": years[:10]},
        )

    @staticmethod
    def observations_excluded(count: int, reason: str) -> "ValidationIssue":
        """Create DA002: Observations excluded from the likelihood."""
        return ValidationIssue(
            code="DA002",
            category=IssueCategory.DATA_ALIGNMENT,
            severity=IssueSeverity.INFO,
            message=f"Excluded {count} observation(s): {reason}",
            guidance="Log-scale likelihood is only defined for positive observed production",
            details={"excluded_count": count, "reason": reason},
        )

    @staticmethod
    def not_converged(message: str, iterations: int, evaluations: int) -> "ValidationIssue":
        """Create OF001: Optimizer did not report success."""
        return ValidationIssue(
            code="OF001",
            category=IssueCategory.CONVERGENCE,
            severity=IssueSeverity.ERROR,
            message=f"Optimizer did not converge: {message}",
            guidance="Increase the iteration budget or restart from different initial values",
            details={"optimizer_message": message, "iterations": iterations, "evaluations": evaluations},
        )

    @staticmethod
    def non_finite_loss(value: float) -> "ValidationIssue":
        """Create OF002: Objective is not finite at the returned point."""
        return ValidationIssue(
            code="OF002",
            category=IssueCategory.CONVERGENCE,
            severity=IssueSeverity.ERROR,
            message=f"Negative log-likelihood is not finite at the optimum ({value})",
            guidance="Check initial values and that observed production has positive entries",
            details={"neg_log_likelihood": value},
        )

    @staticmethod
    def degenerate_beta(beta: float, relative_term: float, threshold: float) -> "ValidationIssue":
        """Create DF001: Density dependence absent, carrying capacity undefined."""
        return ValidationIssue(
            code="DF001",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.WARNING,
            message=f"Density-dependence term is degenerate (beta={beta:.4g}); carrying capacity undefined",
            guidance="Data may not span enough biomass contrast; compare against the Schaefer fit",
            details={"beta": beta, "relative_term": relative_term, "threshold": threshold},
        )

    @staticmethod
    def nu_near_linear(nu: float, tolerance: float) -> "ValidationIssue":
        """Create DF002: Shape exponent collapsed to 1."""
        return ValidationIssue(
            code="DF002",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.WARNING,
            message=f"Shape exponent nu={nu:.4f} is indistinguishable from 1 (linear production)",
            guidance="alpha and beta are not separately identifiable; refit with nu fixed",
            details={"nu": nu, "tolerance": tolerance},
        )

    @staticmethod
    def nu_near_schaefer(nu: float, tolerance: float) -> "ValidationIssue":
        """Create DF003: Shape exponent indistinguishable from the Schaefer value."""
        return ValidationIssue(
            code="DF003",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.INFO,
            message=f"Shape exponent nu={nu:.4f} is indistinguishable from 2 (Schaefer)",
            guidance="The simpler Schaefer model describes these data equally well",
            details={"nu": nu, "tolerance": tolerance},
        )

    @staticmethod
    def all_floored(count: int) -> "ValidationIssue":
        """Create DF004: Every prediction hit the positivity floor."""
        return ValidationIssue(
            code="DF004",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.ERROR,
            message=f"All {count} predictions are at the positivity floor; fit is not informative",
            guidance="Restart from initial values giving positive production over the observed biomass",
            details={"floored_count": count},
        )

    @staticmethod
    def mostly_floored(count: int, total: int, threshold: float) -> "ValidationIssue":
        """Create DF005: A large fraction of predictions hit the floor."""
        return ValidationIssue(
            code="DF005",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.WARNING,
            message=f"{count} of {total} predictions are at the positivity floor",
            guidance="Loss is dominated by the floor at these points; inspect the fitted curve",
            details={"floored_count": count, "total": total, "threshold": threshold},
        )

    @staticmethod
    def singular_hessian(reason: str) -> "ValidationIssue":
        """Create DF006: Curvature at the optimum unusable for standard errors."""
        return ValidationIssue(
            code="DF006",
            category=IssueCategory.UNCERTAINTY,
            severity=IssueSeverity.WARNING,
            message=f"Standard errors unavailable: {reason}",
            guidance="The optimum may be flat or a saddle; parameters may be poorly identified",
            details={"reason": reason},
        )


@dataclass
class ValidationResult:
    """Collection of diagnostic issues for a guild or fit.

    Attributes:
        subject: What was checked (guild name, None for anonymous data)
        issues: List of issues found
        model: Model being checked (None for data-level checks)
    """
    subject: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)
    model: str | None = None

    @property
    def has_errors(self) -> bool:
        """Check if any ERROR-severity issues exist."""
        return any(i.severity == IssueSeverity.ERROR for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        """Check if any WARNING-severity issues exist."""
        return any(i.severity == IssueSeverity.WARNING for i in self.issues)

    @property
    def is_valid(self) -> bool:
        """Check if no ERROR-severity issues exist."""
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count of ERROR-severity issues."""
        return sum(1 for i in self.issues if i.severity == IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        """Count of WARNING-severity issues."""
        return sum(1 for i in self.issues if i.severity == IssueSeverity.WARNING)

    def add_issue(self, issue: ValidationIssue) -> None:
        """Add an issue to the result."""
        self.issues.append(issue)

    def codes(self) -> list[str]:
        """Codes of all issues, in the order found."""
        return [i.code for i in self.issues]

    def by_category(self, category: IssueCategory) -> list[ValidationIssue]:
        """Filter issues by category."""
        return [i for i in self.issues if i.category == category]

    def by_severity(self, severity: IssueSeverity) -> list[ValidationIssue]:
        """Filter issues by severity."""
        return [i for i in self.issues if i.severity == severity]

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another result into this one.

        Args:
            other: Another ValidationResult to merge

        Returns:
            New ValidationResult with combined issues
        """
        return ValidationResult(
            subject=self.subject or other.subject,
            issues=self.issues + other.issues,
            model=self.model or other.model,
        )

    def __str__(self) -> str:
        """Format result as summary string."""
        label = self.subject or "data"
        if self.model:
            label = f"{label} ({self.model})"
        if not self.issues:
            return f"Diagnostics OK for {label}"

        lines = [f"Diagnostics for {label}: "
                 f"{self.error_count} errors, {self.warning_count} warnings"]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)
