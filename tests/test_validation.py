"""Tests for validation module."""

import numpy as np
import pytest

from pysurplus.core.models import FitResult, ObservationSet, ProductionParameters
from pysurplus.validation import (
    FitDiagnostics,
    IssueCategory,
    IssueSeverity,
    ValidationIssue,
    ValidationResult,
)


def _make_result(alpha=1.0, beta=-1 / 30, nu=2.0, model="pella-tomlinson", **kwargs) -> FitResult:
    """Create a FitResult with specified parameters."""
    defaults = dict(
        model=model,
        parameters=ProductionParameters(alpha=alpha, beta=beta, nu=nu, sigma=0.1),
        neg_log_likelihood=-10.0,
        n_parameters=4,
        n_observations=20,
        converged=True,
    )
    defaults.update(kwargs)
    return FitResult(**defaults)


OBSERVATIONS = ObservationSet.from_arrays(np.linspace(2, 28, 20), np.linspace(2, 8, 20))


class TestValidationResult:
    """Tests for ValidationResult and ValidationIssue."""

    def test_create_issue(self):
        """Test creating a ValidationIssue."""
        issue = ValidationIssue(
            code="TEST001",
            category=IssueCategory.DEGENERACY,
            severity=IssueSeverity.WARNING,
            message="Test message",
            guidance="Test guidance",
            details={"key": "value"},
        )

        assert issue.code == "TEST001"
        assert "TEST001" in str(issue)
        assert "WARNING" in str(issue)

    def test_empty_result_is_valid(self):
        """Test that empty result is valid."""
        result = ValidationResult(subject="pelagic")

        assert result.is_valid
        assert not result.has_errors
        assert not result.has_warnings
        assert result.error_count == 0
        assert "OK" in str(result)

    def test_counts_and_filters(self):
        """Test severity counts and category filtering."""
        result = ValidationResult(subject="pelagic", model="schaefer")
        result.add_issue(ValidationIssue.not_converged("max iterations", 10, 20))
        result.add_issue(ValidationIssue.degenerate_beta(0.0, 0.0, 1e-3))
        result.add_issue(ValidationIssue.nu_near_schaefer(2.01, 0.05))

        assert result.has_errors
        assert result.has_warnings
        assert result.error_count == 1
        assert result.warning_count == 1
        assert result.codes() == ["OF001", "DF001", "DF003"]
        assert len(result.by_category(IssueCategory.DEGENERACY)) == 2
        assert len(result.by_severity(IssueSeverity.INFO)) == 1
        assert "pelagic (schaefer)" in str(result)

    def test_merge(self):
        """Test merging two results combines issues."""
        first = ValidationResult(subject="pelagic")
        first.add_issue(ValidationIssue.years_dropped("cod", [1990]))
        second = ValidationResult(model="schaefer")
        second.add_issue(ValidationIssue.singular_hessian("not positive definite"))

        merged = first.merge(second)

        assert merged.subject == "pelagic"
        assert merged.model == "schaefer"
        assert merged.codes() == ["DA001", "DF006"]


class TestFitDiagnostics:
    """Tests for FitDiagnostics post-fit checks."""

    def test_clean_fit(self):
        """Test a well-behaved dome-shaped fit has no warnings."""
        diagnostics = FitDiagnostics().check(_make_result(nu=1.6), OBSERVATIONS)

        assert diagnostics.issues == []

    def test_not_converged(self):
        """Test OF001 when the optimizer reports failure."""
        result = _make_result(converged=False, message="Maximum number of iterations")

        diagnostics = FitDiagnostics().check(result, OBSERVATIONS)

        assert "OF001" in diagnostics.codes()
        assert diagnostics.has_errors

    def test_non_finite_loss(self):
        """Test OF002 when the objective is not finite."""
        result = _make_result(neg_log_likelihood=float("inf"))

        assert "OF002" in FitDiagnostics().check(result, OBSERVATIONS).codes()

    def test_degenerate_beta_positive(self):
        """Test DF001 when beta has the wrong sign."""
        result = _make_result(beta=0.01)

        assert "DF001" in FitDiagnostics().check(result, OBSERVATIONS).codes()

    def test_degenerate_beta_negligible(self):
        """Test DF001 when the density term is negligible against alpha."""
        result = _make_result(beta=-1e-9, nu=1.6)

        assert "DF001" in FitDiagnostics().check(result, OBSERVATIONS).codes()

    def test_nu_near_linear(self):
        """Test DF002 when nu collapses to 1."""
        result = _make_result(beta=-0.3, nu=1.02)

        diagnostics = FitDiagnostics().check(result, OBSERVATIONS)

        assert "DF002" in diagnostics.codes()
        assert diagnostics.has_warnings

    def test_nu_near_schaefer(self):
        """Test DF003 is informational."""
        diagnostics = FitDiagnostics().check(_make_result(nu=2.01), OBSERVATIONS)

        assert diagnostics.codes() == ["DF003"]
        assert not diagnostics.has_warnings

    def test_schaefer_skips_nu_checks(self):
        """Test fixed-nu fits are not flagged for nu."""
        diagnostics = FitDiagnostics().check(_make_result(model="schaefer"), OBSERVATIONS)

        assert diagnostics.issues == []

    def test_all_floored(self):
        """Test DF004 when every prediction is floored."""
        result = _make_result(nu=1.6, n_floored=20)

        diagnostics = FitDiagnostics().check(result, OBSERVATIONS)

        assert "DF004" in diagnostics.codes()
        assert diagnostics.has_errors

    def test_mostly_floored(self):
        """Test DF005 above the floored-fraction threshold."""
        result = _make_result(nu=1.6, n_floored=12)

        diagnostics = FitDiagnostics(max_floored_fraction=0.5).check(result, OBSERVATIONS)

        assert diagnostics.codes() == ["DF005"]

    def test_relative_density_term(self):
        """Test the density term relative to alpha at the largest biomass."""
        diagnostics = FitDiagnostics()

        assert diagnostics.relative_density_term(1.0, -1 / 30, 2.0, 15.0) == pytest.approx(0.5)
        assert diagnostics.relative_density_term(0.0, -1.0, 2.0, 15.0) == float("inf")
