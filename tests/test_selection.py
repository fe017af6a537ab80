"""Tests for core/selection.py model selection and fit quality evaluation."""

import pytest

from pysurplus.core.models import FitResult, ProductionParameters
from pysurplus.core.selection import compare_fits, evaluate_fit_quality
from pysurplus.validation import ValidationIssue, ValidationResult


def _make_result(model="schaefer", nll=-20.0, n_parameters=3, converged=True, nu=2.0,
                 n_observations=30, standard_errors=None, errors=False):
    """Create a FitResult with specified statistics."""
    diagnostics = ValidationResult(model=model)
    if errors:
        diagnostics.add_issue(ValidationIssue.all_floored(n_observations))
    return FitResult(
        model=model,
        parameters=ProductionParameters(alpha=1.0, beta=-1 / 30, nu=nu, sigma=0.1),
        neg_log_likelihood=nll,
        n_parameters=n_parameters,
        n_observations=n_observations,
        converged=converged,
        standard_errors=standard_errors,
        diagnostics=diagnostics,
    )


class TestCompareFits:
    """Tests for compare_fits."""

    def test_lowest_aic(self):
        """Test the lower-AIC fit is selected."""
        schaefer = _make_result(nll=-20.0)  # AIC -34
        pella = _make_result("pella-tomlinson", nll=-20.5, n_parameters=4)  # AIC -33

        assert compare_fits([schaefer, pella]) is schaefer

    def test_extra_parameter_pays_off(self):
        """Test a large likelihood gain selects the richer model."""
        schaefer = _make_result(nll=-20.0)
        pella = _make_result("pella-tomlinson", nll=-30.0, n_parameters=4)

        assert compare_fits([schaefer, pella]) is pella

    def test_skips_failed_fits(self):
        """Test failed fits are not selected when a usable one exists."""
        failed = _make_result("pella-tomlinson", nll=-50.0, n_parameters=4, converged=False)
        ok = _make_result(nll=-20.0)

        assert compare_fits([failed, ok]) is ok

    def test_skips_fits_with_errors(self):
        """Test fits with error diagnostics are not selected."""
        floored = _make_result("pella-tomlinson", nll=-50.0, n_parameters=4, errors=True)
        ok = _make_result(nll=-20.0)

        assert compare_fits([floored, ok]) is ok

    def test_fallback_to_lowest_nll(self):
        """Test lowest NLL wins when nothing converged."""
        a = _make_result(nll=-5.0, converged=False)
        b = _make_result("pella-tomlinson", nll=-8.0, n_parameters=4, converged=False)

        assert compare_fits([a, b]) is b

    def test_empty(self):
        """Test an empty list raises ValueError."""
        with pytest.raises(ValueError):
            compare_fits([])


class TestEvaluateFitQuality:
    """Tests for evaluate_fit_quality."""

    def test_reference_points(self):
        result = evaluate_fit_quality(_make_result())

        assert result["status"] == "converged"
        assert result["acceptable"]
        assert result["carrying_capacity"] == pytest.approx(30.0)
        assert result["msy"] == pytest.approx(7.5)
        assert result["warnings"] == []

    def test_limited_data_warning(self):
        result = evaluate_fit_quality(_make_result(n_observations=6))
        assert any("Limited data" in w for w in result["warnings"])

    def test_nu_within_two_se_of_schaefer(self):
        result = evaluate_fit_quality(_make_result(
            "pella-tomlinson", n_parameters=4, nu=1.9, standard_errors={"nu": 0.1},
        ))
        assert any("Schaefer" in w for w in result["warnings"])

    def test_nu_distinct_from_schaefer(self):
        result = evaluate_fit_quality(_make_result(
            "pella-tomlinson", n_parameters=4, nu=1.5, standard_errors={"nu": 0.05},
        ))
        assert not any("Schaefer" in w for w in result["warnings"])

    def test_diagnostics_included(self):
        result = evaluate_fit_quality(_make_result(errors=True))

        assert result["status"] == "failed"
        assert any("DF004" in w for w in result["warnings"])
