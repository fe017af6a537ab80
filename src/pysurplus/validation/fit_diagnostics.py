"""Post-fit diagnostics for production model fits.

Turns the optimizer outcome and the fitted parameters into explicit status
flags instead of leaving the caller to interpret raw numbers.
"""

from typing import TYPE_CHECKING

import numpy as np

from .result import ValidationResult, ValidationIssue

if TYPE_CHECKING:
    from ..core.models import FitResult, ObservationSet


class FitDiagnostics:
    """Checks a FitResult for non-convergence and degenerate estimates.

    Error codes:
        OF001: Optimizer reported failure (budget exhausted, no progress)
        OF002: Non-finite objective at the optimum
        DF001: Degenerate density dependence (carrying capacity undefined)
        DF002: nu collapsed to 1
        DF003: nu indistinguishable from 2 (info)
        DF004: Every prediction floored
        DF005: Large fraction of predictions floored
    """

    def __init__(
        self,
        beta_rel_tol: float = 1e-3,
        nu_linear_tol: float = 0.05,
        nu_schaefer_tol: float = 0.05,
        max_floored_fraction: float = 0.5,
    ):
        """Initialize diagnostics.

        Args:
            beta_rel_tol: The density term |beta| * max(B)^(nu-1) must be at
                least this fraction of |alpha| for beta to count as non-zero
            nu_linear_tol: |nu - 1| below this flags a linear collapse
            nu_schaefer_tol: |nu - 2| below this notes Schaefer equivalence
            max_floored_fraction: Fraction of floored predictions that
                triggers a warning
        """
        self.beta_rel_tol = beta_rel_tol
        self.nu_linear_tol = nu_linear_tol
        self.nu_schaefer_tol = nu_schaefer_tol
        self.max_floored_fraction = max_floored_fraction

    def relative_density_term(
        self,
        alpha: float,
        beta: float,
        nu: float,
        max_biomass: float,
    ) -> float:
        """Size of the beta term relative to the alpha term at the largest biomass."""
        if alpha == 0:
            return float("inf")
        if max_biomass <= 0:
            return 0.0
        return float(abs(beta) * max_biomass ** (nu - 1.0) / abs(alpha))

    def check(
        self,
        result: "FitResult",
        observations: "ObservationSet",
    ) -> ValidationResult:
        """Run all post-fit checks.

        Args:
            result: Fit to check
            observations: Observations the fit was computed from

        Returns:
            ValidationResult with any issues found
        """
        diagnostics = ValidationResult(model=result.model)
        params = result.parameters

        if not result.converged:
            diagnostics.add_issue(ValidationIssue.not_converged(
                result.message, result.iterations, result.evaluations,
            ))
        if not np.isfinite(result.neg_log_likelihood):
            diagnostics.add_issue(ValidationIssue.non_finite_loss(result.neg_log_likelihood))

        max_biomass = float(np.max(observations.biomass)) if observations.n else 0.0
        relative = self.relative_density_term(params.alpha, params.beta, params.nu, max_biomass)
        if params.carrying_capacity is None or relative < self.beta_rel_tol:
            diagnostics.add_issue(ValidationIssue.degenerate_beta(
                params.beta, relative, self.beta_rel_tol,
            ))

        if result.model == "pella-tomlinson":
            if abs(params.nu - 1.0) < self.nu_linear_tol:
                diagnostics.add_issue(ValidationIssue.nu_near_linear(params.nu, self.nu_linear_tol))
            elif abs(params.nu - 2.0) < self.nu_schaefer_tol:
                diagnostics.add_issue(ValidationIssue.nu_near_schaefer(params.nu, self.nu_schaefer_tol))

        n = result.n_observations
        if n > 0 and result.n_floored == n:
            diagnostics.add_issue(ValidationIssue.all_floored(n))
        elif n > 0 and result.n_floored / n > self.max_floored_fraction:
            diagnostics.add_issue(ValidationIssue.mostly_floored(
                result.n_floored, n, self.max_floored_fraction,
            ))

        return diagnostics
