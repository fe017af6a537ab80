"""Surplus production models for fish stock guilds.

This module implements the Pella-Tomlinson production function and the
Schaefer quadratic as its nu=2 special case, together with the data
containers passed to and returned from the fitter.

Mathematical Background
-----------------------

Surplus production P is modelled as a function of (spawning) biomass B:

    P(B) = alpha * B + beta * B^nu

Where:
    alpha = Intrinsic (density-independent) production per unit biomass
    beta  = Density-dependence coefficient (negative for a dome)
    nu    = Shape exponent

Special Cases:
    - Schaefer (nu = 2):  P(B) = alpha * B + beta * B^2
    - nu -> 1:            production collapses to a straight line and
                          alpha, beta are no longer separately identifiable

Reference Points (alpha > 0, beta < 0, nu > 1):
    Carrying capacity, P(K) = 0:
        K = (-alpha / beta)^(1 / (nu - 1))          (Schaefer: K = -alpha/beta)

    Biomass at maximum production, dP/dB = 0:
        Bmsy = (-alpha / (nu * beta))^(1 / (nu - 1)) (Schaefer: K/2)

    Maximum surplus production:
        MSY = P(Bmsy)

Observation Model:
    log(P_obs) ~ Normal(log(P(B)), sigma)

References:
    Schaefer, M.B. (1954). "Some aspects of the dynamics of populations
        important to the management of the commercial marine fisheries".
        Bull. Inter-Am. Trop. Tuna Comm. 1, 27-56.
    Pella, J.J. & Tomlinson, P.K. (1969). "A generalized stock production
        model". Bull. Inter-Am. Trop. Tuna Comm. 13, 419-496.
"""

from dataclasses import dataclass, field
import logging
from typing import Literal

import numpy as np

from ..exceptions import DataAlignmentError
from ..validation.result import IssueSeverity, ValidationResult

logger = logging.getLogger(__name__)

SCHAEFER_NU = 2.0

ModelName = Literal["schaefer", "pella-tomlinson"]


def production(
    biomass: np.ndarray | float,
    alpha: float,
    beta: float,
    nu: float = SCHAEFER_NU,
) -> np.ndarray:
    """Evaluate the Pella-Tomlinson production function.

    Args:
        biomass: Biomass (scalar or array), must be non-negative
        alpha: Linear production coefficient
        beta: Density-dependence coefficient
        nu: Shape exponent (2.0 = Schaefer)

    Returns:
        Predicted surplus production, same shape as biomass (at least 1-D)
    """
    b = np.atleast_1d(np.asarray(biomass, dtype=float))
    return alpha * b + beta * np.power(b, nu)


@dataclass(frozen=True)
class ProductionParameters:
    """Parameters of a fitted production curve.

    Attributes:
        alpha: Linear production coefficient
        beta: Density-dependence coefficient (negative for a dome-shaped curve)
        nu: Shape exponent (2.0 for Schaefer)
        sigma: Standard deviation of log-scale observation error (> 0)

    Example:
        >>> params = ProductionParameters(alpha=1.0, beta=-1 / 30, nu=2.0, sigma=0.1)
        >>> params.carrying_capacity
        30.0
        >>> params.production([15.0])
        array([7.5])
    """
    alpha: float
    beta: float
    nu: float = SCHAEFER_NU
    sigma: float = 1.0

    def production(self, biomass: np.ndarray | float) -> np.ndarray:
        """Predicted production at the given biomass."""
        return production(biomass, self.alpha, self.beta, self.nu)

    @property
    def is_dome_shaped(self) -> bool:
        """True when the curve rises then falls back to zero at finite biomass."""
        return self.alpha > 0 and self.beta < 0 and self.nu > 1

    @property
    def carrying_capacity(self) -> float | None:
        """Biomass at which production returns to zero, or None if undefined."""
        if not self.is_dome_shaped:
            return None
        return float((-self.alpha / self.beta) ** (1.0 / (self.nu - 1.0)))

    @property
    def bmsy(self) -> float | None:
        """Biomass giving maximum surplus production, or None if undefined."""
        if not self.is_dome_shaped:
            return None
        return float((-self.alpha / (self.nu * self.beta)) ** (1.0 / (self.nu - 1.0)))

    @property
    def msy(self) -> float | None:
        """Maximum surplus production, or None if undefined."""
        bmsy = self.bmsy
        if bmsy is None:
            return None
        return float(self.production(bmsy)[0])

    def as_vector(self) -> np.ndarray:
        """Return (alpha, beta, nu, sigma) as an array."""
        return np.array([self.alpha, self.beta, self.nu, self.sigma], dtype=float)

    def to_dict(self) -> dict:
        """Parameters and derived reference points as a plain dict."""
        return {
            "alpha": self.alpha,
            "beta": self.beta,
            "nu": self.nu,
            "sigma": self.sigma,
            "carrying_capacity": self.carrying_capacity,
            "bmsy": self.bmsy,
            "msy": self.msy,
        }


@dataclass
class ObservationSet:
    """Aligned (biomass, production) observations ready for fitting.

    Use :meth:`from_arrays` to build one from raw series; it drops rows that
    cannot be used and logs how many were dropped.

    Attributes:
        biomass: Non-negative biomass values
        production: Observed surplus production (may be negative)
        years: Optional year index for each observation
    """
    biomass: np.ndarray
    production: np.ndarray
    years: np.ndarray | None = None

    @classmethod
    def from_arrays(
        cls,
        biomass,
        production,
        years=None,
    ) -> "ObservationSet":
        """Build an observation set, excluding missing and invalid rows.

        Rows are excluded when biomass or production is NaN/non-finite, or
        when biomass is negative.

        Args:
            biomass: Biomass series
            production: Observed production series, same length
            years: Optional year series, same length

        Returns:
            ObservationSet with only usable rows

        Raises:
            DataAlignmentError: If the series have different lengths
        """
        b = np.asarray(biomass, dtype=float)
        p = np.asarray(production, dtype=float)
        if b.shape != p.shape:
            raise DataAlignmentError(
                f"Biomass and production are not aligned: {b.shape} vs {p.shape}"
            )
        y = None
        if years is not None:
            y = np.asarray(years)
            if y.shape != b.shape:
                raise DataAlignmentError(
                    f"Years are not aligned with observations: {y.shape} vs {b.shape}"
                )

        mask = np.isfinite(b) & np.isfinite(p)
        n_missing = int(np.sum(~mask))
        negative = mask & (b < 0)
        n_negative = int(np.sum(negative))
        mask &= ~negative

        if n_missing:
            logger.info(f"Excluding {n_missing} observation(s) with missing biomass or production")
        if n_negative:
            logger.warning(f"Excluding {n_negative} observation(s) with negative biomass")

        return cls(
            biomass=b[mask],
            production=p[mask],
            years=y[mask] if y is not None else None,
        )

    @property
    def n(self) -> int:
        """Number of observations."""
        return len(self.biomass)

    @property
    def n_positive(self) -> int:
        """Number of observations with strictly positive production."""
        return int(np.sum(self.production > 0))


@dataclass
class LinearPrefit:
    """Result of the closed-form Schaefer regression through the origin.

    Attributes:
        alpha: Coefficient on biomass
        beta: Coefficient on biomass squared
        r_squared: Uncentered R² (no intercept in the model)
        residual_std: Standard deviation of residuals
        n_observations: Observations used
    """
    alpha: float
    beta: float
    r_squared: float
    residual_std: float
    n_observations: int

    @property
    def parameters(self) -> ProductionParameters:
        """Pre-fit as Schaefer parameters (sigma left at its default)."""
        return ProductionParameters(alpha=self.alpha, beta=self.beta, nu=SCHAEFER_NU)

    def to_dict(self) -> dict:
        return {
            "alpha": self.alpha,
            "beta": self.beta,
            "r_squared": self.r_squared,
            "residual_std": self.residual_std,
            "n_observations": self.n_observations,
        }


@dataclass
class FitResult:
    """Result of a maximum-likelihood production curve fit.

    Attributes:
        model: Model name ("schaefer" or "pella-tomlinson")
        parameters: Estimated parameters
        neg_log_likelihood: Objective value at the optimum
        n_parameters: Number of free parameters (sigma included)
        n_observations: Observations contributing to the likelihood
        n_excluded: Observations dropped because log-density was non-finite
        n_floored: Predictions raised to the floor at the optimum
        converged: Optimizer's own success flag
        message: Optimizer's termination message
        iterations: Optimizer iterations used
        evaluations: Objective evaluations used
        hessian: Numerical Hessian of the objective at the optimum, on the
            optimizer scale (alpha, beta, [nu,] log sigma)
        standard_errors: Approximate standard errors by parameter name
        prefit: Linear pre-fit used as starting point, if any
        diagnostics: Status flags (non-convergence, degeneracy, flooring)
    """
    model: ModelName
    parameters: ProductionParameters
    neg_log_likelihood: float
    n_parameters: int
    n_observations: int
    n_excluded: int = 0
    n_floored: int = 0
    converged: bool = False
    message: str = ""
    iterations: int = 0
    evaluations: int = 0
    hessian: np.ndarray | None = None
    standard_errors: dict[str, float] | None = None
    prefit: LinearPrefit | None = None
    diagnostics: ValidationResult = field(default_factory=ValidationResult)

    @property
    def aic(self) -> float:
        """Akaike Information Criterion."""
        return 2 * self.n_parameters + 2 * self.neg_log_likelihood

    @property
    def bic(self) -> float:
        """Bayesian Information Criterion."""
        n = max(self.n_observations, 1)
        return self.n_parameters * np.log(n) + 2 * self.neg_log_likelihood

    @property
    def status(self) -> Literal["converged", "degenerate", "failed"]:
        """Overall fit status derived from the diagnostics."""
        if not self.converged or self.diagnostics.has_errors:
            return "failed"
        if self.diagnostics.has_warnings:
            return "degenerate"
        return "converged"

    @property
    def is_acceptable(self) -> bool:
        """True when the fit converged with no warnings or errors."""
        return self.status == "converged"

    def issue_codes(self, min_severity: IssueSeverity = IssueSeverity.WARNING) -> list[str]:
        """Codes of diagnostics at or above a severity (ERROR > WARNING > INFO)."""
        order = {IssueSeverity.ERROR: 0, IssueSeverity.WARNING: 1, IssueSeverity.INFO: 2}
        return [
            issue.code for issue in self.diagnostics.issues
            if order[issue.severity] <= order[min_severity]
        ]

    def summary(self) -> dict:
        """Return summary dictionary of fit results."""
        summary = {
            "model": self.model,
            "status": self.status,
            **self.parameters.to_dict(),
            "neg_log_likelihood": self.neg_log_likelihood,
            "aic": self.aic,
            "bic": self.bic,
            "n_observations": self.n_observations,
            "n_excluded": self.n_excluded,
            "n_floored": self.n_floored,
            "converged": self.converged,
            "message": self.message,
            "iterations": self.iterations,
            "evaluations": self.evaluations,
        }
        if self.standard_errors is not None:
            summary["standard_errors"] = dict(self.standard_errors)
        return summary
