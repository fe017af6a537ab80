"""Production curve fitting by maximum likelihood.

Features:
- Closed-form Schaefer regression through the origin as a baseline and
  starting point
- Pella-Tomlinson and Schaefer fits with scipy.optimize.minimize over a
  log-normal likelihood, sigma estimated on the log scale
- Explicit convergence and degeneracy diagnostics on every result
- Optional numerical Hessian for approximate standard errors
"""

from dataclasses import dataclass, field, replace
from enum import Enum
import logging

import numpy as np
from scipy import optimize

from ..exceptions import DataAlignmentError, FitError
from ..validation.fit_diagnostics import FitDiagnostics
from ..validation.result import ValidationIssue
from .likelihood import (
    DEFAULT_FLOOR,
    floored_production,
    make_objective,
    pack_theta,
    unpack_theta,
    usable_mask,
)
from .models import (
    SCHAEFER_NU,
    FitResult,
    LinearPrefit,
    ModelName,
    ObservationSet,
    ProductionParameters,
)

logger = logging.getLogger(__name__)

# Optimizers that accept a function-evaluation budget
_MAXFEV_METHODS = {"Nelder-Mead", "Powell"}

_PARAMETER_NAMES = ("alpha", "beta", "nu", "sigma")


class ModelSelection(str, Enum):
    """Which production model to fit."""
    PELLA_TOMLINSON = "pella-tomlinson"
    SCHAEFER = "schaefer"
    AUTO = "auto"


@dataclass
class FittingConfig:
    """Configuration for production curve fitting.

    Attributes:
        model_selection: Model to fit (default ModelSelection.PELLA_TOMLINSON)
        method: scipy.optimize.minimize method (default "Nelder-Mead")
        max_iterations: Optimizer iteration budget (default 10000)
        max_evaluations: Objective evaluation budget, for methods that
            support one (default 20000)
        tolerance: Optimizer convergence tolerance (default 1e-8)
        floor: Positive floor applied to predictions before the log (default 1e-5)
        min_points: Minimum observations with positive production (default 5)
        compute_hessian: Whether to compute the Hessian and standard errors
        hessian_step: Relative finite-difference step for the Hessian
        initial: Partial initial values (alpha, beta, nu, sigma) overriding
            the pre-fit starting point
        beta_rel_tol: Threshold for degenerate density dependence (DF001)
        nu_linear_tol: Threshold for nu collapsing to 1 (DF002)
        nu_schaefer_tol: Threshold for nu indistinguishable from 2 (DF003)
        max_floored_fraction: Floored-prediction fraction that warns (DF005)
    """
    model_selection: str | ModelSelection = ModelSelection.PELLA_TOMLINSON
    method: str = "Nelder-Mead"
    max_iterations: int = 10000
    max_evaluations: int = 20000
    tolerance: float = 1e-8
    floor: float = DEFAULT_FLOOR
    min_points: int = 5
    compute_hessian: bool = True
    hessian_step: float = 1e-5
    initial: dict[str, float] = field(default_factory=dict)
    beta_rel_tol: float = 1e-3
    nu_linear_tol: float = 0.05
    nu_schaefer_tol: float = 0.05
    max_floored_fraction: float = 0.5

    @property
    def model_selection_enum(self) -> ModelSelection:
        """Get model_selection as a ModelSelection enum."""
        if isinstance(self.model_selection, ModelSelection):
            return self.model_selection
        try:
            return ModelSelection(self.model_selection.lower())
        except ValueError:
            return ModelSelection.PELLA_TOMLINSON

    @classmethod
    def from_pysurplus_config(
        cls,
        config: "PySurplusConfig",  # noqa: F821
    ) -> "FittingConfig":
        """Create FittingConfig from a PySurplusConfig.

        Args:
            config: PySurplusConfig instance

        Returns:
            FittingConfig combining fitting and validation settings
        """
        fitting = config.fitting
        validation = config.validation
        return cls(
            model_selection=fitting.model,
            method=fitting.method,
            max_iterations=fitting.max_iterations,
            max_evaluations=fitting.max_evaluations,
            tolerance=fitting.tolerance,
            floor=fitting.floor,
            min_points=fitting.min_points,
            compute_hessian=fitting.compute_hessian,
            initial=dict(fitting.initial or {}),
            beta_rel_tol=validation.beta_rel_tol,
            nu_linear_tol=validation.nu_linear_tol,
            nu_schaefer_tol=validation.nu_schaefer_tol,
            max_floored_fraction=validation.max_floored_fraction,
        )


class ProductionFitter:
    """Fits surplus production curves to (biomass, production) observations.

    Every fit is a pure function of the observations, the initial guess and
    the configuration; the fitter holds no state between calls.
    """

    def __init__(self, config: FittingConfig | None = None):
        """Initialize fitter with configuration.

        Args:
            config: Fitting configuration, uses defaults if None
        """
        self.config = config or FittingConfig()
        self.diagnostics = FitDiagnostics(
            beta_rel_tol=self.config.beta_rel_tol,
            nu_linear_tol=self.config.nu_linear_tol,
            nu_schaefer_tol=self.config.nu_schaefer_tol,
            max_floored_fraction=self.config.max_floored_fraction,
        )

    def linear_prefit(self, observations: ObservationSet) -> LinearPrefit:
        """Fit the Schaefer quadratic by least squares through the origin.

        Regresses production on [B, B^2] with no intercept. All observations
        are used, including those with negative production.

        Args:
            observations: Observations to fit

        Returns:
            LinearPrefit with alpha, beta and fit statistics

        Raises:
            FitError: If the design matrix is singular
        """
        b = observations.biomass
        p = observations.production
        design = np.column_stack([b, b ** 2])

        if observations.n < 2 or np.linalg.matrix_rank(design) < 2:
            raise FitError(
                f"Singular design matrix for Schaefer regression ({observations.n} observations, "
                f"{len(np.unique(b))} distinct biomass values)"
            )

        coeffs, _, _, _ = np.linalg.lstsq(design, p, rcond=None)
        alpha, beta = (float(c) for c in coeffs)

        residuals = p - design @ coeffs
        ss_res = float(np.sum(residuals ** 2))
        ss_tot = float(np.sum(p ** 2))
        r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0
        residual_std = float(np.sqrt(ss_res / max(observations.n - 2, 1)))

        return LinearPrefit(
            alpha=alpha,
            beta=beta,
            r_squared=r_squared,
            residual_std=residual_std,
            n_observations=observations.n,
        )

    def initial_guess(
        self,
        observations: ObservationSet,
        prefit: LinearPrefit | None = None,
    ) -> ProductionParameters:
        """Estimate starting parameters from the linear pre-fit.

        Uses the pre-fit's alpha and beta with nu = 2, and sigma from the SD
        of log residuals against the pre-fit curve. Values in
        ``config.initial`` override the estimates.

        Args:
            observations: Observations to fit
            prefit: Pre-computed linear pre-fit (computed if None)

        Returns:
            ProductionParameters to start the optimizer from

        Raises:
            FitError: If the pre-fit is singular
        """
        if prefit is None:
            prefit = self.linear_prefit(observations)

        mask = usable_mask(observations.production)
        predicted, _ = floored_production(
            observations.biomass[mask], prefit.alpha, prefit.beta, SCHAEFER_NU, self.config.floor,
        )
        log_resid = np.log(observations.production[mask]) - np.log(predicted)
        sigma = float(np.std(log_resid)) if len(log_resid) > 1 else 0.5
        if not np.isfinite(sigma) or sigma <= 0:
            sigma = 0.5

        guess = ProductionParameters(alpha=prefit.alpha, beta=prefit.beta, nu=SCHAEFER_NU, sigma=sigma)
        if self.config.initial:
            guess = replace(guess, **{k: float(v) for k, v in self.config.initial.items()})
        return guess

    def _check_observations(self, observations: ObservationSet, n_params: int) -> None:
        """Raise if there are too few usable observations for the model."""
        n_usable = observations.n_positive
        needed = max(self.config.min_points, n_params + 1)
        if n_usable == 0:
            raise DataAlignmentError("No observations with positive production to fit")
        if n_usable < needed:
            raise DataAlignmentError(
                f"Insufficient data: {n_usable} observations with positive production, need {needed}"
            )

    def _minimize(self, objective, x0: np.ndarray) -> optimize.OptimizeResult:
        """Run the configured unconstrained minimizer."""
        options = {"maxiter": self.config.max_iterations}
        if self.config.method in _MAXFEV_METHODS:
            options["maxfev"] = self.config.max_evaluations

        return optimize.minimize(
            objective,
            x0,
            method=self.config.method,
            tol=self.config.tolerance,
            options=options,
        )

    def numerical_hessian(
        self,
        objective,
        x: np.ndarray,
        step: float | None = None,
    ) -> np.ndarray | None:
        """Central-difference Hessian of the objective at x.

        Args:
            objective: Scalar function of a parameter vector
            x: Point to evaluate at
            step: Relative step (config.hessian_step if None)

        Returns:
            Symmetric Hessian matrix, or None if any evaluation is not finite
        """
        x = np.asarray(x, dtype=float)
        n = len(x)
        step = self.config.hessian_step if step is None else step
        # Relative steps; beta is often orders of magnitude below alpha
        scale = np.abs(x)
        steps = step * np.where(scale > 1e-12, scale, 1.0)
        f0 = objective(x)
        hessian = np.zeros((n, n))

        for i in range(n):
            ei = np.zeros(n)
            ei[i] = steps[i]
            hessian[i, i] = (objective(x + ei) - 2 * f0 + objective(x - ei)) / steps[i] ** 2
            for j in range(i + 1, n):
                ej = np.zeros(n)
                ej[j] = steps[j]
                value = (
                    objective(x + ei + ej) - objective(x + ei - ej)
                    - objective(x - ei + ej) + objective(x - ei - ej)
                ) / (4 * steps[i] * steps[j])
                hessian[i, j] = hessian[j, i] = value

        if not np.all(np.isfinite(hessian)):
            return None
        return hessian

    def _standard_errors(
        self,
        hessian: np.ndarray,
        params: ProductionParameters,
        fixed_nu: float | None,
    ) -> dict[str, float]:
        """Standard errors from the inverse Hessian.

        Sigma's standard error uses the delta method on log(sigma).

        Raises:
            np.linalg.LinAlgError: If the Hessian is not positive definite
        """
        eigenvalues = np.linalg.eigvalsh(hessian)
        if np.any(eigenvalues <= 0):
            raise np.linalg.LinAlgError("Hessian is not positive definite")

        covariance = np.linalg.inv(hessian)
        se = np.sqrt(np.diag(covariance))

        names = ["alpha", "beta", "log_sigma"] if fixed_nu is not None else ["alpha", "beta", "nu", "log_sigma"]
        errors = dict(zip(names, (float(v) for v in se)))
        errors["sigma"] = params.sigma * errors.pop("log_sigma")
        return errors

    def _attach_standard_errors(
        self,
        result: FitResult,
        objective,
        theta: np.ndarray,
        fixed_nu: float | None,
    ) -> None:
        """Compute the Hessian and standard errors, flagging DF006 on failure.

        Cross differences along the steep beta direction carry truncation
        error that can swamp the flattest eigenvalue, so a Hessian that is
        not positive definite is recomputed once at a tenth of the step.
        """
        problem = "objective not finite near the optimum"
        for step in (self.config.hessian_step, self.config.hessian_step / 10):
            hessian = self.numerical_hessian(objective, theta, step)
            if hessian is None:
                break
            result.hessian = hessian
            try:
                result.standard_errors = self._standard_errors(hessian, result.parameters, fixed_nu)
                return
            except np.linalg.LinAlgError as e:
                problem = str(e)
                logger.debug(f"{result.model}: {problem} at relative step {step:g}")

        result.diagnostics.add_issue(ValidationIssue.singular_hessian(problem))

    def _fit_model(
        self,
        observations: ObservationSet,
        model: ModelName,
        initial: ProductionParameters | None = None,
    ) -> FitResult:
        """Shared maximum-likelihood fit for both model forms.

        Args:
            observations: Observations to fit
            model: "schaefer" (nu fixed at 2) or "pella-tomlinson"
            initial: Starting parameters (pre-fit based guess if None)

        Returns:
            FitResult with diagnostics

        Raises:
            DataAlignmentError: If too few usable observations
            FitError: If no complete initial values are given and the pre-fit is singular
        """
        fixed_nu = SCHAEFER_NU if model == "schaefer" else None
        n_params = 3 if fixed_nu is not None else 4
        self._check_observations(observations, n_params)

        if initial is None and all(key in self.config.initial for key in _PARAMETER_NAMES):
            initial = ProductionParameters(
                **{key: float(self.config.initial[key]) for key in _PARAMETER_NAMES}
            )

        try:
            prefit = self.linear_prefit(observations)
        except FitError as e:
            if initial is None:
                raise
            logger.warning(f"Linear pre-fit unavailable: {e}")
            prefit = None

        if initial is None:
            initial = self.initial_guess(observations, prefit)

        objective = make_objective(
            observations.production, observations.biomass, self.config.floor, fixed_nu,
        )
        theta0 = pack_theta(initial.alpha, initial.beta, initial.nu, initial.sigma, fixed_nu)
        if not np.isfinite(objective(theta0)):
            logger.warning(f"{model}: objective is not finite at the initial values")

        logger.debug(f"Fitting {model} from {initial}")
        opt = self._minimize(objective, theta0)

        alpha, beta, nu, sigma = unpack_theta(opt.x, fixed_nu)
        params = ProductionParameters(alpha=alpha, beta=beta, nu=nu, sigma=sigma)

        mask = usable_mask(observations.production)
        _, floored = floored_production(observations.biomass[mask], alpha, beta, nu, self.config.floor)
        n_used = int(np.sum(mask))
        n_floored = int(np.sum(floored))

        result = FitResult(
            model=model,
            parameters=params,
            neg_log_likelihood=float(opt.fun),
            n_parameters=n_params,
            n_observations=n_used,
            n_excluded=observations.n - n_used,
            n_floored=n_floored,
            converged=bool(opt.success),
            message=str(opt.message),
            iterations=int(getattr(opt, "nit", 0)),
            evaluations=int(getattr(opt, "nfev", 0)),
            prefit=prefit,
        )
        result.diagnostics = self.diagnostics.check(result, observations)

        if result.n_excluded:
            result.diagnostics.add_issue(ValidationIssue.observations_excluded(
                result.n_excluded, "non-positive observed production",
            ))
            logger.info(
                f"{model}: {result.n_excluded} observation(s) with non-positive production "
                f"excluded from the likelihood"
            )
        if n_floored:
            logger.warning(f"{model}: {n_floored} of {n_used} predictions floored at {self.config.floor}")

        if self.config.compute_hessian and np.isfinite(result.neg_log_likelihood):
            self._attach_standard_errors(result, objective, opt.x, fixed_nu)

        if not result.converged:
            logger.warning(f"{model}: optimizer did not converge ({result.message})")
        else:
            logger.info(
                f"{model}: alpha={alpha:.4g} beta={beta:.4g} nu={nu:.4g} sigma={sigma:.4g} "
                f"NLL={result.neg_log_likelihood:.4f} ({result.iterations} iterations)"
            )

        return result

    def fit_pella_tomlinson(
        self,
        observations: ObservationSet,
        initial: ProductionParameters | None = None,
    ) -> FitResult:
        """Fit the Pella-Tomlinson model with a free shape exponent.

        Args:
            observations: Observations to fit
            initial: Starting parameters (pre-fit based guess if None)

        Returns:
            FitResult with diagnostics
        """
        return self._fit_model(observations, "pella-tomlinson", initial)

    def fit_schaefer(
        self,
        observations: ObservationSet,
        initial: ProductionParameters | None = None,
    ) -> FitResult:
        """Fit the Schaefer model (nu fixed at 2) by maximum likelihood.

        Args:
            observations: Observations to fit
            initial: Starting parameters; nu is ignored

        Returns:
            FitResult with diagnostics
        """
        return self._fit_model(observations, "schaefer", initial)

    def fit_multimodel(
        self,
        observations: ObservationSet,
        initial: ProductionParameters | None = None,
    ) -> list[FitResult]:
        """Fit both Schaefer and Pella-Tomlinson models.

        Args:
            observations: Observations to fit
            initial: Starting parameters shared by both fits

        Returns:
            List of results, Schaefer first; pick one with
            :func:`~pysurplus.core.selection.compare_fits`
        """
        return [
            self.fit_schaefer(observations, initial),
            self.fit_pella_tomlinson(observations, initial),
        ]

    def fit(
        self,
        observations: ObservationSet,
        initial: ProductionParameters | None = None,
        model: str | ModelSelection | None = None,
    ) -> list[FitResult]:
        """Fit using the configured model selection.

        Dispatches on ``model``, or config.model_selection when not given:
        - 'pella-tomlinson': free nu
        - 'schaefer': nu fixed at 2
        - 'auto': both models

        Args:
            observations: Observations to fit
            initial: Starting parameters (pre-fit based guess if None)
            model: Model selection overriding the configuration

        Returns:
            List of FitResults (one, or two for 'auto')
        """
        if model is None:
            selection = self.config.model_selection_enum
        else:
            selection = replace(self.config, model_selection=model).model_selection_enum

        if selection == ModelSelection.AUTO:
            return self.fit_multimodel(observations, initial)
        elif selection == ModelSelection.SCHAEFER:
            return [self.fit_schaefer(observations, initial)]
        else:
            return [self.fit_pella_tomlinson(observations, initial)]
