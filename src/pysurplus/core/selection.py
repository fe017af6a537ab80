"""Model selection and fit quality evaluation."""

from .models import FitResult


def evaluate_fit_quality(result: FitResult) -> dict:
    """Evaluate a production curve fit.

    Args:
        result: FitResult from ProductionFitter

    Returns:
        Dictionary with status, parameters, reference points and warnings
    """
    params = result.parameters
    assessment = {
        "model": result.model,
        "status": result.status,
        "acceptable": result.is_acceptable,
        "neg_log_likelihood": result.neg_log_likelihood,
        "aic": result.aic,
        "bic": result.bic,
        "carrying_capacity": params.carrying_capacity,
        "bmsy": params.bmsy,
        "msy": params.msy,
        "warnings": [str(issue) for issue in result.diagnostics.issues],
    }

    if result.n_observations < 10:
        assessment["warnings"].append(
            f"Limited data ({result.n_observations} observations): estimates are uncertain"
        )

    if result.standard_errors and "nu" in result.standard_errors:
        nu_se = result.standard_errors["nu"]
        if abs(params.nu - 2.0) < 2 * nu_se:
            assessment["warnings"].append(
                f"nu={params.nu:.3f} within two standard errors ({nu_se:.3f}) of the Schaefer value"
            )

    return assessment


def compare_fits(results: list[FitResult]) -> FitResult:
    """Select the best of several fits to the same observations.

    Selection criteria (in order of priority):
    1. Prefer fits that converged without errors
    2. Lowest AIC (parsimony-adjusted likelihood)

    Args:
        results: FitResults to compare

    Returns:
        Best FitResult

    Raises:
        ValueError: If results is empty
    """
    if not results:
        raise ValueError("No fit results to compare")

    usable = [r for r in results if r.converged and r.diagnostics.is_valid]
    if not usable:
        # Return best available even if none converged
        return min(results, key=lambda r: r.neg_log_likelihood)

    return min(usable, key=lambda r: r.aic)
