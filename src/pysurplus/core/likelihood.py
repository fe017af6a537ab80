"""Log-normal likelihood for surplus production observations.

Observed production is modelled as log-normal around the production curve:

    log(P_obs) ~ Normal(log(max(P(B), floor)), sigma)

Predictions are floored at a small positive value so the logarithm is always
defined. Observations whose log-density is not finite (zero or negative
observed production) carry no information on the log scale and are left out
of the sum.
"""

from typing import Sequence

import numpy as np
from scipy.stats import norm

from .models import production

DEFAULT_FLOOR = 1e-5


def floored_production(
    biomass: np.ndarray,
    alpha: float,
    beta: float,
    nu: float,
    floor: float = DEFAULT_FLOOR,
) -> tuple[np.ndarray, np.ndarray]:
    """Predict production and raise it to a strictly positive floor.

    Args:
        biomass: Biomass array
        alpha, beta, nu: Production curve parameters
        floor: Minimum predicted production

    Returns:
        Tuple of (floored predictions, boolean mask of floored entries)
    """
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        predicted = production(biomass, alpha, beta, nu)
    # NaN predictions stay NaN so they surface as undefined log-densities
    floored = ~np.isnan(predicted) & (predicted <= floor)
    return np.where(floored, floor, predicted), floored


def log_densities(
    params: Sequence[float],
    observed: np.ndarray,
    biomass: np.ndarray,
    floor: float = DEFAULT_FLOOR,
) -> np.ndarray:
    """Per-observation Normal log-density of log production.

    Args:
        params: (alpha, beta, nu, sigma)
        observed: Observed production
        biomass: Biomass, aligned with observed
        floor: Prediction floor

    Returns:
        Array of log-densities; non-finite where undefined
    """
    alpha, beta, nu, sigma = params
    predicted, _ = floored_production(biomass, alpha, beta, nu, floor)
    with np.errstate(divide="ignore", invalid="ignore"):
        return norm.logpdf(np.log(observed), loc=np.log(predicted), scale=sigma)


def negative_log_likelihood(
    params: Sequence[float],
    observed: np.ndarray,
    biomass: np.ndarray,
    floor: float = DEFAULT_FLOOR,
) -> float:
    """Negative log-likelihood of observed production under the model.

    Non-finite log-densities are treated as missing and excluded.

    Args:
        params: (alpha, beta, nu, sigma)
        observed: Observed production
        biomass: Biomass, aligned with observed
        floor: Prediction floor

    Returns:
        Scalar to minimize; inf if sigma is not strictly positive
    """
    sigma = params[3]
    if not sigma > 0:
        return float("inf")
    densities = log_densities(params, np.asarray(observed, dtype=float),
                              np.asarray(biomass, dtype=float), floor)
    return float(-np.sum(densities[np.isfinite(densities)]))


def usable_mask(observed: np.ndarray) -> np.ndarray:
    """Observations that can contribute to the log-scale likelihood."""
    observed = np.asarray(observed, dtype=float)
    return np.isfinite(observed) & (observed > 0)


def make_objective(
    observed: np.ndarray,
    biomass: np.ndarray,
    floor: float = DEFAULT_FLOOR,
    fixed_nu: float | None = None,
):
    """Build the optimizer-scale objective.

    The returned function takes theta = (alpha, beta, nu, log_sigma), or
    (alpha, beta, log_sigma) when ``fixed_nu`` is given. Sigma is optimized
    on the log scale so it stays strictly positive. Only observations with
    positive production are used, and a parameter vector that makes any of
    their log-densities undefined scores inf rather than dropping points.

    Args:
        observed: Observed production
        biomass: Biomass, aligned with observed
        floor: Prediction floor
        fixed_nu: Shape exponent to hold fixed, or None to estimate it

    Returns:
        Callable mapping theta to the negative log-likelihood
    """
    mask = usable_mask(observed)
    obs = np.asarray(observed, dtype=float)[mask]
    b = np.asarray(biomass, dtype=float)[mask]

    def objective(theta: np.ndarray) -> float:
        params = unpack_theta(theta, fixed_nu)
        densities = log_densities(params, obs, b, floor)
        if not np.all(np.isfinite(densities)):
            return float("inf")
        return float(-np.sum(densities))

    return objective


def unpack_theta(theta: Sequence[float], fixed_nu: float | None = None) -> tuple[float, float, float, float]:
    """Convert an optimizer vector to (alpha, beta, nu, sigma)."""
    if fixed_nu is None:
        alpha, beta, nu, log_sigma = theta
    else:
        alpha, beta, log_sigma = theta
        nu = fixed_nu
    return float(alpha), float(beta), float(nu), float(np.exp(log_sigma))


def pack_theta(
    alpha: float,
    beta: float,
    nu: float,
    sigma: float,
    fixed_nu: float | None = None,
) -> np.ndarray:
    """Convert (alpha, beta, nu, sigma) to an optimizer vector."""
    if fixed_nu is None:
        return np.array([alpha, beta, nu, np.log(sigma)], dtype=float)
    return np.array([alpha, beta, np.log(sigma)], dtype=float)
