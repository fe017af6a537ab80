"""Core surplus production models and fitting."""

from .models import (
    FitResult,
    LinearPrefit,
    ObservationSet,
    ProductionParameters,
    production,
)
from .likelihood import negative_log_likelihood
from .fitting import FittingConfig, ModelSelection, ProductionFitter
from .selection import compare_fits, evaluate_fit_quality

__all__ = [
    "FitResult",
    "LinearPrefit",
    "ObservationSet",
    "ProductionParameters",
    "production",
    "negative_log_likelihood",
    "FittingConfig",
    "ModelSelection",
    "ProductionFitter",
    "compare_fits",
    "evaluate_fit_quality",
]
