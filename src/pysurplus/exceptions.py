"""Exception types for PySurplus.

All exceptions derive from ValueError so callers that only guard against
bad input with ``except ValueError`` keep working.
"""


class PySurplusError(ValueError):
    """Base class for PySurplus errors."""


class DataAlignmentError(PySurplusError):
    """Input series cannot be aligned into a usable observation set.

    Raised when a joined guild has no common years, or when a stock or
    observation set has no (or too few) valid observations.
    """


class StockFormatError(PySurplusError):
    """A stock file is missing columns or holds values that are not numeric."""


class FitError(PySurplusError):
    """A closed-form fit could not be computed (e.g. singular design matrix)."""
