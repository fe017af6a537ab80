"""Data models for stock time series."""

from dataclasses import dataclass, replace

import numpy as np
import pandas as pd

from ..exceptions import DataAlignmentError


@dataclass
class StockSeries:
    """Annual biomass and catch for a single stock.

    Attributes:
        name: Stock name (used as column prefix in guild tables)
        years: Integer years, strictly increasing
        biomass: Spawning stock biomass per year
        catch: Total catch per year
    """
    name: str
    years: np.ndarray
    biomass: np.ndarray
    catch: np.ndarray

    def __post_init__(self) -> None:
        """Coerce to arrays, check alignment and sort by year."""
        self.years = np.asarray(self.years, dtype=int)
        self.biomass = np.asarray(self.biomass, dtype=float)
        self.catch = np.asarray(self.catch, dtype=float)

        if not (len(self.years) == len(self.biomass) == len(self.catch)):
            raise DataAlignmentError(
                f"{self.name}: years, biomass and catch differ in length "
                f"({len(self.years)}, {len(self.biomass)}, {len(self.catch)})"
            )
        if len(np.unique(self.years)) != len(self.years):
            raise DataAlignmentError(f"{self.name}: duplicate years")

        order = np.argsort(self.years)
        self.years = self.years[order]
        self.biomass = self.biomass[order]
        self.catch = self.catch[order]

    @property
    def n_years(self) -> int:
        """Number of years of data."""
        return len(self.years)

    @property
    def first_year(self) -> int | None:
        """First year of data."""
        return int(self.years[0]) if self.n_years else None

    @property
    def last_year(self) -> int | None:
        """Last year of data."""
        return int(self.years[-1]) if self.n_years else None

    def scaled(self, factor: float) -> "StockSeries":
        """Return a copy with biomass and catch multiplied by a unit factor.

        Args:
            factor: Multiplier bringing this stock to the guild's common unit

        Returns:
            New StockSeries
        """
        return replace(self, biomass=self.biomass * factor, catch=self.catch * factor)

    def annual_surplus_production(self, catch_factor: float = 1.0) -> np.ndarray:
        """Annual surplus production attributed to each year.

        ASP[t] = B[t+1] - B[t] + catch_factor * C[t]

        Only defined where year t+1 is present; NaN otherwise (always for the
        last year).

        Args:
            catch_factor: Multiplier on catch (1.0 = plain catch)

        Returns:
            Array aligned with ``years``
        """
        biomass = pd.Series(self.biomass, index=self.years)
        next_biomass = biomass.reindex(self.years + 1).to_numpy()
        return next_biomass - self.biomass + catch_factor * self.catch

    def to_dataframe(self, catch_factor: float = 1.0) -> pd.DataFrame:
        """Convert to DataFrame with columns year, biomass, catch, production."""
        return pd.DataFrame({
            "year": self.years,
            "biomass": self.biomass,
            "catch": self.catch,
            "production": self.annual_surplus_production(catch_factor),
        })
