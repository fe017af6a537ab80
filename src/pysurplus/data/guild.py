"""Guild aggregation: join stocks by year and sum.

Annual surplus production is computed per stock on its own series first,
then stocks are inner-joined on year (only years present in every stock are
kept) and guild biomass, catch and production are per-year sums.
"""

from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd

from ..core.models import ObservationSet
from ..exceptions import DataAlignmentError
from ..validation.result import ValidationIssue, ValidationResult
from .stock import StockSeries

logger = logging.getLogger(__name__)


@dataclass
class GuildSeries:
    """Year-aligned guild totals and their per-stock components.

    Attributes:
        name: Guild name
        years: Years present in every stock
        biomass: Summed biomass per year
        catch: Summed catch per year
        production: Summed annual surplus production per year (NaN where any
            stock's production is undefined)
        stocks: Per-stock DataFrames indexed by year, restricted to ``years``
        catch_factor: Catch multiplier used for surplus production
        diagnostics: Alignment issues found while joining
    """
    name: str
    years: np.ndarray
    biomass: np.ndarray
    catch: np.ndarray
    production: np.ndarray
    stocks: dict[str, pd.DataFrame] = field(default_factory=dict)
    catch_factor: float = 1.0
    diagnostics: ValidationResult = field(default_factory=ValidationResult)

    @property
    def n_years(self) -> int:
        """Number of joined years."""
        return len(self.years)

    @property
    def stock_names(self) -> list[str]:
        """Names of the stocks in the guild."""
        return list(self.stocks)

    def observations(self) -> ObservationSet:
        """Guild (biomass, production) pairs for fitting.

        Years without a defined production (at least the last one) are
        excluded and the exclusion is logged.
        """
        undefined = ~np.isfinite(self.production)
        if undefined.any():
            logger.info(
                f"{self.name}: {int(undefined.sum())} year(s) without surplus production excluded "
                f"({self.years[undefined].tolist()})"
            )
        return ObservationSet.from_arrays(self.biomass, self.production, self.years)

    def to_dataframe(self) -> pd.DataFrame:
        """Guild totals plus per-stock columns, one row per year."""
        data = {
            "year": self.years,
            "biomass": self.biomass,
            "catch": self.catch,
            "production": self.production,
        }
        for stock_name, frame in self.stocks.items():
            for column in ("biomass", "catch", "production"):
                data[f"{stock_name}_{column}"] = frame[column].to_numpy()
        return pd.DataFrame(data)


def build_guild(
    stocks: list[StockSeries],
    name: str = "guild",
    catch_factor: float = 1.0,
) -> GuildSeries:
    """Join stocks on year and compute guild totals.

    Args:
        stocks: Stocks in the guild, already in a common unit
        name: Guild name
        catch_factor: Catch multiplier for annual surplus production

    Returns:
        GuildSeries over the years shared by all stocks

    Raises:
        DataAlignmentError: If there are no stocks, stock names repeat,
            a stock is empty, or the stocks share no years
    """
    if not stocks:
        raise DataAlignmentError(f"{name}: no stocks to join")

    names = [s.name for s in stocks]
    if len(set(names)) != len(names):
        raise DataAlignmentError(f"{name}: duplicate stock names {names}")

    frames: dict[str, pd.DataFrame] = {}
    for stock in stocks:
        if stock.n_years == 0:
            raise DataAlignmentError(f"{name}: stock {stock.name} has no valid observations")
        frames[stock.name] = stock.to_dataframe(catch_factor).set_index("year")

    common = set.intersection(*(set(frame.index) for frame in frames.values()))
    diagnostics = ValidationResult(subject=name)

    for stock_name, frame in frames.items():
        dropped = sorted(int(y) for y in set(frame.index) - common)
        if dropped:
            logger.info(f"{name}: {stock_name} has {len(dropped)} year(s) outside the common range: {dropped}")
            diagnostics.add_issue(ValidationIssue.years_dropped(stock_name, dropped))

    if not common:
        raise DataAlignmentError(f"{name}: stocks {names} have no years in common")

    years = np.array(sorted(common), dtype=int)
    aligned = {stock_name: frame.loc[years] for stock_name, frame in frames.items()}

    biomass = np.sum([frame["biomass"].to_numpy() for frame in aligned.values()], axis=0)
    catch = np.sum([frame["catch"].to_numpy() for frame in aligned.values()], axis=0)
    production = np.sum([frame["production"].to_numpy() for frame in aligned.values()], axis=0)

    logger.info(f"{name}: joined {len(stocks)} stocks over {len(years)} years ({years[0]}-{years[-1]})")

    return GuildSeries(
        name=name,
        years=years,
        biomass=biomass,
        catch=catch,
        production=production,
        stocks=aligned,
        catch_factor=catch_factor,
        diagnostics=diagnostics,
    )
