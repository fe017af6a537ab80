"""Parser for per-stock biomass and catch tables.

Format
------

One stock per comma-delimited file with a header row. Column names are
matched case-insensitively and with surrounding whitespace ignored:

Year:
    - year, years, yr -> year

Biomass:
    - ssb, spawning biomass, spawning stock biomass, biomass, sb -> biomass

Catch:
    - catch, catches, landings, total catch -> catch

Numeric fields may contain extraneous whitespace. A non-blank value that is
not a number fails the load; blank or NA cells are treated as missing and
their rows are dropped (and logged).

Example Input File
------------------

```csv
Year, SSB, Catch
1990, 1200.5, 310
1991, 1150.0, 295
1992,  980.2, 301
```
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from ..exceptions import DataAlignmentError, StockFormatError
from .stock import StockSeries

logger = logging.getLogger(__name__)

# Tokens treated as missing after whitespace stripping
_MISSING_TOKENS = {"", "na", "nan", "n/a", "null", "none"}


class StockParser:
    """Parser for Year/SSB/Catch stock tables.

    Attributes:
        COLUMN_MAPPINGS: Dictionary mapping lowercase column names to standard
            internal names. Used for flexible column matching.
        REQUIRED: Standard names that must be present.

    Example:
        >>> parser = StockParser()
        >>> df = StockParser.load_file("cod.csv")
        >>> stock = parser.parse(df, name="cod", scale=1000)
    """

    COLUMN_MAPPINGS = {
        # Year
        'year': 'year',
        'years': 'year',
        'yr': 'year',
        # Biomass
        'ssb': 'biomass',
        'spawning biomass': 'biomass',
        'spawning stock biomass': 'biomass',
        'biomass': 'biomass',
        'sb': 'biomass',
        # Catch
        'catch': 'catch',
        'catches': 'catch',
        'landings': 'catch',
        'total catch': 'catch',
    }

    REQUIRED = ("year", "biomass", "catch")

    def can_parse(self, df: pd.DataFrame) -> bool:
        """Check if the DataFrame has year, biomass and catch columns."""
        col_map = self._map_columns(df)
        return all(name in col_map for name in self.REQUIRED)

    def _map_columns(self, df: pd.DataFrame) -> dict[str, str]:
        """Map DataFrame columns to standard names using COLUMN_MAPPINGS.

        Returns:
            Dictionary mapping standard name -> actual column name
        """
        mapping: dict[str, str] = {}
        for actual_col in df.columns:
            standard_name = self.COLUMN_MAPPINGS.get(str(actual_col).lower().strip())
            # Priority to first match
            if standard_name and standard_name not in mapping:
                mapping[standard_name] = actual_col
        return mapping

    def _coerce_numeric(self, series: pd.Series, column: str) -> pd.Series:
        """Strip whitespace and convert to float, NaN for missing cells.

        Raises:
            StockFormatError: If a non-blank value is not numeric
        """
        text = series.map(lambda v: v.strip() if isinstance(v, str) else v)
        missing = text.isna() | text.map(lambda v: isinstance(v, str) and v.lower() in _MISSING_TOKENS)
        text = text.mask(missing)

        values = pd.to_numeric(text, errors="coerce")
        bad = values.isna() & ~missing
        if bad.any():
            examples = [str(v) for v in text[bad].head(5)]
            raise StockFormatError(
                f"Column '{column}' has {int(bad.sum())} non-numeric value(s): {examples}"
            )
        return values.astype(float)

    def parse(self, df: pd.DataFrame, name: str, scale: float = 1.0) -> StockSeries:
        """Parse a DataFrame into a StockSeries.

        Args:
            df: DataFrame loaded from a stock file
            name: Stock name
            scale: Unit factor applied to biomass and catch

        Returns:
            StockSeries with missing rows removed

        Raises:
            StockFormatError: If columns are missing, values are not numeric,
                years are not integers, or years repeat
            DataAlignmentError: If no valid rows remain
        """
        col_map = self._map_columns(df)
        missing_cols = [c for c in self.REQUIRED if c not in col_map]
        if missing_cols:
            raise StockFormatError(
                f"{name}: missing required column(s) {missing_cols}. "
                f"Columns found: {list(df.columns)}"
            )

        values = pd.DataFrame({
            std: self._coerce_numeric(df[col_map[std]], col_map[std])
            for std in self.REQUIRED
        })

        incomplete = values.isna().any(axis=1)
        if incomplete.any():
            years = values.loc[incomplete, "year"].dropna().astype(int).tolist()
            logger.warning(
                f"{name}: dropping {int(incomplete.sum())} row(s) with missing values"
                + (f" (years {years})" if years else "")
            )
            values = values[~incomplete]

        if values.empty:
            raise DataAlignmentError(f"{name}: no valid observations")

        year = values["year"].to_numpy()
        if not np.all(np.equal(np.mod(year, 1), 0)):
            raise StockFormatError(f"{name}: year column contains non-integer values")

        duplicated = values["year"].duplicated()
        if duplicated.any():
            raise StockFormatError(
                f"{name}: duplicate year(s) {values.loc[duplicated, 'year'].astype(int).tolist()}"
            )

        stock = StockSeries(
            name=name,
            years=year.astype(int),
            biomass=values["biomass"].to_numpy(),
            catch=values["catch"].to_numpy(),
        )
        if scale != 1.0:
            logger.info(f"{name}: scaling biomass and catch by {scale}")
            stock = stock.scaled(scale)
        return stock

    @classmethod
    def load_file(cls, filepath: Path | str) -> pd.DataFrame:
        """Load a CSV stock file as strings.

        Args:
            filepath: Path to input file

        Returns:
            pandas DataFrame with string cells (NaN for empty cells)

        Raises:
            ValueError: If file format not supported
        """
        filepath = Path(filepath)

        if filepath.suffix.lower() in ('.csv', '.txt'):
            return pd.read_csv(filepath, dtype=str, skipinitialspace=True)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")


def load_stock(
    filepath: Path | str,
    name: str | None = None,
    scale: float = 1.0,
) -> StockSeries:
    """Load a stock from file.

    Args:
        filepath: Path to CSV file
        name: Stock name (defaults to the file stem)
        scale: Unit factor applied to biomass and catch

    Returns:
        StockSeries

    Raises:
        StockFormatError: If the file cannot be parsed
        DataAlignmentError: If no valid rows remain
    """
    filepath = Path(filepath)
    df = StockParser.load_file(filepath)
    stock = StockParser().parse(df, name or filepath.stem, scale)
    logger.info(
        f"Loaded {stock.name} from {filepath}: {stock.n_years} years "
        f"({stock.first_year}-{stock.last_year})"
    )
    return stock
