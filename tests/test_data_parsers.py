"""Tests for the stock file parser."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from pysurplus.data.loader import StockParser, load_stock
from pysurplus.exceptions import DataAlignmentError, StockFormatError


FIXTURES_DIR = Path(__file__).parent / "fixtures"


class TestStockParser:
    """Tests for StockParser."""

    def test_can_parse(self):
        """Test detection of year, biomass and catch columns."""
        parser = StockParser()
        df = pd.DataFrame({"Year": ["2000"], "SSB": ["1"], "Catch": ["1"]})
        assert parser.can_parse(df)

        df = pd.DataFrame({"Year": ["2000"], "SSB": ["1"]})
        assert not parser.can_parse(df)

    def test_column_aliases(self):
        """Test alternative column names and whitespace in headers."""
        parser = StockParser()
        df = pd.DataFrame({
            " YEARS ": ["2000", "2001"],
            "Spawning Stock Biomass": ["10", "11"],
            "Landings": ["1", "2"],
        })

        stock = parser.parse(df, name="x")

        np.testing.assert_array_equal(stock.years, [2000, 2001])
        np.testing.assert_allclose(stock.biomass, [10.0, 11.0])
        np.testing.assert_allclose(stock.catch, [1.0, 2.0])

    def test_whitespace_in_values(self):
        """Test numeric values with surrounding whitespace are coerced."""
        df = pd.DataFrame({"year": [" 2000 ", "2001"], "ssb": ["  5.5", "6.0  "], "catch": ["1", " 2 "]})

        stock = StockParser().parse(df, name="x")

        np.testing.assert_allclose(stock.biomass, [5.5, 6.0])
        np.testing.assert_allclose(stock.catch, [1.0, 2.0])

    def test_missing_column(self):
        """Test a missing required column raises StockFormatError."""
        df = pd.DataFrame({"year": ["2000"], "ssb": ["1"]})

        with pytest.raises(StockFormatError, match="catch"):
            StockParser().parse(df, name="x")

    def test_non_numeric_value(self):
        """Test a non-blank non-numeric value fails the parse."""
        df = pd.DataFrame({"year": ["2000", "2001"], "ssb": ["1", "lots"], "catch": ["1", "2"]})

        with pytest.raises(StockFormatError, match="lots"):
            StockParser().parse(df, name="x")

    def test_missing_tokens_drop_row(self):
        """Test blank and NA-like cells drop their row."""
        df = pd.DataFrame({
            "year": ["2000", "2001", "2002", "2003"],
            "ssb": ["1", " ", "3", "4"],
            "catch": ["1", "2", "n/a", "4"],
        })

        stock = StockParser().parse(df, name="x")

        np.testing.assert_array_equal(stock.years, [2000, 2003])

    def test_non_integer_year(self):
        """Test fractional years raise StockFormatError."""
        df = pd.DataFrame({"year": ["2000.5"], "ssb": ["1"], "catch": ["1"]})

        with pytest.raises(StockFormatError, match="non-integer"):
            StockParser().parse(df, name="x")

    def test_duplicate_year(self):
        """Test repeated years raise StockFormatError."""
        df = pd.DataFrame({"year": ["2000", "2000"], "ssb": ["1", "2"], "catch": ["1", "2"]})

        with pytest.raises(StockFormatError, match="duplicate"):
            StockParser().parse(df, name="x")

    def test_all_rows_missing(self):
        """Test a stock with no complete rows raises DataAlignmentError."""
        df = pd.DataFrame({"year": ["2000", "2001"], "ssb": ["", ""], "catch": ["1", "2"]})

        with pytest.raises(DataAlignmentError):
            StockParser().parse(df, name="x")

    def test_scale(self):
        """Test the unit factor multiplies biomass and catch."""
        df = pd.DataFrame({"year": ["2000"], "ssb": ["1.5"], "catch": ["0.25"]})

        stock = StockParser().parse(df, name="x", scale=1000)

        assert stock.biomass[0] == pytest.approx(1500.0)
        assert stock.catch[0] == pytest.approx(250.0)
        assert stock.years[0] == 2000

    def test_unsupported_extension(self, tmp_path):
        """Test non-CSV files are rejected."""
        path = tmp_path / "stock.xlsx"
        path.write_bytes(b"")

        with pytest.raises(ValueError, match="Unsupported"):
            StockParser.load_file(path)


class TestLoadStock:
    """Tests for load_stock with fixture files."""

    def test_load_basic(self):
        """Test loading a well-formed file."""
        stock = load_stock(FIXTURES_DIR / "stock_a.csv")

        assert stock.name == "stock_a"
        assert stock.n_years == 16
        assert stock.first_year == 1990
        assert stock.last_year == 2005
        assert stock.biomass[0] == pytest.approx(1000.0)

    def test_load_with_name_and_scale(self):
        """Test explicit name and unit factor."""
        stock = load_stock(FIXTURES_DIR / "stock_b.csv", name="hake", scale=1000)

        assert stock.name == "hake"
        assert stock.biomass[0] == pytest.approx(500.0)
        assert stock.catch[0] == pytest.approx(60.0)

    def test_load_missing_cells(self):
        """Test rows with blank or NA cells are dropped."""
        stock = load_stock(FIXTURES_DIR / "stock_missing.csv")

        np.testing.assert_array_equal(stock.years, [2000, 2003, 2004])

    def test_load_bad_value(self):
        """Test a non-numeric cell fails the load."""
        with pytest.raises(StockFormatError):
            load_stock(FIXTURES_DIR / "stock_bad.csv")

    def test_load_missing_column(self):
        """Test a file without a catch column fails the load."""
        with pytest.raises(StockFormatError):
            load_stock(FIXTURES_DIR / "stock_nocatch.csv")
