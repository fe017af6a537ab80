"""Tests for CLI commands."""

import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pysurplus.cli.commands import app
from pysurplus.config import PySurplusConfig


FIXTURES_DIR = Path(__file__).parent / "fixtures"
runner = CliRunner()


class TestFitCommand:
    """Tests for the fit command."""

    def test_fit_files(self):
        """Test fitting stock files given on the command line."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = runner.invoke(
                app,
                [
                    "fit",
                    str(FIXTURES_DIR / "stock_a.csv"),
                    str(FIXTURES_DIR / "stock_b.csv"),
                    "--scale", "stock_b=1000",
                    "--model", "schaefer",
                    "-o", tmpdir,
                    "--no-plots",
                ],
            )

            assert result.exit_code == 0, result.output
            assert "Fitting schaefer to 2 stock(s)" in result.stdout
            assert "stock_a, stock_b" in result.stdout
            assert "Years: 14 (1992-2005)" in result.stdout

            output_dir = Path(tmpdir)
            assert (output_dir / "fit_results.json").exists()
            assert (output_dir / "guild_series.csv").exists()
            assert not (output_dir / "production.html").exists()

            with open(output_dir / "fit_results.json") as f:
                data = json.load(f)
            assert data["guilds"][0]["fits"][0]["model"] == "schaefer"

    def test_fit_with_config(self):
        """Test fitting a guild described by a config file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = runner.invoke(
                app,
                ["fit", "-c", str(FIXTURES_DIR / "guild.yaml"), "-o", tmpdir],
            )

            assert result.exit_code == 0, result.output
            assert "Loading config" in result.stdout
            assert "test_guild" in result.stdout

    def test_fit_auto_with_plots(self):
        """Test 'auto' fits both models and writes plots."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = runner.invoke(
                app,
                ["fit", "-c", str(FIXTURES_DIR / "guild.yaml"), "-m", "auto", "-o", tmpdir],
            )

            assert result.exit_code == 0, result.output
            assert "pella-tomlinson" in result.stdout
            assert "(selected)" in result.stdout

    def test_fit_invalid_model(self):
        """Test an unknown model name exits with an error."""
        result = runner.invoke(
            app,
            ["fit", str(FIXTURES_DIR / "stock_a.csv"), "--model", "fox"],
        )

        assert result.exit_code == 1
        assert "Invalid model" in result.output

    @pytest.mark.parametrize("scale", ["stock_a", "stock_a=abc", "stock_a=-2", "=3"])
    def test_fit_invalid_scale(self, scale):
        """Test malformed --scale values exit with an error."""
        result = runner.invoke(
            app,
            ["fit", str(FIXTURES_DIR / "stock_a.csv"), "--scale", scale],
        )

        assert result.exit_code == 1
        assert "--scale" in result.output

    def test_fit_scale_unknown_stock(self):
        """Test --scale for a stock not in the guild exits with an error."""
        result = runner.invoke(
            app,
            ["fit", str(FIXTURES_DIR / "stock_a.csv"), "--scale", "hake=1000"],
        )

        assert result.exit_code == 1
        assert "unknown stock" in result.output

    def test_fit_no_stocks(self):
        """Test fit without files or config exits with an error."""
        result = runner.invoke(app, ["fit"])

        assert result.exit_code == 1
        assert "No stock files" in result.output

    def test_fit_bad_data(self):
        """Test an unparseable stock file exits with an error."""
        result = runner.invoke(app, ["fit", str(FIXTURES_DIR / "stock_bad.csv")])

        assert result.exit_code == 1
        assert "non-numeric" in result.output

    def test_fit_disjoint_stocks(self, tmp_path):
        """Test stocks without shared years exit with an error."""
        late = tmp_path / "late.csv"
        late.write_text("Year,SSB,Catch\n2050,10,1\n2051,11,1\n")

        result = runner.invoke(app, ["fit", str(FIXTURES_DIR / "stock_a.csv"), str(late)])

        assert result.exit_code == 1
        assert "no years in common" in result.output

    def test_fit_config_missing_stock_file(self, tmp_path):
        """Test a config pointing at a missing stock file exits cleanly."""
        config_path = tmp_path / "guild.yaml"
        config_path.write_text(
            "guild:\n"
            "  name: lost\n"
            "  stocks:\n"
            "    - name: ghost\n"
            "      path: ghost.csv\n"
        )

        result = runner.invoke(app, ["fit", "-c", str(config_path), "-o", str(tmp_path / "out")])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert not isinstance(result.exception, OSError)

    def test_fit_nonexistent_file(self):
        """Test a missing input file is rejected."""
        result = runner.invoke(app, ["fit", "/nonexistent/stock.csv"])

        assert result.exit_code != 0


class TestBatchCommand:
    """Tests for the batch command."""

    def test_batch(self, tmp_path):
        """Test fitting a guild config in batch mode."""
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            ["batch", str(FIXTURES_DIR / "guild.yaml"), "-o", str(out), "-w", "1", "--no-plots"],
        )

        assert result.exit_code == 0, result.output
        assert "Processing 1 guild(s)" in result.stdout
        assert "test_guild: schaefer" in result.stdout
        assert (out / "test_guild" / "fit_results.json").exists()
        assert (out / "batch_results.json").exists()


class TestInitCommand:
    """Tests for the init command."""

    def test_init_default(self):
        """Test init with default output path."""
        with tempfile.TemporaryDirectory() as tmpdir:
            # Change to temp directory to avoid creating files in repo
            import os
            original_cwd = os.getcwd()
            os.chdir(tmpdir)

            try:
                result = runner.invoke(app, ["init"])

                assert result.exit_code == 0
                assert Path("pysurplus.yaml").exists()
                assert "Config file created" in result.stdout
            finally:
                os.chdir(original_cwd)

    def test_init_custom_path(self):
        """Test init with custom output path."""
        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = Path(tmpdir) / "custom_config.yaml"

            result = runner.invoke(
                app,
                ["init", "-o", str(output_path)],
            )

            assert result.exit_code == 0
            assert output_path.exists()

            # Verify it's valid YAML that can be loaded
            config = PySurplusConfig.from_yaml(output_path)
            assert config is not None

    def test_init_overwrite_confirmation(self):
        """Test init prompts before overwriting existing file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = Path(tmpdir) / "config.yaml"
            output_path.write_text("existing content")

            result = runner.invoke(
                app,
                ["init", "-o", str(output_path)],
                input="n\n",
            )

            assert result.exit_code == 0
            assert output_path.read_text() == "existing content"


class TestInfoCommand:
    """Tests for the info command."""

    def test_info(self):
        """Test info on a well-formed stock file."""
        result = runner.invoke(app, ["info", str(FIXTURES_DIR / "stock_b.csv")])

        assert result.exit_code == 0
        assert "Rows: 16" in result.stdout
        assert "biomass <- spawning biomass" in result.stdout
        assert "Years: 16 (1992-2007)" in result.stdout

    def test_info_bad_file(self):
        """Test info reports a parse failure."""
        result = runner.invoke(app, ["info", str(FIXTURES_DIR / "stock_nocatch.csv")])

        assert result.exit_code == 1
        assert "Parse failed" in result.output

    def test_info_nonexistent_file(self):
        """Test info with a missing file."""
        result = runner.invoke(app, ["info", "/nonexistent/file.csv"])

        assert result.exit_code != 0
