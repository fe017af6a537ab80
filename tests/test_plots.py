"""Tests for Plotly visualizations."""

import numpy as np

from pysurplus.core.fitting import FittingConfig, ProductionFitter
from pysurplus.core.models import FitResult, ProductionParameters
from pysurplus.data.guild import build_guild
from pysurplus.data.stock import StockSeries
from pysurplus.visualization.plots import ProductionPlotter


def _make_guild():
    years = np.arange(2000, 2012)
    rng = np.random.default_rng(7)
    biomass = np.linspace(5.0, 25.0, 12)
    catch = np.clip(biomass - biomass ** 2 / 30 + rng.normal(0, 0.2, 12), 0.5, None)
    stocks = [
        StockSeries(name="cod", years=years, biomass=biomass, catch=catch),
        StockSeries(name="hake", years=years, biomass=biomass / 2, catch=catch / 2),
    ]
    return build_guild(stocks, name="demersal")


class TestProductionPlotter:
    """Tests for ProductionPlotter."""

    def test_plot_production_data_only(self):
        """Test the observed scatter without fits."""
        fig = ProductionPlotter().plot_production(_make_guild())

        assert len(fig.data) == 1
        assert fig.data[0].name == "Observed"
        assert "demersal" in fig.layout.title.text

    def test_plot_production_with_fit(self):
        """Test fitted curves, MSY marker and pre-fit are added."""
        guild = _make_guild()
        results = ProductionFitter(FittingConfig(model_selection="schaefer", compute_hessian=False)).fit(
            guild.observations()
        )

        fig = ProductionPlotter().plot_production(guild, results, results[0].prefit)

        names = [trace.name for trace in fig.data]
        assert names[0] == "Observed"
        assert any(name.startswith("schaefer") for name in names)
        assert "Linear pre-fit" in names
        assert len(fig.layout.annotations) == 1

    def test_annotation_shows_selected_fit(self):
        """Test the parameter box describes the lowest-AIC fit, not the first."""
        guild = _make_guild()
        schaefer = FitResult(
            model="schaefer",
            parameters=ProductionParameters(alpha=1.0, beta=-1 / 30, nu=2.0, sigma=0.1),
            neg_log_likelihood=10.0,
            n_parameters=3,
            n_observations=11,
            converged=True,
        )
        pella = FitResult(
            model="pella-tomlinson",
            parameters=ProductionParameters(alpha=1.2, beta=-0.01, nu=2.4, sigma=0.1),
            neg_log_likelihood=0.0,
            n_parameters=4,
            n_observations=11,
            converged=True,
        )

        fig = ProductionPlotter().plot_production(guild, [schaefer, pella])

        assert fig.layout.annotations[0].text.startswith("<b>pella-tomlinson</b>")

    def test_plot_series(self):
        """Test one trace per stock per panel plus the guild total."""
        fig = ProductionPlotter().plot_series(_make_guild())

        assert len(fig.data) == 3 * 2 + 1
        assert fig.data[-1].name == "Guild total"

    def test_save_html(self, tmp_path):
        """Test saving to HTML."""
        plotter = ProductionPlotter(width=600, height=400)
        fig = plotter.plot_series(_make_guild())

        path = plotter.save(fig, tmp_path / "series.html")

        assert path.exists()
        assert fig.layout.width == 600
