"""Interactive Plotly visualizations for surplus production analysis."""

from pathlib import Path
from typing import Literal

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from ..core.models import FitResult, LinearPrefit
from ..core.selection import compare_fits
from ..data.guild import GuildSeries


class ProductionPlotter:
    """Create production-vs-biomass and guild time-series plots."""

    # Color palette for stocks and fitted curves
    COLORS = [
        "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
        "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf"
    ]

    def __init__(
        self,
        width: int = 1000,
        height: int = 600,
        curve_points: int = 200,
    ):
        """Initialize plotter.

        Args:
            width: Plot width in pixels
            height: Plot height in pixels
            curve_points: Points used to draw fitted curves
        """
        self.width = width
        self.height = height
        self.curve_points = curve_points

    def _biomass_grid(self, guild: GuildSeries, results: list[FitResult]) -> np.ndarray:
        """Biomass range covering the data and any fitted carrying capacity."""
        upper = float(np.nanmax(guild.biomass)) if guild.n_years else 1.0
        for result in results:
            k = result.parameters.carrying_capacity
            if k is not None and np.isfinite(k):
                upper = max(upper, min(k, 2 * upper))
        return np.linspace(0, upper * 1.05, self.curve_points)

    def plot_production(
        self,
        guild: GuildSeries,
        results: list[FitResult] | None = None,
        prefit: LinearPrefit | None = None,
    ) -> go.Figure:
        """Plot guild surplus production against biomass with fitted curves.

        Args:
            guild: Joined guild series
            results: Fitted models to overlay
            prefit: Linear pre-fit to overlay as a baseline

        Returns:
            Plotly Figure object
        """
        results = results or []
        fig = go.Figure()

        fig.add_trace(go.Scatter(
            x=guild.biomass,
            y=guild.production,
            mode='markers',
            name='Observed',
            text=[str(y) for y in guild.years],
            marker=dict(size=8, color='#1f77b4', symbol='circle'),
            hovertemplate=(
                "<b>%{text}</b><br>"
                "Biomass: %{x:.0f}<br>"
                "Production: %{y:.0f}<br>"
                "<extra></extra>"
            )
        ))

        grid = self._biomass_grid(guild, results)

        for i, result in enumerate(results, start=1):
            params = result.parameters
            color = self.COLORS[i % len(self.COLORS)]
            fig.add_trace(go.Scatter(
                x=grid,
                y=params.production(grid),
                mode='lines',
                name=f"{result.model} ({result.status})",
                line=dict(color=color, width=2),
                hovertemplate=(
                    f"<b>{result.model}</b><br>"
                    "Biomass: %{x:.0f}<br>"
                    "Production: %{y:.0f}<br>"
                    f"nu: {params.nu:.3f}<br>"
                    f"AIC: {result.aic:.2f}<br>"
                    "<extra></extra>"
                )
            ))
            if params.bmsy is not None and params.msy is not None:
                fig.add_trace(go.Scatter(
                    x=[params.bmsy],
                    y=[params.msy],
                    mode='markers',
                    name=f"{result.model} MSY",
                    marker=dict(size=12, color=color, symbol='star'),
                    showlegend=False,
                ))

        if prefit is not None:
            fig.add_trace(go.Scatter(
                x=grid,
                y=prefit.parameters.production(grid),
                mode='lines',
                name='Linear pre-fit',
                line=dict(color='#7f7f7f', width=1.5, dash='dash'),
            ))

        fig.add_hline(y=0, line_color="gray", line_width=1)

        fig.update_layout(
            title=dict(
                text=f"Surplus Production: {guild.name}",
                font=dict(size=16)
            ),
            xaxis_title="Spawning biomass",
            yaxis_title="Annual surplus production",
            width=self.width,
            height=self.height,
            legend=dict(
                yanchor="top",
                y=0.99,
                xanchor="right",
                x=0.99
            ),
            hovermode='closest',
        )

        if results:
            best = compare_fits(results)
            params = best.parameters
            k = params.carrying_capacity
            annotation_text = (
                f"<b>{best.model}</b><br>"
                f"alpha: {params.alpha:.4g}<br>"
                f"beta: {params.beta:.4g}<br>"
                f"nu: {params.nu:.3f}<br>"
                f"sigma: {params.sigma:.3f}<br>"
                f"K: {f'{k:.0f}' if k is not None else 'undefined'}"
            )
            fig.add_annotation(
                x=0.02, y=0.02,
                xref='paper', yref='paper',
                text=annotation_text,
                showarrow=False,
                font=dict(size=10),
                align='left',
                bgcolor='rgba(255,255,255,0.8)',
                bordercolor='gray',
                borderwidth=1
            )

        return fig

    def plot_series(self, guild: GuildSeries) -> go.Figure:
        """Plot biomass, catch and surplus production over time, by stock.

        Args:
            guild: Joined guild series

        Returns:
            Plotly Figure with three stacked subplots
        """
        fig = make_subplots(
            rows=3, cols=1,
            shared_xaxes=True,
            subplot_titles=("Spawning biomass", "Catch", "Surplus production"),
            vertical_spacing=0.08
        )

        for row, column in enumerate(("biomass", "catch", "production"), start=1):
            for i, (stock_name, frame) in enumerate(guild.stocks.items()):
                fig.add_trace(
                    go.Scatter(
                        x=guild.years,
                        y=frame[column].to_numpy(),
                        mode='lines',
                        stackgroup=column if column != "production" else None,
                        name=stock_name,
                        legendgroup=stock_name,
                        showlegend=row == 1,
                        line=dict(color=self.COLORS[i % len(self.COLORS)]),
                    ),
                    row=row, col=1
                )
            if column == "production":
                fig.add_trace(
                    go.Scatter(
                        x=guild.years,
                        y=guild.production,
                        mode='lines+markers',
                        name='Guild total',
                        line=dict(color='black', width=2),
                    ),
                    row=row, col=1
                )

        fig.update_layout(
            title=f"Guild Time Series: {guild.name} ({len(guild.stocks)} stocks)",
            height=self.height * 1.4,
            width=self.width,
        )
        fig.update_xaxes(title_text="Year", row=3, col=1)

        return fig

    def save(
        self,
        fig: go.Figure,
        output_path: Path | str,
        format: Literal["html", "png", "svg", "pdf"] = "html"
    ) -> Path:
        """Save figure to file.

        Args:
            fig: Plotly Figure object
            output_path: Output file path
            format: Output format

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)

        if format == "html":
            fig.write_html(output_path)
        else:
            fig.write_image(output_path, format=format)

        return output_path
