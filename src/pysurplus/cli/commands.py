"""CLI commands for PySurplus."""

from pathlib import Path
from typing import Annotated, Optional

import numpy as np
import typer

from ..config import VALID_MODELS, PySurplusConfig, StockSource, generate_default_config
from ..exceptions import PySurplusError

app = typer.Typer(
    name="pysurplus",
    help="Surplus production model fitting for fish stock guilds",
    add_completion=False,
)


def _parse_scales(scale: list[str]) -> dict[str, float]:
    """Parse repeated NAME=K options into a dict.

    Raises:
        ValueError: If an entry is malformed or K is not a positive number
    """
    scales = {}
    for entry in scale:
        name, sep, value = entry.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"--scale '{entry}' is not of the form NAME=K")
        try:
            factor = float(value)
        except ValueError:
            raise ValueError(f"--scale '{entry}': '{value}' is not a number")
        if factor <= 0:
            raise ValueError(f"--scale '{entry}': factor must be greater than 0")
        scales[name.strip()] = factor
    return scales


@app.command()
def fit(
    input_files: Annotated[
        Optional[list[Path]],
        typer.Argument(
            help="Stock CSV file(s) with Year, SSB and Catch columns (override config stocks)",
            exists=True,
        )
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file (use 'pysurplus init' to generate template)",
            exists=True,
        )
    ] = None,
    scale: Annotated[
        Optional[list[str]],
        typer.Option(
            "--scale",
            help="Unit factor for a stock as NAME=K (repeatable)",
        )
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option(
            "-m", "--model",
            help="Model: pella-tomlinson, schaefer, or auto (overrides config)",
        )
    ] = None,
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output directory for results and plots",
        )
    ] = Path("output"),
    no_plots: Annotated[
        bool,
        typer.Option(
            "--no-plots",
            help="Skip generating HTML plots",
        )
    ] = False,
) -> None:
    """Fit a surplus production model to a guild of stocks.

    Stocks are joined on the years they share, their biomass, catch and
    annual surplus production summed, and the production curve fitted to
    the guild totals by maximum likelihood.

    Examples:
        pysurplus fit cod.csv hake.csv --scale hake=1000
        pysurplus fit --config guild.yaml --model auto -o results/
    """
    from ..batch.processor import fit_guild, save_guild_outputs

    try:
        if config:
            typer.echo(f"Loading config from {config}")
            ps_config = PySurplusConfig.from_yaml(config)
        else:
            ps_config = PySurplusConfig()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    # CLI overrides
    if input_files:
        ps_config.guild.stocks = [StockSource(path=str(path)) for path in input_files]

    if scale:
        try:
            scales = _parse_scales(scale)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        names = {source.stock_name: source for source in ps_config.guild.stocks}
        unknown = sorted(set(scales) - set(names))
        if unknown:
            typer.echo(
                f"Error: --scale given for unknown stock(s) {unknown}. Stocks: {sorted(names)}",
                err=True,
            )
            raise typer.Exit(1)
        for name, factor in scales.items():
            names[name].scale = factor

    if model:
        if model.lower() not in VALID_MODELS:
            typer.echo(f"Error: Invalid model '{model}'. Must be one of: {', '.join(VALID_MODELS)}.", err=True)
            raise typer.Exit(1)
        ps_config.fitting.model = model.lower()

    if no_plots:
        ps_config.output.plots = False

    if not ps_config.guild.stocks:
        typer.echo("Error: No stock files given. Pass CSV files or a config with guild.stocks.", err=True)
        raise typer.Exit(1)

    try:
        ps_config.validate()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Fitting {ps_config.fitting.model} to {len(ps_config.guild.stocks)} stock(s)...")

    try:
        guild_fit = fit_guild(ps_config)
    except (OSError, PySurplusError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    _report_guild_fit(guild_fit)

    save_guild_outputs(guild_fit, output, ps_config)
    typer.echo(f"\nOutput saved to: {output}/")


def _report_guild_fit(guild_fit) -> None:
    """Report a guild fit to the console."""
    guild = guild_fit.guild
    typer.echo("")
    typer.echo(f"Guild: {guild.name} ({', '.join(guild.stock_names)})")
    typer.echo(f"  Years: {guild.n_years} ({guild.years[0]}-{guild.years[-1]})")
    for issue in guild.diagnostics.issues:
        typer.echo(f"  [{issue.code}] {issue.message}")

    best = guild_fit.best
    for result in guild_fit.results:
        params = result.parameters
        marker = " (selected)" if len(guild_fit.results) > 1 and result is best else ""
        typer.echo("")
        typer.echo(f"{result.model}{marker}: {result.status}")
        typer.echo(
            f"  alpha={params.alpha:.4g} beta={params.beta:.4g} "
            f"nu={params.nu:.4g} sigma={params.sigma:.4g}"
        )
        k = params.carrying_capacity
        if k is not None:
            typer.echo(f"  K={k:.4g} BMSY={params.bmsy:.4g} MSY={params.msy:.4g}")
        else:
            typer.echo("  K undefined (production curve is not dome-shaped)")
        typer.echo(
            f"  NLL={result.neg_log_likelihood:.4f} AIC={result.aic:.3f} "
            f"n={result.n_observations} excluded={result.n_excluded} floored={result.n_floored}"
        )
        for issue in result.diagnostics.issues:
            typer.echo(f"  [{issue.code}] {issue.severity.name}: {issue.message}")


@app.command()
def batch(
    config_files: Annotated[
        list[Path],
        typer.Argument(
            help="YAML config file(s), one per guild",
            exists=True,
        )
    ],
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output directory; each guild gets a subdirectory",
        )
    ] = Path("output"),
    workers: Annotated[
        Optional[int],
        typer.Option(
            "-w", "--workers",
            help="Number of parallel workers (default: auto)",
        )
    ] = None,
    no_plots: Annotated[
        bool,
        typer.Option(
            "--no-plots",
            help="Skip generating HTML plots",
        )
    ] = False,
) -> None:
    """Fit several independent guilds in parallel.

    Example:
        pysurplus batch pelagic.yaml demersal.yaml -o results/ -w 4
    """
    from ..batch.processor import BatchConfig, BatchProcessor

    batch_config = BatchConfig(
        workers=workers,
        output_dir=output,
        save_plots=not no_plots,
    )

    typer.echo(f"Processing {len(config_files)} guild(s)...")
    result = BatchProcessor(batch_config).run(config_files, output)

    typer.echo("")
    typer.echo("Results:")
    typer.echo(f"  Successful: {result.successful}")
    typer.echo(f"  Failed: {result.failed}")
    for guild_fit in result.fits:
        best = guild_fit.best
        if best is not None:
            typer.echo(f"  {guild_fit.guild.name}: {best.model} ({best.status}, AIC={best.aic:.3f})")

    if result.errors:
        typer.echo(f"\n{len(result.errors)} error(s) occurred. See {output}/errors.txt")

    typer.echo(f"\nOutput saved to: {output}/")


@app.command()
def init(
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output file path",
        )
    ] = Path("pysurplus.yaml"),
) -> None:
    """Generate a default configuration file.

    Creates a YAML config file with all available settings and their defaults.

    Example:
        pysurplus init -o guild.yaml
    """
    if output.exists():
        overwrite = typer.confirm(f"{output} already exists. Overwrite?")
        if not overwrite:
            raise typer.Exit(0)

    generate_default_config(output)
    typer.echo(f"Config file created: {output}")

    typer.echo("\nEdit this file to list your stocks, then use:")
    typer.echo(f"  pysurplus fit --config {output}")


@app.command()
def info(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Stock CSV file to inspect",
            exists=True,
        )
    ],
) -> None:
    """Display information about a stock file.

    Shows columns, detected mapping, year range and surplus production.
    """
    from ..data.loader import StockParser

    typer.echo(f"Inspecting: {input_file}")
    typer.echo("")

    try:
        df = StockParser.load_file(input_file)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Rows: {len(df)}")
    typer.echo(f"Columns: {list(df.columns)}")

    parser = StockParser()
    mapping = parser._map_columns(df)
    typer.echo(f"Column mapping: {', '.join(f'{std} <- {col}' for std, col in mapping.items())}")

    try:
        stock = parser.parse(df, name=input_file.stem)
    except PySurplusError as e:
        typer.echo(f"Parse failed: {e}", err=True)
        raise typer.Exit(1)

    production = stock.annual_surplus_production()
    typer.echo(f"Years: {stock.n_years} ({stock.first_year}-{stock.last_year})")
    typer.echo(f"Biomass: {stock.biomass.min():.4g} to {stock.biomass.max():.4g}")
    typer.echo(f"Catch: {stock.catch.min():.4g} to {stock.catch.max():.4g}")
    defined = production[np.isfinite(production)]
    if len(defined):
        typer.echo(
            f"Surplus production: {len(defined)} year(s) defined, "
            f"{int((defined > 0).sum())} positive"
        )


if __name__ == "__main__":
    app()
