"""Fitting pipeline for guilds, with parallel batch execution."""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
import logging
import os

from tqdm import tqdm

from ..config import PySurplusConfig
from ..core.fitting import FittingConfig, ProductionFitter
from ..core.models import FitResult
from ..core.selection import compare_fits
from ..data.guild import GuildSeries, build_guild
from ..data.loader import load_stock
from ..exceptions import DataAlignmentError
from ..export.json_export import JsonExporter
from ..visualization.plots import ProductionPlotter

logger = logging.getLogger(__name__)


@dataclass
class GuildFit:
    """A joined guild and the models fitted to it.

    Attributes:
        guild: Joined guild series
        results: Fitted models (one, or two when both models are fitted)
    """
    guild: GuildSeries
    results: list[FitResult] = field(default_factory=list)

    @property
    def best(self) -> FitResult | None:
        """Selected result by AIC, or None if nothing was fitted."""
        return compare_fits(self.results) if self.results else None


def load_guild(config: PySurplusConfig) -> GuildSeries:
    """Load every configured stock and join them into a guild.

    Args:
        config: Configuration with guild.stocks populated

    Returns:
        Joined GuildSeries

    Raises:
        DataAlignmentError: If no stocks are configured or the join is empty
        StockFormatError: If a stock file cannot be parsed
    """
    if not config.guild.stocks:
        raise DataAlignmentError(f"{config.guild.name}: no stock files configured")

    stocks = [
        load_stock(source.path, name=source.stock_name, scale=source.scale)
        for source in config.guild.stocks
    ]
    return build_guild(stocks, name=config.guild.name, catch_factor=config.guild.catch_factor)


def fit_guild(config: PySurplusConfig) -> GuildFit:
    """Load, join and fit one guild.

    Args:
        config: Validated configuration

    Returns:
        GuildFit with one result per fitted model

    Raises:
        DataAlignmentError: If the data cannot be aligned or is too sparse
        StockFormatError: If a stock file cannot be parsed
        FitError: If the pre-fit is singular and no initial values are given
    """
    guild = load_guild(config)
    fitter = ProductionFitter(FittingConfig.from_pysurplus_config(config))
    results = fitter.fit(guild.observations())
    return GuildFit(guild=guild, results=results)


def save_guild_outputs(
    guild_fit: GuildFit,
    output_dir: Path | str,
    config: PySurplusConfig | None = None,
) -> list[Path]:
    """Write fit_results.json, guild_series.csv and plots for one guild.

    Args:
        guild_fit: Fitted guild
        output_dir: Directory to write into (created if missing)
        config: Configuration included in the JSON and controlling outputs

    Returns:
        Paths written
    """
    config = config or PySurplusConfig()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []

    json_path = JsonExporter(config).save([guild_fit], output_dir / "fit_results.json")
    written.append(json_path)
    logger.info(f"Saved fit results to {json_path}")

    if config.output.guild_table:
        table_path = output_dir / "guild_series.csv"
        guild_fit.guild.to_dataframe().to_csv(table_path, index=False)
        written.append(table_path)

    if config.output.plots:
        plotter = ProductionPlotter()
        best = guild_fit.best
        prefit = best.prefit if best is not None else None
        fig = plotter.plot_production(guild_fit.guild, guild_fit.results, prefit)
        written.append(plotter.save(fig, output_dir / "production.html"))
        fig = plotter.plot_series(guild_fit.guild)
        written.append(plotter.save(fig, output_dir / "guild_series.html"))

    return written


@dataclass
class BatchConfig:
    """Configuration for batch processing.

    Attributes:
        workers: Number of parallel workers (None = auto)
        output_dir: Output directory; each guild gets a subdirectory
        save_plots: Whether to save plots, overriding each guild's config
    """
    workers: int | None = None
    output_dir: Path | None = None
    save_plots: bool = True


@dataclass
class BatchResult:
    """Results from batch processing.

    Attributes:
        fits: Fitted guilds
        successful: Count of guilds with an acceptable selected fit
        failed: Count of guilds that errored or whose fits all failed
        errors: List of (guild_name, error_message) tuples
    """
    fits: list[GuildFit]
    successful: int
    failed: int
    errors: list[tuple[str, str]] = field(default_factory=list)


def _fit_single_guild(config: PySurplusConfig) -> GuildFit:
    """Fit one guild (worker function)."""
    return fit_guild(config)


class BatchProcessor:
    """Fit several independent guilds in parallel."""

    def __init__(self, config: BatchConfig | None = None):
        """Initialize batch processor.

        Args:
            config: Batch processing configuration
        """
        self.config = config or BatchConfig()

    def load_configs(self, config_paths: list[Path | str]) -> tuple[list[PySurplusConfig], list[tuple[str, str]]]:
        """Load guild configurations, collecting the ones that fail.

        Guild names key the output subdirectories, so a config whose guild
        name was already loaded is rejected.

        Args:
            config_paths: YAML configuration files

        Returns:
            Tuple of (loaded configs, (path, error) tuples)
        """
        configs = []
        errors = []
        seen = {}

        for path in config_paths:
            try:
                config = PySurplusConfig.from_yaml(path)
            except (OSError, ValueError) as e:
                errors.append((str(path), str(e)))
                logger.error(f"Failed to load {path}: {e}")
                continue

            name = config.guild.name
            if name in seen:
                message = f"duplicate guild name '{name}' (already loaded from {seen[name]})"
                errors.append((str(path), message))
                logger.error(f"Skipping {path}: {message}")
                continue

            seen[name] = path
            configs.append(config)

        return configs, errors

    def process(
        self,
        configs: list[PySurplusConfig],
        show_progress: bool = True
    ) -> BatchResult:
        """Fit guilds in parallel.

        Args:
            configs: One configuration per guild
            show_progress: Whether to show progress bar

        Returns:
            BatchResult with fitted guilds and statistics
        """
        if not configs:
            return BatchResult(fits=[], successful=0, failed=0)

        successful = 0
        failed = 0
        all_errors = []
        fits = []

        workers = self.config.workers
        if workers is None:
            workers = min(os.cpu_count() or 4, len(configs))

        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_fit_single_guild, config): config.guild.name
                for config in configs
            }

            iterator = as_completed(futures)
            if show_progress:
                iterator = tqdm(
                    iterator,
                    total=len(futures),
                    desc="Fitting guilds"
                )

            for future in iterator:
                guild_name = futures[future]
                try:
                    guild_fit = future.result()
                except ValueError as e:
                    failed += 1
                    all_errors.append((guild_name, str(e)))
                    logger.error(f"Failed to fit {guild_name}: {e}")
                    continue
                except Exception as e:
                    failed += 1
                    all_errors.append((guild_name, f"Unexpected error - {e}"))
                    logger.error(f"Failed to fit {guild_name}: {e}")
                    continue

                fits.append(guild_fit)
                best = guild_fit.best
                if best is not None and best.is_acceptable:
                    successful += 1
                else:
                    failed += 1
                    all_errors.append((guild_name, f"no acceptable fit ({best.status if best else 'none'})"))

        fits.sort(key=lambda f: f.guild.name)
        return BatchResult(
            fits=fits,
            successful=successful,
            failed=failed,
            errors=all_errors,
        )

    def run(
        self,
        config_paths: list[Path | str],
        output_dir: Path | str | None = None,
        show_progress: bool = True
    ) -> BatchResult:
        """Run the complete batch pipeline.

        Args:
            config_paths: One YAML configuration per guild
            output_dir: Output directory (overrides config)
            show_progress: Whether to show progress bars

        Returns:
            BatchResult with fitted guilds
        """
        output_dir = Path(output_dir) if output_dir else self.config.output_dir
        if output_dir:
            output_dir.mkdir(parents=True, exist_ok=True)

        configs, load_errors = self.load_configs(config_paths)
        logger.info(f"Loaded {len(configs)} of {len(config_paths)} guild configuration(s)")

        result = self.process(configs, show_progress=show_progress)
        result.failed += len(load_errors)
        result.errors = load_errors + result.errors
        logger.info(f"Processing complete: {result.successful} successful, {result.failed} failed")

        if output_dir:
            self._save_outputs(result, configs, output_dir)

        return result

    def _save_outputs(
        self,
        result: BatchResult,
        configs: list[PySurplusConfig],
        output_dir: Path,
    ) -> None:
        """Save per-guild outputs, a combined JSON and the error log.

        Args:
            result: Batch processing result
            configs: Configurations the guilds were fitted with
            output_dir: Output directory
        """
        by_name = {config.guild.name: config for config in configs}

        for guild_fit in result.fits:
            config = by_name.get(guild_fit.guild.name, PySurplusConfig())
            config.output.plots = config.output.plots and self.config.save_plots
            save_guild_outputs(guild_fit, output_dir / guild_fit.guild.name, config)

        if result.fits:
            summary_path = JsonExporter().save(result.fits, output_dir / "batch_results.json")
            logger.info(f"Saved batch results to {summary_path}")

        if result.errors:
            error_path = output_dir / "errors.txt"
            with open(error_path, "w") as f:
                for guild_name, error in result.errors:
                    f.write(f"{guild_name}: {error}\n")
            logger.info(f"Saved error log to {error_path}")
