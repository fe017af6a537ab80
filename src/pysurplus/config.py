"""Configuration file support for PySurplus.

Supports YAML config files describing a guild (its stock files and unit
factors) and the fitting settings. CLI flags override config file values.
"""

from dataclasses import asdict, dataclass, field, fields as dataclass_fields
import logging
from pathlib import Path
from typing import ClassVar

import yaml

logger = logging.getLogger(__name__)

VALID_MODELS = ("pella-tomlinson", "schaefer", "auto")
INITIAL_KEYS = ("alpha", "beta", "nu", "sigma")


@dataclass
class StockSource:
    """One stock file in a guild.

    Attributes:
        name: Stock name (default: file stem)
        path: Path to the CSV file
        scale: Factor bringing biomass and catch to the guild's common unit
            (e.g. 1000 for a stock reported in thousands of tonnes)
    """
    path: str
    name: str | None = None
    scale: float = 1.0

    @property
    def stock_name(self) -> str:
        """Configured name, or the file stem."""
        return self.name or Path(self.path).stem


@dataclass
class GuildConfig:
    """Guild definition.

    Attributes:
        name: Guild name used in outputs
        catch_factor: Multiplier on catch in annual surplus production
            (1.0 = B[t+1] - B[t] + C[t])
        stocks: Stock files making up the guild
    """
    name: str = "guild"
    catch_factor: float = 1.0
    stocks: list[StockSource] = field(default_factory=list)


@dataclass
class FittingDefaults:
    """Fitting parameters.

    Attributes:
        model: 'pella-tomlinson', 'schaefer', or 'auto' to fit both and
            select by AIC (default 'pella-tomlinson')
        method: scipy.optimize.minimize method (default 'Nelder-Mead')
        max_iterations: Optimizer iteration budget (default 10000)
        max_evaluations: Objective evaluation budget (default 20000)
        tolerance: Convergence tolerance (default 1e-8)
        floor: Positive floor for predicted production (default 1e-5)
        min_points: Minimum observations with positive production (default 5)
        compute_hessian: Compute Hessian and standard errors (default True)
        initial: Optional starting values for alpha, beta, nu, sigma
    """
    model: str = "pella-tomlinson"
    method: str = "Nelder-Mead"
    max_iterations: int = 10000
    max_evaluations: int = 20000
    tolerance: float = 1e-8
    floor: float = 1e-5
    min_points: int = 5
    compute_hessian: bool = True
    initial: dict[str, float] = field(default_factory=dict)


@dataclass
class ValidationConfig:
    """Post-fit diagnostic thresholds.

    Attributes:
        beta_rel_tol: Relative size of the density term below which beta is
            treated as zero - DF001
        nu_linear_tol: Distance of nu from 1 flagged as linear collapse - DF002
        nu_schaefer_tol: Distance of nu from 2 noted as Schaefer-equivalent - DF003
        max_floored_fraction: Fraction of floored predictions that warns - DF005
    """
    beta_rel_tol: float = 1e-3
    nu_linear_tol: float = 0.05
    nu_schaefer_tol: float = 0.05
    max_floored_fraction: float = 0.5


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        plots: Write interactive HTML plots (default: True)
        guild_table: Write the joined guild table as CSV (default: True)
    """
    plots: bool = True
    guild_table: bool = True


@dataclass
class PySurplusConfig:
    """Complete PySurplus configuration.

    Attributes:
        guild: Guild definition and stock sources
        fitting: Fitting parameters
        validation: Diagnostic thresholds
        output: Output configuration
    """
    guild: GuildConfig = field(default_factory=GuildConfig)
    fitting: FittingDefaults = field(default_factory=FittingDefaults)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        errors = []

        # Guild
        names = [s.stock_name for s in self.guild.stocks]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            errors.append(f"guild.stocks: duplicate stock name(s) {duplicates}")
        for source in self.guild.stocks:
            if source.scale <= 0:
                errors.append(
                    f"guild.stocks[{source.stock_name}]: scale ({source.scale}) must be greater than 0"
                )

        # Fitting
        if self.fitting.model not in VALID_MODELS:
            errors.append(
                f"fitting.model ({self.fitting.model}) must be one of {', '.join(VALID_MODELS)}"
            )
        if self.fitting.max_iterations < 1:
            errors.append(
                f"fitting.max_iterations ({self.fitting.max_iterations}) must be at least 1"
            )
        if self.fitting.max_evaluations < 1:
            errors.append(
                f"fitting.max_evaluations ({self.fitting.max_evaluations}) must be at least 1"
            )
        if self.fitting.floor <= 0:
            errors.append(f"fitting.floor ({self.fitting.floor}) must be greater than 0")
        if self.fitting.tolerance <= 0:
            errors.append(f"fitting.tolerance ({self.fitting.tolerance}) must be greater than 0")
        if self.fitting.min_points < 2:
            errors.append(f"fitting.min_points ({self.fitting.min_points}) must be at least 2")

        initial = self.fitting.initial or {}
        unknown = sorted(set(initial) - set(INITIAL_KEYS))
        if unknown:
            errors.append(
                f"fitting.initial: unknown parameter(s) {unknown}; valid: {', '.join(INITIAL_KEYS)}"
            )
        if "sigma" in initial and initial["sigma"] <= 0:
            errors.append(f"fitting.initial.sigma ({initial['sigma']}) must be greater than 0")

        # Validation thresholds
        for name in ("beta_rel_tol", "nu_linear_tol", "nu_schaefer_tol"):
            value = getattr(self.validation, name)
            if value < 0:
                errors.append(f"validation.{name} ({value}) must not be negative")
        if not 0 < self.validation.max_floored_fraction <= 1:
            errors.append(
                f"validation.max_floored_fraction ({self.validation.max_floored_fraction}) "
                f"must be in (0, 1]"
            )

        if errors:
            raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    @classmethod
    def from_yaml(cls, filepath: Path | str) -> "PySurplusConfig":
        """Load configuration from YAML file.

        Relative stock paths are resolved against the config file's directory.

        Args:
            filepath: Path to YAML config file

        Returns:
            PySurplusConfig instance

        Raises:
            ValueError: If configuration values are invalid
        """
        filepath = Path(filepath)
        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        for source in config.guild.stocks:
            path = Path(source.path)
            if not path.is_absolute():
                source.path = str(filepath.parent / path)
        config.validate()
        return config

    @staticmethod
    def _filter_unknown_keys(
        section_data: dict,
        dataclass_type: type,
        section_name: str,
    ) -> dict:
        """Filter unknown keys from a config section and warn about them.

        Args:
            section_data: Raw config dictionary for a section
            dataclass_type: The dataclass type to validate against
            section_name: Section name for error messages

        Returns:
            Filtered dictionary with only known keys
        """
        known_keys = {f.name for f in dataclass_fields(dataclass_type)}
        unknown_keys = set(section_data) - known_keys
        if unknown_keys:
            logger.warning(
                f"Unknown key(s) in '{section_name}' config section: "
                f"{', '.join(sorted(unknown_keys))}. "
                f"Valid keys: {', '.join(sorted(known_keys))}"
            )
        return {k: v for k, v in section_data.items() if k in known_keys}

    # Mapping of section name -> dataclass type for from_dict iteration
    _SECTION_TYPES: ClassVar[dict[str, type]] = {
        "guild": GuildConfig,
        "fitting": FittingDefaults,
        "validation": ValidationConfig,
        "output": OutputConfig,
    }

    @classmethod
    def from_dict(cls, data: dict) -> "PySurplusConfig":
        """Create configuration from dictionary.

        Unknown keys in any section are logged as warnings and ignored,
        rather than causing opaque TypeErrors.

        Args:
            data: Configuration dictionary

        Returns:
            PySurplusConfig instance
        """
        config = cls()

        unknown_sections = set(data) - set(cls._SECTION_TYPES)
        if unknown_sections:
            logger.warning(
                f"Unknown top-level config section(s): {', '.join(sorted(unknown_sections))}. "
                f"Valid sections: {', '.join(sorted(cls._SECTION_TYPES))}"
            )

        for section, dtype in cls._SECTION_TYPES.items():
            if section in data:
                section_data = cls._filter_unknown_keys(data[section] or {}, dtype, section)
                if section == "guild" and "stocks" in section_data:
                    section_data["stocks"] = [
                        StockSource(**cls._filter_unknown_keys(s, StockSource, "guild.stocks"))
                        for s in section_data["stocks"] or []
                    ]
                if section == "fitting" and "initial" in section_data:
                    section_data["initial"] = dict(section_data["initial"] or {})
                setattr(config, section, dtype(**section_data))

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_yaml(self, filepath: Path | str) -> None:
        """Save configuration to YAML file.

        Args:
            filepath: Output file path
        """
        filepath = Path(filepath)
        with open(filepath, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def generate_default_config(filepath: Path | str) -> Path:
    """Generate a default configuration file.

    Args:
        filepath: Output file path

    Returns:
        Path to created file
    """
    filepath = Path(filepath)

    # Add comments by writing manually
    content = """# PySurplus Configuration File
# Surplus production fitting for a guild of stocks

guild:
  name: pelagic_predators
  catch_factor: 1.0        # ASP = B[t+1] - B[t] + catch_factor * C[t]
  stocks:                  # One CSV per stock with Year, SSB, Catch columns
    - name: cod
      path: cod.csv        # Relative to this config file
      scale: 1.0
    - name: hake
      path: hake.csv
      scale: 1000          # Reported in thousands; bring to the common unit

# Maximum-likelihood fitting
fitting:
  model: pella-tomlinson   # pella-tomlinson, schaefer, or auto (both, best AIC)
  method: Nelder-Mead      # Any scipy.optimize.minimize method
  max_iterations: 10000
  max_evaluations: 20000
  tolerance: 1.0e-08
  floor: 1.0e-05           # Predicted production is floored here before log
  min_points: 5            # Minimum years with positive production
  compute_hessian: true    # Approximate standard errors
  initial: {}              # e.g. {alpha: 1.0, beta: -0.03, nu: 2.0, sigma: 0.5}

# Post-fit diagnostics
validation:
  beta_rel_tol: 0.001      # Density term smaller than this vs alpha - DF001
  nu_linear_tol: 0.05      # |nu - 1| below this - DF002
  nu_schaefer_tol: 0.05    # |nu - 2| below this - DF003
  max_floored_fraction: 0.5  # Share of floored predictions that warns - DF005

# Output options
output:
  plots: true              # Interactive HTML plots
  guild_table: true        # guild_series.csv
"""

    with open(filepath, "w") as f:
        f.write(content)

    return filepath
