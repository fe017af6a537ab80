"""Export fit results in JSON format."""

import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from ..config import PySurplusConfig
from ..core.models import FitResult
from ..core.selection import compare_fits
from ..validation import ValidationResult

if TYPE_CHECKING:
    from ..batch.processor import GuildFit


def _clean(value: Any) -> Any:
    """Make numpy scalars and non-finite floats JSON-safe."""
    if isinstance(value, dict):
        return {k: _clean(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clean(v) for v in value]
    if isinstance(value, np.ndarray):
        return _clean(value.tolist())
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not np.isfinite(value):
        return None
    return value


class JsonExporter:
    """Export guild fits in JSON format.

    Produces a structured JSON file containing configuration, the joined
    guild series, every fitted model with its diagnostics, and which model
    was selected.
    """

    def __init__(self, config: PySurplusConfig | None = None):
        """Initialize exporter.

        Args:
            config: PySurplus configuration (included in export)
        """
        self.config = config or PySurplusConfig()

    def _export_diagnostics(self, diagnostics: ValidationResult) -> dict[str, Any]:
        """Export diagnostic issues.

        Args:
            diagnostics: Issues attached to a fit or guild

        Returns:
            Diagnostics dict
        """
        return {
            "errors": diagnostics.error_count,
            "warnings": diagnostics.warning_count,
            "issues": [
                {
                    "code": issue.code,
                    "severity": issue.severity.name.lower(),
                    "message": issue.message,
                    "guidance": issue.guidance,
                }
                for issue in diagnostics.issues
            ],
        }

    def export_fit(self, result: FitResult) -> dict[str, Any]:
        """Export a single fit result.

        Args:
            result: FitResult to export

        Returns:
            Fit data dict
        """
        data = result.summary()
        data["prefit"] = result.prefit.to_dict() if result.prefit is not None else None
        data["hessian"] = result.hessian.tolist() if result.hessian is not None else None
        data["diagnostics"] = self._export_diagnostics(result.diagnostics)
        return _clean(data)

    def export_guild_fit(self, guild_fit: "GuildFit") -> dict[str, Any]:
        """Export a guild with all of its fits.

        Args:
            guild_fit: Fitted guild

        Returns:
            Guild data dict
        """
        guild = guild_fit.guild
        selected = compare_fits(guild_fit.results).model if guild_fit.results else None
        return _clean({
            "guild": guild.name,
            "stocks": guild.stock_names,
            "catch_factor": guild.catch_factor,
            "first_year": int(guild.years[0]) if guild.n_years else None,
            "last_year": int(guild.years[-1]) if guild.n_years else None,
            "years": guild.n_years,
            "series": guild.to_dataframe().to_dict(orient="list"),
            "alignment": self._export_diagnostics(guild.diagnostics),
            "selected_model": selected,
            "fits": [self.export_fit(r) for r in guild_fit.results],
        })

    def export_guild_fits(self, guild_fits: list["GuildFit"]) -> dict[str, Any]:
        """Export several guild fits with the configuration.

        Args:
            guild_fits: Fitted guilds

        Returns:
            Complete export data dict
        """
        return {
            "generated": datetime.now().isoformat(timespec="seconds"),
            "config": self.config.to_dict(),
            "guild_count": len(guild_fits),
            "guilds": [self.export_guild_fit(g) for g in guild_fits],
        }

    def save(
        self,
        guild_fits: list["GuildFit"],
        output_path: Path | str,
    ) -> Path:
        """Export guild fits and save to JSON file.

        Args:
            guild_fits: Fitted guilds
            output_path: Output file path

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)
        data = self.export_guild_fits(guild_fits)

        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)

        return output_path
