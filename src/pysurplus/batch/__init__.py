"""Guild fitting pipeline and batch processing."""

from .processor import (
    BatchConfig,
    BatchProcessor,
    BatchResult,
    GuildFit,
    fit_guild,
    load_guild,
    save_guild_outputs,
)

__all__ = [
    "BatchConfig",
    "BatchProcessor",
    "BatchResult",
    "GuildFit",
    "fit_guild",
    "load_guild",
    "save_guild_outputs",
]
