"""Stock data models, loaders and guild aggregation."""

from .stock import StockSeries
from .loader import StockParser, load_stock
from .guild import GuildSeries, build_guild

__all__ = [
    "StockSeries",
    "StockParser",
    "load_stock",
    "GuildSeries",
    "build_guild",
]
