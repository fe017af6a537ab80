"""Export modules for fit results."""

from .json_export import JsonExporter

__all__ = ["JsonExporter"]
