"""Documentation validation engine exposed as line-delimited tools."""

__version__ = "1.0.0"

__all__ = ["__version__"]
