"""Stock Finder: filtered, cascading view over an inventory allocation sheet."""

__version__ = "0.1.0"
