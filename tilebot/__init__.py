"""Channel-scoped Scrabble engine and game service."""

__version__ = "0.1.0"
