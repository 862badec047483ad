"""ChangeLens: locate changed code units in a diff and gather their context."""

__version__ = "0.1.0"
