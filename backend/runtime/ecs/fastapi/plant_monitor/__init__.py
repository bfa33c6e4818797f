"""Plant monitor backend: sensor readings, ideal-range evaluation and daily plant messages."""

__version__ = "0.1.0"
