"""Cart-to-order checkout engine for the raw-material marketplace."""

__version__ = "0.1.0"
