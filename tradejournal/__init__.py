"""Trade journal API: trades, chart images, capital and analytics."""

__version__ = "0.4.0"
