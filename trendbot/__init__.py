"""TrendBot: trending topic sentiment and keyword aggregation."""

__version__ = "0.1.0"
