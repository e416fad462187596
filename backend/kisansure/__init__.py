"""KisanSure market-price relay and client."""

__version__ = "1.0.0"
