"""StoreKit client - product catalog, purchase observation and receipt validation."""

__version__ = "0.1.0"
