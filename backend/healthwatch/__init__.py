"""Device health-check scheduler and alerting worker."""
__version__ = "1.0.0"
