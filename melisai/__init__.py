"""Performance report model, USE analysis, anomaly detection, recommendations and report output."""

__version__ = "0.2.0"