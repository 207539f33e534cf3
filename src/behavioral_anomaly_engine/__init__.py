"""Behavioral anomaly detection for gameplay session telemetry."""

__version__ = "0.1.0"
