"""monitr - periodic host telemetry sampling with normalized SQLite storage."""

__version__ = "0.1.0"
