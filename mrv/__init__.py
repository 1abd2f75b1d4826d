"""Emissions observation ingestion and reconciliation analytics."""

__version__ = "0.1.0"
