"""Upstream definition synchronisation and drift detection."""

__version__ = "0.3.0"
