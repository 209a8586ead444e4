"""Reconciliation engine for declarative IP address pools."""

__version__ = "1.0.0"
