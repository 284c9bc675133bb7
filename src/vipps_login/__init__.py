"""Vipps login broker for native clients."""

__version__ = "0.1.0"
