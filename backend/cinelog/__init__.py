"""Cinelog — personal media tracking backend."""

__version__ = "0.1.0"
