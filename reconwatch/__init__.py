"""Periodic shell command runner that detects output changes and sends Discord alerts."""

__version__ = "0.1.0"