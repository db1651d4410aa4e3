"""Hosted JSON-LD schema delivery with content drift detection."""

__version__ = "0.1.0"
