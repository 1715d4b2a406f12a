"""Snakk one-command installer: host sizing and configuration generation."""

__version__ = "0.1.0"
