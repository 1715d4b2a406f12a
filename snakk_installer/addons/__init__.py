"""Artifact addons: one module per generated configuration file."""
