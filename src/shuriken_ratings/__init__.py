"""Hierarchical rating and voting engine."""

__version__ = "0.1.0"
