"""Landed cost analysis and cross-invoice comparison for NF-e documents."""

__version__ = "0.1.0"
