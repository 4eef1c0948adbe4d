"""Monitoring package."""

from .metrics import MetricsManager

__all__ = ["MetricsManager"]
