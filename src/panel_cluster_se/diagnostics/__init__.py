"""Diagnostics for panel completeness and schedule fidelity."""

from .coverage import CoverageAnalyzer

__all__ = ["CoverageAnalyzer"]
