"""Repeated-trial simulation studies."""

from .montecarlo import MonteCarloStudy

__all__ = ["MonteCarloStudy"]
