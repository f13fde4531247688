"""Synthetic panel generation."""

from .simulator import PanelSimulator, SimulationParams, generate

__all__ = ["PanelSimulator", "SimulationParams", "generate"]
