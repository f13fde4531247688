"""panel-cluster-se: Simulate repeated-measures panels and fit OLS with cluster-robust standard errors."""

from ._types import Observation, PanelConfig, observations
from .diagnostics import CoverageAnalyzer
from .estimation import ClusterRobustEstimator, DesignMatrix, FitResult, build_design_matrix, fit
from .exceptions import (
    InsufficientClusters,
    InvalidConfiguration,
    InvalidSchedule,
    PanelClusterError,
    SingularDesign,
)
from .panels import PanelSimulator, SimulationParams, generate
from .simulation import MonteCarloStudy
from .treatment import CrossoverSchedule, evaluate_schedule, staggered_schedule

__all__ = [
    "PanelConfig",
    "Observation",
    "observations",
    "CrossoverSchedule",
    "staggered_schedule",
    "evaluate_schedule",
    "SimulationParams",
    "PanelSimulator",
    "generate",
    "CoverageAnalyzer",
    "DesignMatrix",
    "build_design_matrix",
    "ClusterRobustEstimator",
    "FitResult",
    "fit",
    "MonteCarloStudy",
    "PanelClusterError",
    "InvalidConfiguration",
    "InvalidSchedule",
    "SingularDesign",
    "InsufficientClusters",
]

__version__ = "0.1.0"
