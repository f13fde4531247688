"""OLS estimation with cluster-robust standard errors."""

from .cluster import ClusterRobustEstimator, cluster_meat, cluster_scores, fit
from .design import INTERCEPT, DesignMatrix, build_design_matrix
from .results import FitResult

__all__ = [
    "ClusterRobustEstimator",
    "DesignMatrix",
    "FitResult",
    "INTERCEPT",
    "build_design_matrix",
    "cluster_meat",
    "cluster_scores",
    "fit",
]
