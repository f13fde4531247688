"""Errors raised by panel-cluster-se.

All of them derive from ``ValueError`` so callers that already guard bad
input with ``except ValueError`` keep working.
"""


class PanelClusterError(ValueError):
    """Base class for every error raised by this package."""


class InvalidConfiguration(PanelClusterError):
    """Simulator parameters, column mappings or panel shape are invalid."""


class InvalidSchedule(PanelClusterError):
    """A schedule function returned something other than 0 or 1."""


class SingularDesign(PanelClusterError):
    """The design matrix is not of full column rank within tolerance."""


class InsufficientClusters(PanelClusterError):
    """Fewer than two clusters, so no cluster-robust inference is possible."""
