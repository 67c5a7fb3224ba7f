"""
pointpol.geometry

Minimum-image displacement resolvers used by every pairwise kernel.
"""
from .boundary import MinimumImage, OpenBoundary, PeriodicBox, pairwise_displacements

__all__ = ["MinimumImage", "OpenBoundary", "PeriodicBox", "pairwise_displacements"]
