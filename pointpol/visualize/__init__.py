"""
pointpol.visualize

Standard matplotlib plots of solver diagnostics.
"""

from .convergence import ConvergencePlotter

__all__ = ["ConvergencePlotter"]
