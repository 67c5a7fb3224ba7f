"""
pointpol.visualize.convergence

ConvergencePlotter: residual history of the dipole solve and per-particle
dipole magnitudes.
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from numpy.typing import NDArray

from ..core.forcefield import ForceEvaluation
from ..core.observers import ConvergenceRecorder


class ConvergencePlotter:
    """
    Plots solver diagnostics collected by a `ConvergenceRecorder`.
    """

    def __init__(self, recorder: ConvergenceRecorder, precision: Optional[float] = None):
        """
        Args:
            recorder (ConvergenceRecorder): Recorder attached to the force field
                as its observer.
            precision (Optional[float]): When given, the convergence threshold
                `precision**2` is drawn as a horizontal line.
        """
        self.recorder = recorder
        self.precision = precision

    def plot_residuals(self, ax: plt.Axes, solve: int = -1) -> None:
        """Residual (mean squared dipole change) versus sweep for one solve."""
        if not self.recorder.residuals:
            raise ValueError("The recorder holds no residual history yet.")
        residuals: NDArray[np.float64] = np.asarray(self.recorder.residuals[solve])
        sweeps = np.arange(1, residuals.size + 1)
        # an exactly converged sweep has residual 0, which a log axis cannot show
        positive = residuals > 0
        ax.semilogy(sweeps[positive], residuals[positive], marker="o")
        if self.precision is not None:
            ax.axhline(self.precision**2, color="gray", linestyle="--", label="threshold")
            ax.legend()
        ax.set_xlabel("Sweep")
        ax.set_ylabel("Mean squared dipole change")
        ax.set_title("Induced-Dipole Convergence")
        ax.grid(True, linestyle="--", alpha=0.6)

    def plot_dipole_magnitudes(self, ax: plt.Axes, evaluation: ForceEvaluation) -> None:
        """Bar chart of |mu_i| per particle."""
        magnitudes = np.linalg.norm(evaluation.dipoles, axis=1)
        ax.bar(np.arange(magnitudes.size), magnitudes)
        ax.set_xlabel("Particle")
        ax.set_ylabel("|μ|")
        ax.set_title("Induced Dipole Magnitudes")
        ax.grid(True, axis="y", linestyle="--", alpha=0.6)
