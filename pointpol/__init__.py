"""
pointpol

Induced point-dipole polarization for molecular simulation: static fields,
the self-consistent dipole solve, and the resulting forces and energies.
"""
__version__ = "1.0.0"

# --- Core objects: what a user builds a force evaluation from ---
from .core import (
    ConvergenceWarning,
    DampingType,
    ForceEvaluation,
    GhostParticles,
    ParticleSystem,
    PolarizableForceField,
    PolarizationSettings,
)
from .electrostatics import EwaldSplitting, PairCoefficients
from .geometry import OpenBoundary, PeriodicBox

# --- Workflows: batch evaluation and tabular output ---
from .workflows import dipole_table, evaluate_frames

__all__ = [
    # === Data and settings ===
    "ParticleSystem",
    "GhostParticles",
    "PolarizationSettings",
    "DampingType",
    "PairCoefficients",
    "EwaldSplitting",
    "OpenBoundary",
    "PeriodicBox",
    # === Evaluation ===
    "PolarizableForceField",
    "ForceEvaluation",
    "ConvergenceWarning",
    # === Workflows ===
    "evaluate_frames",
    "dipole_table",
]

# The matplotlib plotter lives in `pointpol.visualize` and is not imported
# here, so importing pointpol never touches a plotting backend.
