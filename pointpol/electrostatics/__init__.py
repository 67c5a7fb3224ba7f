"""
pointpol.electrostatics

NumPy engine of the polarization model: static field, dipole-field matrix,
ranking, the induced-dipole solver, forces and energies, and the short-range
pair sum.
"""
from .forces import ForceEnergyResult, PolarizationEnergy, PolarizationForceEnergy
from .pair import (
    EwaldSplitting,
    PairCoefficients,
    ReciprocalSpace,
    ShortRangePair,
    read_coefficients,
    write_coefficients,
)
from .ranking import DipoleRanker
from .solver import (
    InducedDipoleSolver,
    SolveResult,
    SolverContext,
    SolverWorkspace,
    first_order_dipoles,
)
from .static_field import COULOMB_CONSTANT, StaticFieldCalculator
from .tensor import DipoleFieldMatrixBuilder, induced_field, pair_tensor_blocks, thole_damping

__all__ = [
    "COULOMB_CONSTANT",
    "StaticFieldCalculator",
    "DipoleFieldMatrixBuilder",
    "pair_tensor_blocks",
    "thole_damping",
    "induced_field",
    "DipoleRanker",
    "InducedDipoleSolver",
    "SolverContext",
    "SolverWorkspace",
    "SolveResult",
    "first_order_dipoles",
    "PolarizationForceEnergy",
    "PolarizationEnergy",
    "ForceEnergyResult",
    "ShortRangePair",
    "PairCoefficients",
    "EwaldSplitting",
    "ReciprocalSpace",
    "write_coefficients",
    "read_coefficients",
]
