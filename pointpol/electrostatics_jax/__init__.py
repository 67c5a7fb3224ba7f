"""
pointpol.electrostatics_jax

JIT-compiled JAX kernels selected by `PolarizableForceField(backend="jax")`.
Importing this package requires JAX.
"""
from .tensor_jax import (
    JaxDipoleFieldMatrixBuilder,
    JaxStaticFieldCalculator,
    dipole_matrix_jax,
    static_field_jax,
)

__all__ = [
    "static_field_jax",
    "dipole_matrix_jax",
    "JaxStaticFieldCalculator",
    "JaxDipoleFieldMatrixBuilder",
]
