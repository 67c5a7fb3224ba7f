# pointpol/electrostatics_jax/tensor_jax.py
"""JIT-compiled JAX kernels for the static field and the dipole-field matrix.

Minimum-image displacements are resolved on the host by the geometry
collaborator, so any `MinimumImage` works with this backend; only the dense
O(N^2) arithmetic runs under JAX. Results are copied back into NumPy arrays,
which the shared solver, ranker and force code consume unchanged.

Importing this module (which `backend="jax"` does) turns on `jax_enable_x64`
for the whole process, since the saturated entries and the 1e-11 solver
tolerance need float64. JAX code elsewhere in the same process then defaults
to 64-bit arrays as well.
"""
from __future__ import annotations

from functools import partial
from typing import Optional

import jax
import jax.numpy as jnp
import numpy as np
from jax import jit
from numpy.typing import NDArray

from ..core.settings import DampingType
from ..core.system import ParticleSystem, interaction_mask
from ..electrostatics.static_field import COULOMB_CONSTANT
from ..electrostatics.tensor import SATURATION
from ..geometry import MinimumImage, OpenBoundary, pairwise_displacements

# the matrix relies on float64 saturation and 1e-11 precision
jax.config.update("jax_enable_x64", True)


@jit
def static_field_jax(
    displacements: jax.Array, charges: jax.Array, allowed: jax.Array, cutoff: float
) -> jax.Array:
    """Wolf-shifted field of all charges, without the unit scale.

    Args:
        displacements (jax.Array): (N, N, 3) minimum-image displacements.
        charges (jax.Array): (N,) charges.
        allowed (jax.Array): (N, N) molecule-exclusion mask.
        cutoff (float): Coulomb cutoff.

    Returns:
        jax.Array: (N, 3) static field.
    """
    rsq = jnp.sum(displacements * displacements, axis=-1)
    active = allowed & (rsq <= cutoff * cutoff) & (rsq > 0.0)
    safe_rsq = jnp.where(active, rsq, 1.0)
    r = jnp.sqrt(safe_rsq)
    scale = jnp.where(active, (1.0 / safe_rsq - 1.0 / (cutoff * cutoff)) / r, 0.0)
    return jnp.einsum("ij,j,ijk->ik", scale, charges, displacements)


@partial(jit, static_argnames=("damped",))
def dipole_matrix_jax(
    displacements: jax.Array, polarizabilities: jax.Array, damping_parameter: float, damped: bool
) -> jax.Array:
    """Dense (3N, 3N) dipole-field matrix.

    Args:
        displacements (jax.Array): (N, N, 3) minimum-image displacements.
        polarizabilities (jax.Array): (N,) polarizabilities.
        damping_parameter (float): Thole parameter `a`.
        damped (bool): Apply exponential damping (static for JIT).

    Returns:
        jax.Array: The matrix, identical in layout to the NumPy builder's.
    """
    n = polarizabilities.shape[0]
    r = jnp.sqrt(jnp.sum(displacements * displacements, axis=-1))
    coincident = r == 0.0
    safe_r = jnp.where(coincident, 1.0, r)
    r3 = jnp.where(coincident, SATURATION, 1.0 / safe_r**3)
    r5 = jnp.where(coincident, SATURATION, 1.0 / safe_r**5)

    if damped:
        ar = damping_parameter * r
        decay = jnp.exp(-ar)
        poly2 = 1.0 + ar + 0.5 * ar * ar
        poly3 = poly2 + ar * ar * ar / 6.0
        l3 = 1.0 - decay * poly2
        l5 = 1.0 - decay * poly3
    else:
        l3 = l5 = jnp.ones_like(r)

    outer = displacements[:, :, :, None] * displacements[:, :, None, :]
    blocks = (l5 * r5)[:, :, None, None] * outer
    blocks = -3.0 * blocks + (l3 * r3)[:, :, None, None] * jnp.eye(3)

    safe_alpha = jnp.where(polarizabilities != 0.0, polarizabilities, 1.0)
    diag = jnp.where(polarizabilities != 0.0, 1.0 / safe_alpha, SATURATION)
    eye_n = jnp.eye(n, dtype=bool)
    blocks = jnp.where(
        eye_n[:, :, None, None], diag[:, None, None, None] * jnp.eye(3), blocks
    )
    return blocks.transpose(0, 2, 1, 3).reshape(3 * n, 3 * n)


class JaxStaticFieldCalculator:
    """JAX counterpart of `StaticFieldCalculator` with the same interface."""

    def __init__(
        self,
        cutoff: float,
        geometry: Optional[MinimumImage] = None,
        coulomb_constant: float = COULOMB_CONSTANT,
    ):
        if cutoff <= 0:
            raise ValueError(f"Coulomb cutoff must be positive, got {cutoff}.")
        self.cutoff: float = cutoff
        self.geometry: MinimumImage = geometry or OpenBoundary()
        self.coulomb_constant: float = coulomb_constant

    def compute(self, system: ParticleSystem) -> NDArray[np.float64]:
        displacements = pairwise_displacements(self.geometry, system.positions)
        field = static_field_jax(
            jnp.asarray(displacements),
            jnp.asarray(system.charges),
            jnp.asarray(interaction_mask(system.molecules)),
            float(self.cutoff),
        )
        return np.asarray(field) * np.sqrt(self.coulomb_constant)


class JaxDipoleFieldMatrixBuilder:
    """JAX counterpart of `DipoleFieldMatrixBuilder` with the same interface."""

    def __init__(
        self,
        damping: DampingType = DampingType.NONE,
        damping_parameter: float = 2.1304,
        geometry: Optional[MinimumImage] = None,
    ):
        self.damping: DampingType = DampingType(damping)
        self.damping_parameter: float = damping_parameter
        self.geometry: MinimumImage = geometry or OpenBoundary()

    def build(
        self,
        positions: NDArray[np.float64],
        polarizabilities: NDArray[np.float64],
        out: Optional[NDArray[np.float64]] = None,
    ) -> NDArray[np.float64]:
        positions = np.asarray(positions, dtype=float)
        n = positions.shape[0]
        if out is None:
            out = np.empty((3 * n, 3 * n))
        elif out.shape != (3 * n, 3 * n) or not out.flags.c_contiguous:
            raise ValueError(
                f"Output buffer must be C-contiguous with shape {(3 * n, 3 * n)}, "
                f"got {out.shape}."
            )
        if n == 0:
            return out
        matrix = dipole_matrix_jax(
            jnp.asarray(pairwise_displacements(self.geometry, positions)),
            jnp.asarray(polarizabilities, dtype=jnp.float64),
            float(self.damping_parameter),
            self.damping is DampingType.EXPONENTIAL,
        )
        out[:] = np.asarray(matrix)
        return out
