# pointpol/electrostatics/static_field.py
"""Static electric field of the fixed charges.

The field is evaluated with a Wolf-shifted Coulomb kernel and returned in
internal units where `field * charge` has the dimension of energy: the raw
field is multiplied by `sqrt(coulomb_constant)` exactly once, so the induced
dipole, force and energy formulas downstream need no further unit factors.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..core.system import ParticleSystem, interaction_mask
from ..geometry import MinimumImage, OpenBoundary, pairwise_displacements

# qqrd2e for real units: kcal/mol * Angstrom / e^2
COULOMB_CONSTANT = 332.06371


def wolf_field_scale(r: NDArray[np.float64], cutoff: float) -> NDArray[np.float64]:
    """Scalar factor `(1/r^2 - 1/cutoff^2) / r` of the shifted field kernel.

    The field at i due to charge q_j at displacement d = x_i - x_j is
    `q_j * wolf_field_scale(r) * d`.
    """
    f_shift = -1.0 / (cutoff * cutoff)
    return (1.0 / (r * r) + f_shift) / r


class StaticFieldCalculator:
    """Computes the per-particle static field of all fixed charges.

    Pairs farther apart than the Coulomb cutoff, pairs excluded by the
    molecule rule and coincident pairs contribute nothing.

    Args:
        cutoff (float): Coulomb cutoff radius.
        geometry (MinimumImage): Minimum-image resolver. Defaults to open
            (non-periodic) boundaries.
        coulomb_constant (float): Coulomb constant of the unit system.
    """

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

    @property
    def unit_scale(self) -> float:
        """Converts elementary-charge fields into sqrt(energy/length) units."""
        return float(np.sqrt(self.coulomb_constant))

    def pair_kernel(
        self, displacements: NDArray[np.float64], molecules: NDArray[np.int64]
    ) -> NDArray[np.float64]:
        """Returns the (N, N) Wolf scale factors with all exclusions applied.

        Excluded entries are exactly zero, so the result can be contracted
        with charges and displacements directly.
        """
        rsq = np.einsum("ijk,ijk->ij", displacements, displacements)
        active = interaction_mask(molecules) & (rsq <= self.cutoff**2) & (rsq > 0.0)
        scale = np.zeros_like(rsq)
        r = np.sqrt(rsq[active])
        scale[active] = wolf_field_scale(r, self.cutoff)
        return scale

    def compute(self, system: ParticleSystem) -> NDArray[np.float64]:
        """Computes the static field of every particle.

        Args:
            system (ParticleSystem): Must carry charges and molecule ids.

        Returns:
            NDArray[np.float64]: (N, 3) static field in internal units.
        """
        displacements = pairwise_displacements(self.geometry, system.positions)
        scale = self.pair_kernel(displacements, system.molecules)
        # the kernel is symmetric and d_ji = -d_ij, so summing the full
        # matrix reproduces the opposite-sign pair accumulation
        field = np.einsum("ij,j,ijk->ik", scale, system.charges, displacements)
        return field * self.unit_scale
