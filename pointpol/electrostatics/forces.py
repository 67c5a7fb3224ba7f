# pointpol/electrostatics/forces.py
"""Forces and energies of a converged induced-dipole configuration.

Three contributions make up the polarization energy:

- self energy `0.5 * |mu_i|^2 / alpha_i` of every polarizable particle,
- charge-dipole ("field") interaction through the same Wolf-shifted kernel
  as the static field, honouring cutoff and molecule exclusion,
- dipole-dipole interaction with the same damping family as the
  dipole-field matrix, for every polarizable pair regardless of cutoff or
  molecule membership.

For a converged solve the total equals `-0.5 * sum_i E_static_i . mu_i`;
`PolarizationEnergy.static_estimate` carries that value for comparison.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..core.settings import DampingType
from ..core.system import ParticleSystem, interaction_mask
from ..geometry import MinimumImage, OpenBoundary
from .static_field import COULOMB_CONSTANT


@dataclass(frozen=True)
class PolarizationEnergy:
    """Decomposed polarization energy.

    Attributes:
        self_energy (float): Cost of creating the dipoles.
        field (float): Charge-dipole interaction energy.
        dipole (float): Dipole-dipole interaction energy.
        static_estimate (float): `-0.5 * sum(E_static * mu)`.
    """

    self_energy: float = 0.0
    field: float = 0.0
    dipole: float = 0.0
    static_estimate: float = 0.0

    @property
    def total(self) -> float:
        return self.self_energy + self.field + self.dipole

    @property
    def discrepancy(self) -> float:
        """Relative mismatch between the pairwise total and the static estimate."""
        scale = max(abs(self.total), abs(self.static_estimate))
        if scale == 0.0:
            return 0.0
        return abs(self.total - self.static_estimate) / scale


@dataclass(frozen=True)
class ForceEnergyResult:
    """Forces, energy and virial of the polarization interactions.

    Attributes:
        forces (NDArray[np.float64]): (N, 3) force on every particle.
        energy (PolarizationEnergy): Energy terms; zeros when energy
            accounting was not requested.
        virial (NDArray[np.float64]): (6,) pair virial xx, yy, zz, xy, xz, yz.
    """

    forces: NDArray[np.float64]
    energy: PolarizationEnergy
    virial: NDArray[np.float64]


def pair_virial(
    displacements: NDArray[np.float64], pair_forces: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Sums per-pair virial tallies in the order xx, yy, zz, xy, xz, yz."""
    d, f = displacements, pair_forces
    return np.array(
        [
            np.sum(d[:, 0] * f[:, 0]),
            np.sum(d[:, 1] * f[:, 1]),
            np.sum(d[:, 2] * f[:, 2]),
            np.sum(d[:, 0] * f[:, 1]),
            np.sum(d[:, 0] * f[:, 2]),
            np.sum(d[:, 1] * f[:, 2]),
        ]
    )


class PolarizationForceEnergy:
    """Differentiates the dipole configuration into forces and energies.

    Args:
        cutoff (float): Coulomb cutoff for the charge-dipole terms.
        damping (DampingType): Dipole-dipole damping mode.
        damping_parameter (float): Thole parameter `a`.
        geometry (MinimumImage): Minimum-image resolver.
        coulomb_constant (float): Coulomb constant of the unit system.
    """

    def __init__(
        self,
        cutoff: float,
        damping: DampingType = DampingType.NONE,
        damping_parameter: float = 2.1304,
        geometry: Optional[MinimumImage] = None,
        coulomb_constant: float = COULOMB_CONSTANT,
    ):
        self.cutoff: float = cutoff
        self.damping: DampingType = DampingType(damping)
        self.damping_parameter: float = damping_parameter
        self.geometry: MinimumImage = geometry or OpenBoundary()
        self.unit_scale: float = float(np.sqrt(coulomb_constant))

    def _charge_dipole(
        self,
        d: NDArray[np.float64],
        r: NDArray[np.float64],
        q_i: NDArray[np.float64],
        q_j: NDArray[np.float64],
        mu_i: NDArray[np.float64],
        mu_j: NDArray[np.float64],
        alpha_i: NDArray[np.float64],
        alpha_j: NDArray[np.float64],
    ):
        """Charge-dipole forces on i and field energies for a batch of pairs."""
        f_shift = -1.0 / (self.cutoff * self.cutoff)
        rsq = r * r
        r3inv = 1.0 / (rsq * r)
        # G = I - 3 d d^T / r^2 + f_shift (r^2 I - d d^T)
        outer = d[:, :, None] * d[:, None, :]
        eye = np.eye(3)[None, :, :]
        gradient = (
            eye
            - 3.0 * outer / rsq[:, None, None]
            + f_shift * (rsq[:, None, None] * eye - outer)
        )

        # dipole on i, charge on j
        weight_i = np.where((alpha_i != 0.0) & (q_j != 0.0), q_j, 0.0)
        # dipole on j, charge on i
        weight_j = np.where((alpha_j != 0.0) & (q_i != 0.0), q_i, 0.0)

        common = self.unit_scale * r3inv
        forces = common[:, None] * (
            weight_i[:, None] * np.einsum("pab,pb->pa", gradient, mu_i)
            - weight_j[:, None] * np.einsum("pab,pb->pa", gradient, mu_j)
        )

        field_scale = (1.0 / rsq + f_shift) / r * self.unit_scale
        d_dot_mu_i = np.einsum("pk,pk->p", d, mu_i)
        d_dot_mu_j = np.einsum("pk,pk->p", d, mu_j)
        energy = np.sum(field_scale * (weight_j * d_dot_mu_j - weight_i * d_dot_mu_i))
        return forces, float(energy)

    def _dipole_dipole(
        self,
        d: NDArray[np.float64],
        r: NDArray[np.float64],
        mu_i: NDArray[np.float64],
        mu_j: NDArray[np.float64],
    ):
        """Dipole-dipole forces on i and energy for a batch of pairs."""
        rinv = 1.0 / r
        r2inv = rinv * rinv
        r3inv = r2inv * rinv
        r5inv = r3inv * r2inv
        r7inv = r5inv * r2inv

        pdotp = np.einsum("pk,pk->p", mu_i, mu_j)
        pidotr = np.einsum("pk,pk->p", mu_i, d)
        pjdotr = np.einsum("pk,pk->p", mu_j, d)

        if self.damping is DampingType.EXPONENTIAL:
            a = self.damping_parameter
            decay = np.exp(-a * r)
            poly2 = 1.0 + a * r + 0.5 * a * a * r * r
            poly3 = poly2 + a * a * a * r * r * r / 6.0
            screen3 = 1.0 - decay * poly2
            screen5 = 1.0 - decay * poly3
            # radial derivative terms of the two screening functions
            pre4 = -pdotp * r3inv * (-decay * (a * rinv + a * a) + decay * a * poly2 * rinv)
            pre5 = (
                3.0 * pidotr * pjdotr * r5inv
                * (-decay * (a * rinv + a * a + 0.5 * r * a * a * a) + decay * a * poly3 * rinv)
            )
        else:
            screen3 = screen5 = np.ones_like(r)
            pre4 = pre5 = np.zeros_like(r)

        pre1 = 3.0 * r5inv * pdotp * screen3 - 15.0 * r7inv * pidotr * pjdotr * screen5
        pre2 = 3.0 * r5inv * pjdotr * screen5
        pre3 = 3.0 * r5inv * pidotr * screen5

        forces = (
            (pre1 + pre4 + pre5)[:, None] * d
            + pre2[:, None] * mu_i
            + pre3[:, None] * mu_j
        )
        energy = np.sum(r3inv * pdotp * screen3 - 3.0 * r5inv * pidotr * pjdotr * screen5)
        return forces, float(energy)

    def compute(
        self,
        system: ParticleSystem,
        dipoles: NDArray[np.float64],
        static_field: Optional[NDArray[np.float64]] = None,
        energy: bool = True,
    ) -> ForceEnergyResult:
        """Accumulates polarization forces, virial and (optionally) energies.

        Forces are applied pairwise with opposite signs. Coincident pairs are
        skipped.

        Args:
            system (ParticleSystem): Positions, charges, polarizabilities and
                molecule ids.
            dipoles (NDArray[np.float64]): (N, 3) induced dipoles.
            static_field (Optional[NDArray[np.float64]]): (N, 3) static field,
                only used for `PolarizationEnergy.static_estimate`.
            energy (bool): Whether to compute the energy terms.

        Returns:
            ForceEnergyResult: Forces, energies and virial.
        """
        n = system.n_particles
        mu = np.asarray(dipoles, dtype=float).reshape(n, 3)
        alpha = system.polarizabilities
        charges = system.charges
        forces = np.zeros((n, 3))
        virial = np.zeros(6)

        self_energy = 0.0
        if energy:
            polarizable = alpha != 0.0
            self_energy = float(
                0.5 * np.sum(np.sum(mu[polarizable] ** 2, axis=1) / alpha[polarizable])
            )

        field_energy = dipole_energy = 0.0
        if n > 1:
            pi, pj = np.triu_indices(n, k=1)
            d = self.geometry.displacement(system.positions[pi], system.positions[pj])
            rsq = np.einsum("pk,pk->p", d, d)
            separated = rsq > 0.0
            pair_forces = np.zeros_like(d)

            # inclusive like the static field kernel
            coulomb = separated & (rsq <= self.cutoff**2)
            coulomb &= interaction_mask(system.molecules)[pi, pj]
            if np.any(coulomb):
                sel = np.flatnonzero(coulomb)
                a, b = pi[sel], pj[sel]
                f, u = self._charge_dipole(
                    d[sel], np.sqrt(rsq[sel]), charges[a], charges[b],
                    mu[a], mu[b], alpha[a], alpha[b],
                )
                pair_forces[sel] += f
                field_energy = u

            coupled = separated & (alpha[pi] != 0.0) & (alpha[pj] != 0.0)
            if np.any(coupled):
                sel = np.flatnonzero(coupled)
                a, b = pi[sel], pj[sel]
                f, u = self._dipole_dipole(d[sel], np.sqrt(rsq[sel]), mu[a], mu[b])
                pair_forces[sel] += f
                dipole_energy = u

            np.add.at(forces, pi, pair_forces)
            np.add.at(forces, pj, -pair_forces)
            virial = pair_virial(d, pair_forces)

        static_estimate = 0.0
        if energy and static_field is not None:
            static_estimate = float(-0.5 * np.sum(np.asarray(static_field) * mu))

        terms = (
            PolarizationEnergy(self_energy, field_energy, dipole_energy, static_estimate)
            if energy
            else PolarizationEnergy()
        )
        return ForceEnergyResult(forces=forces, energy=terms, virial=virial)
