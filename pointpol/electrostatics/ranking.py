# pointpol/electrostatics/ranking.py
"""Visiting order for ranked Gauss-Seidel sweeps.

Particles whose polarizable neighbourhood is densest tend to change the
most between sweeps, so they are updated first. The order only affects how
fast the iteration converges, never the converged dipoles.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..core.system import GhostParticles, ParticleSystem, interaction_mask
from ..geometry import MinimumImage, OpenBoundary, pairwise_displacements


class DipoleRanker:
    """Ranks particles by an estimate of their polarization coupling.

    The metric of particle i is `sum_j alpha_i * alpha_j` over every partner
    j (local or ghost) closer than `radius_factor * r_min` and allowed by the
    molecule-exclusion rule, where `r_min` is the smallest separation between
    two polarizable, mutually interacting particles. Local pairs use the
    minimum-image convention; ghosts are measured as given.

    Args:
        geometry (MinimumImage): Minimum-image resolver.
        radius_factor (float): Neighbourhood radius in units of `r_min`.
        r_min_ceiling (float): Starting value of the `r_min` search; used as
            is when no qualifying pair exists.
    """

    def __init__(
        self,
        geometry: Optional[MinimumImage] = None,
        radius_factor: float = 1.5,
        r_min_ceiling: float = 1000.0,
    ):
        self.geometry: MinimumImage = geometry or OpenBoundary()
        self.radius_factor: float = radius_factor
        self.r_min_ceiling: float = r_min_ceiling

    def _partners(self, system: ParticleSystem, ghosts: Optional[GhostParticles]):
        """Distances, polarizabilities and molecule ids of all candidate partners."""
        distances = np.linalg.norm(
            pairwise_displacements(self.geometry, system.positions), axis=-1
        )
        if ghosts is None or len(ghosts) == 0:
            return distances, system.polarizabilities, system.molecules
        # ghosts are periodic images already
        ghost_distances = np.linalg.norm(
            system.positions[:, None, :] - ghosts.positions[None, :, :], axis=-1
        )
        return (
            np.concatenate([distances, ghost_distances], axis=1),
            np.concatenate([system.polarizabilities, ghosts.polarizabilities]),
            np.concatenate([system.molecules, ghosts.molecules]),
        )

    def metric(
        self, system: ParticleSystem, ghosts: Optional[GhostParticles] = None
    ) -> NDArray[np.float64]:
        """Computes the (N,) coupling metric of the local particles."""
        n = system.n_particles
        distances, alphas, molecules = self._partners(system, ghosts)
        allowed = interaction_mask(system.molecules, molecules)
        allowed[np.arange(n), np.arange(n)] = False

        local_alpha = system.polarizabilities
        polarizable = (local_alpha[:, None] > 0) & (alphas[None, :] > 0)
        candidates = distances[allowed & polarizable]
        r_min = self.r_min_ceiling
        if candidates.size:
            r_min = min(r_min, float(candidates.min()))

        near = allowed & (distances < self.radius_factor * r_min)
        return np.einsum("ij,i,j->i", near.astype(float), local_alpha, alphas)

    def rank(
        self, system: ParticleSystem, ghosts: Optional[GhostParticles] = None
    ) -> NDArray[np.intp]:
        """Particle indices sorted by descending coupling metric.

        Ties keep their natural order (stable sort).
        """
        return np.argsort(-self.metric(system, ghosts), kind="stable")
