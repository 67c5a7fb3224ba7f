# pointpol/core/system.py
"""Particle data consumed by a polarizable force evaluation.

`ParticleSystem` bundles the per-particle arrays owned by one spatial domain.
`GhostParticles` carries the boundary copies delivered by the ghost exchange
collaborator; only the dipole ranker reads them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
from numpy.typing import NDArray


def _as_optional_array(values, dtype, n: int, name: str) -> Optional[NDArray]:
    if values is None:
        return None
    arr = np.asarray(values, dtype=dtype)
    if arr.shape != (n,):
        raise ValueError(
            f"'{name}' must have shape ({n},) to match positions, got {arr.shape}."
        )
    return arr


def interaction_mask(
    molecules: NDArray[np.int64], others: Optional[NDArray[np.int64]] = None
) -> NDArray[np.bool_]:
    """Applies the molecule-exclusion rule to every pair.

    Two particles interact unless they share the same nonzero molecule id;
    molecule id 0 interacts with everything, including other id-0 particles.
    When `others` is omitted the (N, N) self-mask is returned with a False
    diagonal.
    """
    rows = np.asarray(molecules)
    square = others is None
    cols = rows if square else np.asarray(others)
    mask = (rows[:, None] != cols[None, :]) | (rows[:, None] == 0)
    if square:
        np.fill_diagonal(mask, False)
    return mask


@dataclass
class ParticleSystem:
    """Per-particle state of one local domain.

    Attributes:
        positions (NDArray[np.float64]): (N, 3) absolute positions.
        charges (Optional[NDArray[np.float64]]): (N,) fixed charges.
        polarizabilities (Optional[NDArray[np.float64]]): (N,) static scalar
            polarizabilities, all >= 0. A zero pins the particle's dipole at 0.
        molecules (Optional[NDArray[np.int64]]): (N,) molecule ids; 0 means
            the particle is not part of an intramolecular group.
        types (Optional[NDArray[np.int64]]): (N,) 1-based Lennard-Jones types,
            only needed by the short-range pair sum.
    """

    positions: NDArray[np.float64]
    charges: Optional[NDArray[np.float64]] = None
    polarizabilities: Optional[NDArray[np.float64]] = None
    molecules: Optional[NDArray[np.int64]] = None
    types: Optional[NDArray[np.int64]] = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=float)
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise ValueError(
                f"positions must have shape (N, 3), got {self.positions.shape}."
            )
        n = self.n_particles
        self.charges = _as_optional_array(self.charges, float, n, "charges")
        self.polarizabilities = _as_optional_array(
            self.polarizabilities, float, n, "polarizabilities"
        )
        self.molecules = _as_optional_array(self.molecules, np.int64, n, "molecules")
        self.types = _as_optional_array(self.types, np.int64, n, "types")

        if self.polarizabilities is not None and np.any(self.polarizabilities < 0):
            raise ValueError("Static polarizabilities must be non-negative.")

    @property
    def n_particles(self) -> int:
        return self.positions.shape[0]

    def interaction_mask(self) -> NDArray[np.bool_]:
        """The (N, N) molecule-exclusion mask of this system."""
        return interaction_mask(self.molecules)

    def __repr__(self) -> str:
        present = [
            name
            for name in ("charges", "polarizabilities", "molecules", "types")
            if getattr(self, name) is not None
        ]
        return f"ParticleSystem(N={self.n_particles}, attributes={present})"


@dataclass
class GhostParticles:
    """Boundary copies owned by neighbouring domains."""

    positions: NDArray[np.float64]
    polarizabilities: NDArray[np.float64]
    molecules: NDArray[np.int64]

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        n = self.positions.shape[0]
        self.polarizabilities = _as_optional_array(
            self.polarizabilities, float, n, "polarizabilities"
        )
        self.molecules = _as_optional_array(self.molecules, np.int64, n, "molecules")

    @classmethod
    def empty(cls) -> "GhostParticles":
        return cls(np.zeros((0, 3)), np.zeros(0), np.zeros(0, dtype=np.int64))

    def __len__(self) -> int:
        return self.positions.shape[0]


class GhostExchange(Protocol):
    """Collective ghost-data exchange between domains.

    `synchronize` must block until every domain has delivered its boundary
    data; the ranker reads the returned ghosts immediately afterwards.
    """

    def synchronize(self, system: ParticleSystem) -> GhostParticles:
        ...
