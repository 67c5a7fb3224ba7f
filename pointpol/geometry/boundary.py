# pointpol/geometry/boundary.py
"""Minimum-image displacement resolvers.

Every pairwise quantity in pointpol is computed from the displacement
`x_i - image(x_j)`, where `image(x_j)` is the periodic replica of `x_j`
closest to `x_i`. The resolver is an external collaborator; this module ships
the two common cases (no periodicity, orthorhombic box) and the protocol any
other geometry has to satisfy.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray


class MinimumImage(Protocol):
    """Anything that resolves periodic-nearest displacements."""

    def displacement(
        self, x_i: NDArray[np.float64], x_j: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """Returns `x_i - image(x_j)`; broadcasts over leading axes."""
        ...


def pairwise_displacements(
    geometry: MinimumImage,
    positions: NDArray[np.float64],
    others: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Builds the (N, M, 3) array of minimum-image displacements.

    Entry `[i, j]` is `positions[i] - image(others[j])`. When `others` is
    omitted the displacements are taken between `positions` and themselves.
    """
    if others is None:
        others = positions
    return geometry.displacement(positions[:, None, :], others[None, :, :])


@dataclass(frozen=True)
class OpenBoundary:
    """Non-periodic space: the displacement is the plain difference."""

    def displacement(
        self, x_i: NDArray[np.float64], x_j: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        return np.asarray(x_i, dtype=float) - np.asarray(x_j, dtype=float)


@dataclass(frozen=True)
class PeriodicBox:
    """Orthorhombic periodic box.

    Attributes:
        lengths (Tuple[float, float, float]): Edge lengths along x, y and z.
        periodic (Tuple[bool, bool, bool]): Which axes wrap. Defaults to all.
    """

    lengths: Tuple[float, float, float]
    periodic: Tuple[bool, bool, bool] = (True, True, True)
    _lengths: NDArray[np.float64] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lengths = np.asarray(self.lengths, dtype=float)
        if lengths.shape != (3,):
            raise ValueError(
                f"Box lengths must have exactly 3 components, got {lengths.shape}."
            )
        if np.any(lengths <= 0):
            raise ValueError(f"Box lengths must be positive, got {tuple(lengths)}.")
        object.__setattr__(self, "_lengths", lengths)

    @classmethod
    def cubic(cls, length: float) -> "PeriodicBox":
        return cls(lengths=(length, length, length))

    def displacement(
        self, x_i: NDArray[np.float64], x_j: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        delta = np.asarray(x_i, dtype=float) - np.asarray(x_j, dtype=float)
        wrap = np.where(self.periodic, self._lengths, np.inf)
        # round(d / inf) is 0 for non-periodic axes
        return delta - self._lengths * np.round(delta / wrap)

    def wrap(self, positions: Sequence[Sequence[float]]) -> NDArray[np.float64]:
        """Maps absolute positions back into the primary cell [0, L)."""
        positions = np.asarray(positions, dtype=float)
        return np.where(self.periodic, np.mod(positions, self._lengths), positions)
