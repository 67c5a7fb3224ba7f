# pointpol/electrostatics/tensor.py
"""Dense dipole-field interaction matrix.

The matrix is a single C-contiguous (3N, 3N) float64 buffer indexed by
`(3*i + p, 3*j + q)`. Off-diagonal 3x3 blocks hold the (optionally damped)
dipole interaction tensor

    T_ij = l3(r) * I / r^3 - 3 * l5(r) * (d d^T) / r^5,   d = x_i - image(x_j)

so that the field induced at i is `E_i = -sum_j T_ij mu_j` and the
dipole-dipole energy of a pair is `mu_i^T T_ij mu_j`. Diagonal blocks hold
`I / alpha_i`, or a saturating sentinel for unpolarizable particles.
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ..core.settings import DampingType
from ..geometry import MinimumImage, OpenBoundary

# Finite stand-in for 1/0 on diagonals and coincident pairs.
SATURATION = np.finfo(np.float64).max


def thole_damping(
    r: NDArray[np.float64], a: float
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Exponential (Thole-style) screening factors.

    Args:
        r (NDArray[np.float64]): Pair separations.
        a (float): Damping parameter.

    Returns:
        Tuple[NDArray[np.float64], NDArray[np.float64]]: `(l3, l5)` where
        `l3 = 1 - exp(-ar) * (1 + ar + (ar)^2/2)` scales the isotropic part
        and `l5 = l3 - exp(-ar) * (ar)^3/6` scales the anisotropic part.
    """
    ar = a * np.asarray(r, dtype=float)
    decay = np.exp(-ar)
    poly2 = 1.0 + ar + 0.5 * ar * ar
    poly3 = poly2 + ar * ar * ar / 6.0
    return 1.0 - decay * poly2, 1.0 - decay * poly3


def saturating_inverse_powers(
    r: NDArray[np.float64],
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Returns `(1/r^3, 1/r^5)`, saturated to `SATURATION` where r == 0."""
    r = np.asarray(r, dtype=float)
    coincident = r == 0.0
    safe = np.where(coincident, 1.0, r)
    r3 = np.where(coincident, SATURATION, 1.0 / safe**3)
    r5 = np.where(coincident, SATURATION, 1.0 / safe**5)
    return r3, r5


def diagonal_values(polarizabilities: NDArray[np.float64]) -> NDArray[np.float64]:
    """Per-particle diagonal entry: `1/alpha`, or `SATURATION` for alpha == 0."""
    alpha = np.asarray(polarizabilities, dtype=float)
    safe = np.where(alpha != 0.0, alpha, 1.0)
    return np.where(alpha != 0.0, 1.0 / safe, SATURATION)


def pair_tensor_blocks(
    displacements: NDArray[np.float64],
    damping: DampingType = DampingType.NONE,
    damping_parameter: float = 0.0,
) -> NDArray[np.float64]:
    """Evaluates the 3x3 interaction tensor for a batch of displacements.

    Args:
        displacements (NDArray[np.float64]): (P, 3) pair displacements.
        damping (DampingType): Damping mode.
        damping_parameter (float): Thole parameter `a`.

    Returns:
        NDArray[np.float64]: (P, 3, 3) symmetric tensor blocks.
    """
    d = np.asarray(displacements, dtype=float).reshape(-1, 3)
    r = np.sqrt(np.einsum("pk,pk->p", d, d))
    r3, r5 = saturating_inverse_powers(r)
    if damping is DampingType.EXPONENTIAL:
        l3, l5 = thole_damping(r, damping_parameter)
    else:
        l3 = l5 = np.ones_like(r)

    # d (x) d vanishes for coincident pairs, so 0 * SATURATION stays 0;
    # scale by -3 only afterwards to avoid overflowing the sentinel
    outer = d[:, :, None] * d[:, None, :]
    blocks = (l5 * r5)[:, None, None] * outer
    blocks *= -3.0
    blocks += (l3 * r3)[:, None, None] * np.eye(3)
    return blocks


class DipoleFieldMatrixBuilder:
    """Builds the dense dipole-field matrix from scratch.

    Only the upper triangle of pair blocks is evaluated; each block is
    mirrored into the lower triangle, which keeps the matrix exactly
    block-symmetric (`T_ij == T_ji^T`).

    Args:
        damping (DampingType): `none` or `exponential`.
        damping_parameter (float): Thole parameter `a`.
        geometry (MinimumImage): Minimum-image resolver.
    """

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
        """Builds the (3N, 3N) matrix.

        Args:
            positions (NDArray[np.float64]): (N, 3) positions.
            polarizabilities (NDArray[np.float64]): (N,) polarizabilities.
            out (Optional[NDArray[np.float64]]): Preallocated C-contiguous
                (3N, 3N) buffer to fill in place. Its previous contents are
                discarded.

        Returns:
            NDArray[np.float64]: The filled matrix (`out` when supplied).
        """
        positions = np.asarray(positions, dtype=float)
        n = positions.shape[0]
        if out is None:
            out = np.empty((3 * n, 3 * n))
        elif out.shape != (3 * n, 3 * n) or not out.flags.c_contiguous:
            raise ValueError(
                f"Output buffer must be C-contiguous with shape {(3 * n, 3 * n)}, "
                f"got {out.shape}."
            )
        out.fill(0.0)
        blocks4 = out.reshape(n, 3, n, 3)

        idx = np.arange(n)
        blocks4[idx, :, idx, :] = diagonal_values(polarizabilities)[:, None, None] * np.eye(3)

        if n < 2:
            return out
        upper_i, upper_j = np.triu_indices(n, k=1)
        displacements = self.geometry.displacement(
            positions[upper_i], positions[upper_j]
        )
        tensors = pair_tensor_blocks(
            displacements, self.damping, self.damping_parameter
        )
        blocks4[upper_i, :, upper_j, :] = tensors
        blocks4[upper_j, :, upper_i, :] = tensors.transpose(0, 2, 1)
        return out


def induced_field(
    matrix: NDArray[np.float64], dipoles: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Field induced at every particle by all *other* dipoles.

    Computes `E_i = -sum_{j != i} T_ij mu_j`; the diagonal blocks of the
    matrix take no part in the contraction.
    """
    mu = np.asarray(dipoles, dtype=float).reshape(-1, 3)
    n = mu.shape[0]
    idx = np.arange(n)
    self_terms = np.einsum(
        "ipq,iq->ip", matrix.reshape(n, 3, n, 3)[idx, :, idx, :], mu
    )
    return -((matrix @ mu.reshape(-1)).reshape(n, 3) - self_terms)
