# pointpol/electrostatics/pair.py
"""Short-range real-space Coulomb and 12-6 Lennard-Jones pair sum.

The Coulomb part is the real-space half of an Ewald split,
`k * qi * qj * erfc(g r) / r`, with the splitting parameter `g` taken from
the reciprocal-space collaborator. Lennard-Jones coefficients are stored per
pair of 1-based particle types; unset cross pairs are mixed from the
diagonal entries.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional, Protocol, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.special import erfc

from ..core.exceptions import ConfigurationError, MissingAttributeError
from ..core.settings import MixingRule, PolarizationSettings
from ..core.system import ParticleSystem
from ..geometry import MinimumImage, OpenBoundary
from .forces import pair_virial
from .static_field import COULOMB_CONSTANT

TWO_OVER_SQRT_PI = 2.0 / np.sqrt(np.pi)


class ReciprocalSpace(Protocol):
    """Long-range (k-space) solver paired with the real-space sum."""

    g_ewald: float


@dataclass(frozen=True)
class EwaldSplitting:
    """Fixed Ewald splitting parameter standing in for a k-space solver."""

    g_ewald: float

    def __post_init__(self):
        if self.g_ewald < 0:
            raise ValueError(f"g_ewald must be non-negative, got {self.g_ewald}.")


def mix_energy(eps_i, eps_j, sigma_i, sigma_j, rule: MixingRule) -> float:
    if rule is MixingRule.SIXTHPOWER:
        s3i, s3j = sigma_i**3, sigma_j**3
        return 2.0 * np.sqrt(eps_i * eps_j) * s3i * s3j / (s3i * s3i + s3j * s3j)
    return float(np.sqrt(eps_i * eps_j))


def mix_distance(sigma_i, sigma_j, rule: MixingRule) -> float:
    if rule is MixingRule.GEOMETRIC:
        return float(np.sqrt(sigma_i * sigma_j))
    if rule is MixingRule.ARITHMETIC:
        return 0.5 * (sigma_i + sigma_j)
    return float((0.5 * (sigma_i**6 + sigma_j**6)) ** (1.0 / 6.0))


class PairCoefficients:
    """Per type-pair Lennard-Jones epsilon, sigma and cutoff.

    Args:
        n_types (int): Number of particle types (types are 1-based).
        cut_lj_global (float): Cutoff used when `set` is called without one.
    """

    def __init__(self, n_types: int, cut_lj_global: float):
        if n_types < 1:
            raise ValueError(f"n_types must be at least 1, got {n_types}.")
        self.n_types = n_types
        self.cut_lj_global = cut_lj_global
        shape = (n_types + 1, n_types + 1)
        self.setflag = np.zeros(shape, dtype=bool)
        self.epsilon = np.zeros(shape)
        self.sigma = np.zeros(shape)
        self.cut_lj = np.zeros(shape)

    def _check_type(self, t: int) -> None:
        if not 1 <= t <= self.n_types:
            raise ValueError(f"Type {t} out of range 1..{self.n_types}.")

    def set(
        self, i: int, j: int, epsilon: float, sigma: float, cutoff: Optional[float] = None
    ) -> None:
        """Sets the coefficients of type pair (i, j), stored with i <= j."""
        self._check_type(i)
        self._check_type(j)
        i, j = min(i, j), max(i, j)
        self.epsilon[i, j] = epsilon
        self.sigma[i, j] = sigma
        self.cut_lj[i, j] = self.cut_lj_global if cutoff is None else cutoff
        self.setflag[i, j] = True

    def resolve(self, rule: MixingRule = MixingRule.GEOMETRIC):
        """Full symmetric (epsilon, sigma, cut_lj) tables with cross pairs mixed.

        Raises:
            ConfigurationError: If a pair cannot be mixed because one of its
                diagonal entries was never set.
        """
        rule = MixingRule(rule)
        eps, sig, cut = self.epsilon.copy(), self.sigma.copy(), self.cut_lj.copy()
        for i in range(1, self.n_types + 1):
            for j in range(i, self.n_types + 1):
                if not self.setflag[i, j]:
                    if not (self.setflag[i, i] and self.setflag[j, j]):
                        raise ConfigurationError(
                            f"All pair coefficients are not set (type pair {i}, {j})."
                        )
                    eps[i, j] = mix_energy(eps[i, i], eps[j, j], sig[i, i], sig[j, j], rule)
                    sig[i, j] = mix_distance(sig[i, i], sig[j, j], rule)
                    cut[i, j] = mix_distance(cut[i, i], cut[j, j], rule)
                eps[j, i], sig[j, i], cut[j, i] = eps[i, j], sig[i, j], cut[i, j]
        return eps, sig, cut


def write_coefficients(coefficients: PairCoefficients, fp: BinaryIO) -> None:
    """Writes the set-flag and explicit coefficients of every pair i <= j."""
    for i in range(1, coefficients.n_types + 1):
        for j in range(i, coefficients.n_types + 1):
            flag = coefficients.setflag[i, j]
            fp.write(np.array([int(flag)], dtype="=i4").tobytes())
            if flag:
                values = [
                    coefficients.epsilon[i, j],
                    coefficients.sigma[i, j],
                    coefficients.cut_lj[i, j],
                ]
                fp.write(np.array(values, dtype="=f8").tobytes())


def _read_exact(fp: BinaryIO, dtype: str, count: int) -> NDArray:
    size = np.dtype(dtype).itemsize * count
    raw = fp.read(size)
    if len(raw) != size:
        raise ConfigurationError(
            f"Truncated coefficient record: expected {size} bytes, got {len(raw)}."
        )
    return np.frombuffer(raw, dtype=dtype)


def read_coefficients(
    fp: BinaryIO, n_types: int, cut_lj_global: float
) -> PairCoefficients:
    """Reads coefficients written by `write_coefficients`."""
    coefficients = PairCoefficients(n_types, cut_lj_global)
    for i in range(1, n_types + 1):
        for j in range(i, n_types + 1):
            if _read_exact(fp, "=i4", 1)[0]:
                epsilon, sigma, cutoff = _read_exact(fp, "=f8", 3)
                coefficients.set(i, j, float(epsilon), float(sigma), float(cutoff))
    return coefficients


@dataclass(frozen=True)
class PairResult:
    """Forces, energies and virial of the short-range pair sum."""

    forces: NDArray[np.float64]
    coulomb: float
    vdw: float
    virial: NDArray[np.float64]


class ShortRangePair:
    """Real-space Ewald Coulomb plus cut Lennard-Jones.

    Args:
        settings (PolarizationSettings): Cutoffs, offset, mixing and tail flags.
        coefficients (PairCoefficients): Per-type LJ coefficients.
        reciprocal (ReciprocalSpace): Provides the splitting parameter `g_ewald`.
        geometry (MinimumImage): Minimum-image resolver.
        coulomb_constant (float): Coulomb constant of the unit system.
    """

    def __init__(
        self,
        settings: PolarizationSettings,
        coefficients: PairCoefficients,
        reciprocal: ReciprocalSpace,
        geometry: Optional[MinimumImage] = None,
        coulomb_constant: float = COULOMB_CONSTANT,
    ):
        self.settings = settings
        self.coefficients = coefficients
        self.reciprocal = reciprocal
        self.geometry: MinimumImage = geometry or OpenBoundary()
        self.coulomb_constant = coulomb_constant
        self._init_tables()

    def _init_tables(self) -> None:
        eps, sig, cut = self.coefficients.resolve(self.settings.mix_flag)
        self.epsilon, self.sigma, self.cut_lj = eps, sig, cut
        self.cut_ljsq = cut * cut
        sig6 = sig**6
        self.lj1 = 48.0 * eps * sig6 * sig6
        self.lj2 = 24.0 * eps * sig6
        self.lj3 = 4.0 * eps * sig6 * sig6
        self.lj4 = 4.0 * eps * sig6
        if self.settings.offset_flag:
            with np.errstate(divide="ignore", invalid="ignore"):
                ratio = np.where(cut > 0, sig / np.where(cut > 0, cut, 1.0), 0.0)
            self.offset = 4.0 * eps * (ratio**12 - ratio**6)
        else:
            self.offset = np.zeros_like(eps)

    def _pairs(self, n: int, pairs: Optional[Iterable[Tuple]]):
        """Index arrays and special-bond factors of the pairs to evaluate."""
        if pairs is None:
            pi, pj = np.triu_indices(n, k=1)
            return pi, pj, np.ones(pi.size), np.ones(pi.size)
        rows = list(pairs)
        width = len(rows[0]) if rows else 2
        if width not in (2, 4):
            raise ValueError(
                "Pairs must be (i, j) or (i, j, factor_lj, factor_coul), "
                f"got {width} entries."
            )
        table = np.asarray(rows, dtype=float).reshape(-1, width)
        pi, pj = table[:, 0].astype(np.intp), table[:, 1].astype(np.intp)
        if width == 2:
            return pi, pj, np.ones(pi.size), np.ones(pi.size)
        return pi, pj, table[:, 2], table[:, 3]

    def compute(
        self,
        system: ParticleSystem,
        pairs: Optional[Iterable[Tuple]] = None,
        energy: bool = True,
    ) -> PairResult:
        """Accumulates pair forces, virial and (optionally) energies.

        Special-bond factors scale the Lennard-Jones term and remove the
        `(1 - factor_coul)` share of the bare Coulomb term `k q_i q_j / r`.

        Args:
            system (ParticleSystem): Needs charges and types.
            pairs (Optional[Iterable[Tuple]]): Neighbor pairs, each unordered
                pair listed once, as `(i, j)` or `(i, j, factor_lj,
                factor_coul)`; factors default to 1. All pairs when omitted.
            energy (bool): Whether to tally the energies.

        Returns:
            PairResult: Forces, Coulomb and van der Waals energies and virial.
        """
        if system.types is None:
            raise MissingAttributeError("types")
        n = system.n_particles
        forces = np.zeros((n, 3))
        pi, pj, factor_lj, factor_coul = self._pairs(n, pairs)
        if pi.size == 0:
            return PairResult(forces, 0.0, 0.0, np.zeros(6))

        d = self.geometry.displacement(system.positions[pi], system.positions[pj])
        rsq = np.einsum("pk,pk->p", d, d)
        ti, tj = system.types[pi], system.types[pj]
        cut_coulsq = self.settings.cut_coul**2
        in_coul = (rsq < cut_coulsq) & (rsq > 0.0)
        in_lj = (rsq < self.cut_ljsq[ti, tj]) & (rsq > 0.0)

        safe_rsq = np.where(rsq > 0.0, rsq, 1.0)
        r2inv = 1.0 / safe_rsq
        r = np.sqrt(safe_rsq)

        g = self.reciprocal.g_ewald
        grij = g * r
        screen = erfc(grij)
        prefactor = self.coulomb_constant * system.charges[pi] * system.charges[pj] / r
        excluded = (1.0 - factor_coul) * prefactor
        forcecoul = np.where(
            in_coul,
            prefactor * (screen + TWO_OVER_SQRT_PI * grij * np.exp(-grij * grij)) - excluded,
            0.0,
        )

        r6inv = r2inv * r2inv * r2inv
        forcelj = np.where(
            in_lj, factor_lj * r6inv * (self.lj1[ti, tj] * r6inv - self.lj2[ti, tj]), 0.0
        )

        fpair = (forcecoul + forcelj) * r2inv
        pair_forces = fpair[:, None] * d
        np.add.at(forces, pi, pair_forces)
        np.add.at(forces, pj, -pair_forces)

        ecoul = evdwl = 0.0
        if energy:
            ecoul = float(np.sum(np.where(in_coul, prefactor * screen - excluded, 0.0)))
            evdwl = float(
                np.sum(
                    np.where(
                        in_lj,
                        factor_lj
                        * (
                            r6inv * (self.lj3[ti, tj] * r6inv - self.lj4[ti, tj])
                            - self.offset[ti, tj]
                        ),
                        0.0,
                    )
                )
            )
        return PairResult(forces, ecoul, evdwl, pair_virial(d, pair_forces))

    def tail_correction(self, types: NDArray[np.int64]) -> Tuple[float, float]:
        """Long-range LJ corrections `(etail, ptail)` summed over type pairs.

        Both values still have to be divided by the volume. They are zero
        unless `tail_flag` is set.
        """
        if not self.settings.tail_flag:
            return 0.0, 0.0
        counts = np.bincount(np.asarray(types), minlength=self.coefficients.n_types + 1)
        etail = ptail = 0.0
        for i in range(1, self.coefficients.n_types + 1):
            for j in range(i, self.coefficients.n_types + 1):
                sig6 = self.sigma[i, j] ** 6
                rc3 = self.cut_lj[i, j] ** 3
                rc6 = rc3 * rc3
                rc9 = rc3 * rc6
                weight = 1.0 if i == j else 2.0
                pair = np.pi * counts[i] * counts[j] * self.epsilon[i, j] * sig6
                etail += weight * 8.0 * pair * (sig6 - 3.0 * rc6) / (9.0 * rc9)
                ptail += weight * 16.0 * pair * (2.0 * sig6 - 3.0 * rc6) / (9.0 * rc9)
        return float(etail), float(ptail)
