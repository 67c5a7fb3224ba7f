# pointpol/core/settings.py
"""Settings of the polarizable pair style and their persisted binary record.

`PolarizationSettings` is immutable and validated on construction. The
record written by `write_settings` is a fixed sequence of native-endian
fields with no version header, so a file written by one build can only be
read back by a build with the same field order.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import BinaryIO, Optional

import numpy as np

from .exceptions import ConfigurationError, ExclusiveFlagsError


class DampingType(str, Enum):
    """Short-range screening of the dipole-dipole interaction."""

    # integer codes are part of the persisted record
    EXPONENTIAL = "exponential"
    NONE = "none"

    @property
    def code(self) -> int:
        return 0 if self is DampingType.EXPONENTIAL else 1

    @classmethod
    def from_code(cls, code: int) -> "DampingType":
        if code == 0:
            return cls.EXPONENTIAL
        if code == 1:
            return cls.NONE
        raise ConfigurationError(f"Unknown damping type code {code}.")


class MixingRule(int, Enum):
    """Lennard-Jones mixing rule for type pairs without explicit coefficients."""

    GEOMETRIC = 0
    ARITHMETIC = 1
    SIXTHPOWER = 2


@dataclass(frozen=True)
class PolarizationSettings:
    """Global settings of a polarizable force field.

    Attributes:
        cut_lj_global (float): Global Lennard-Jones cutoff.
        cut_coul (Optional[float]): Coulomb cutoff used by the Wolf static
            field, the charge-dipole terms and the short-range erfc sum.
            Defaults to `cut_lj_global`.
        offset_flag (bool): Shift LJ energies to zero at the cutoff.
        mix_flag (MixingRule): Mixing rule for unset LJ cross coefficients.
        tail_flag (bool): Add the LJ long-range tail correction.
        max_iterations (int): Sweep cap of the induced-dipole solver.
        damping (DampingType): Dipole-dipole damping mode.
        damping_parameter (float): Exponential (Thole) damping parameter `a`.
        zodid (bool): Zeroth-order induced dipoles. Skips the iterative solve
            and keeps the initial guess `gamma * alpha * E_static`.
        precision (float): Convergence precision; the solve stops when the
            mean squared dipole change drops to `precision**2`.
        fixed_iteration (bool): Run exactly `max_iterations` sweeps.
        polar_gs (bool): Gauss-Seidel sweeps in natural particle order.
        polar_gs_ranked (bool): Gauss-Seidel sweeps in ranked order.
        polar_gamma (float): Over-relaxation factor of the initial guess.
        use_previous (bool): Seed each solve with the previous dipoles.
        debug (bool): Check the energy identity after every evaluation.
    """

    cut_lj_global: float
    cut_coul: Optional[float] = None
    offset_flag: bool = False
    mix_flag: MixingRule = MixingRule.GEOMETRIC
    tail_flag: bool = False
    max_iterations: int = 50
    damping: DampingType = DampingType.NONE
    damping_parameter: float = 2.1304
    zodid: bool = False
    precision: float = 1e-11
    fixed_iteration: bool = False
    polar_gs: bool = False
    polar_gs_ranked: bool = True
    polar_gamma: float = 1.03
    use_previous: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        if self.cut_coul is None:
            object.__setattr__(self, "cut_coul", self.cut_lj_global)
        object.__setattr__(self, "damping", DampingType(self.damping))
        object.__setattr__(self, "mix_flag", MixingRule(self.mix_flag))

        if self.cut_lj_global <= 0 or self.cut_coul <= 0:
            raise ConfigurationError(
                f"Cutoffs must be positive (cut_lj_global={self.cut_lj_global}, "
                f"cut_coul={self.cut_coul})."
            )
        if self.max_iterations < 0:
            raise ConfigurationError(
                f"max_iterations must be non-negative, got {self.max_iterations}."
            )
        if self.precision < 0:
            raise ConfigurationError(
                f"precision must be non-negative, got {self.precision}."
            )
        if self.damping_parameter < 0:
            raise ConfigurationError(
                f"damping_parameter must be non-negative, got {self.damping_parameter}."
            )

        if self.polar_gs and self.polar_gs_ranked:
            raise ExclusiveFlagsError("polar_gs", "polar_gs_ranked")
        if self.zodid and self.polar_gs:
            raise ExclusiveFlagsError("zodid", "polar_gs")
        if self.zodid and self.polar_gs_ranked:
            raise ExclusiveFlagsError("zodid", "polar_gs_ranked")

    @property
    def gauss_seidel(self) -> bool:
        """True when updates are committed immediately within a sweep."""
        return self.polar_gs or self.polar_gs_ranked


# Field order of the persisted record. Do not reorder.
SETTINGS_RECORD = np.dtype(
    [
        ("cut_lj_global", "=f8"),
        ("cut_coul", "=f8"),
        ("offset_flag", "=i4"),
        ("mix_flag", "=i4"),
        ("max_iterations", "=i4"),
        ("damping", "=i4"),
        ("damping_parameter", "=f8"),
        ("zodid", "=i4"),
        ("precision", "=f8"),
        ("fixed_iteration", "=i4"),
        ("polar_gs", "=i4"),
        ("polar_gs_ranked", "=i4"),
        ("polar_gamma", "=f8"),
        ("debug", "=i4"),
    ]
)


def write_settings(settings: PolarizationSettings, fp: BinaryIO) -> None:
    """Writes the settings record to a binary stream."""
    record = np.zeros(1, dtype=SETTINGS_RECORD)
    for name in SETTINGS_RECORD.names:
        value = getattr(settings, name)
        if name == "damping":
            value = value.code
        record[name] = value
    fp.write(record.tobytes())


def read_settings(fp: BinaryIO, **overrides) -> PolarizationSettings:
    """Reads a settings record written by `write_settings`.

    Fields that are not part of the record (`tail_flag`, `use_previous`)
    keep their defaults unless passed as keyword overrides.

    Raises:
        ConfigurationError: If the stream ends before a full record.
    """
    raw = fp.read(SETTINGS_RECORD.itemsize)
    if len(raw) != SETTINGS_RECORD.itemsize:
        raise ConfigurationError(
            f"Truncated settings record: expected {SETTINGS_RECORD.itemsize} "
            f"bytes, got {len(raw)}."
        )
    record = np.frombuffer(raw, dtype=SETTINGS_RECORD)[0]

    bool_fields = {
        f.name for f in fields(PolarizationSettings) if f.type in ("bool", bool)
    }
    values = {}
    for name in SETTINGS_RECORD.names:
        value = record[name].item()
        if name == "damping":
            value = DampingType.from_code(value)
        elif name == "mix_flag":
            value = MixingRule(value)
        elif name in bool_fields:
            value = bool(value)
        values[name] = value
    values.update(overrides)
    return PolarizationSettings(**values)
