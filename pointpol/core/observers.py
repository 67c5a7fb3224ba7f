# pointpol/core/observers.py
"""Instrumentation hooks for the solver and the force field.

Observers receive callbacks instead of the numerical code doing any I/O
itself. Both callbacks are optional: an observer may implement either one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .forcefield import ForceEvaluation
    from .system import ParticleSystem


class SolverObserver(Protocol):
    def on_sweep(
        self, iteration: int, residual: float, dipoles: NDArray[np.float64]
    ) -> None:
        """Called after every committed sweep of the induced-dipole solver."""
        ...

    def on_evaluation(
        self,
        system: "ParticleSystem",
        evaluation: "ForceEvaluation",
        matrix: Optional[NDArray[np.float64]],
    ) -> None:
        """Called once per force evaluation, after forces are accumulated."""
        ...


def notify(observer, hook: str, *args) -> None:
    """Invokes `hook` on the observer if it defines it."""
    if observer is None:
        return
    callback = getattr(observer, hook, None)
    if callback is not None:
        callback(*args)


@dataclass
class ConvergenceRecorder:
    """Keeps the residual history of every solve.

    Attributes:
        residuals (List[List[float]]): One list of per-sweep mean squared
            dipole changes per solve.
    """

    residuals: List[List[float]] = field(default_factory=list)
    iterations: List[int] = field(default_factory=list)

    def on_sweep(self, iteration: int, residual: float, dipoles) -> None:
        if iteration == 1 or not self.residuals:
            self.residuals.append([])
        self.residuals[-1].append(residual)

    def on_evaluation(self, system, evaluation, matrix) -> None:
        self.iterations.append(evaluation.iterations)

    @property
    def last(self) -> List[float]:
        return self.residuals[-1] if self.residuals else []


class CsvDumpObserver:
    """Writes per-evaluation diagnostic tables into a directory.

    Files (suffixed with `rank`, the domain index): `tensor{rank}.csv` with
    the dense matrix, `e_static{rank}.csv` with static fields and forces,
    `mu{rank}.csv` with positions, fields and dipoles, and `pos{rank}.xyz`.
    Every evaluation overwrites the previous files.
    """

    def __init__(self, directory: Union[str, Path], rank: int = 0):
        self.directory = Path(directory)
        self.rank = rank

    def _path(self, stem: str, suffix: str = "csv") -> Path:
        return self.directory / f"{stem}{self.rank}.{suffix}"

    def on_evaluation(self, system, evaluation, matrix) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        if matrix is not None:
            pd.DataFrame(matrix).to_csv(self._path("tensor"), header=False, index=False)

        axes = ["x", "y", "z"]
        static = pd.DataFrame(evaluation.static_field, columns=[f"ef_{a}" for a in axes])
        forces = pd.DataFrame(evaluation.forces, columns=[f"f_{a}" for a in axes])
        pd.concat([static, forces], axis=1).to_csv(self._path("e_static"), index_label="particle")

        table = pd.concat(
            [
                pd.DataFrame(system.positions, columns=axes),
                static,
                pd.DataFrame(evaluation.dipoles, columns=[f"mu_{a}" for a in axes]),
            ],
            axis=1,
        )
        table.to_csv(self._path("mu"), index_label="particle")

        lines = [str(system.n_particles), f"u_polar {evaluation.energy.static_estimate:.12f}"]
        charges = system.charges if system.charges is not None else np.zeros(system.n_particles)
        for (x, y, z), q in zip(system.positions, charges):
            lines.append(f"H {x:f} {y:f} {z:f} {q:f}")
        self._path("pos", "xyz").write_text("\n".join(lines) + "\n", encoding="utf-8")
