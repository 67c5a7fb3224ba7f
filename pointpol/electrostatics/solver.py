# pointpol/electrostatics/solver.py
"""Self-consistent induced-dipole solver.

Iterates the fixed point `mu_i = alpha_i * (E_static_i + E_induced_i)` with
`E_induced_i = -sum_{j != i} T_ij mu_j`, either Gauss-Seidel style (each new
dipole is visible to the rest of the sweep) or Jacobi style (the sweep
commits all dipoles at once). The solver always terminates with a usable
dipole field: on divergence it falls back to the first-order dipoles
`alpha * E_static` and emits a `ConvergenceWarning`.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from ..core.exceptions import ConvergenceWarning
from ..core.observers import notify
from ..core.settings import PolarizationSettings
from .tensor import induced_field


@dataclass
class SolverContext:
    """Mutable state of one solve.

    Attributes:
        dipoles (NDArray[np.float64]): (N, 3) current dipoles `mu`; holds the
            initial guess on entry and the result on exit.
        previous (NDArray[np.float64]): (N, 3) snapshot taken at the start of
            each sweep, used by the convergence test.
        updated (NDArray[np.float64]): (N, 3) dipoles computed in the current
            sweep.
        induced (NDArray[np.float64]): (N, 3) induced field of the last sweep.
        order (NDArray[np.intp]): Visiting order of the Gauss-Seidel sweep.
        iterations (int): Number of committed sweeps.
    """

    dipoles: NDArray[np.float64]
    previous: NDArray[np.float64]
    updated: NDArray[np.float64]
    induced: NDArray[np.float64]
    order: NDArray[np.intp]
    iterations: int = 0

    @classmethod
    def allocate(
        cls, initial: NDArray[np.float64], order: Optional[NDArray[np.intp]] = None
    ) -> "SolverContext":
        """Creates a context with freshly allocated buffers."""
        dipoles = np.array(initial, dtype=float).reshape(-1, 3)
        n = dipoles.shape[0]
        return cls(
            dipoles=dipoles,
            previous=np.zeros_like(dipoles),
            updated=np.zeros_like(dipoles),
            induced=np.zeros_like(dipoles),
            order=np.arange(n) if order is None else np.asarray(order, dtype=np.intp),
        )

    @property
    def n_particles(self) -> int:
        return self.dipoles.shape[0]


class SolverWorkspace:
    """Preallocated buffers for the matrix and the solver state.

    The buffers are flat and sized for `capacity` particles. They are
    reallocated (never patched) only when a larger particle count is
    requested; smaller counts use contiguous leading views.
    """

    def __init__(self, capacity: int = 0):
        self.capacity: int = 0
        self.reallocations: int = 0
        self._allocate(capacity)

    def _allocate(self, capacity: int) -> None:
        self.capacity = capacity
        self._matrix = np.zeros(9 * capacity * capacity)
        self._vectors = np.zeros((4, 3 * capacity))
        self._order = np.zeros(capacity, dtype=np.intp)

    def ensure_capacity(self, n: int) -> bool:
        """Grows the buffers to hold `n` particles; returns True if reallocated."""
        if n <= self.capacity:
            return False
        self._allocate(n)
        self.reallocations += 1
        return True

    def matrix(self, n: int) -> NDArray[np.float64]:
        """C-contiguous (3n, 3n) view of the matrix buffer."""
        self.ensure_capacity(n)
        return self._matrix[: 9 * n * n].reshape(3 * n, 3 * n)

    def context(
        self, initial: NDArray[np.float64], order: Optional[NDArray[np.intp]] = None
    ) -> SolverContext:
        """Solver context whose arrays are views into the workspace."""
        initial = np.asarray(initial, dtype=float).reshape(-1, 3)
        n = initial.shape[0]
        self.ensure_capacity(n)
        views = [self._vectors[k, : 3 * n].reshape(n, 3) for k in range(4)]
        for view in views[1:]:
            view.fill(0.0)
        views[0][:] = initial
        ordering = self._order[:n]
        ordering[:] = np.arange(n) if order is None else order
        return SolverContext(*views, order=ordering)


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one solve.

    Attributes:
        dipoles (NDArray[np.float64]): (N, 3) final dipoles (a copy).
        iterations (int): Committed sweeps; in the fallback case, the sweep
            count at which the iteration was abandoned.
        residual (float): Mean squared dipole change of the last sweep, or
            NaN when no sweep ran.
        fell_back (bool): True when the dipoles were reset to `alpha * E`.
    """

    dipoles: NDArray[np.float64]
    iterations: int
    residual: float
    fell_back: bool = False

    @property
    def converged(self) -> bool:
        return not self.fell_back


def first_order_dipoles(
    polarizabilities: NDArray[np.float64],
    static_field: NDArray[np.float64],
    gamma: float = 1.0,
) -> NDArray[np.float64]:
    """`gamma * alpha_i * E_static_i` for every particle."""
    alpha = np.asarray(polarizabilities, dtype=float)
    return gamma * alpha[:, None] * np.asarray(static_field, dtype=float)


class InducedDipoleSolver:
    """Fixed-point solver for the induced dipoles.

    Args:
        max_iterations (int): Sweep cap. In precision mode the solve falls
            back once the sweep count exceeds it; in fixed-iteration mode
            exactly this many sweeps run.
        precision (float): Stop when the mean squared per-component dipole
            change of a sweep is at most `precision**2`.
        gauss_seidel (bool): Commit each dipole immediately (True) or at the
            end of the sweep (False, Jacobi).
        fixed_iteration (bool): Skip the precision test and run exactly
            `max_iterations` sweeps.
        observer (Any): Optional object with an `on_sweep` callback.
    """

    def __init__(
        self,
        max_iterations: int = 50,
        precision: float = 1e-11,
        gauss_seidel: bool = True,
        fixed_iteration: bool = False,
        observer: Any = None,
    ):
        if max_iterations < 0:
            raise ValueError(
                f"max_iterations must be non-negative, got {max_iterations}."
            )
        self.max_iterations: int = max_iterations
        self.precision: float = precision
        self.gauss_seidel: bool = gauss_seidel
        self.fixed_iteration: bool = fixed_iteration
        self.observer = observer

    @classmethod
    def from_settings(
        cls, settings: PolarizationSettings, observer: Any = None
    ) -> "InducedDipoleSolver":
        return cls(
            max_iterations=settings.max_iterations,
            precision=settings.precision,
            gauss_seidel=settings.gauss_seidel,
            fixed_iteration=settings.fixed_iteration,
            observer=observer,
        )

    def _sweep_gauss_seidel(
        self,
        ctx: SolverContext,
        matrix: NDArray[np.float64],
        alpha: NDArray[np.float64],
        static_field: NDArray[np.float64],
    ) -> None:
        flat = ctx.dipoles.reshape(-1)
        for i in ctx.order:
            lo, hi = 3 * i, 3 * i + 3
            rows = matrix[lo:hi]
            field = -(rows[:, :lo] @ flat[:lo] + rows[:, hi:] @ flat[hi:])
            ctx.induced[i] = field
            if alpha[i] > 0.0:
                ctx.updated[i] = alpha[i] * (static_field[i] + field)
            else:
                ctx.updated[i] = 0.0
            ctx.dipoles[i] = ctx.updated[i]

    def _sweep_jacobi(
        self,
        ctx: SolverContext,
        matrix: NDArray[np.float64],
        alpha: NDArray[np.float64],
        static_field: NDArray[np.float64],
    ) -> None:
        ctx.induced[:] = induced_field(matrix, ctx.dipoles)
        polarizable = alpha[:, None] > 0.0
        ctx.updated[:] = np.where(
            polarizable, alpha[:, None] * (static_field + ctx.induced), 0.0
        )
        ctx.dipoles[:] = ctx.updated

    def _fall_back(
        self,
        ctx: SolverContext,
        alpha: NDArray[np.float64],
        static_field: NDArray[np.float64],
        residual: float,
        reason: str,
    ) -> SolveResult:
        ctx.dipoles[:] = first_order_dipoles(alpha, static_field)
        warnings.warn(
            f"{reason}; setting dipoles to alpha*E after {ctx.iterations} "
            "iteration(s).",
            ConvergenceWarning,
            stacklevel=3,
        )
        return SolveResult(ctx.dipoles.copy(), ctx.iterations, residual, fell_back=True)

    def solve(
        self,
        matrix: NDArray[np.float64],
        polarizabilities: NDArray[np.float64],
        static_field: NDArray[np.float64],
        context: SolverContext,
    ) -> SolveResult:
        """Runs the iteration to convergence, the sweep cap or divergence.

        Args:
            matrix (NDArray[np.float64]): (3N, 3N) dipole-field matrix.
            polarizabilities (NDArray[np.float64]): (N,) polarizabilities.
            static_field (NDArray[np.float64]): (N, 3) static field.
            context (SolverContext): State holding the initial dipoles; it is
                updated in place.

        Returns:
            SolveResult: Final dipoles and diagnostics.
        """
        ctx = context
        alpha = np.asarray(polarizabilities, dtype=float)
        static_field = np.asarray(static_field, dtype=float)
        residual = float("nan")

        if ctx.n_particles == 0:
            return SolveResult(ctx.dipoles.copy(), 0, residual)
        if self.fixed_iteration and self.max_iterations == 0:
            ctx.dipoles[:] = first_order_dipoles(alpha, static_field)
            return SolveResult(ctx.dipoles.copy(), 0, residual)

        sweep = self._sweep_gauss_seidel if self.gauss_seidel else self._sweep_jacobi
        threshold = self.precision * self.precision

        # overflow from saturated coincident pairs is caught by the isfinite check
        with np.errstate(over="ignore", invalid="ignore"):
            while True:
                ctx.previous[:] = ctx.dipoles
                sweep(ctx, matrix, alpha, static_field)
                ctx.iterations += 1

                if not np.all(np.isfinite(ctx.updated)):
                    return self._fall_back(
                        ctx, alpha, static_field, residual,
                        "Induced dipoles became non-finite",
                    )
                residual = float(np.mean((ctx.updated - ctx.previous) ** 2))
                notify(self.observer, "on_sweep", ctx.iterations, residual, ctx.dipoles)

                if self.fixed_iteration:
                    if ctx.iterations >= self.max_iterations:
                        return SolveResult(ctx.dipoles.copy(), ctx.iterations, residual)
                    continue
                if residual <= threshold:
                    return SolveResult(ctx.dipoles.copy(), ctx.iterations, residual)
                if ctx.iterations > self.max_iterations:
                    return self._fall_back(
                        ctx, alpha, static_field, residual,
                        "Number of iterations exceeding max_iterations",
                    )
