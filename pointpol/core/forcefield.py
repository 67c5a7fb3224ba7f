# pointpol/core/forcefield.py
"""The PolarizableForceField class, the entry point of a force evaluation.

A force field binds the settings, the external collaborators (geometry,
reciprocal-space solver, ghost exchange) and the computational backend
(NumPy or JAX) once, and then evaluates any number of particle
configurations. It owns the dense matrix and solver buffers, so repeated
evaluations of equally sized systems allocate nothing new.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ..electrostatics.forces import PolarizationEnergy, PolarizationForceEnergy
from ..electrostatics.pair import PairCoefficients, ReciprocalSpace, ShortRangePair
from ..electrostatics.ranking import DipoleRanker
from ..electrostatics.solver import (
    InducedDipoleSolver,
    SolveResult,
    SolverWorkspace,
    first_order_dipoles,
)
from ..electrostatics.static_field import COULOMB_CONSTANT
from ..geometry import MinimumImage, OpenBoundary
from .exceptions import EnergyConsistencyWarning, MissingAttributeError, MissingCollaboratorError
from .observers import notify
from .settings import PolarizationSettings
from .system import GhostExchange, ParticleSystem

# relative tolerance of the debug-mode energy identity check
ENERGY_CONSISTENCY_TOLERANCE = 1e-8


@dataclass(frozen=True)
class ForceEvaluation:
    """Result of one force evaluation.

    Attributes:
        forces (NDArray[np.float64]): (N, 3) total force (polarization plus
            short-range pair sum).
        dipoles (NDArray[np.float64]): (N, 3) induced dipoles.
        static_field (NDArray[np.float64]): (N, 3) static field of the charges.
        iterations (int): Committed solver sweeps (0 in zodid mode).
        converged (bool): False when the solver fell back to `alpha * E`.
        energy (PolarizationEnergy): Polarization energy terms.
        coulomb (float): Short-range real-space Coulomb energy.
        vdw (float): Lennard-Jones energy.
        virial (NDArray[np.float64]): (6,) virial xx, yy, zz, xy, xz, yz.
        residual (float): Mean squared dipole change of the last sweep.
    """

    forces: NDArray[np.float64]
    dipoles: NDArray[np.float64]
    static_field: NDArray[np.float64]
    iterations: int
    converged: bool
    energy: PolarizationEnergy
    coulomb: float = 0.0
    vdw: float = 0.0
    virial: NDArray[np.float64] = field(default_factory=lambda: np.zeros(6))
    residual: float = float("nan")

    @property
    def n_particles(self) -> int:
        return self.dipoles.shape[0]


@dataclass
class PolarizableForceField:
    """Induced point-dipole polarization with Coulomb and Lennard-Jones terms.

    Attributes:
        settings (PolarizationSettings): Global settings.
        reciprocal (Optional[ReciprocalSpace]): Reciprocal-space solver
            handle; required.
        geometry (MinimumImage): Minimum-image resolver. Defaults to open
            boundaries.
        coefficients (Optional[PairCoefficients]): Lennard-Jones coefficients.
            When given, the short-range pair sum is evaluated alongside the
            polarization terms.
        ghost_exchange (Optional[GhostExchange]): Supplies ghost particles to
            the ranker in ranked Gauss-Seidel mode.
        observer (Any): Optional solver observer.
        backend (Literal['numpy', 'jax']): Backend used for the static field
            and the dipole-field matrix.
        coulomb_constant (float): Coulomb constant of the unit system.
    """

    settings: PolarizationSettings
    reciprocal: Optional[ReciprocalSpace] = None
    geometry: MinimumImage = field(default_factory=OpenBoundary)
    coefficients: Optional[PairCoefficients] = None
    ghost_exchange: Optional[GhostExchange] = None
    observer: Any = None
    backend: Literal["numpy", "jax"] = "numpy"
    coulomb_constant: float = COULOMB_CONSTANT

    workspace: SolverWorkspace = field(init=False, repr=False)
    _previous_dipoles: Optional[NDArray[np.float64]] = field(
        init=False, default=None, repr=False
    )

    def __post_init__(self) -> None:
        """Checks the collaborators and binds the computational backend."""
        if self.reciprocal is None:
            raise MissingCollaboratorError(
                "reciprocal-space solver",
                hint="Pass e.g. `reciprocal=EwaldSplitting(g_ewald=...)`.",
            )
        settings = self.settings

        if self.backend == "jax":
            try:
                from ..electrostatics_jax.tensor_jax import (
                    JaxDipoleFieldMatrixBuilder,
                    JaxStaticFieldCalculator,
                )
            except ImportError as e:
                raise ImportError(
                    "Could not load the JAX backend. Please ensure JAX is "
                    "installed: `pip install 'jax[cpu]'` or `pip install "
                    "'pointpol[jax]'`."
                ) from e
            field_class, builder_class = JaxStaticFieldCalculator, JaxDipoleFieldMatrixBuilder
        elif self.backend == "numpy":
            from ..electrostatics.static_field import StaticFieldCalculator
            from ..electrostatics.tensor import DipoleFieldMatrixBuilder

            field_class, builder_class = StaticFieldCalculator, DipoleFieldMatrixBuilder
        else:
            raise ValueError(
                f"Unsupported backend: '{self.backend}'. Please choose "
                "'numpy' or 'jax'."
            )

        self.static_field = field_class(
            settings.cut_coul, self.geometry, self.coulomb_constant
        )
        self.matrix_builder = builder_class(
            settings.damping, settings.damping_parameter, self.geometry
        )
        self.ranker = DipoleRanker(self.geometry)
        self.solver = InducedDipoleSolver.from_settings(settings, self.observer)
        self.force_energy = PolarizationForceEnergy(
            settings.cut_coul,
            settings.damping,
            settings.damping_parameter,
            self.geometry,
            self.coulomb_constant,
        )
        self.pair: Optional[ShortRangePair] = None
        if self.coefficients is not None:
            self.pair = ShortRangePair(
                settings, self.coefficients, self.reciprocal, self.geometry,
                self.coulomb_constant,
            )
        self.workspace = SolverWorkspace()

    def _validate_system(self, system: ParticleSystem) -> None:
        for attribute in ("charges", "polarizabilities", "molecules"):
            if getattr(system, attribute) is None:
                raise MissingAttributeError(attribute)
        if self.pair is not None and system.types is None:
            raise MissingAttributeError("types")

    def _initial_dipoles(
        self, system: ParticleSystem, static_field: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        previous = self._previous_dipoles
        if (
            self.settings.use_previous
            and previous is not None
            and previous.shape[0] == system.n_particles
        ):
            return previous
        return first_order_dipoles(
            system.polarizabilities, static_field, self.settings.polar_gamma
        )

    def _visiting_order(self, system: ParticleSystem) -> NDArray[np.intp]:
        if not self.settings.polar_gs_ranked:
            return np.arange(system.n_particles)
        ghosts = None
        if self.ghost_exchange is not None:
            ghosts = self.ghost_exchange.synchronize(system)
        return self.ranker.rank(system, ghosts)

    def solve_dipoles(
        self, system: ParticleSystem, static_field: NDArray[np.float64]
    ) -> Tuple[SolveResult, Optional[NDArray[np.float64]]]:
        """Finds the induced dipoles for a given static field.

        Returns:
            Tuple[SolveResult, Optional[NDArray[np.float64]]]: The solve
            outcome and the workspace matrix (None in zodid mode, where no
            matrix is built).
        """
        initial = self._initial_dipoles(system, static_field)
        if self.settings.zodid:
            return SolveResult(np.array(initial, dtype=float), 0, float("nan")), None

        n = system.n_particles
        matrix = self.matrix_builder.build(
            system.positions, system.polarizabilities, out=self.workspace.matrix(n)
        )
        context = self.workspace.context(initial, self._visiting_order(system))
        result = self.solver.solve(
            matrix, system.polarizabilities, static_field, context
        )
        return result, matrix

    def compute(
        self,
        system: ParticleSystem,
        pairs: Optional[Iterable[Tuple]] = None,
        energy: bool = True,
    ) -> ForceEvaluation:
        """Runs one complete force evaluation.

        Args:
            system (ParticleSystem): Particles of the local domain.
            pairs (Optional[Iterable[Tuple]]): Neighbor pairs for the
                short-range pair sum, optionally with special-bond factors
                `(i, j, factor_lj, factor_coul)`; all pairs when omitted.
            energy (bool): Whether to compute energies.

        Returns:
            ForceEvaluation: Forces, dipoles, energies and diagnostics.

        Raises:
            MissingAttributeError: If the system lacks charges,
                polarizabilities, molecule ids, or types when Lennard-Jones
                coefficients are set.
        """
        self._validate_system(system)

        forces = np.zeros((system.n_particles, 3))
        virial = np.zeros(6)
        coulomb = vdw = 0.0
        if self.pair is not None:
            pair_result = self.pair.compute(system, pairs, energy=energy)
            forces += pair_result.forces
            virial += pair_result.virial
            coulomb, vdw = pair_result.coulomb, pair_result.vdw

        static_field = self.static_field.compute(system)
        result, matrix = self.solve_dipoles(system, static_field)
        dipoles = result.dipoles

        polarization = self.force_energy.compute(
            system, dipoles, static_field, energy=energy
        )
        forces += polarization.forces
        virial += polarization.virial

        if self.settings.debug and energy:
            self._check_energy(polarization.energy)

        evaluation = ForceEvaluation(
            forces=forces,
            dipoles=dipoles,
            static_field=static_field,
            iterations=result.iterations,
            converged=result.converged,
            energy=polarization.energy,
            coulomb=coulomb,
            vdw=vdw,
            virial=virial,
            residual=result.residual,
        )
        notify(self.observer, "on_evaluation", system, evaluation, matrix)

        if self.settings.use_previous:
            self._previous_dipoles = dipoles.copy()
        return evaluation

    def _check_energy(self, terms: PolarizationEnergy) -> None:
        if terms.discrepancy > ENERGY_CONSISTENCY_TOLERANCE:
            warnings.warn(
                f"Polarization energy {terms.total:.12g} (self {terms.self_energy:.12g}, "
                f"field {terms.field:.12g}, dipole {terms.dipole:.12g}) differs from "
                f"-0.5*sum(E*mu) = {terms.static_estimate:.12g}.",
                EnergyConsistencyWarning,
                stacklevel=3,
            )

    def tail_correction(self, system: ParticleSystem) -> Tuple[float, float]:
        """Lennard-Jones tail corrections `(etail, ptail)` before division by volume."""
        if self.pair is None:
            return 0.0, 0.0
        if system.types is None:
            raise MissingAttributeError("types")
        return self.pair.tail_correction(system.types)

    def reset(self) -> None:
        """Forgets the dipoles carried over between evaluations."""
        self._previous_dipoles = None

    def __repr__(self) -> str:
        return (
            f"PolarizableForceField(backend='{self.backend}', "
            f"cut_coul={self.settings.cut_coul}, damping='{self.settings.damping.value}', "
            f"gauss_seidel={self.settings.gauss_seidel})"
        )
