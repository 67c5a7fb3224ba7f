from typing import Optional, Sequence
import numpy as np
from pointpol.core.forcefield import PolarizableForceField
from pointpol.core.settings import PolarizationSettings
from pointpol.core.system import ParticleSystem
from pointpol.electrostatics.pair import EwaldSplitting
from pointpol.electrostatics.static_field import COULOMB_CONSTANT
def create_test_system(positions, charges=None, polarizabilities=None, molecules=None, types=None) -> ParticleSystem:
    positions = np.asarray(positions, dtype=float)
    n = positions.shape[0]
    if charges is None:
        charges = np.zeros(n)
    if polarizabilities is None:
        polarizabilities = np.ones(n)
    if molecules is None:
        molecules = np.zeros(n, dtype=int)
    return ParticleSystem(positions=positions, charges=charges, polarizabilities=polarizabilities, molecules=molecules, types=types)
def create_random_system(n: int, seed: int = 0, box: float = 12.0, min_separation: float = 2.5, alpha_range=(0.5, 1.5), n_molecules: int = 0) -> ParticleSystem:
    rng = np.random.default_rng(seed)
    positions = []
    while len(positions) < n:
        candidate = rng.uniform(0.0, box, size=3)
        if all(np.linalg.norm(candidate - p) >= min_separation for p in positions):
            positions.append(candidate)
    charges = rng.uniform(-0.8, 0.8, size=n)
    polarizabilities = rng.uniform(*alpha_range, size=n)
    molecules = rng.integers(0, n_molecules + 1, size=n) if n_molecules else np.zeros(n, dtype=int)
    return ParticleSystem(positions=np.array(positions), charges=charges, polarizabilities=polarizabilities, molecules=molecules, types=np.ones(n, dtype=int))
def create_test_settings(cutoff: float = 10.0, **kwargs) -> PolarizationSettings:
    return PolarizationSettings(cut_lj_global=cutoff, **kwargs)
def create_test_forcefield(settings: Optional[PolarizationSettings] = None, g_ewald: float = 0.3, **kwargs) -> PolarizableForceField:
    if settings is None:
        settings = create_test_settings()
    return PolarizableForceField(settings=settings, reciprocal=EwaldSplitting(g_ewald), **kwargs)
def charge_dipole_pair(separation: float, charge: float = 1.0, alphas: Sequence[float] = (0.0, 1.0)) -> ParticleSystem:
    """A charge at the origin and a second particle on the x axis."""
    positions = np.array([[0.0, 0.0, 0.0], [separation, 0.0, 0.0]])
    return create_test_system(positions, charges=[charge, 0.0], polarizabilities=list(alphas))
def wolf_field_magnitude(charge: float, r: float, cutoff: float, coulomb_constant: float = COULOMB_CONSTANT) -> float:
    return np.sqrt(coulomb_constant) * charge * (1.0 / r**2 - 1.0 / cutoff**2)
