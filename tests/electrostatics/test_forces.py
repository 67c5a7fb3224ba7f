# tests/electrostatics/test_forces.py
import pytest
import numpy as np
from numpy.testing import assert_allclose
from pointpol.core.system import ParticleSystem
from pointpol.electrostatics.forces import PolarizationEnergy, PolarizationForceEnergy
from pointpol.geometry import PeriodicBox
from tests import helpers

def _forcefield(damping="none", geometry=None):
    settings = helpers.create_test_settings(cutoff=10.0, damping=damping)
    if geometry is None:
        return helpers.create_test_forcefield(settings)
    return helpers.create_test_forcefield(settings, geometry=geometry)

def _displaced(system, particle, axis, step):
    positions = system.positions.copy()
    positions[particle, axis] += step
    return ParticleSystem(positions, system.charges, system.polarizabilities, system.molecules)

@pytest.mark.validation
@pytest.mark.parametrize("damping", ["none", "exponential"])
@pytest.mark.parametrize("periodic", [False, True])
def test_energy_identity_holds_at_convergence(damping, periodic):
    geometry = PeriodicBox.cubic(12.0) if periodic else None
    system = helpers.create_random_system(10, seed=11, n_molecules=3)
    evaluation = _forcefield(damping, geometry).compute(system)
    assert evaluation.converged
    energy = evaluation.energy
    assert energy.total == pytest.approx(energy.self_energy + energy.field + energy.dipole)
    assert energy.total == pytest.approx(energy.static_estimate, rel=1e-8)
    assert energy.discrepancy < 1e-8

@pytest.mark.validation
@pytest.mark.parametrize("damping", ["none", "exponential"])
def test_forces_are_negative_energy_gradient(damping):
    system = helpers.create_random_system(5, seed=12, box=8.0, min_separation=2.0)
    forcefield = _forcefield(damping)
    forces = forcefield.compute(system).forces
    step = 1e-5
    numeric = np.zeros_like(forces)
    for particle in range(system.n_particles):
        for axis in range(3):
            plus = forcefield.compute(_displaced(system, particle, axis, step)).energy.total
            minus = forcefield.compute(_displaced(system, particle, axis, -step)).energy.total
            numeric[particle, axis] = -(plus - minus) / (2.0 * step)
    assert_allclose(forces, numeric, rtol=1e-5, atol=1e-6)

@pytest.mark.core
def test_forces_obey_newtons_third_law_and_virial():
    system = helpers.create_random_system(7, seed=13)
    evaluation = _forcefield("exponential").compute(system)
    assert_allclose(evaluation.forces.sum(axis=0), 0.0, atol=1e-9)
    # for open boundaries the pair virial equals sum_i x_i (x) F_i
    w = np.einsum("ia,ib->ab", system.positions, evaluation.forces)
    expected = [w[0, 0], w[1, 1], w[2, 2], w[0, 1], w[0, 2], w[1, 2]]
    assert_allclose(evaluation.virial, expected, rtol=1e-9, atol=1e-9)

@pytest.mark.core
def test_single_induced_dipole_energy_terms():
    system = helpers.charge_dipole_pair(2.0, alphas=(0.0, 1.5))
    evaluation = _forcefield().compute(system)
    e = helpers.wolf_field_magnitude(1.0, 2.0, 10.0)
    mu = 1.5 * e
    assert evaluation.energy.self_energy == pytest.approx(0.5 * mu**2 / 1.5)
    assert evaluation.energy.field == pytest.approx(-mu * e)
    assert evaluation.energy.dipole == 0.0
    assert evaluation.energy.total == pytest.approx(-0.5 * mu * e)

@pytest.mark.core
def test_molecule_exclusion_removes_charge_dipole_but_keeps_dipole_coupling():
    positions = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 3.0, 0.0]])
    system = helpers.create_test_system(positions, charges=[1.0, 0.0, 0.0], polarizabilities=[0.0, 1.0, 1.0], molecules=[7, 7, 0])
    evaluation = _forcefield().compute(system)
    assert_allclose(evaluation.static_field[1], 0.0)
    assert np.linalg.norm(evaluation.dipoles[1]) > 0.0
    # only the charge of particle 0 acting on the dipole of particle 2 remains
    expected_field = -np.dot(evaluation.dipoles[2], evaluation.static_field[2])
    assert evaluation.energy.field == pytest.approx(expected_field)
    assert evaluation.energy.dipole != 0.0

@pytest.mark.core
def test_energy_skipped_when_not_requested():
    system = helpers.create_random_system(4, seed=14)
    evaluation = _forcefield().compute(system, energy=False)
    assert evaluation.energy == PolarizationEnergy()
    assert np.any(evaluation.forces != 0.0)

@pytest.mark.core
def test_coincident_unpolarizable_pair_contributes_nothing():
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [3.0, 0.0, 0.0]])
    system = helpers.create_test_system(positions, charges=[1.0, -1.0, 0.0], polarizabilities=[0.0, 0.0, 1.0])
    result = PolarizationForceEnergy(cutoff=10.0).compute(system, np.zeros((3, 3)))
    assert np.all(np.isfinite(result.forces))
    assert_allclose(result.forces, 0.0)

@pytest.mark.core
def test_discrepancy_of_zero_energy():
    assert PolarizationEnergy().discrepancy == 0.0
    assert PolarizationEnergy(1.0, -2.0, 0.0, -0.5).discrepancy == pytest.approx(0.5)

@pytest.mark.consistency
def test_charge_dipole_pair_at_cutoff_is_included():
    dipoles = np.array([[0.0, 0.0, 0.0], [0.3, 0.2, 0.0]])
    calculator = PolarizationForceEnergy(cutoff=10.0)
    at_cutoff = calculator.compute(helpers.charge_dipole_pair(10.0), dipoles)
    inside = calculator.compute(helpers.charge_dipole_pair(10.0 - 1e-7), dipoles)
    assert np.any(at_cutoff.forces != 0.0)
    assert_allclose(at_cutoff.forces, inside.forces, rtol=1e-5, atol=1e-8)
    assert at_cutoff.energy.field == pytest.approx(0.0, abs=1e-12)
