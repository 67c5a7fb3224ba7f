# tests/core/test_system.py
"""
Unit tests for the per-particle data objects in pointpol.core.system.
"""
import pytest
import numpy as np

from pointpol.core.system import GhostParticles, ParticleSystem, interaction_mask


@pytest.mark.core
def test_particle_system_coerces_arrays():
    system = ParticleSystem(positions=[[0, 0, 0], [1, 0, 0]], charges=[1, -1], polarizabilities=[0, 2], molecules=[0, 3])
    assert system.n_particles == 2
    assert system.positions.dtype == np.float64
    assert system.molecules.dtype == np.int64
    assert system.types is None
    assert "charges" in repr(system)


@pytest.mark.core
@pytest.mark.parametrize("kwargs", [
    {"positions": np.zeros((3, 2))},
    {"positions": np.zeros((3, 3)), "charges": np.zeros(2)},
    {"positions": np.zeros((3, 3)), "polarizabilities": np.zeros(4)},
    {"positions": np.zeros((3, 3)), "molecules": np.zeros((3, 1))},
])
def test_particle_system_rejects_bad_shapes(kwargs):
    with pytest.raises(ValueError):
        ParticleSystem(**kwargs)


@pytest.mark.core
def test_negative_polarizability_is_rejected():
    with pytest.raises(ValueError, match="non-negative"):
        ParticleSystem(positions=np.zeros((2, 3)), polarizabilities=[1.0, -0.1])


@pytest.mark.core
def test_interaction_mask_molecule_rule():
    """Same nonzero molecule id excludes a pair; id 0 interacts with everything."""
    mask = interaction_mask(np.array([0, 0, 1, 1, 2]))
    expected = np.array([
        [False, True, True, True, True],
        [True, False, True, True, True],
        [True, True, False, False, True],
        [True, True, False, False, True],
        [True, True, True, True, False],
    ])
    np.testing.assert_array_equal(mask, expected)


@pytest.mark.core
def test_interaction_mask_against_ghosts_keeps_diagonal():
    mask = interaction_mask(np.array([1, 0]), np.array([1, 2, 0]))
    np.testing.assert_array_equal(mask, [[False, True, True], [True, True, True]])


@pytest.mark.core
def test_ghost_particles_empty():
    ghosts = GhostParticles.empty()
    assert len(ghosts) == 0
    assert ghosts.positions.shape == (0, 3)
