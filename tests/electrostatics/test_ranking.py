# tests/electrostatics/test_ranking.py
import pytest
import numpy as np
from numpy.testing import assert_allclose
from pointpol.core.system import GhostParticles
from pointpol.electrostatics.ranking import DipoleRanker
from pointpol.geometry import PeriodicBox
from tests import helpers

@pytest.mark.core
def test_densest_neighbourhood_ranks_first():
    positions = np.array([[0.0, 0.0, 0.0], [20.0, 0.0, 0.0], [22.0, 0.0, 0.0]])
    system = helpers.create_test_system(positions, polarizabilities=[1.0, 2.0, 3.0])
    ranker = DipoleRanker()
    assert_allclose(ranker.metric(system), [0.0, 6.0, 6.0])
    # ties keep their natural order
    np.testing.assert_array_equal(ranker.rank(system), [1, 2, 0])

@pytest.mark.core
def test_excluded_pairs_do_not_define_r_min():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [4.0, 0.0, 0.0]])
    system = helpers.create_test_system(positions, molecules=[1, 1, 0])
    ranker = DipoleRanker()
    # r_min = 3 (pair 1-2), neighbourhood radius 4.5
    assert_allclose(ranker.metric(system), [1.0, 1.0, 2.0])
    np.testing.assert_array_equal(ranker.rank(system), [2, 0, 1])

@pytest.mark.core
def test_unpolarizable_particles_have_zero_metric():
    positions = np.array([[0.0, 0.0, 0.0], [1.5, 0.0, 0.0], [3.0, 0.0, 0.0]])
    system = helpers.create_test_system(positions, polarizabilities=[0.0, 1.0, 1.0])
    metric = DipoleRanker().metric(system)
    assert metric[0] == 0.0
    assert_allclose(metric[1:], [1.0, 1.0])

@pytest.mark.core
def test_ghosts_contribute_to_metric():
    system = helpers.create_test_system(np.zeros((1, 3)), polarizabilities=[1.5])
    ranker = DipoleRanker()
    assert_allclose(ranker.metric(system), [0.0])
    ghosts = GhostParticles(positions=[[2.0, 0.0, 0.0]], polarizabilities=[2.0], molecules=[0])
    assert_allclose(ranker.metric(system, ghosts), [3.0])
    assert_allclose(ranker.metric(system, GhostParticles.empty()), [0.0])

@pytest.mark.core
def test_periodic_ghost_image_is_measured_as_given():
    positions = np.array([[0.5, 0.0, 0.0], [8.5, 0.0, 0.0]])
    system = helpers.create_test_system(positions)
    ranker = DipoleRanker(PeriodicBox.cubic(10.0))
    # the local pair is 2 apart through the boundary
    assert_allclose(ranker.metric(system), [1.0, 1.0])
    # image of particle 0: 10 from particle 0, 2 from particle 1
    ghosts = GhostParticles(positions=[[10.5, 0.0, 0.0]], polarizabilities=[1.0], molecules=[0])
    assert_allclose(ranker.metric(system, ghosts), [1.0, 2.0])
    np.testing.assert_array_equal(ranker.rank(system, ghosts), [1, 0])
