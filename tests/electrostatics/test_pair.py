# tests/electrostatics/test_pair.py
import io
import pytest
import numpy as np
from numpy.testing import assert_allclose
from scipy.special import erfc
from pointpol.core.exceptions import ConfigurationError, MissingAttributeError
from pointpol.core.settings import MixingRule
from pointpol.core.system import ParticleSystem
from pointpol.electrostatics.pair import EwaldSplitting, PairCoefficients, ShortRangePair, read_coefficients, write_coefficients
from pointpol.electrostatics.static_field import COULOMB_CONSTANT
from tests import helpers

def _coefficients():
    coefficients = PairCoefficients(n_types=2, cut_lj_global=9.0)
    coefficients.set(1, 1, epsilon=0.2, sigma=3.0)
    coefficients.set(2, 2, epsilon=0.05, sigma=2.0, cutoff=7.0)
    return coefficients

def _pair_system(r, charges=(0.0, 0.0), types=(1, 1)):
    positions = np.array([[0.0, 0.0, 0.0], [r, 0.0, 0.0]])
    return ParticleSystem(positions, charges=list(charges), polarizabilities=[0.0, 0.0], molecules=[0, 0], types=list(types))

def _pair(g_ewald=0.3, **settings):
    return ShortRangePair(helpers.create_test_settings(cutoff=10.0, **settings), _coefficients(), EwaldSplitting(g_ewald))

@pytest.mark.validation
def test_lennard_jones_energy_and_force():
    result = _pair().compute(_pair_system(3.5))
    x = (3.0 / 3.5) ** 6
    assert result.vdw == pytest.approx(4.0 * 0.2 * (x * x - x))
    assert result.coulomb == 0.0
    magnitude = 24.0 * 0.2 * (2.0 * x * x - x) / 3.5
    assert_allclose(result.forces, [[-magnitude, 0.0, 0.0], [magnitude, 0.0, 0.0]], rtol=1e-12)

@pytest.mark.validation
def test_real_space_coulomb():
    g, r = 0.3, 4.0
    result = _pair(g).compute(_pair_system(r, charges=(1.0, -0.5), types=(2, 2)))
    assert result.coulomb == pytest.approx(COULOMB_CONSTANT * -0.5 * erfc(g * r) / r)
    step = 1e-6
    plus = _pair(g).compute(_pair_system(r + step, charges=(1.0, -0.5), types=(2, 2)))
    minus = _pair(g).compute(_pair_system(r - step, charges=(1.0, -0.5), types=(2, 2)))
    numeric = -((plus.coulomb + plus.vdw) - (minus.coulomb + minus.vdw)) / (2.0 * step)
    assert result.forces[1, 0] == pytest.approx(numeric, rel=1e-6)

@pytest.mark.core
def test_per_type_cutoff():
    # type 2 pairs stop at 7.0, the global LJ cutoff is 9.0
    assert _pair().compute(_pair_system(8.0, types=(2, 2))).vdw == 0.0
    assert _pair().compute(_pair_system(8.0, types=(1, 1))).vdw != 0.0

@pytest.mark.core
def test_offset_shifts_energy_to_zero_at_cutoff():
    result = _pair(offset_flag=True).compute(_pair_system(9.0 - 1e-9))
    assert result.vdw == pytest.approx(0.0, abs=1e-10)

@pytest.mark.core
@pytest.mark.parametrize("rule, sigma", [(MixingRule.GEOMETRIC, np.sqrt(6.0)), (MixingRule.ARITHMETIC, 2.5)])
def test_mixing_of_cross_pairs(rule, sigma):
    eps, sig, cut = _coefficients().resolve(rule)
    assert eps[1, 2] == pytest.approx(np.sqrt(0.2 * 0.05))
    assert sig[1, 2] == pytest.approx(sigma)
    assert sig[2, 1] == sig[1, 2]
    assert cut[1, 2] == pytest.approx(np.sqrt(63.0) if rule is MixingRule.GEOMETRIC else 8.0)

@pytest.mark.core
def test_explicit_cross_pair_is_not_mixed():
    coefficients = _coefficients()
    coefficients.set(2, 1, epsilon=0.5, sigma=1.0)
    eps, sig, _ = coefficients.resolve()
    assert eps[1, 2] == 0.5 and sig[2, 1] == 1.0

@pytest.mark.core
def test_unmixable_pair_raises():
    coefficients = PairCoefficients(n_types=2, cut_lj_global=9.0)
    coefficients.set(1, 1, epsilon=0.2, sigma=3.0)
    with pytest.raises(ConfigurationError, match="not set"):
        coefficients.resolve()

@pytest.mark.core
def test_type_out_of_range():
    with pytest.raises(ValueError):
        PairCoefficients(n_types=2, cut_lj_global=9.0).set(3, 1, 0.1, 1.0)

@pytest.mark.core
def test_explicit_pair_list_restricts_sum():
    positions = np.array([[0.0, 0.0, 0.0], [3.5, 0.0, 0.0], [0.0, 3.5, 0.0]])
    system = ParticleSystem(positions, charges=[0.0] * 3, polarizabilities=[0.0] * 3, molecules=[0] * 3, types=[1, 1, 1])
    pair = _pair()
    everything = pair.compute(system)
    one = pair.compute(system, pairs=[(0, 1)])
    assert one.vdw == pytest.approx(pair.compute(_pair_system(3.5)).vdw)
    assert everything.vdw != pytest.approx(one.vdw)
    assert_allclose(one.forces[2], 0.0)

@pytest.mark.validation
def test_special_factors_scale_pair_terms():
    r = 3.5
    system = _pair_system(r, charges=(0.5, -0.4))
    pair = _pair()
    full = pair.compute(system, pairs=[(0, 1)])
    assert full.coulomb == pytest.approx(pair.compute(system, pairs=[(0, 1, 1.0, 1.0)]).coulomb)
    bare = COULOMB_CONSTANT * 0.5 * -0.4 / r
    no_coulomb = pair.compute(system, pairs=[(0, 1, 1.0, 0.0)])
    assert no_coulomb.coulomb == pytest.approx(full.coulomb - bare)
    assert no_coulomb.vdw == pytest.approx(full.vdw)
    assert_allclose(no_coulomb.forces[0, 0] - full.forces[0, 0], bare / r)
    half_lj = pair.compute(system, pairs=[(0, 1, 0.5, 1.0)])
    assert half_lj.vdw == pytest.approx(0.5 * full.vdw)
    assert half_lj.coulomb == pytest.approx(full.coulomb)

@pytest.mark.core
def test_malformed_pair_rows_rejected():
    with pytest.raises(ValueError, match="factor_lj"):
        _pair().compute(_pair_system(3.5), pairs=[(0, 1, 0.5)])

@pytest.mark.core
def test_types_required():
    system = ParticleSystem(np.zeros((2, 3)), charges=[0.0, 0.0])
    with pytest.raises(MissingAttributeError) as excinfo:
        _pair().compute(system)
    assert excinfo.value.attribute == "types"

@pytest.mark.validation
def test_tail_correction_single_type():
    coefficients = PairCoefficients(n_types=1, cut_lj_global=9.0)
    coefficients.set(1, 1, epsilon=0.2, sigma=3.0)
    pair = ShortRangePair(helpers.create_test_settings(cutoff=9.0, tail_flag=True), coefficients, EwaldSplitting(0.3))
    etail, ptail = pair.tail_correction(np.array([1, 1, 1, 1]))
    sig6, rc3 = 3.0**6, 9.0**3
    assert etail == pytest.approx(8.0 * np.pi * 16 * 0.2 * sig6 * (sig6 - 3.0 * rc3**2) / (9.0 * rc3**3))
    assert ptail == pytest.approx(16.0 * np.pi * 16 * 0.2 * sig6 * (2.0 * sig6 - 3.0 * rc3**2) / (9.0 * rc3**3))
    assert _pair().tail_correction(np.array([1, 2])) == (0.0, 0.0)

@pytest.mark.core
def test_coefficient_record():
    buffer = io.BytesIO()
    write_coefficients(_coefficients(), buffer)
    # flags for (1,1), (1,2), (2,2); values only for the two set pairs
    assert len(buffer.getvalue()) == 3 * 4 + 2 * 3 * 8
    buffer.seek(0)
    restored = read_coefficients(buffer, n_types=2, cut_lj_global=9.0)
    np.testing.assert_array_equal(restored.setflag, _coefficients().setflag)
    assert restored.cut_lj[2, 2] == 7.0
    with pytest.raises(ConfigurationError, match="Truncated"):
        read_coefficients(io.BytesIO(buffer.getvalue()[:20]), n_types=2, cut_lj_global=9.0)

@pytest.mark.core
def test_negative_g_ewald_rejected():
    with pytest.raises(ValueError):
        EwaldSplitting(-0.1)
