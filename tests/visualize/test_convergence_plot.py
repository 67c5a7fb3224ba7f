# tests/visualize/test_convergence_plot.py
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pytest
from pointpol.core.observers import ConvergenceRecorder
from pointpol.visualize import ConvergencePlotter
from tests import helpers

@pytest.mark.core
def test_plots_draw_on_axes():
    recorder = ConvergenceRecorder()
    evaluation = helpers.create_test_forcefield(observer=recorder).compute(helpers.create_random_system(5, seed=61))
    plotter = ConvergencePlotter(recorder, precision=1e-11)
    fig, (ax_res, ax_mu) = plt.subplots(1, 2)
    plotter.plot_residuals(ax_res)
    plotter.plot_dipole_magnitudes(ax_mu, evaluation)
    assert ax_res.get_yscale() == "log"
    assert len(ax_res.lines) == 2
    assert len(ax_mu.patches) == 5
    plt.close(fig)

@pytest.mark.core
def test_empty_recorder_raises():
    fig, ax = plt.subplots()
    with pytest.raises(ValueError):
        ConvergencePlotter(ConvergenceRecorder()).plot_residuals(ax)
    plt.close(fig)
