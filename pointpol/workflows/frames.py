# pointpol/workflows/frames.py
"""
pointpol.workflows.frames

Batch evaluation of trajectories and tabular views of a single evaluation.
"""
from __future__ import annotations

import os
from typing import Iterable

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from ..core.forcefield import ForceEvaluation, PolarizableForceField
from ..core.system import ParticleSystem

FRAME_COLUMNS = [
    "frame",
    "iterations",
    "converged",
    "e_self",
    "e_field",
    "e_dipole",
    "e_polarization",
    "e_coulomb",
    "e_vdw",
]


def _summarize(index: int, evaluation: ForceEvaluation) -> dict:
    energy = evaluation.energy
    return {
        "frame": index,
        "iterations": evaluation.iterations,
        "converged": evaluation.converged,
        "e_self": energy.self_energy,
        "e_field": energy.field,
        "e_dipole": energy.dipole,
        "e_polarization": energy.total,
        "e_coulomb": evaluation.coulomb,
        "e_vdw": evaluation.vdw,
    }


def _evaluate_frame(
    forcefield: PolarizableForceField, index: int, frame: ParticleSystem
) -> dict:
    return _summarize(index, forcefield.compute(frame))


def evaluate_frames(
    forcefield: PolarizableForceField,
    frames: Iterable[ParticleSystem],
    n_jobs: int = -1,
) -> pd.DataFrame:
    """Evaluates every frame of a trajectory and tabulates the energies.

    Frames are independent and run in parallel worker processes, each with
    its own copy of the force field. With `use_previous` set the dipoles of
    one frame seed the next, so the frames run in order in this process.

    Args:
        forcefield (PolarizableForceField): Configured force field.
        frames (Iterable[ParticleSystem]): Configurations to evaluate.
        n_jobs (int): Number of worker processes; -1 uses all cores.

    Returns:
        pd.DataFrame: One row per frame with the columns of `FRAME_COLUMNS`.
    """
    frames = list(frames)
    if forcefield.settings.use_previous or n_jobs == 1:
        rows = [
            _summarize(index, forcefield.compute(frame))
            for index, frame in enumerate(frames)
        ]
    else:
        if n_jobs == -1:
            n_jobs = os.cpu_count() or 1
        rows = Parallel(n_jobs=n_jobs)(
            delayed(_evaluate_frame)(forcefield, index, frame)
            for index, frame in enumerate(frames)
        )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def dipole_table(evaluation: ForceEvaluation) -> pd.DataFrame:
    """Per-particle dipoles, dipole magnitudes and static fields."""
    mu = evaluation.dipoles
    ef = evaluation.static_field
    table = pd.DataFrame(
        {
            "mu_x": mu[:, 0],
            "mu_y": mu[:, 1],
            "mu_z": mu[:, 2],
            "mu_norm": np.linalg.norm(mu, axis=1),
            "ef_x": ef[:, 0],
            "ef_y": ef[:, 1],
            "ef_z": ef[:, 2],
        }
    )
    table.index.name = "particle"
    return table

