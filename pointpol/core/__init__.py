"""
pointpol.core

Data objects, settings, errors and the force-field entry point.
"""

from .exceptions import (
    ConfigurationError,
    ConvergenceWarning,
    EnergyConsistencyWarning,
    ExclusiveFlagsError,
    MissingAttributeError,
    MissingCollaboratorError,
)
from .observers import ConvergenceRecorder, CsvDumpObserver, SolverObserver
from .settings import (
    DampingType,
    MixingRule,
    PolarizationSettings,
    read_settings,
    write_settings,
)
from .system import GhostExchange, GhostParticles, ParticleSystem, interaction_mask

# imported last: the force field pulls in pointpol.electrostatics, which
# depends on the modules above
from .forcefield import ForceEvaluation, PolarizableForceField  # noqa: E402

__all__ = [
    "ParticleSystem",
    "GhostParticles",
    "GhostExchange",
    "interaction_mask",
    "PolarizationSettings",
    "DampingType",
    "MixingRule",
    "write_settings",
    "read_settings",
    "ConfigurationError",
    "ExclusiveFlagsError",
    "MissingAttributeError",
    "MissingCollaboratorError",
    "ConvergenceWarning",
    "EnergyConsistencyWarning",
    "SolverObserver",
    "ConvergenceRecorder",
    "CsvDumpObserver",
    "PolarizableForceField",
    "ForceEvaluation",
]
