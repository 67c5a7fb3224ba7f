# pointpol/core/exceptions.py
"""Exceptions and warnings raised by pointpol.

Configuration problems are unrecoverable and raised as subclasses of
`ConfigurationError`, so callers can tell the exact reason apart. Numerical
trouble during a solve is recoverable and reported through `warnings`.
"""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid or incomplete setup of a polarizable force field."""


class ExclusiveFlagsError(ConfigurationError):
    """Two mutually exclusive settings flags were enabled together."""

    def __init__(self, first: str, second: str):
        self.flags = (first, second)
        super().__init__(f"'{first}' and '{second}' are mutually exclusive.")


class MissingAttributeError(ConfigurationError):
    """A per-particle attribute required by the force field is absent."""

    def __init__(self, attribute: str):
        self.attribute = attribute
        super().__init__(
            f"Polarizable force field requires per-particle attribute '{attribute}'."
        )


class MissingCollaboratorError(ConfigurationError):
    """A required external collaborator was not supplied."""

    def __init__(self, collaborator: str, hint: str = ""):
        self.collaborator = collaborator
        message = f"Polarizable force field requires a {collaborator}."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class ConvergenceWarning(UserWarning):
    """The induced-dipole iteration failed and fell back to alpha*E."""


class EnergyConsistencyWarning(UserWarning):
    """Pairwise polarization energy disagrees with -0.5*sum(E_static*mu)."""
