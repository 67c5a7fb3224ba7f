"""
pointpol.workflows

High-level functions that combine the force field with pandas output.
"""

from .frames import FRAME_COLUMNS, dipole_table, evaluate_frames

__all__ = ["evaluate_frames", "dipole_table", "FRAME_COLUMNS"]
