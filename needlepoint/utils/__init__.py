# This file makes the 'utils' directory a Python package.

"""Needlepoint utilities."""

from .ids import new_id, new_run_id, unique_name, unique_path

__all__ = [
    "new_id",
    "new_run_id",
    "unique_name",
    "unique_path",
]
