from __future__ import annotations

"""needlepoint.utils.ids
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Identifier helpers: opaque ids for nodes/edges/runs and the numeric-suffix
scheme used to keep node names and file paths unique.
"""

import posixpath
import uuid
from datetime import datetime
from typing import Callable, Collection

__all__ = ["new_id", "new_run_id", "unique_name", "unique_path"]


def new_id() -> str:
    """Return a fresh opaque identifier (UUID4 string)."""
    return str(uuid.uuid4())


def new_run_id() -> str:
    """Generate a unique run ID combining timestamp and UUID.

    Returns:
        A string in format 'YYYYMMDD-HHMMSS-[first 8 chars of UUID]'
    """
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{timestamp}-{str(uuid.uuid4())[:8]}"


def _first_free(candidate: Callable[[int], str], taken: Collection[str]) -> str:
    n = 2
    while candidate(n) in taken:
        n += 1
    return candidate(n)


def unique_name(name: str, taken: Collection[str]) -> str:
    """Return *name*, or ``name_<n>`` with the smallest n ≥ 2 not in *taken*."""
    if name not in taken:
        return name
    return _first_free(lambda n: f"{name}_{n}", taken)


def unique_path(path: str, taken: Collection[str]) -> str:
    """Like :func:`unique_name` but keeps the extension: ``src/a.ts`` → ``src/a_2.ts``."""
    if path not in taken:
        return path
    head, tail = posixpath.split(path)
    stem, ext = posixpath.splitext(tail)
    return _first_free(lambda n: posixpath.join(head, f"{stem}_{n}{ext}"), taken)
