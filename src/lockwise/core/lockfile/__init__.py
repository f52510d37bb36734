"""Lockfile --- reproducible, deterministic lock state on disk.

This package implements the ``lockwise.lock`` format. The lockfile
captures the exact resolved state of a project: every package at its
resolved version and platform, the source it came from, its dependency
edges, and the root dependencies and platforms the lock was made for.

The package is split into focused submodules:

- ``models``: The ``LockState`` data class.
- ``lockfile``: The ``Lockfile`` class with deterministic serialization
  and atomic writes.
- ``operations``: Deserialization (``from_dict``, ``from_json``, ``read``),
  validation, diffing, and text-level comparison.
"""

from lockwise.core.lockfile.models import KNOWN_SECTIONS, LockState
from lockwise.core.lockfile.lockfile import LOCKFILE_NAME, Lockfile

# Attach operations to Lockfile as methods/classmethods
from lockwise.core.lockfile import operations as _ops
from lockwise.core.lockfile.operations import lockfiles_equal, stamp_of

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff

__all__ = [
    "Lockfile",
    "LockState",
    "LOCKFILE_NAME",
    "KNOWN_SECTIONS",
    "lockfiles_equal",
    "stamp_of",
]
