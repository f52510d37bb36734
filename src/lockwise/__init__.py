"""Lockwise: conservative dependency resolution and lock-state reconciliation."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Name stamped into every lockfile this package writes.
_PRODUCT_ID = "lockwise"
