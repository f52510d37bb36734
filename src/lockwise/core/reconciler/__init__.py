"""Reconciliation of declared dependencies against a previous lock.

- ``changes``: ``detect_changes`` and the ``Changes`` report.
- ``reconciler``: the ``Reconciler`` state machine and ``ReconcileResult``.
"""

from lockwise.core.reconciler.changes import Changes, detect_changes
from lockwise.core.reconciler.reconciler import ReconcileResult, Reconciler

__all__ = [
    "Changes",
    "detect_changes",
    "Reconciler",
    "ReconcileResult",
]
