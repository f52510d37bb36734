"""Shared helpers for lockfile tests."""

from __future__ import annotations

from dataclasses import replace

from lockwise.core.lockfile import Lockfile, LockState
from tests.helpers import make_lock, make_package

REGISTRY_KEY = "registry:https://packages.example.com"


def make_state(**overrides) -> LockState:
    """A small valid lock: app -> rack, plus a platform-specific nio build."""
    state = make_lock(
        {"app": "~> 1.0", "nio": None},
        [
            make_package("app", "1.0", {"rack": "~> 2.0"}),
            make_package("rack", "2.0.3"),
            make_package("nio", "2.5"),
            make_package("nio", "2.5", platform="x86_64-linux"),
        ],
    )
    return replace(state, **overrides) if overrides else state


def make_lockfile(**overrides) -> Lockfile:
    return Lockfile(make_state(**overrides))
