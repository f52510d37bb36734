"""Property-based tests for resolver soundness, determinism and stability.

Verifies that for randomly generated acyclic indexes:
- Soundness: every successful resolution satisfies all reached requirements
- Completeness: resolution succeeds whenever some assignment of versions
  satisfies every requirement, checked by exhaustive enumeration
- At most one: no (name, platform) pair is resolved twice
- Determinism: the same inputs always resolve to the same set
- Stability: pinning a resolution as the baseline reproduces it
- Failures are always structured ResolutionErrors
"""

from __future__ import annotations

from itertools import product

from hypothesis import given, settings
from hypothesis import strategies as st

from lockwise.core.dependency import (
    Dependency,
    Index,
    PackageVersion,
    ResolutionSet,
    Version,
    resolve,
)
from lockwise.exceptions import ResolutionError
from tests.helpers import make_package, requests_for

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

NAMES = ["a", "b", "c", "d"]

version_strings = st.sampled_from(["1.0", "1.1", "2.0", "2.1"])

requirements = st.sampled_from([None, ">= 1.0", "~> 1.0", ">= 2.0", "< 2.0", "= 1.1"])


@st.composite
def acyclic_index(draw: st.DrawFn) -> Index:
    """An index where a package only depends on names later in NAMES."""
    specs = []
    for i, name in enumerate(NAMES):
        chosen = draw(st.lists(version_strings, min_size=1, max_size=3, unique=True))
        later = NAMES[i + 1:]
        for version in chosen:
            targets = draw(st.lists(st.sampled_from(later), max_size=2, unique=True)) if later else []
            deps = {target: draw(requirements) for target in targets}
            specs.append(make_package(name, version, deps))
    return Index(specs)


@st.composite
def roots(draw: st.DrawFn) -> dict[str, str | None]:
    names = draw(st.lists(st.sampled_from(NAMES), min_size=1, max_size=3, unique=True))
    return {name: draw(requirements) for name in names}


def _try_resolve(index: Index, deps: dict, **kwargs) -> ResolutionSet | None:
    try:
        return resolve(requests_for(deps), index, **kwargs)
    except ResolutionError:
        return None


# ---------------------------------------------------------------------------
# Soundness
# ---------------------------------------------------------------------------


class TestSoundness:
    """A successful resolution satisfies every requirement it reached."""

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=100, deadline=None)
    def test_resolution_satisfies_roots(self, index: Index, deps: dict) -> None:
        result = _try_resolve(index, deps)
        if result is not None:
            assert result.satisfies([Dependency.of(n, r) for n, r in deps.items()])

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=100, deadline=None)
    def test_at_most_one_version_per_name(self, index: Index, deps: dict) -> None:
        result = _try_resolve(index, deps)
        if result is not None:
            assert result.duplicates() == []
            assert len(result.names) == len(list(result))

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=50, deadline=None)
    def test_only_indexed_versions(self, index: Index, deps: dict) -> None:
        result = _try_resolve(index, deps)
        if result is not None:
            for spec in result:
                assert spec in index.specs_for(spec.name)


# ---------------------------------------------------------------------------
# Determinism and stability
# ---------------------------------------------------------------------------


class TestDeterminism:
    """Identical inputs give identical outputs."""

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=50, deadline=None)
    def test_repeatable(self, index: Index, deps: dict) -> None:
        assert _try_resolve(index, deps) == _try_resolve(index, deps)

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=50, deadline=None)
    def test_baseline_reproduces_resolution(self, index: Index, deps: dict) -> None:
        """Pinning a resolution as the baseline yields the same resolution."""
        result = _try_resolve(index, deps)
        if result is not None:
            assert _try_resolve(index, deps, baseline=result) == result


# ---------------------------------------------------------------------------
# Completeness without dependencies
# ---------------------------------------------------------------------------


class TestIndependentPackages:
    """Without dependency edges the highest satisfying version always wins."""

    @given(
        chosen=st.lists(version_strings, min_size=1, max_size=4, unique=True),
        requirement=requirements,
    )
    @settings(max_examples=50, deadline=None)
    def test_highest_satisfying_version(self, chosen: list[str], requirement: str | None) -> None:
        index = Index([make_package("solo", v) for v in chosen])
        dep = Dependency.of("solo", requirement)
        satisfying = [Version.parse(v) for v in chosen if dep.requirement.satisfied_by(v)]
        result = _try_resolve(index, {"solo": requirement})
        if satisfying:
            assert result is not None
            assert result.version_of("solo") == max(satisfying)
        else:
            assert result is None


# ---------------------------------------------------------------------------
# Completeness against exhaustive enumeration
# ---------------------------------------------------------------------------


def _consistent(chosen: dict[str, PackageVersion], deps: dict[str, str | None]) -> bool:
    for name, requirement in deps.items():
        spec = chosen.get(name)
        if spec is None or not Dependency.of(name, requirement).requirement.satisfied_by(spec.version):
            return False
    for spec in chosen.values():
        for dep in spec.dependencies:
            target = chosen.get(dep.name)
            if target is None or not dep.requirement.satisfied_by(target.version):
                return False
    return True


def _solvable(index: Index, deps: dict[str, str | None]) -> bool:
    """Try every choice of one version (or none) per name."""
    options = [[None, *index.specs_for(name)] for name in NAMES]
    for choice in product(*options):
        chosen = {spec.name: spec for spec in choice if spec is not None}
        if _consistent(chosen, deps):
            return True
    return False


class TestCompleteness:
    """The resolver finds a resolution exactly when one exists."""

    @given(index=acyclic_index(), deps=roots())
    @settings(max_examples=200, deadline=None)
    def test_matches_exhaustive_search(self, index: Index, deps: dict) -> None:
        assert (_try_resolve(index, deps) is not None) == _solvable(index, deps)
