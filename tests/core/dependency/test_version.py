"""Tests for Version parsing and ordering, and Requirement matching.

Validates segment parsing, pre-release ordering, canonical equality,
pessimistic bounds, clause normalization and parse errors.
"""

from __future__ import annotations

import pytest

from lockwise.core.dependency import Requirement, Version
from lockwise.exceptions import ParseError


def _v(text: str) -> Version:
    return Version.parse(text)


# ===========================================================================
# Version
# ===========================================================================


class TestVersionParsing:
    """Tests for Version.parse."""

    def test_numeric_segments(self) -> None:
        assert _v("1.2.3").segments == (1, 2, 3)

    def test_dash_prerelease(self) -> None:
        """A dash starts pre-release segments."""
        v = _v("1.0.0-beta.1")
        assert v.segments == (1, 0, 0, "beta", 1)
        assert v.is_prerelease

    def test_mixed_segment_is_split(self) -> None:
        assert _v("1.0b1").segments == (1, 0, "b", 1)

    def test_raw_text_kept(self) -> None:
        assert str(_v(" 2.0.0-rc.1 ")) == "2.0.0-rc.1"

    def test_version_passthrough(self) -> None:
        v = _v("1.0")
        assert Version.parse(v) is v

    @pytest.mark.parametrize("text", ["", "abc", "1..2", "1.2.", ".1", "1.2 3"])
    def test_malformed_raises(self, text: str) -> None:
        with pytest.raises(ParseError) as exc_info:
            Version.parse(text)
        assert exc_info.value.text == text

    def test_non_string_raises(self) -> None:
        with pytest.raises(ParseError):
            Version.parse(5)  # type: ignore[arg-type]


class TestVersionOrdering:
    """Tests for comparison, equality and hashing."""

    def test_prerelease_below_release(self) -> None:
        assert _v("1.0.a") < _v("1.0") < _v("1.0.1")

    def test_numeric_comparison_not_lexical(self) -> None:
        assert _v("1.10") > _v("1.9")

    def test_strings_compare_lexically(self) -> None:
        assert _v("1.0.alpha") < _v("1.0.beta")

    def test_trailing_zeros_equal(self) -> None:
        assert _v("1.0") == _v("1.0.0")
        assert hash(_v("1.0")) == hash(_v("1.0.0"))
        assert len({_v("1"), _v("1.0"), _v("1.0.0")}) == 1

    def test_sorting(self) -> None:
        texts = ["2.0", "1.0.pre", "1.0", "1.2.1", "0.9"]
        assert [str(v) for v in sorted(_v(t) for t in texts)] == [
            "0.9", "1.0.pre", "1.0", "1.2.1", "2.0",
        ]


class TestVersionHelpers:
    """Tests for release(), bump() and segment()."""

    def test_release_of_prerelease(self) -> None:
        assert _v("1.0.0-beta.1").release() == _v("1.0.0")

    def test_release_of_release_is_self(self) -> None:
        v = _v("1.4")
        assert v.release() is v

    @pytest.mark.parametrize(
        "text,bumped",
        [("1.4.3", "1.5"), ("2.0", "3"), ("2", "3"), ("1.0.0-rc.1", "1.1")],
    )
    def test_bump(self, text: str, bumped: str) -> None:
        assert _v(text).bump() == _v(bumped)

    def test_segment_pads_with_zero(self) -> None:
        assert _v("1.2").segment(5) == 0


# ===========================================================================
# Requirement
# ===========================================================================


class TestRequirementMatching:
    """Tests for Requirement.satisfied_by across operators."""

    @pytest.mark.parametrize(
        "req,version,expected",
        [
            ("= 1.0", "1.0.0", True),
            ("1.0", "1.0", True),
            ("1.0", "1.1", False),
            ("!= 1.5", "1.5", False),
            ("!= 1.5", "1.6", True),
            ("> 1.0", "1.0", False),
            ("< 2", "1.9.9", True),
            (">= 2.0", "2.0", True),
            ("<= 2.0", "2.0.1", False),
            ("~> 2.0", "2.9", True),
            ("~> 2.0", "3.0", False),
            ("~> 2.1.3", "2.1.9", True),
            ("~> 2.1.3", "2.2", False),
            ("~> 2.1.3", "2.1.2", False),
        ],
    )
    def test_operators(self, req: str, version: str, expected: bool) -> None:
        assert Requirement.parse(req).satisfied_by(version) is expected

    def test_clauses_are_conjunctive(self) -> None:
        req = Requirement.parse("~> 2.0, >= 2.0.3")
        assert req.satisfied_by("2.0.3")
        assert req.satisfied_by("2.5")
        assert not req.satisfied_by("2.0.2")
        assert not req.satisfied_by("3.0")

    def test_default_accepts_anything(self) -> None:
        req = Requirement.parse(None)
        assert req.is_default
        assert req.satisfied_by("0.0.1")
        assert Requirement.parse("") == Requirement.default()

    def test_prerelease_requirement(self) -> None:
        assert Requirement.parse(">= 1.0.a").is_prerelease
        assert not Requirement.parse(">= 1.0").is_prerelease

    def test_malformed_version_argument(self) -> None:
        with pytest.raises(ParseError):
            Requirement.parse(">= 1").satisfied_by("not-a-version")


class TestRequirementNormalization:
    """Tests for canonical clause order, printing and combination."""

    def test_clause_order_is_canonical(self) -> None:
        a = Requirement.parse(">= 1, < 2")
        b = Requirement.parse("< 2, >= 1")
        assert a == b
        assert hash(a) == hash(b)
        assert str(a) == str(b) == ">= 1, < 2"

    def test_duplicate_clauses_collapse(self) -> None:
        assert len(Requirement.parse(">= 1, >= 1.0").clauses) == 1

    def test_iterable_input(self) -> None:
        assert Requirement.parse([">= 1", "< 2"]) == Requirement.parse(">= 1, < 2")

    def test_and_combines(self) -> None:
        req = Requirement.parse(">= 1") & Requirement.parse("< 2")
        assert req.satisfied_by("1.5")
        assert not req.satisfied_by("2.0")

    def test_exact_and_at_least(self) -> None:
        assert str(Requirement.exact("1.2")) == "= 1.2"
        assert Requirement.at_least("1.2").satisfied_by("1.3")

    @pytest.mark.parametrize("text", ["=> 1", "~>", ">= x", "1.0, garbage"])
    def test_malformed_raises(self, text: str) -> None:
        with pytest.raises(ParseError):
            Requirement.parse(text)

    def test_parse_error_names_token(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            Requirement.parse(">= 1, => 2")
        assert exc_info.value.text == "=> 2"
