"""Tests for remote row filter predicates."""

import pytest

from feedsync.services.remote.filters import any_of, eq, ilike, in_, is_, match_all, neq


ROW = {"id": "u1", "username": "Taro_99", "nickname": "Taro", "bio": None}


class TestComparison:
    def test_eq_and_neq(self) -> None:
        assert eq("id", "u1").matches(ROW)
        assert neq("id", "u2").matches(ROW)
        assert not neq("id", "u1").matches(ROW)

    def test_null_column_never_matches_comparisons(self) -> None:
        assert not eq("bio", None).matches(ROW)
        assert not neq("bio", "x").matches(ROW)
        assert not ilike("bio", "%").matches(ROW)

    def test_is_tests_for_null(self) -> None:
        assert is_("bio", None).matches(ROW)
        assert not is_("nickname", None).matches(ROW)

    def test_in_list(self) -> None:
        assert in_("id", ["u1", "u3"]).matches(ROW)
        assert not in_("id", []).matches(ROW)


class TestIlike:
    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            ("%taro%", True),
            ("TARO%", True),
            ("taro", False),
            ("taro_99", True),
            ("tar%9", True),
            ("taro\\_99", True),
            ("taro\\_9", False),
        ],
    )
    def test_patterns(self, pattern: str, expected: bool) -> None:
        assert ilike("username", pattern).matches(ROW) is expected

    def test_escaped_wildcard_is_literal(self) -> None:
        assert ilike("username", "100\\%").matches({"username": "100%"})
        assert not ilike("username", "100\\%").matches({"username": "1000"})


def test_any_of_is_or_of_and_groups() -> None:
    pair = any_of(
        [eq("user1_id", "a"), eq("user2_id", "b")],
        [eq("user1_id", "b"), eq("user2_id", "a")],
    )

    assert pair.matches({"user1_id": "b", "user2_id": "a"})
    assert not pair.matches({"user1_id": "a", "user2_id": "c"})


def test_match_all_requires_every_predicate() -> None:
    assert match_all(ROW, [eq("id", "u1"), ilike("nickname", "t%")])
    assert not match_all(ROW, [eq("id", "u1"), eq("nickname", "Jiro")])
    assert match_all(ROW, [])
