"""Tests for query key normalisation and prefix matching."""

import pytest

from feedsync.services.keys import (
    comment_votes_key,
    make_key,
    matches,
    normalize_key,
    posts_key,
    user_votes_key,
)
from feedsync.shared.errors import DomainError, ErrorCode


class TestNormalizeKey:
    def test_list_becomes_tuple(self) -> None:
        assert normalize_key(["posts", 35.7, 139.7]) == ("posts", 35.7, 139.7)

    def test_bare_string_is_single_part_key(self) -> None:
        assert normalize_key("posts") == ("posts",)

    def test_none_parts_are_kept(self) -> None:
        assert make_key("follow-status", None, "u2") == ("follow-status", None, "u2")

    def test_empty_key_is_rejected(self) -> None:
        with pytest.raises(DomainError) as exc_info:
            normalize_key([])

        assert exc_info.value.code == ErrorCode.INVALID_QUERY_KEY

    def test_non_scalar_part_is_rejected(self) -> None:
        with pytest.raises(DomainError) as exc_info:
            normalize_key(["posts", {"lat": 1}])

        assert exc_info.value.code == ErrorCode.INVALID_QUERY_KEY


class TestMatches:
    def test_root_pattern_matches_every_variant(self) -> None:
        feed = posts_key(35.7, 139.7, 5000, "new", "week")

        assert matches(feed, ("posts",))
        assert matches(feed, feed)

    def test_longer_pattern_never_matches_shorter_key(self) -> None:
        assert not matches(("posts",), ("posts", 35.7))

    def test_different_root_does_not_match(self) -> None:
        assert not matches(user_votes_key("u1"), ("posts",))

    def test_partial_comment_votes_pattern(self) -> None:
        assert matches(comment_votes_key("p1", "u1"), comment_votes_key("p1"))
        assert not matches(comment_votes_key("p2", "u1"), comment_votes_key("p1"))
