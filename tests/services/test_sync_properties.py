"""Property-based tests for keys, optimistic commands, votes and chat identity."""

from __future__ import annotations

from hypothesis import given, strategies as st

from feedsync.features.chats import canonical_pair
from feedsync.services.keys import make_key, matches
from feedsync.services.optimistic import AdjustField, AdjustListItem, Compose, SetMappingItem
from feedsync.services.state_machine import VoteAction, VoteState, transition

scalars = st.one_of(
    st.text(max_size=8),
    st.integers(),
    st.floats(allow_nan=False),
    st.booleans(),
    st.none(),
)
keys = st.lists(scalars, min_size=1, max_size=6).map(lambda parts: make_key(*parts))
vote_maps = st.dictionaries(st.text(max_size=4), st.sampled_from([1, -1]), max_size=5)


@given(keys, st.data())
def test_every_prefix_matches(key, data):
    """A key is matched by each of its prefixes, including itself."""
    length = data.draw(st.integers(min_value=1, max_value=len(key)))

    assert matches(key, key[:length])


@given(keys, scalars)
def test_longer_pattern_never_matches(key, extra):
    assert not matches(key, (*key, extra))


@given(st.text(min_size=1, max_size=12), st.text(min_size=1, max_size=12))
def test_canonical_pair_is_symmetric(user_a, user_b):
    if user_a == user_b:
        return

    pair = canonical_pair(user_a, user_b)

    assert pair == canonical_pair(user_b, user_a)
    assert pair[0] < pair[1]
    assert set(pair) == {user_a, user_b}


@given(
    st.sampled_from(list(VoteState)),
    st.lists(st.sampled_from(list(VoteAction)), max_size=10),
)
def test_score_deltas_track_vote_state(start, actions):
    """Summed deltas equal the change in vote value over any click sequence."""
    state = start
    total = 0
    for action in actions:
        step = transition(state, action)
        assert step.previous is state
        total += step.score_delta
        state = step.current

    assert total == state.value - start.value


@given(vote_maps, st.text(max_size=4), st.sampled_from([1, -1, None]))
def test_mapping_patch_rolls_back_exactly(votes, post_id, vote_type):
    command = SetMappingItem(post_id, vote_type, votes.get(post_id))

    patched = command.apply(votes)

    assert command.invert(patched) == votes
    assert patched.get(post_id) == vote_type


@given(
    st.lists(st.integers(min_value=-50, max_value=50), min_size=1, max_size=6),
    st.integers(min_value=-2, max_value=2),
)
def test_composed_adjustments_roll_back(scores, delta):
    feed = [{"id": f"p{index}", "score": score} for index, score in enumerate(scores)]
    command = Compose((AdjustListItem("p0", "score", delta), AdjustListItem("p0", "score", delta)))

    patched = command.apply(feed)

    assert patched[0]["score"] == scores[0] + 2 * delta
    assert command.invert(patched) == feed


@given(
    st.dictionaries(
        st.sampled_from(["follower_count", "following_count", "post_count"]),
        st.one_of(st.none(), st.integers(min_value=0, max_value=500)),
    ),
    st.sampled_from([1, -1]),
)
def test_bound_field_adjustment_rolls_back_exactly(stats, delta):
    command = AdjustField("follower_count", delta).bind(stats)

    assert command.invert(command.apply(stats)) == stats
