"""Vote toggle state machine.

A user's vote on a post or comment is one of three states. Repeating the
current vote clears it; choosing the opposite vote switches directly. Each
transition maps to one remote write (upsert the new value or delete the
row) and a provisional score delta.

Provisional scores are display values only: once an authoritative score is
fetched it replaces the provisional one entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class VoteState(int, Enum):
    """Vote states; the value is the stored ``vote_type``."""

    UNVOTED = 0
    UPVOTED = 1
    DOWNVOTED = -1

    @classmethod
    def from_vote_type(cls, vote_type: int | None) -> VoteState:
        if vote_type is None:
            return cls.UNVOTED
        return cls(int(vote_type))


class VoteAction(str, Enum):
    """User actions on a vote control."""

    UPVOTE = "upvote"
    DOWNVOTE = "downvote"


class VoteWrite(str, Enum):
    """Remote write needed to persist a transition."""

    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class VoteTransition:
    """Result of applying an action to a state."""

    previous: VoteState
    current: VoteState
    score_delta: int
    write: VoteWrite

    @property
    def vote_type(self) -> int | None:
        """Value to upsert, or None when the row is deleted."""
        if self.write is VoteWrite.DELETE:
            return None
        return self.current.value


_TARGET = {
    VoteAction.UPVOTE: VoteState.UPVOTED,
    VoteAction.DOWNVOTE: VoteState.DOWNVOTED,
}


def transition(state: VoteState, action: VoteAction) -> VoteTransition:
    """Apply an action to a vote state.

    Args:
        state: Current vote state
        action: Action taken by the user

    Returns:
        The transition with the new state, score delta and remote write
    """
    state = VoteState(state)
    target = _TARGET[VoteAction(action)]
    current = VoteState.UNVOTED if state is target else target
    write = VoteWrite.DELETE if current is VoteState.UNVOTED else VoteWrite.UPSERT
    return VoteTransition(
        previous=state,
        current=current,
        score_delta=current.value - state.value,
        write=write,
    )


@dataclass
class _TrackedVote:
    authoritative: VoteState = VoteState.UNVOTED
    provisional: VoteState | None = None
    authoritative_score: int | None = None
    pending_delta: int = 0


class VoteStateMachine:
    """Tracks vote states per (user, target) pair.

    ``apply`` records a provisional state and score delta; ``sync`` replaces
    both with authoritative values from the remote store.
    """

    def __init__(self) -> None:
        self._votes: dict[tuple[str, str], _TrackedVote] = {}

    def _tracked(self, user_id: str, target_id: str) -> _TrackedVote:
        return self._votes.setdefault((user_id, target_id), _TrackedVote())

    def state(self, user_id: str, target_id: str) -> VoteState:
        tracked = self._votes.get((user_id, target_id))
        if tracked is None:
            return VoteState.UNVOTED
        return tracked.provisional if tracked.provisional is not None else tracked.authoritative

    def apply(self, user_id: str, target_id: str, action: VoteAction) -> VoteTransition:
        tracked = self._tracked(user_id, target_id)
        result = transition(self.state(user_id, target_id), action)
        tracked.provisional = result.current
        tracked.pending_delta += result.score_delta
        logger.debug(
            "Vote %s -> %s for %s on %s",
            result.previous.name,
            result.current.name,
            user_id,
            target_id,
        )
        return result

    def revert(self, user_id: str, target_id: str, result: VoteTransition) -> None:
        """Undo a provisional transition after a failed write."""
        tracked = self._tracked(user_id, target_id)
        tracked.pending_delta -= result.score_delta
        tracked.provisional = result.previous
        if tracked.pending_delta == 0 and tracked.provisional is tracked.authoritative:
            tracked.provisional = None

    def sync(
        self,
        user_id: str,
        target_id: str,
        vote_type: int | None,
        score: int | None = None,
    ) -> VoteState:
        """Replace provisional state with authoritative state."""
        tracked = self._tracked(user_id, target_id)
        tracked.authoritative = VoteState.from_vote_type(vote_type)
        tracked.provisional = None
        tracked.pending_delta = 0
        if score is not None:
            tracked.authoritative_score = score
        return tracked.authoritative

    def display_score(self, user_id: str, target_id: str, server_score: int | None = None) -> int:
        """Score to show: authoritative score plus any pending delta."""
        tracked = self._tracked(user_id, target_id)
        base = server_score if server_score is not None else (tracked.authoritative_score or 0)
        return base + tracked.pending_delta


__all__ = [
    "VoteAction",
    "VoteState",
    "VoteStateMachine",
    "VoteTransition",
    "VoteWrite",
    "transition",
]
