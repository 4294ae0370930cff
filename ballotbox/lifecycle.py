"""
Status and type enums for elections and ballots.

Transitions are explicit: anything not listed in the transition tables is
rejected with InvalidStateError.
"""

import enum
from typing import Dict, FrozenSet

from .errors import InvalidStateError


class ElectionStatus(str, enum.Enum):
    DRAFT = "draft"  # reserved, no transitions in or out
    COUNTING = "counting"
    FINALIZED = "finalized"


class BallotStatus(str, enum.Enum):
    COUNTING = "counting"
    COMPLETED = "completed"


class BallotType(str, enum.Enum):
    PRIMARY = "primary"
    RUNOFF = "runoff"


ELECTION_TRANSITIONS: Dict[ElectionStatus, FrozenSet[ElectionStatus]] = {
    ElectionStatus.DRAFT: frozenset(),
    ElectionStatus.COUNTING: frozenset({ElectionStatus.FINALIZED}),
    ElectionStatus.FINALIZED: frozenset(),
}

BALLOT_TRANSITIONS: Dict[BallotStatus, FrozenSet[BallotStatus]] = {
    BallotStatus.COUNTING: frozenset({BallotStatus.COMPLETED}),
    BallotStatus.COMPLETED: frozenset(),
}


def can_transition_election(current: ElectionStatus, target: ElectionStatus) -> bool:
    return ElectionStatus(target) in ELECTION_TRANSITIONS[ElectionStatus(current)]


def can_transition_ballot(current: BallotStatus, target: BallotStatus) -> bool:
    return BallotStatus(target) in BALLOT_TRANSITIONS[BallotStatus(current)]


def transition_election(current: ElectionStatus, target: ElectionStatus) -> ElectionStatus:
    """
    Validate an election status change.

    Returns:
        The target status

    Raises:
        InvalidStateError: If the edge is not in ELECTION_TRANSITIONS
    """
    if not can_transition_election(current, target):
        raise InvalidStateError(
            f"Election cannot move from '{ElectionStatus(current).value}' "
            f"to '{ElectionStatus(target).value}'"
        )
    return ElectionStatus(target)


def transition_ballot(current: BallotStatus, target: BallotStatus) -> BallotStatus:
    """
    Validate a ballot status change.

    Returns:
        The target status

    Raises:
        InvalidStateError: If the edge is not in BALLOT_TRANSITIONS
    """
    if not can_transition_ballot(current, target):
        raise InvalidStateError(
            f"Ballot cannot move from '{BallotStatus(current).value}' "
            f"to '{BallotStatus(target).value}'"
        )
    return BallotStatus(target)
