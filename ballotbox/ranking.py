"""
Ballot ranking.

Turns one ballot's vote tallies into a ranked result: who won a seat, who is
tied for the seats that are left, and how many seats a runoff would contest.
Pure functions, no storage access.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .normalize import name_sort_key


@dataclass(frozen=True)
class VoteTally:
    """One candidate's vote count on a ballot."""

    candidate_id: str
    name: str
    votes: int


@dataclass(frozen=True)
class RankedCandidate:
    candidate_id: str
    name: str
    votes: int
    rank: int
    is_winner: bool
    in_tie: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "name": self.name,
            "votes": self.votes,
            "rank": self.rank,
            "is_winner": self.is_winner,
            "in_tie": self.in_tie,
        }


@dataclass(frozen=True)
class BallotResult:
    """
    Outcome of ranking a single ballot.

    winner_ids and tie_candidate_ids follow the ranked order. Every candidate
    that is in neither is eliminated.
    """

    seats_available: int
    ranked: Tuple[RankedCandidate, ...]
    winner_ids: Tuple[str, ...]
    tie_candidate_ids: Tuple[str, ...]
    remaining_seats: int
    ballot_id: Optional[str] = None
    ballot_number: Optional[int] = None
    status: Optional[str] = None
    type: Optional[str] = None
    eliminated_ids: Tuple[str, ...] = field(init=False)

    def __post_init__(self):
        decided = set(self.winner_ids) | set(self.tie_candidate_ids)
        eliminated = tuple(c.candidate_id for c in self.ranked if c.candidate_id not in decided)
        object.__setattr__(self, "eliminated_ids", eliminated)

    @property
    def has_tie(self) -> bool:
        return bool(self.tie_candidate_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ballot_id": self.ballot_id,
            "ballot_number": self.ballot_number,
            "seats_available": self.seats_available,
            "status": self.status,
            "type": self.type,
            "ranked": [c.to_dict() for c in self.ranked],
            "winner_ids": list(self.winner_ids),
            "tie_candidate_ids": list(self.tie_candidate_ids),
            "eliminated_ids": list(self.eliminated_ids),
            "remaining_seats": self.remaining_seats,
        }


def sort_tallies(tallies: Sequence[VoteTally]) -> List[VoteTally]:
    """Most votes first; equal counts ordered by name for display only."""
    return sorted(tallies, key=lambda t: (-t.votes, name_sort_key(t.name)))


def group_by_votes(ordered: Sequence[VoteTally]) -> List[List[VoteTally]]:
    """Split an already sorted sequence into runs of equal vote count."""
    groups: List[List[VoteTally]] = []
    for tally in ordered:
        if groups and groups[-1][0].votes == tally.votes:
            groups[-1].append(tally)
        else:
            groups.append([tally])
    return groups


def competition_ranks(ordered: Sequence[VoteTally]) -> List[int]:
    """Equal counts share a rank; the next distinct count ranks by position."""
    ranks = []
    current_rank = 0
    previous_votes = None
    for position, tally in enumerate(ordered):
        if previous_votes is None or tally.votes != previous_votes:
            current_rank = position + 1
            previous_votes = tally.votes
        ranks.append(current_rank)
    return ranks


def rank_tallies(
    tallies: Sequence[VoteTally],
    seats_available: int,
    ballot_id: Optional[str] = None,
    ballot_number: Optional[int] = None,
    status: Optional[str] = None,
    ballot_type: Optional[str] = None,
) -> BallotResult:
    """
    Rank vote tallies and classify winners and ties.

    Groups of equal vote count are taken in order while they fit in the seats
    that remain. The first group that does not fit is tied for those seats and
    every group after it is eliminated.

    Args:
        tallies: One VoteTally per candidate on the ballot
        seats_available: Seats contested on this ballot

    Returns:
        BallotResult. remaining_seats is 0 without a tie, otherwise the seats
        left for a runoff (at least 1).
    """
    ordered = sort_tallies(tallies)

    winner_ids: List[str] = []
    tie_ids: List[str] = []
    seats_remaining = seats_available

    for group in group_by_votes(ordered):
        if seats_remaining <= 0:
            break
        if len(group) <= seats_remaining:
            winner_ids.extend(t.candidate_id for t in group)
            seats_remaining -= len(group)
        else:
            tie_ids.extend(t.candidate_id for t in group)
            break

    winner_set = set(winner_ids)
    tie_set = set(tie_ids)
    ranked = tuple(
        RankedCandidate(
            candidate_id=t.candidate_id,
            name=t.name,
            votes=t.votes,
            rank=rank,
            is_winner=t.candidate_id in winner_set,
            in_tie=t.candidate_id in tie_set,
        )
        for t, rank in zip(ordered, competition_ranks(ordered))
    )

    return BallotResult(
        seats_available=seats_available,
        ranked=ranked,
        winner_ids=tuple(winner_ids),
        tie_candidate_ids=tuple(tie_ids),
        remaining_seats=max(seats_remaining, 1) if tie_ids else 0,
        ballot_id=ballot_id,
        ballot_number=ballot_number,
        status=status,
        type=ballot_type,
    )


def tallies_from_ballot(ballot) -> List[VoteTally]:
    """Build tallies from a stored Ballot with its vote rows loaded."""
    return [
        VoteTally(candidate_id=v.candidate_id, name=v.candidate.name, votes=v.votes)
        for v in ballot.votes
    ]


def rank_ballot(ballot) -> BallotResult:
    """Rank a stored Ballot."""
    return rank_tallies(
        tallies_from_ballot(ballot),
        ballot.seats_available,
        ballot_id=ballot.id,
        ballot_number=ballot.ballot_number,
        status=_enum_value(ballot.status),
        ballot_type=_enum_value(ballot.type),
    )


def _enum_value(v):
    return getattr(v, "value", v)
