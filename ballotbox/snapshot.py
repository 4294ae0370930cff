"""
Election snapshots.

A snapshot is the read model handed back to callers after every operation:
the election, its candidates and ballots, which ballot is open, and the
re-ranked result of the latest completed ballot.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .database import Ballot, Candidate, Election
from .lifecycle import BallotStatus
from .ranking import BallotResult, rank_ballot
from .storage import ordered_votes


@dataclass
class ElectionSnapshot:
    election: Election
    candidates: List[Candidate]
    ballots: List[Ballot]
    current_ballot: Optional[Ballot] = None
    latest_completed_ballot: Optional[Ballot] = None
    latest_result: Optional[BallotResult] = None

    @property
    def elected(self) -> List[Candidate]:
        return [c for c in self.candidates if c.elected_ballot_number is not None]

    @property
    def has_unresolved_tie(self) -> bool:
        return self.latest_result is not None and self.latest_result.has_tie

    def to_dict(self) -> Dict[str, Any]:
        return {
            "election": election_to_dict(self.election),
            "candidates": [candidate_to_dict(c) for c in self.candidates],
            "ballots": [ballot_to_dict(b) for b in self.ballots],
            "current_ballot_id": self.current_ballot.id if self.current_ballot else None,
            "latest_completed_ballot_id": (
                self.latest_completed_ballot.id if self.latest_completed_ballot else None
            ),
            "latest_result": self.latest_result.to_dict() if self.latest_result else None,
        }


def build_election_snapshot(election: Election) -> ElectionSnapshot:
    """
    Build a snapshot from an election loaded with get_election_state().

    Args:
        election: Election with candidates, ballots and vote rows loaded

    Returns:
        ElectionSnapshot
    """
    ballots = sorted(election.ballots, key=lambda b: b.ballot_number)
    candidates = sorted(election.candidates, key=lambda c: c.sort_order)

    counting = [b for b in ballots if b.status == BallotStatus.COUNTING]
    completed = [b for b in ballots if b.status == BallotStatus.COMPLETED]
    latest_completed = completed[-1] if completed else None

    return ElectionSnapshot(
        election=election,
        candidates=candidates,
        ballots=ballots,
        current_ballot=counting[0] if counting else None,
        latest_completed_ballot=latest_completed,
        latest_result=rank_ballot(latest_completed) if latest_completed else None,
    )


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def election_to_dict(election: Election) -> Dict[str, Any]:
    return {
        "id": election.id,
        "description": election.description,
        "position": election.position,
        "term": election.term,
        "seats": election.seats,
        "election_date": _iso(election.election_date),
        "status": election.status.value,
        "current_ballot_number": election.current_ballot_number,
        "created_at": _iso(election.created_at),
        "finalized_at": _iso(election.finalized_at),
    }


def candidate_to_dict(candidate: Candidate) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "name": candidate.name,
        "sort_order": candidate.sort_order,
        "elected_ballot_number": candidate.elected_ballot_number,
        "eliminated_ballot_number": candidate.eliminated_ballot_number,
    }


def ballot_to_dict(ballot: Ballot) -> Dict[str, Any]:
    return {
        "id": ballot.id,
        "ballot_number": ballot.ballot_number,
        "seats_available": ballot.seats_available,
        "type": ballot.type.value,
        "status": ballot.status.value,
        "notes": ballot.notes,
        "started_at": _iso(ballot.started_at),
        "finalized_at": _iso(ballot.finalized_at),
        "votes": [
            {"candidate_id": v.candidate_id, "name": v.candidate.name, "votes": v.votes}
            for v in ordered_votes(ballot)
        ],
    }
