"""
Candidate outcome resolution.

Given a ranked ballot, decides which candidates are elected or eliminated
on that ballot. Tied candidates get no outcome and stay in contention.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .errors import InvalidInputError, InvalidStateError
from .ranking import BallotResult


@dataclass(frozen=True)
class CandidateOutcome:
    """A pending write of one candidate's elected or eliminated marker."""

    candidate_id: str
    elected_ballot_number: Optional[int] = None
    eliminated_ballot_number: Optional[int] = None

    @property
    def elected(self) -> bool:
        return self.elected_ballot_number is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.elected:
            return {"candidate_id": self.candidate_id, "elected_ballot_number": self.elected_ballot_number}
        return {"candidate_id": self.candidate_id, "eliminated_ballot_number": self.eliminated_ballot_number}


def has_outcome(candidate) -> bool:
    return (
        candidate.elected_ballot_number is not None
        or candidate.eliminated_ballot_number is not None
    )


def resolve_outcomes(
    result: BallotResult,
    roster: Sequence[Any],
    ballot_number: int,
) -> List[CandidateOutcome]:
    """
    Compute outcome writes for a finalized ballot.

    Args:
        result: Ranking of the ballot
        roster: Candidates present on the ballot (need id and both markers)
        ballot_number: Number stamped into the markers

    Returns:
        Winners first (ranked order), then eliminated candidates in roster order

    Raises:
        InvalidInputError: If the ranking and roster disagree on membership
        InvalidStateError: If a roster candidate already has an outcome
    """
    roster_ids = [c.id for c in roster]
    ranked_ids = {c.candidate_id for c in result.ranked}
    if set(roster_ids) != ranked_ids:
        raise InvalidInputError("Ballot roster does not match the ranked candidates")

    decided = [c.id for c in roster if has_outcome(c)]
    if decided:
        raise InvalidStateError(
            f"Candidates already elected or eliminated cannot be decided again: {', '.join(decided)}"
        )

    winner_set = set(result.winner_ids)
    tie_set = set(result.tie_candidate_ids)

    outcomes = [
        CandidateOutcome(candidate_id=cid, elected_ballot_number=ballot_number)
        for cid in result.winner_ids
    ]
    outcomes.extend(
        CandidateOutcome(candidate_id=cid, eliminated_ballot_number=ballot_number)
        for cid in roster_ids
        if cid not in winner_set and cid not in tie_set
    )
    return outcomes


def tie_note(result: BallotResult) -> Optional[str]:
    """Annotation stored on a completed ballot that ended in a tie."""
    if not result.has_tie:
        return None
    return f"Tie detected for {result.remaining_seats} seat(s)"
