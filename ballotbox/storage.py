"""
Election storage.

Lookups, ordered listings and write primitives over the election tables.
Every function takes the caller's session and never commits: the caller's
session_scope() decides what becomes visible together.

No counting rules live here. Status checks and ranking belong to the
orchestrator.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, selectinload

from .database import Ballot, BallotVote, Candidate, Election
from .errors import ConflictError, InvalidInputError
from .lifecycle import BallotStatus, BallotType, ElectionStatus
from .outcomes import CandidateOutcome


def get_election(session: Session, election_id: str) -> Optional[Election]:
    return session.get(Election, election_id)


def get_election_state(session: Session, election_id: str) -> Optional[Election]:
    """Load an election with candidates, ballots and vote rows in one go."""
    session.expire_all()
    stmt = (
        select(Election)
        .where(Election.id == election_id)
        .options(
            selectinload(Election.candidates),
            selectinload(Election.ballots).selectinload(Ballot.votes).selectinload(BallotVote.candidate),
        )
    )
    return session.execute(stmt).scalar_one_or_none()


def get_ballot(session: Session, ballot_id: str) -> Optional[Ballot]:
    stmt = (
        select(Ballot)
        .where(Ballot.id == ballot_id)
        .options(selectinload(Ballot.votes).selectinload(BallotVote.candidate))
    )
    return session.execute(stmt).scalar_one_or_none()


def get_vote(session: Session, ballot_id: str, candidate_id: str) -> Optional[BallotVote]:
    return (
        session.query(BallotVote)
        .filter_by(ballot_id=ballot_id, candidate_id=candidate_id)
        .first()
    )


def list_candidates(session: Session, election_id: str) -> List[Candidate]:
    return (
        session.query(Candidate)
        .filter_by(election_id=election_id)
        .order_by(Candidate.sort_order)
        .all()
    )


def ordered_votes(ballot: Ballot) -> List[BallotVote]:
    """Vote rows of a ballot in candidate display order."""
    return sorted(ballot.votes, key=lambda v: (v.candidate.sort_order, v.candidate_id))


def counting_ballots(session: Session, election_id: str) -> List[Ballot]:
    return (
        session.query(Ballot)
        .filter(Ballot.election_id == election_id, Ballot.status == BallotStatus.COUNTING)
        .order_by(Ballot.ballot_number)
        .all()
    )


def latest_completed_ballot(session: Session, election_id: str) -> Optional[Ballot]:
    stmt = (
        select(Ballot)
        .where(Ballot.election_id == election_id, Ballot.status == BallotStatus.COMPLETED)
        .order_by(Ballot.ballot_number.desc())
        .limit(1)
        .options(selectinload(Ballot.votes).selectinload(BallotVote.candidate))
    )
    return session.execute(stmt).scalar_one_or_none()


def max_ballot_number(session: Session, election_id: str) -> int:
    value = session.execute(
        select(func.max(Ballot.ballot_number)).where(Ballot.election_id == election_id)
    ).scalar()
    return value or 0


def count_elected(session: Session, election_id: str) -> int:
    return (
        session.query(Candidate)
        .filter(Candidate.election_id == election_id, Candidate.elected_ballot_number.isnot(None))
        .count()
    )


def insert_election(
    session: Session,
    description: str,
    position: str,
    term: str,
    seats: int,
    candidate_names: Sequence[str],
    election_date=None,
) -> Election:
    """
    Insert an election, its candidates and primary ballot #1 with zeroed votes.

    Returns:
        The flushed Election (ids assigned)
    """
    election = Election(
        description=description,
        position=position,
        term=term,
        seats=seats,
        status=ElectionStatus.COUNTING,
        current_ballot_number=1,
    )
    if election_date is not None:
        election.election_date = election_date
    session.add(election)

    candidates = [
        Candidate(election=election, name=name, sort_order=index)
        for index, name in enumerate(candidate_names)
    ]
    session.add_all(candidates)

    ballot = Ballot(
        election=election,
        ballot_number=1,
        seats_available=seats,
        type=BallotType.PRIMARY,
        status=BallotStatus.COUNTING,
    )
    session.add(ballot)
    session.add_all(BallotVote(ballot=ballot, candidate=c, votes=0) for c in candidates)

    session.flush()
    return election


def increment_vote(session: Session, ballot_id: str, candidate_id: str, delta: int) -> Optional[int]:
    """
    Atomically add delta to a vote row, clamped at zero.

    Only rows whose ballot is still counting are touched.

    Returns:
        New vote count, or None if no counting row matched
    """
    new_votes = BallotVote.votes + delta
    counting = select(Ballot.id).where(Ballot.id == ballot_id, Ballot.status == BallotStatus.COUNTING)
    stmt = (
        update(BallotVote)
        .where(
            BallotVote.ballot_id == ballot_id,
            BallotVote.candidate_id == candidate_id,
            BallotVote.ballot_id.in_(counting),
        )
        .values(votes=case((new_votes < 0, 0), else_=new_votes), updated_at=datetime.now())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        return None
    return session.execute(
        select(BallotVote.votes).where(
            BallotVote.ballot_id == ballot_id,
            BallotVote.candidate_id == candidate_id,
        )
    ).scalar_one()


def election_candidate_ids(session: Session, election_id: str, candidate_ids: Iterable[str]) -> List[str]:
    ids = list(candidate_ids)
    if not ids:
        return []
    return [
        row[0]
        for row in session.query(Candidate.id)
        .filter(Candidate.election_id == election_id, Candidate.id.in_(ids))
        .all()
    ]


def insert_runoff_ballot(
    session: Session,
    election: Election,
    candidate_ids: Sequence[str],
    seats_available: int,
    notes: Optional[str] = None,
) -> Ballot:
    """
    Insert the next ballot for the given candidates with zeroed votes.

    Raises:
        InvalidInputError: If a candidate id is not part of the election
    """
    unique_ids = list(dict.fromkeys(candidate_ids))
    known = set(election_candidate_ids(session, election.id, unique_ids))
    if not unique_ids or len(known) != len(unique_ids):
        raise InvalidInputError("Invalid candidates for runoff ballot")

    ballot_number = max_ballot_number(session, election.id) + 1
    ballot = Ballot(
        election_id=election.id,
        ballot_number=ballot_number,
        seats_available=seats_available,
        type=BallotType.RUNOFF,
        status=BallotStatus.COUNTING,
        notes=notes,
    )
    session.add(ballot)
    session.add_all(BallotVote(ballot=ballot, candidate_id=cid, votes=0) for cid in unique_ids)
    election.current_ballot_number = ballot_number
    session.flush()
    return ballot


def apply_candidate_outcomes(session: Session, outcomes: Sequence[CandidateOutcome]) -> int:
    """
    Write elected/eliminated markers.

    A candidate that already carries either marker is never overwritten.

    Raises:
        ConflictError: If a target candidate was decided in the meantime
    """
    updated = 0
    for outcome in outcomes:
        values = {}
        if outcome.elected_ballot_number is not None:
            values["elected_ballot_number"] = outcome.elected_ballot_number
        if outcome.eliminated_ballot_number is not None:
            values["eliminated_ballot_number"] = outcome.eliminated_ballot_number
        if not values:
            continue
        result = session.execute(
            update(Candidate)
            .where(
                Candidate.id == outcome.candidate_id,
                Candidate.elected_ballot_number.is_(None),
                Candidate.eliminated_ballot_number.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Candidate {outcome.candidate_id} was already decided")
        updated += 1
    return updated


def complete_ballot(session: Session, ballot_id: str, notes: Optional[str] = None) -> None:
    """
    Mark a counting ballot completed.

    Raises:
        ConflictError: If the ballot is no longer counting
    """
    values = {"status": BallotStatus.COMPLETED, "finalized_at": datetime.now()}
    if notes is not None:
        values["notes"] = notes
    result = session.execute(
        update(Ballot)
        .where(Ballot.id == ballot_id, Ballot.status == BallotStatus.COUNTING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Ballot was finalized concurrently")


def finalize_election_record(session: Session, election_id: str) -> None:
    """
    Mark a counting election finalized.

    Raises:
        ConflictError: If the election is no longer counting
    """
    result = session.execute(
        update(Election)
        .where(Election.id == election_id, Election.status == ElectionStatus.COUNTING)
        .values(status=ElectionStatus.FINALIZED, finalized_at=datetime.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Election was finalized concurrently")
