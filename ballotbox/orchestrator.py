"""
Round orchestration.

Drives an election through its ballots: creation, vote adjustment, ballot
finalization, runoffs for ties and finally election finalization. Each
operation is one transaction; all preconditions are checked before the
first write, and any failure rolls the whole operation back.
"""

import dataclasses
import functools
from pathlib import Path
from typing import Any, Dict

from .database import session_scope
from .errors import (
    ConflictError,
    ElectionError,
    InvalidInputError,
    InvalidStateError,
    NoProgressError,
    NotFoundError,
)
from .lifecycle import BallotStatus, ElectionStatus, transition_ballot, transition_election
from .logger import get_logger
from .normalize import clean_candidate_names, normalize_text
from .outcomes import resolve_outcomes, tie_note
from .ranking import rank_ballot
from .schema import validate_election_payload, validate_ids, validate_vote_adjustment
from .snapshot import ElectionSnapshot, build_election_snapshot
from . import storage


def _operation(name: str):
    """Log and count domain failures of an operation, then re-raise them."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ElectionError as e:
                logger = get_logger()
                logger.record_error(type(e).__name__)
                logger.warning(f"{name} rejected: {e}", error_type=type(e).__name__)
                raise
        return wrapper
    return decorator


def _require_valid(errors) -> None:
    if errors:
        raise InvalidInputError("; ".join(errors))


def _snapshot(session, election_id: str) -> ElectionSnapshot:
    state = storage.get_election_state(session, election_id)
    if state is None:
        raise NotFoundError("Election not found")
    return build_election_snapshot(state)


def _counting_election(session, election_id: str):
    election = storage.get_election(session, election_id)
    if election is None:
        raise NotFoundError("Election not found")
    if election.status == ElectionStatus.FINALIZED:
        raise InvalidStateError("Election has already been finalized")
    if election.status != ElectionStatus.COUNTING:
        raise InvalidStateError(f"Election is not counting (status: {election.status.value})")
    return election


@_operation("create election")
def create_election(payload: Dict[str, Any], db_path: Path) -> Dict[str, Any]:
    """
    Create an election with its candidates and primary ballot #1.

    Args:
        payload: description, position, term, seats, candidates (ordered names)
        db_path: Path to SQLite database file

    Returns:
        Dict with election_id, ballot_id and candidate_ids (input order)

    Raises:
        InvalidInputError: Bad shape, no candidates, or fewer candidates than seats
    """
    _require_valid(validate_election_payload(payload))

    names = clean_candidate_names(payload["candidates"])
    if not names:
        raise InvalidInputError("Please provide at least one candidate")
    seats = payload["seats"]
    if len(names) < seats:
        raise InvalidInputError(
            f"{len(names)} candidate(s) cannot fill {seats} seat(s)"
        )

    with session_scope(db_path) as session:
        election = storage.insert_election(
            session,
            description=normalize_text(payload["description"]),
            position=normalize_text(payload["position"]),
            term=normalize_text(payload["term"]),
            seats=seats,
            candidate_names=names,
            election_date=payload.get("election_date"),
        )
        outcome = {
            "election_id": election.id,
            "ballot_id": election.ballots[0].id,
            "candidate_ids": [c.id for c in election.candidates],
        }

    logger = get_logger()
    logger.record_election_created()
    logger.info(
        "Election created",
        election_id=outcome["election_id"],
        seats=seats,
        candidates=len(names),
    )
    return outcome


@_operation("adjust vote")
def adjust_vote(ballot_id: str, candidate_id: str, delta: int, db_path: Path) -> Dict[str, Any]:
    """
    Add +1 or -1 to one candidate's count on a counting ballot.

    The count never drops below zero.

    Returns:
        Dict with ballot_id, candidate_id and the new votes

    Raises:
        NotFoundError: Unknown ballot or candidate not on the ballot
        InvalidStateError: Ballot is already completed
        ConflictError: Ballot was completed by a concurrent operation
    """
    _require_valid(validate_vote_adjustment(
        {"ballot_id": ballot_id, "candidate_id": candidate_id, "delta": delta}
    ))

    with session_scope(db_path) as session:
        ballot = storage.get_ballot(session, ballot_id)
        if ballot is None:
            raise NotFoundError("Ballot not found")
        if ballot.status != BallotStatus.COUNTING:
            raise InvalidStateError("This ballot has already been finalized")
        if storage.get_vote(session, ballot_id, candidate_id) is None:
            raise NotFoundError("Candidate vote record not found")

        votes = storage.increment_vote(session, ballot_id, candidate_id, delta)
        if votes is None:
            raise ConflictError("Ballot changed while adjusting the vote")

    logger = get_logger()
    logger.record_vote_adjusted()
    logger.info("Vote adjusted", ballot_id=ballot_id, candidate_id=candidate_id, delta=delta, votes=votes)
    return {"ballot_id": ballot_id, "candidate_id": candidate_id, "votes": votes}


@_operation("finalize counting")
def finalize_counting(election_id: str, ballot_id: str, db_path: Path) -> Dict[str, Any]:
    """
    Close the counting ballot: rank it, store candidate outcomes, complete it.

    Winners are elected on this ballot, candidates that are neither winners nor
    tied are eliminated on it, tied candidates are left open for a runoff.

    Returns:
        Dict with "result" (BallotResult) and "snapshot" (ElectionSnapshot)

    Raises:
        NotFoundError: Unknown election, or ballot not part of it
        InvalidStateError: Ballot already completed, or has no candidates
        NoProgressError: Nothing was counted and the ballot would end in a tie
    """
    _require_valid(validate_ids({"election_id": election_id, "ballot_id": ballot_id}, "election_id", "ballot_id"))

    with session_scope(db_path) as session:
        _counting_election(session, election_id)

        ballot = storage.get_ballot(session, ballot_id)
        if ballot is None or ballot.election_id != election_id:
            raise NotFoundError("Ballot not found")
        if ballot.status != BallotStatus.COUNTING:
            raise InvalidStateError("This ballot has already been finalized")
        transition_ballot(ballot.status, BallotStatus.COMPLETED)
        if not ballot.votes:
            raise InvalidStateError("Ballot has no candidates to rank")

        result = rank_ballot(ballot)
        if result.has_tie and sum(v.votes for v in ballot.votes) == 0:
            raise NoProgressError(
                f"No votes were recorded on ballot {ballot.ballot_number}; "
                "finalizing it would only repeat the same tie"
            )

        roster = [v.candidate for v in ballot.votes]
        outcomes = resolve_outcomes(result, roster, ballot.ballot_number)
        storage.apply_candidate_outcomes(session, outcomes)
        storage.complete_ballot(session, ballot.id, notes=tie_note(result))

        result = dataclasses.replace(result, status=BallotStatus.COMPLETED.value)
        snapshot = _snapshot(session, election_id)

    logger = get_logger()
    logger.record_ballot_finalized(tie=result.has_tie)
    logger.info(
        "Ballot finalized",
        election_id=election_id,
        ballot_number=result.ballot_number,
        winners=len(result.winner_ids),
        tied=len(result.tie_candidate_ids),
        eliminated=len(result.eliminated_ids),
    )
    return {"result": result, "snapshot": snapshot}


@_operation("start runoff")
def start_runoff(election_id: str, db_path: Path) -> ElectionSnapshot:
    """
    Open a runoff ballot for the candidates tied on the latest completed ballot.

    The runoff contests the seats left open by that ballot (at least one) and
    starts every tied candidate at zero votes.

    Raises:
        NotFoundError: Unknown election
        InvalidStateError: Election finalized, a ballot is still counting,
            nothing completed yet, or the latest ballot has no tie
        InvalidInputError: A tied candidate does not belong to the election
    """
    _require_valid(validate_ids({"election_id": election_id}, "election_id"))

    with session_scope(db_path) as session:
        election = _counting_election(session, election_id)

        if storage.counting_ballots(session, election_id):
            raise InvalidStateError("Finalize the current ballot before starting a new count.")

        latest = storage.latest_completed_ballot(session, election_id)
        if latest is None:
            raise InvalidStateError("Finalize a count before starting a new one")

        result = rank_ballot(latest)
        if not result.has_tie:
            raise InvalidStateError("There is no tie to resolve")

        ballot = storage.insert_runoff_ballot(
            session,
            election,
            candidate_ids=result.tie_candidate_ids,
            seats_available=result.remaining_seats or 1,
            notes=f"Runoff after ballot {latest.ballot_number}",
        )
        ballot_number = ballot.ballot_number
        snapshot = _snapshot(session, election_id)

    logger = get_logger()
    logger.record_runoff_started()
    logger.info(
        "Runoff started",
        election_id=election_id,
        ballot_number=ballot_number,
        candidates=len(result.tie_candidate_ids),
        seats=result.remaining_seats or 1,
    )
    return snapshot


@_operation("finalize election")
def finalize_election(election_id: str, db_path: Path) -> ElectionSnapshot:
    """
    Close the election once every seat is filled without an open tie.

    Finalizing an already finalized election returns its snapshot unchanged.

    Raises:
        NotFoundError: Unknown election
        InvalidStateError: A ballot is still counting, the latest ballot has an
            unresolved tie, or fewer candidates are elected than there are seats
    """
    _require_valid(validate_ids({"election_id": election_id}, "election_id"))

    with session_scope(db_path) as session:
        election = storage.get_election(session, election_id)
        if election is None:
            raise NotFoundError("Election not found")
        if election.status == ElectionStatus.FINALIZED:
            return _snapshot(session, election_id)
        transition_election(election.status, ElectionStatus.FINALIZED)

        if storage.counting_ballots(session, election_id):
            raise InvalidStateError("Finish counting the active ballot before finalizing.")

        latest = storage.latest_completed_ballot(session, election_id)
        if latest is not None and rank_ballot(latest).has_tie:
            raise InvalidStateError("Resolve every tie before finalizing the election.")

        if storage.count_elected(session, election_id) < election.seats:
            raise InvalidStateError("All seats must be filled before finalizing the election.")

        storage.finalize_election_record(session, election_id)
        snapshot = _snapshot(session, election_id)

    logger = get_logger()
    logger.record_election_finalized()
    logger.info("Election finalized", election_id=election_id, seats=snapshot.election.seats)
    return snapshot


@_operation("load election")
def load_election(election_id: str, db_path: Path) -> ElectionSnapshot:
    """Read-only snapshot of an election."""
    _require_valid(validate_ids({"election_id": election_id}, "election_id"))
    with session_scope(db_path) as session:
        return _snapshot(session, election_id)
