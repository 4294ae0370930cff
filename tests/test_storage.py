"""
Tests for storage.py - lookups and write primitives.
"""

import pytest

from ballotbox import storage
from ballotbox.database import Candidate, session_scope
from ballotbox.errors import ConflictError, InvalidInputError
from ballotbox.lifecycle import BallotStatus, BallotType, ElectionStatus
from ballotbox.outcomes import CandidateOutcome


@pytest.fixture
def created(db_path):
    """Election with three candidates and counting ballot #1."""
    with session_scope(db_path) as session:
        election = storage.insert_election(
            session,
            description="Board",
            position="Member",
            term="2026",
            seats=2,
            candidate_names=["Claire", "Alice", "Bob"],
        )
        return {
            "election_id": election.id,
            "ballot_id": election.ballots[0].id,
            "candidate_ids": [c.id for c in election.candidates],
        }


class TestInsertElection:
    def test_creates_counting_election_with_primary_ballot(self, db_path, created):
        with session_scope(db_path) as session:
            election = storage.get_election_state(session, created["election_id"])

            assert election.status == ElectionStatus.COUNTING
            assert election.current_ballot_number == 1
            assert len(election.ballots) == 1
            ballot = election.ballots[0]
            assert ballot.ballot_number == 1
            assert ballot.type == BallotType.PRIMARY
            assert ballot.status == BallotStatus.COUNTING
            assert ballot.seats_available == 2
            assert sorted(v.votes for v in ballot.votes) == [0, 0, 0]

    def test_candidates_keep_input_order(self, db_path, created):
        with session_scope(db_path) as session:
            names = [c.name for c in storage.list_candidates(session, created["election_id"])]
        assert names == ["Claire", "Alice", "Bob"]

    def test_ordered_votes_follow_sort_order(self, db_path, created):
        with session_scope(db_path) as session:
            ballot = storage.get_ballot(session, created["ballot_id"])
            names = [v.candidate.name for v in storage.ordered_votes(ballot)]
        assert names == ["Claire", "Alice", "Bob"]


class TestIncrementVote:
    def test_increment_and_clamp(self, db_path, created):
        cid = created["candidate_ids"][0]
        with session_scope(db_path) as session:
            assert storage.increment_vote(session, created["ballot_id"], cid, 1) == 1
            assert storage.increment_vote(session, created["ballot_id"], cid, -1) == 0
            assert storage.increment_vote(session, created["ballot_id"], cid, -1) == 0

    def test_unknown_row_returns_none(self, db_path, created):
        with session_scope(db_path) as session:
            assert storage.increment_vote(session, created["ballot_id"], "nope", 1) is None

    def test_completed_ballot_is_not_touched(self, db_path, created):
        cid = created["candidate_ids"][0]
        with session_scope(db_path) as session:
            storage.complete_ballot(session, created["ballot_id"])

        with session_scope(db_path) as session:
            assert storage.increment_vote(session, created["ballot_id"], cid, 1) is None
            assert storage.get_vote(session, created["ballot_id"], cid).votes == 0


class TestBallotWrites:
    def test_complete_ballot_twice_conflicts(self, db_path, created):
        with session_scope(db_path) as session:
            storage.complete_ballot(session, created["ballot_id"], notes="Tie detected for 1 seat(s)")

        with pytest.raises(ConflictError):
            with session_scope(db_path) as session:
                storage.complete_ballot(session, created["ballot_id"])

        with session_scope(db_path) as session:
            ballot = storage.get_ballot(session, created["ballot_id"])
            assert ballot.status == BallotStatus.COMPLETED
            assert ballot.notes == "Tie detected for 1 seat(s)"
            assert ballot.finalized_at is not None

    def test_runoff_ballot_numbering(self, db_path, created):
        with session_scope(db_path) as session:
            storage.complete_ballot(session, created["ballot_id"])

        with session_scope(db_path) as session:
            election = storage.get_election(session, created["election_id"])
            ballot = storage.insert_runoff_ballot(
                session, election, created["candidate_ids"][:2], seats_available=1, notes="Runoff after ballot 1"
            )
            assert ballot.ballot_number == 2
            assert ballot.type == BallotType.RUNOFF

        with session_scope(db_path) as session:
            assert storage.max_ballot_number(session, created["election_id"]) == 2
            assert storage.get_election(session, created["election_id"]).current_ballot_number == 2
            assert len(storage.counting_ballots(session, created["election_id"])) == 1
            assert storage.latest_completed_ballot(session, created["election_id"]).ballot_number == 1

    def test_runoff_rejects_foreign_candidates(self, db_path, created):
        with session_scope(db_path) as session:
            storage.complete_ballot(session, created["ballot_id"])

        with pytest.raises(InvalidInputError):
            with session_scope(db_path) as session:
                election = storage.get_election(session, created["election_id"])
                storage.insert_runoff_ballot(session, election, [created["candidate_ids"][0], "stranger"], 1)

        with session_scope(db_path) as session:
            assert storage.max_ballot_number(session, created["election_id"]) == 1


class TestCandidateOutcomes:
    def test_apply_outcomes(self, db_path, created):
        first, second, third = created["candidate_ids"]
        with session_scope(db_path) as session:
            storage.apply_candidate_outcomes(session, [
                CandidateOutcome(candidate_id=first, elected_ballot_number=1),
                CandidateOutcome(candidate_id=third, eliminated_ballot_number=1),
            ])

        with session_scope(db_path) as session:
            assert storage.count_elected(session, created["election_id"]) == 1
            assert session.get(Candidate, third).eliminated_ballot_number == 1
            assert session.get(Candidate, second).elected_ballot_number is None

    def test_decided_candidate_is_never_overwritten(self, db_path, created):
        candidate_id = created["candidate_ids"][0]
        with session_scope(db_path) as session:
            storage.apply_candidate_outcomes(session, [CandidateOutcome(candidate_id=candidate_id, elected_ballot_number=1)])

        with pytest.raises(ConflictError):
            with session_scope(db_path) as session:
                storage.apply_candidate_outcomes(
                    session, [CandidateOutcome(candidate_id=candidate_id, eliminated_ballot_number=2)]
                )

        with session_scope(db_path) as session:
            candidate = session.get(Candidate, candidate_id)
            assert candidate.elected_ballot_number == 1
            assert candidate.eliminated_ballot_number is None


class TestFinalizeElectionRecord:
    def test_finalize_once(self, db_path, created):
        with session_scope(db_path) as session:
            storage.finalize_election_record(session, created["election_id"])

        with pytest.raises(ConflictError):
            with session_scope(db_path) as session:
                storage.finalize_election_record(session, created["election_id"])

        with session_scope(db_path) as session:
            election = storage.get_election(session, created["election_id"])
            assert election.status == ElectionStatus.FINALIZED
            assert election.finalized_at is not None
