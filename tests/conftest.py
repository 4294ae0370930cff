"""
Pytest configuration and shared fixtures.
"""

import os

# Keep test runs from writing log files into the working directory
os.environ.setdefault("BALLOTBOX_LOG_TO_FILE", "0")

import pytest
from pathlib import Path
from typing import Any, Dict

from sqlalchemy import update

from ballotbox.database import BallotVote, init_database, session_scope
from ballotbox.logger import reset_logger
from ballotbox.ranking import VoteTally


@pytest.fixture(autouse=True)
def fresh_logger():
    """Drop the global logger so each test builds one on its own stdout."""
    yield
    reset_logger()


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized temporary database."""
    path = tmp_path / "elections.db"
    init_database(path)
    return path


@pytest.fixture
def election_payload() -> Dict[str, Any]:
    """Valid create-election payload: three candidates, two seats."""
    return {
        "description": "Annual board election",
        "position": "Board member",
        "term": "2026-2028",
        "seats": 2,
        "candidates": ["Alice", "Bob", "Claire"],
    }


@pytest.fixture
def set_votes():
    """Write vote counts directly, bypassing one-at-a-time adjustment."""
    def _set_votes(db_path: Path, ballot_id: str, counts: Dict[str, int]) -> None:
        with session_scope(db_path) as session:
            for candidate_id, votes in counts.items():
                session.execute(
                    update(BallotVote)
                    .where(BallotVote.ballot_id == ballot_id, BallotVote.candidate_id == candidate_id)
                    .values(votes=votes)
                )
    return _set_votes


@pytest.fixture
def tallies():
    """Build VoteTally lists from (name, votes) pairs, using the name as id."""
    def _tallies(*pairs):
        return [VoteTally(candidate_id=name.lower(), name=name, votes=votes) for name, votes in pairs]
    return _tallies
