"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for election storage. Every orchestrator
operation runs inside one session_scope(), which is one transaction.
"""

import uuid
from contextlib import contextmanager
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .errors import ConflictError
from .lifecycle import BallotStatus, BallotType, ElectionStatus

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


def _enum(enum_cls, name: str) -> Enum:
    # Store the lowercase values, not the member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


class Election(Base):
    """A multi-seat election counted over one or more ballots."""

    __tablename__ = "elections"

    id = Column(String, primary_key=True, default=new_id)
    description = Column(Text, nullable=False)
    position = Column(String, nullable=False)
    term = Column(String, nullable=False)
    seats = Column(Integer, nullable=False)
    election_date = Column(Date, nullable=False, default=date.today)
    status = Column(_enum(ElectionStatus, "election_status"), nullable=False, default=ElectionStatus.DRAFT)
    current_ballot_number = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    finalized_at = Column(DateTime, nullable=True)

    candidates = relationship(
        "Candidate",
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="Candidate.sort_order",
    )
    ballots = relationship(
        "Ballot",
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="Ballot.ballot_number",
    )

    __table_args__ = (
        CheckConstraint("seats >= 1", name="ck_election_seats"),
        CheckConstraint("current_ballot_number >= 1", name="ck_election_ballot_number"),
    )


class Candidate(Base):
    """A candidate standing in every ballot of one election until decided."""

    __tablename__ = "candidates"

    id = Column(String, primary_key=True, default=new_id)
    election_id = Column(String, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    elected_ballot_number = Column(Integer, nullable=True)
    eliminated_ballot_number = Column(Integer, nullable=True)

    election = relationship("Election", back_populates="candidates")
    votes = relationship("BallotVote", back_populates="candidate", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "elected_ballot_number IS NULL OR eliminated_ballot_number IS NULL",
            name="ck_candidate_single_outcome",
        ),
        Index("candidates_election_idx", "election_id"),
        Index("candidates_order_idx", "sort_order"),
    )


class Ballot(Base):
    """One counted round of an election."""

    __tablename__ = "ballots"

    id = Column(String, primary_key=True, default=new_id)
    election_id = Column(String, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False)
    ballot_number = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    type = Column(_enum(BallotType, "ballot_type"), nullable=False, default=BallotType.PRIMARY)
    status = Column(_enum(BallotStatus, "ballot_status"), nullable=False, default=BallotStatus.COUNTING)
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=False, default=datetime.now)
    finalized_at = Column(DateTime, nullable=True)

    election = relationship("Election", back_populates="ballots")
    votes = relationship("BallotVote", back_populates="ballot", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("seats_available >= 1", name="ck_ballot_seats"),
        UniqueConstraint("election_id", "ballot_number", name="ballots_unique_round"),
        Index("ballots_election_idx", "election_id"),
        # At most one counting ballot per election
        Index(
            "ballots_one_counting",
            "election_id",
            unique=True,
            sqlite_where=text("status = 'counting'"),
            postgresql_where=text("status = 'counting'"),
        ),
    )


class BallotVote(Base):
    """Vote count of one candidate on one ballot."""

    __tablename__ = "ballot_votes"

    id = Column(String, primary_key=True, default=new_id)
    ballot_id = Column(String, ForeignKey("ballots.id", ondelete="CASCADE"), nullable=False)
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False)
    votes = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    ballot = relationship("Ballot", back_populates="votes")
    candidate = relationship("Candidate", back_populates="votes")

    __table_args__ = (
        CheckConstraint("votes >= 0", name="ck_ballot_vote_non_negative"),
        UniqueConstraint("ballot_id", "candidate_id", name="ballot_votes_unique_candidate"),
        Index("ballot_votes_ballot_idx", "ballot_id"),
        Index("ballot_votes_candidate_idx", "candidate_id"),
    )


@lru_cache(maxsize=None)
def _engine_for(url: str):
    engine = create_engine(url)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself (see _on_begin)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # Take the write lock up front so operations on one database serialize
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_engine(db_path: Path):
    """
    Get the (cached) engine for a database file.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine
    """
    return _engine_for(f"sqlite:///{Path(db_path).resolve()}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path) -> Session:
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    factory = sessionmaker(bind=get_engine(db_path), expire_on_commit=False)
    return factory()


def _is_lock_error(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "locked" in message or "busy" in message


@contextmanager
def session_scope(db_path: Path) -> Iterator[Session]:
    """
    Transactional scope around a series of operations.

    Commits when the block exits cleanly, rolls back on any exception.
    Lock contention and uniqueness races are re-raised as ConflictError.
    """
    session = get_session(db_path)
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"Concurrent change rejected by storage: {e.orig}") from e
    except OperationalError as e:
        session.rollback()
        if _is_lock_error(e):
            raise ConflictError(f"Database is busy: {e.orig}") from e
        raise
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
