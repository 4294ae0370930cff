"""
Domain errors raised by the round orchestrator.

Every failure carries a human-readable reason and is raised before any
row is written.
"""


class ElectionError(Exception):
    """Base class for all election domain failures."""
    pass


class NotFoundError(ElectionError):
    """Referenced election, ballot, candidate or vote row does not exist."""
    pass


class InvalidStateError(ElectionError):
    """Operation attempted against an entity in the wrong lifecycle state."""
    pass


class NoProgressError(InvalidStateError):
    """Finalizing the ballot could only lead to an identical runoff."""
    pass


class InvalidInputError(ElectionError):
    """Request is well-formed but makes no sense for this election."""
    pass


class ConflictError(ElectionError):
    """Concurrent mutation detected by storage. Callers may retry."""
    pass
