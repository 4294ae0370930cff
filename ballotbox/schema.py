from datetime import date
from typing import Any, Dict, List

DESCRIPTION_MAX = 500
FIELD_MAX = 200
NAME_MAX = 200
SEATS_MAX = 50
CANDIDATES_MAX = 50

VOTE_DELTAS = (1, -1)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _check_text(data: Dict[str, Any], field: str, max_len: int, errors: List[str]) -> None:
    if field not in data:
        errors.append(f"Missing required field: {field}")
    elif not _is_non_empty_str(data[field]):
        errors.append(f"Field '{field}' must be a non-empty string")
    elif len(data[field].strip()) > max_len:
        errors.append(f"Field '{field}' must be at most {max_len} characters")


def validate_election_payload(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    Checks shape only. Whether the candidates can fill the seats is decided
    by the orchestrator once blank names are dropped.
    """
    errors: List[str] = []

    _check_text(data, "description", DESCRIPTION_MAX, errors)
    _check_text(data, "position", FIELD_MAX, errors)
    _check_text(data, "term", FIELD_MAX, errors)

    seats = data.get("seats")
    if "seats" not in data:
        errors.append("Missing required field: seats")
    elif not _is_int(seats) or not 1 <= seats <= SEATS_MAX:
        errors.append(f"Field 'seats' must be an integer between 1 and {SEATS_MAX}")

    candidates = data.get("candidates")
    if "candidates" not in data:
        errors.append("Missing required field: candidates")
    elif not isinstance(candidates, (list, tuple)):
        errors.append("Field 'candidates' must be a list of names")
    elif not candidates:
        errors.append("Please provide at least one candidate")
    elif len(candidates) > CANDIDATES_MAX:
        errors.append(f"At most {CANDIDATES_MAX} candidates are allowed")
    else:
        for i, name in enumerate(candidates):
            if not isinstance(name, str):
                errors.append(f"Candidate #{i + 1} must be a string")
            elif len(name.strip()) > NAME_MAX:
                errors.append(f"Candidate #{i + 1} must be at most {NAME_MAX} characters")

    if data.get("election_date") is not None and not isinstance(data["election_date"], date):
        errors.append("Field 'election_date' must be a date if provided")

    return errors


def validate_vote_adjustment(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    for f in ("ballot_id", "candidate_id"):
        if not _is_non_empty_str(data.get(f)):
            errors.append(f"Field '{f}' must be a non-empty string")
    delta = data.get("delta")
    if not _is_int(delta) or delta not in VOTE_DELTAS:
        errors.append("Field 'delta' must be +1 or -1")
    return errors


def validate_ids(data: Dict[str, Any], *fields: str) -> List[str]:
    return [
        f"Field '{f}' must be a non-empty string"
        for f in fields
        if not _is_non_empty_str(data.get(f))
    ]
