import argparse
import json
from pathlib import Path

from . import __version__
from .database import init_database
from .env import get_db_path, load_env
from .errors import ElectionError
from .logger import get_logger, reset_logger
from .orchestrator import (
    adjust_vote,
    create_election,
    finalize_counting,
    finalize_election,
    load_election,
    start_runoff,
)
from .retry import RetryError, retry_on_conflict
from .snapshot import ElectionSnapshot


def _db(args: argparse.Namespace) -> Path:
    db_path = Path(args.db) if args.db else get_db_path()
    init_database(db_path)
    return db_path


def _run(func, *args, **kwargs):
    def on_retry(attempt, exc, delay):
        get_logger().warning("Retrying after conflict", attempt=attempt, delay=delay, error=str(exc))

    try:
        return retry_on_conflict(func, *args, on_retry=on_retry, **kwargs)
    except (ElectionError, RetryError) as e:
        raise SystemExit(str(e))


def _split_names(raw: str) -> list:
    return raw.split(",")


def print_snapshot(snapshot: ElectionSnapshot) -> None:
    election = snapshot.election
    print(f"Election: {election.id}")
    print(f"  {election.description} | {election.position} | {election.term}")
    print(f"  Seats: {election.seats}  Status: {election.status.value}  Ballot: #{election.current_ballot_number}")
    print()
    for ballot in snapshot.ballots:
        note = f" ({ballot.notes})" if ballot.notes else ""
        print(f"Ballot #{ballot.ballot_number} [{ballot.type.value}, {ballot.status.value}] "
              f"seats={ballot.seats_available} id={ballot.id}{note}")
    result = snapshot.latest_result
    if result is not None:
        print()
        print(f"Results of ballot #{result.ballot_number}:")
        for c in result.ranked:
            mark = "elected" if c.is_winner else ("tie" if c.in_tie else "eliminated")
            print(f"  {c.rank:>2}. {c.name:<30} {c.votes:>6}  {mark}")
    if snapshot.current_ballot is not None:
        print()
        print(f"Counting ballot #{snapshot.current_ballot.ballot_number}:")
        by_id = {c.id: c for c in snapshot.candidates}
        for v in sorted(snapshot.current_ballot.votes, key=lambda v: by_id[v.candidate_id].sort_order):
            print(f"  {by_id[v.candidate_id].name:<30} {v.votes:>6}  candidate={v.candidate_id}")
    print()
    elected = ", ".join(c.name for c in snapshot.elected) or "-"
    print(f"Elected: {elected}")


def _emit(snapshot: ElectionSnapshot, as_json: bool) -> None:
    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_snapshot(snapshot)


def cmd_create(args: argparse.Namespace) -> None:
    payload = {
        "description": args.description,
        "position": args.position,
        "term": args.term,
        "seats": args.seats,
        "candidates": _split_names(args.candidates),
    }
    outcome = _run(create_election, payload, db_path=_db(args))
    print(f"Election: {outcome['election_id']}")
    print(f"Ballot: {outcome['ballot_id']}")
    print(f"Candidates: {', '.join(outcome['candidate_ids'])}")


def cmd_vote(args: argparse.Namespace) -> None:
    delta = -1 if args.down else 1
    outcome = _run(adjust_vote, args.ballot, args.candidate, delta, db_path=_db(args))
    print(f"Votes: {outcome['votes']}")


def cmd_finalize_count(args: argparse.Namespace) -> None:
    db_path = _db(args)
    ballot_id = args.ballot
    if not ballot_id:
        current = _run(load_election, args.election, db_path=db_path).current_ballot
        if current is None:
            raise SystemExit("No ballot is currently counting.")
        ballot_id = current.id
    outcome = _run(finalize_counting, args.election, ballot_id, db_path=db_path)
    result = outcome["result"]
    if result.has_tie:
        print(f"Tie for {result.remaining_seats} seat(s). Start a runoff with: ballotbox runoff --election {args.election}")
    _emit(outcome["snapshot"], args.json)


def cmd_runoff(args: argparse.Namespace) -> None:
    _emit(_run(start_runoff, args.election, db_path=_db(args)), args.json)


def cmd_finalize(args: argparse.Namespace) -> None:
    _emit(_run(finalize_election, args.election, db_path=_db(args)), args.json)


def cmd_show(args: argparse.Namespace) -> None:
    _emit(_run(load_election, args.election, db_path=_db(args)), args.json)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ballotbox", description="Multi-seat election counting with runoffs")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    def add_db(p):
        p.add_argument("--db", help="Path to SQLite database (default: $BALLOTBOX_DB_PATH or data/elections.db)")

    def add_json(p):
        p.add_argument("--json", action="store_true", help="Print the election snapshot as JSON")

    crt = subparsers.add_parser("create", help="Create an election and open ballot #1")
    crt.add_argument("--description", required=True, help="Election description")
    crt.add_argument("--position", required=True, help="Position being elected")
    crt.add_argument("--term", required=True, help="Term of office")
    crt.add_argument("--seats", required=True, type=int, help="Number of seats to fill")
    crt.add_argument("--candidates", required=True, help="Comma-separated candidate names, in display order")
    add_db(crt)
    crt.set_defaults(func=cmd_create)

    vot = subparsers.add_parser("vote", help="Add (or with --down remove) one vote for a candidate")
    vot.add_argument("--ballot", required=True, help="Ballot id")
    vot.add_argument("--candidate", required=True, help="Candidate id")
    vot.add_argument("--down", action="store_true", help="Remove a vote instead of adding one")
    add_db(vot)
    vot.set_defaults(func=cmd_vote)

    fin = subparsers.add_parser("finalize-count", help="Close the counting ballot and record outcomes")
    fin.add_argument("--election", required=True, help="Election id")
    fin.add_argument("--ballot", help="Ballot id (default: the ballot currently counting)")
    add_db(fin)
    add_json(fin)
    fin.set_defaults(func=cmd_finalize_count)

    run = subparsers.add_parser("runoff", help="Open a runoff ballot for the tied candidates")
    run.add_argument("--election", required=True, help="Election id")
    add_db(run)
    add_json(run)
    run.set_defaults(func=cmd_runoff)

    fel = subparsers.add_parser("finalize", help="Finalize the election once all seats are filled")
    fel.add_argument("--election", required=True, help="Election id")
    add_db(fel)
    add_json(fel)
    fel.set_defaults(func=cmd_finalize)

    shw = subparsers.add_parser("show", help="Show an election with its ballots and latest results")
    shw.add_argument("--election", required=True, help="Election id")
    add_db(shw)
    add_json(shw)
    shw.set_defaults(func=cmd_show)

    return parser


def main(argv=None):
    # Load .env if present (BALLOTBOX_DB_PATH, BALLOTBOX_LOG_LEVEL, etc.)
    load_env()
    # Rebuild the logger so BALLOTBOX_LOG_* from .env apply
    reset_logger()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
