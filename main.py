import argparse
import json
import logging
import os
import sys

from bandsched.db import init_db, make_engine, make_session_factory
from bandsched.db.store import SqlBookingStore
from bandsched.conflicts import ConflictDetector
from bandsched.rehearsals import materialize_occurrences, suggest_times
from bandsched.utils import parse_datetime

logger = logging.getLogger("bandsched")


def _store(args) -> SqlBookingStore:
    engine = make_engine(args.database_url)
    init_db(engine)
    return SqlBookingStore(make_session_factory(engine))


def cmd_init_db(args) -> int:
    init_db(make_engine(args.database_url))
    return 0


def cmd_occurrences(args) -> int:
    store = _store(args)
    start, end = parse_datetime(args.start), parse_datetime(args.end)
    items = materialize_occurrences(store.list_rehearsals(args.group), start, end)
    print(json.dumps([
        {'rehearsalId': rehearsal.id, 'title': rehearsal.title, **occurrence.to_dict()}
        for rehearsal, occurrence in items
    ], indent=2))
    return 0


def cmd_suggest(args) -> int:
    with open(args.members, encoding='utf-8') as fh:
        members = json.load(fh)
    detector = ConflictDetector(_store(args)) if args.venue is not None else None
    candidates = suggest_times(
        members,
        parse_datetime(args.start),
        parse_datetime(args.end),
        args.duration,
        limit=args.limit,
        detector=detector,
        venue_id=args.venue,
    )
    print(json.dumps([c.to_dict() for c in candidates], indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Band rehearsal scheduling tools")
    parser.add_argument("--database-url", default=os.environ.get("DATABASE_URL"))
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create the database tables")
    p_init.set_defaults(func=cmd_init_db)

    p_occ = sub.add_parser("occurrences", help="List rehearsal occurrences in a window")
    p_occ.add_argument("--start", required=True)
    p_occ.add_argument("--end", required=True)
    p_occ.add_argument("--group")
    p_occ.set_defaults(func=cmd_occurrences)

    p_sug = sub.add_parser("suggest", help="Suggest rehearsal times from member availability")
    p_sug.add_argument("--members", required=True, help="JSON file with a list of member availabilities")
    p_sug.add_argument("--start", required=True)
    p_sug.add_argument("--end", required=True)
    p_sug.add_argument("--duration", type=int, default=120, help="Rehearsal length in minutes")
    p_sug.add_argument("--limit", type=int, default=5)
    p_sug.add_argument("--venue", type=int)
    p_sug.set_defaults(func=cmd_suggest)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=os.environ.get("BANDSCHED_LOG_LEVEL", "INFO").upper())
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
