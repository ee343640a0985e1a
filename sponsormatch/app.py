import argparse
import json
import os
from pathlib import Path

from . import __version__
from .config import ConfigError, MatchingConfig
from .env import load_env
from .errors import RequestLimitError, StoreError
from .explain import compatibility_level, explain_match, top_factors
from .logger import get_logger
from .models import MatchStatus, Profile, ScoredMatch
from .schema import missing_matching_fields, validate_profile_data
from .service import MatchingService
from .storage import SQLProfileStore

DEFAULT_DB = "data/sponsormatch.db"


def _load_json(path: Path):
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def cmd_init_db(args: argparse.Namespace) -> None:
    store = SQLProfileStore(Path(args.db))
    store.close()
    print(f"Database ready: {args.db}")


def cmd_import(args: argparse.Namespace) -> None:
    data = _load_json(Path(args.input))
    records = data if isinstance(data, list) else [data]

    profiles = []
    invalid = 0
    for record in records:
        errors = validate_profile_data(record) if isinstance(record, dict) else ["Profile must be an object"]
        if errors:
            invalid += 1
            ident = record.get("id") if isinstance(record, dict) else None
            print(f"[validation_error] {ident} - {errors}")
            continue
        profiles.append(Profile.from_dict(record))

    store = SQLProfileStore(Path(args.db))
    counts = store.import_profiles(profiles)
    store.close()
    print(
        f"Done. new={counts['new']} updated={counts['updated']} "
        f"no-change={counts['no-change']} invalid={invalid}"
    )


def cmd_validate(args: argparse.Namespace) -> None:
    data = _load_json(Path(args.input))
    errors = validate_profile_data(data)
    if not errors:
        missing = missing_matching_fields(Profile.from_dict(data))
        errors = [f"Needed for matching: {m}" for m in missing]
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_match(args: argparse.Namespace) -> None:
    try:
        config = MatchingConfig.from_env()
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")

    store = SQLProfileStore(Path(args.db))
    service = MatchingService(store, config)
    token = args.token or os.getenv("SPONSORMATCH_TOKEN", "")
    body = {"requester_id": args.requester_id}
    if args.limit is not None:
        body["limit"] = args.limit

    status, payload = service.handle_request(body, authorization=f"Bearer {token}" if token else None)

    if status == 200 and args.save:
        saved = store.save_suggestions(args.requester_id, [ScoredMatch(**m) for m in payload["matches"]])
        get_logger().info("Saved suggestions", requester_id=args.requester_id, saved=saved)
    if status == 200 and args.explain:
        for match in payload["matches"]:
            breakdown = match["score_breakdown"]
            match["level"] = compatibility_level(match["compatibility_score"])
            match["explanation"] = explain_match(breakdown)
            match["top_factors"] = [f["label"] for f in top_factors(breakdown)]
    store.close()

    print(json.dumps(payload, indent=2))
    if status != 200:
        raise SystemExit(1)


def _record_status(args: argparse.Namespace, status: MatchStatus) -> None:
    store = SQLProfileStore(Path(args.db))
    try:
        row = store.record_match_status(args.user_id, args.candidate_id, status)
    except (RequestLimitError, StoreError) as e:
        raise SystemExit(str(e))
    finally:
        store.close()
    print(f"[{row['status']}] {row['user_id']} -> {row['candidate_id']}")


def cmd_decline(args: argparse.Namespace) -> None:
    _record_status(args, MatchStatus.DECLINED)


def cmd_request(args: argparse.Namespace) -> None:
    _record_status(args, MatchStatus.REQUESTED)


def cmd_connect(args: argparse.Namespace) -> None:
    _record_status(args, MatchStatus.CONNECTED)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sponsormatch", description="Sponsor/sponsee compatibility matching")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    init = subparsers.add_parser("init-db", help="Create the profile database")
    init.add_argument("--db", default=DEFAULT_DB, help=f"Path to SQLite database (default: {DEFAULT_DB})")
    init.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import", help="Import profiles from a JSON file (object or list)")
    imp.add_argument("--input", required=True, help="Path to profiles JSON")
    imp.add_argument("--db", default=DEFAULT_DB, help="Path to SQLite database")
    imp.set_defaults(func=cmd_import)

    val = subparsers.add_parser("validate", help="Check a profile JSON is complete enough to match")
    val.add_argument("--input", required=True, help="Path to profile JSON")
    val.set_defaults(func=cmd_validate)

    mat = subparsers.add_parser("match", help="Compute ranked matches for a requester")
    mat.add_argument("--requester-id", required=True, help="Profile id to match for")
    mat.add_argument("--limit", type=int, help="Maximum matches (default from config)")
    mat.add_argument("--token", help="Bearer token (or set SPONSORMATCH_TOKEN)")
    mat.add_argument("--explain", action="store_true", help="Add level and explanation per match")
    mat.add_argument("--save", action="store_true", help="Store results as suggestions")
    mat.add_argument("--db", default=DEFAULT_DB, help="Path to SQLite database")
    mat.set_defaults(func=cmd_match)

    for name, func, help_text in (
        ("decline", cmd_decline, "Decline a candidate (hidden for the cooldown window)"),
        ("request", cmd_request, "Send a connection request to a candidate"),
        ("connect", cmd_connect, "Mark a candidate as connected"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--user-id", required=True, help="Requester profile id")
        sub.add_argument("--candidate-id", required=True, help="Candidate profile id")
        sub.add_argument("--db", default=DEFAULT_DB, help="Path to SQLite database")
        sub.set_defaults(func=func)

    return parser


def main(argv=None):
    # Load .env if present (SPONSORMATCH_* settings)
    load_env()
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
