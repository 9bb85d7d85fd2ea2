"""Administrative command line.

Usage:
    stash suspend <identifier>     # account name digest, share token,
    stash activate <identifier>    # bucket uuid digest or file uuid digest
    stash invite [--count N]
    stash grant <bytes>
    stash reconcile
    stash wipe [namespace ...]     # refuses to run outside local/test

Or directly:
    cd python && DATABASE_URL=... python -m stash.cli suspend <identifier>
"""

import argparse
import logging
import sys

from stash.config import get_settings
from stash.db.store import NAMESPACES, Store, create_store
from stash.errors import ApiError
from stash.logging import configure_logging, set_command_context
from stash.services import accounts as accounts_service
from stash.services import usage as usage_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stash", description="Stash administration")
    commands = parser.add_subparsers(dest="command", required=True)

    suspend = commands.add_parser("suspend", help="Suspend the account owning an identifier")
    suspend.add_argument("identifier")

    activate = commands.add_parser("activate", help="Reactivate the account owning an identifier")
    activate.add_argument("identifier")

    invite = commands.add_parser("invite", help="Print new single-use invitation codes")
    invite.add_argument("--count", type=int, default=1)

    grant = commands.add_parser("grant", help="Print a new quota grant id")
    grant.add_argument("bytes", type=int)

    commands.add_parser("reconcile", help="Recompute every usage record")

    wipe = commands.add_parser("wipe", help="Delete all records (local/test only)")
    wipe.add_argument("namespaces", nargs="*", metavar="namespace", help=", ".join(NAMESPACES))

    return parser


def run(args: argparse.Namespace, store: Store) -> int:
    """Execute a parsed command against a store. Returns the exit code."""
    if args.command == "wipe":
        if not store.settings.allows_destructive_commands:
            print(
                f"ERROR: wipe refuses to run in STASH_ENV={store.settings.stash_env.value}",
                file=sys.stderr,
            )
            return 1
        try:
            store.destroy_all(*args.namespaces)
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
        print("wiped " + ", ".join(args.namespaces or NAMESPACES))
        return 0

    with store.session() as db:
        if args.command == "suspend":
            accounts_service.suspend(db, args.identifier)
            print(f"{args.identifier} is now suspended")
        elif args.command == "activate":
            accounts_service.activate(db, args.identifier)
            print(f"{args.identifier} is now active")
        elif args.command == "invite":
            for _ in range(max(args.count, 1)):
                print(accounts_service.create_invitation(db))
        elif args.command == "grant":
            print(usage_service.create_grant(db, args.bytes))
        elif args.command == "reconcile":
            count = usage_service.reconcile_all(db)
            print(f"reconciled {count} accounts")

    return 0


def main(argv: list[str] | None = None, store: Store | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Arguments (defaults to sys.argv[1:]).
        store: Store to operate on. Built from settings (schema created) if None.
    """
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(json_format=settings.log_json, level=logging.WARNING, stream=sys.stderr)
    set_command_context(args.command)

    if store is None:
        store = create_store(settings)
        store.init()

    try:
        return run(args, store)
    except ApiError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1
    finally:
        set_command_context(None)


if __name__ == "__main__":
    sys.exit(main())
