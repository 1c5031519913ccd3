from __future__ import annotations

import argparse
from typing import cast

from beertracker.core import security as core_security
from beertracker.core.config import settings
from beertracker.db.session import SessionLocal
from beertracker.services.errors import LedgerError
from beertracker.services.invites import invite_link, normalize_invite_code
from beertracker.services.ledger import LedgerStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Delete every admin account and unused admin invite, then mint a fresh admin invite. "
            "Regular users and their counts are untouched."
        )
    )
    _ = parser.add_argument(
        "--code",
        default=None,
        help="Code for the new admin invite (default: random).",
    )
    _ = parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt.")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    code = cast(str | None, args.code)
    assume_yes = cast(bool, args.yes)

    if not assume_yes:
        answer = input("This deletes all admin accounts. Continue? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            raise SystemExit("aborted")

    try:
        new_code = normalize_invite_code(code) if code else core_security.new_invite_code()
        deleted, inv = LedgerStore(SessionLocal).rotate_admins(new_code)
    except LedgerError as exc:
        raise SystemExit(f"reset_admin failed: {type(exc).__name__}: {exc}")

    print(f"deleted_admins={deleted} code={inv.code}")
    print(f"link={invite_link(inv.code, base_url=settings.public_base_url)}")


if __name__ == "__main__":
    main()
