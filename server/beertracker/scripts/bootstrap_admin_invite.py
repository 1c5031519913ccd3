from __future__ import annotations

import argparse
from typing import cast

from beertracker.core.config import settings
from beertracker.db.session import SessionLocal
from beertracker.services.errors import LedgerError
from beertracker.services.invites import invite_link, normalize_invite_code
from beertracker.services.ledger import InviteRecord, LedgerStore


DEFAULT_CODE = "ADMINBEER"


def bootstrap_admin_invite(ledger: LedgerStore, *, code: str) -> tuple[InviteRecord, str]:
    inv, created = ledger.ensure_admin_invite(normalize_invite_code(code))
    return inv, ("created" if created else "exists")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Ensure an unused admin invite exists (idempotent). "
            "If one is already waiting, it is printed instead of minting another."
        )
    )
    _ = parser.add_argument(
        "--code",
        default=DEFAULT_CODE,
        help=f"Code to create when no unused admin invite exists (default: {DEFAULT_CODE}).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    code = cast(str, args.code)

    try:
        inv, action = bootstrap_admin_invite(LedgerStore(SessionLocal), code=code)
    except LedgerError as exc:
        raise SystemExit(f"bootstrap_admin_invite failed: {type(exc).__name__}: {exc}")

    print(f"action={action} code={inv.code}")
    print(f"link={invite_link(inv.code, base_url=settings.public_base_url)}")


if __name__ == "__main__":
    main()
