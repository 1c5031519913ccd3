from __future__ import annotations

import argparse
from typing import cast

from beertracker.core.config import settings
from beertracker.db.session import SessionLocal
from beertracker.services.errors import LedgerError
from beertracker.services.invites import InviteManager, invite_link
from beertracker.services.ledger import InviteRecord, LedgerStore


def _parse_names(raw: str | None) -> list[str]:
    if raw is None:
        return []
    return [n.strip() for n in raw.split(",") if n.strip()]


def create_invites(manager: InviteManager, *, count: int) -> list[InviteRecord]:
    if count <= 0:
        raise ValueError("count must be > 0")
    return [manager.create_random(None) for _ in range(count)]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create single-use (non-admin) invite codes.")
    _ = parser.add_argument("--count", type=int, default=None, help="How many invites to create.")
    _ = parser.add_argument(
        "--names",
        default=None,
        help="Comma-separated names; one invite per name, printed next to it.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    names = _parse_names(cast(str | None, args.names))
    count = cast(int | None, args.count)
    if count is None:
        count = len(names) or 1
    if names and len(names) != count:
        raise SystemExit("create_invites failed: --count does not match the number of --names")

    try:
        invites = create_invites(InviteManager(LedgerStore(SessionLocal)), count=count)
    except (LedgerError, ValueError) as exc:
        raise SystemExit(f"create_invites failed: {type(exc).__name__}: {exc}")

    for i, inv in enumerate(invites):
        prefix = f"{names[i]}: " if names else ""
        print(f"{prefix}{inv.code} {invite_link(inv.code, base_url=settings.public_base_url)}")


if __name__ == "__main__":
    main()
