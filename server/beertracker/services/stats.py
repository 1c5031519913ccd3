from __future__ import annotations

from dataclasses import dataclass

from beertracker.services.ledger import DrinkRecord, LeaderboardRow, LedgerStore


@dataclass(frozen=True)
class StatsSnapshot:
    leaderboard: list[LeaderboardRow]
    recent_drinks: list[DrinkRecord]
    progress: int
    remaining: int
    goal: int


class StatsAggregator:
    """Read-only projections of the ledger; nothing is cached between calls."""

    def __init__(self, ledger: LedgerStore, *, goal: int):
        self._ledger: LedgerStore = ledger
        self._goal: int = goal

    def leaderboard(self) -> list[LeaderboardRow]:
        return self._ledger.leaderboard()

    def total_progress(self) -> int:
        return self._ledger.total_beers()

    def recent_events(self, limit: int) -> list[DrinkRecord]:
        return self._ledger.recent_drinks(limit)

    def snapshot(self, *, recent_limit: int = 10) -> StatsSnapshot:
        progress = self.total_progress()
        return StatsSnapshot(
            leaderboard=self.leaderboard(),
            recent_drinks=self.recent_events(recent_limit),
            progress=progress,
            remaining=max(0, self._goal - progress),
            goal=self._goal,
        )
