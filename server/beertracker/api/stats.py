# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from beertracker.api.deps import get_stats_aggregator
from beertracker.services.stats import StatsAggregator


router = APIRouter(tags=["stats"])


class LeaderboardItem(BaseModel):
    display_name: str
    beer_count: int
    is_admin: bool


class RecentDrinkItem(BaseModel):
    id: int
    user_id: str
    username: str
    beer_type: str
    timestamp: datetime


class StatsResponse(BaseModel):
    leaderboard: list[LeaderboardItem] = Field(default_factory=list)
    recent_drinks: list[RecentDrinkItem] = Field(
        default_factory=list, serialization_alias="recentDrinks"
    )
    remaining: int
    progress: int
    goal: int


@router.get("/stats", response_model=StatsResponse)
async def stats(
    recent: int = Query(10, ge=0, le=100),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
) -> StatsResponse:
    snap = aggregator.snapshot(recent_limit=recent)
    return StatsResponse(
        leaderboard=[
            LeaderboardItem(display_name=r.display_name, beer_count=r.beer_count, is_admin=r.is_admin)
            for r in snap.leaderboard
        ],
        recent_drinks=[
            RecentDrinkItem(
                id=d.id,
                user_id=d.user_id,
                username=d.username,
                beer_type=d.beer_type,
                timestamp=d.created_at,
            )
            for d in snap.recent_drinks
        ],
        remaining=snap.remaining,
        progress=snap.progress,
        goal=snap.goal,
    )
