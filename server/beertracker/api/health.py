# pyright: reportUnknownMemberType=false
from __future__ import annotations

import time
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field
from sqlalchemy import text

from beertracker.db.session import engine


router = APIRouter(tags=["health"])


class DependencyStatus(BaseModel):
    status: Literal["ok", "error"]
    latency_ms: int | None = None
    detail: str | None = Field(default=None, description="short diagnostic, never secrets")


class HealthDependencies(BaseModel):
    db: DependencyStatus


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    dependencies: HealthDependencies


def _check_db() -> DependencyStatus:
    start = time.perf_counter()
    try:
        with engine.connect() as conn:
            _ = conn.execute(text("SELECT 1")).scalar_one()
    except Exception as exc:
        latency_ms = int((time.perf_counter() - start) * 1000)
        return DependencyStatus(status="error", latency_ms=latency_ms, detail=type(exc).__name__)
    return DependencyStatus(status="ok", latency_ms=int((time.perf_counter() - start) * 1000))


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    dependencies = HealthDependencies(db=_check_db())
    status: Literal["ok", "degraded"] = "ok" if dependencies.db.status == "ok" else "degraded"
    return HealthResponse(status=status, dependencies=dependencies)
