# pyright: reportMissingImports=false
from __future__ import annotations

from fastapi import APIRouter

from beertracker.api.admin import router as admin_router
from beertracker.api.auth import router as auth_router
from beertracker.api.drinks import router as drinks_router
from beertracker.api.health import router as health_router
from beertracker.api.invites import router as invites_router
from beertracker.api.stats import router as stats_router


api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(health_router)
api_router.include_router(invites_router)
api_router.include_router(drinks_router)
api_router.include_router(stats_router)
api_router.include_router(admin_router)
