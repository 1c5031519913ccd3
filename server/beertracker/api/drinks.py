# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from beertracker.api.deps import get_current_user, get_drink_recorder
from beertracker.services.drinks import DrinkRecorder
from beertracker.services.ledger import UserRecord


router = APIRouter(tags=["drinks"])


class DrinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    beer_type: str | None = Field(None, alias="beerType", examples=["IPA"])
    photo: str | None = Field(None, description="base64 image or data: URL")


class DrinkResponse(BaseModel):
    success: bool
    beer_count: int
    verified: bool
    verification_message: str | None = Field(None, serialization_alias="verificationMessage")
    ai_roast: str | None = Field(None, serialization_alias="aiRoast")


@router.post("/drink", response_model=DrinkResponse, response_model_exclude_none=True)
async def drink(
    payload: DrinkRequest,
    user: UserRecord = Depends(get_current_user),
    recorder: DrinkRecorder = Depends(get_drink_recorder),
) -> DrinkResponse:
    outcome = await recorder.record(user, beer_type=payload.beer_type, photo=payload.photo)
    return DrinkResponse(
        success=outcome.recorded,
        beer_count=outcome.beer_count,
        verified=outcome.verified,
        verification_message=outcome.verification_message,
        ai_roast=outcome.roast,
    )
