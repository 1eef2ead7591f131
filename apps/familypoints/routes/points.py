from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from apps.familypoints.deps import get_points_service
from apps.familypoints.services.points import PointsService
from apps.familypoints.utils.envelope import ok

router = APIRouter(prefix="/points", tags=["points"])


class AwardRequest(BaseModel):
    child: str = Field(..., description="Canonical id or legacy child_uid")
    delta: int = Field(..., description="Signed points; negative for corrections")
    reason: str = Field("", description="Free-text reason shown in the ledger")
    ref: Optional[str] = Field(None, description="Caller reference; scoped per child as the idempotency key")


class GameAwardRequest(BaseModel):
    child: str
    game: str = Field(..., description="mathsprint | wordbuilder | memory | starcatcher | jump")
    segment: int = Field(..., ge=0)
    delta: int = Field(..., gt=0)
    day: Optional[date] = None


@router.post("/award")
async def award(body: AwardRequest, svc: PointsService = Depends(get_points_service)):
    result = await svc.award_points(body.child, body.delta, body.reason, ref=body.ref)
    return ok(data=result.to_dict())


@router.post("/award/game")
async def award_game(body: GameAwardRequest, svc: PointsService = Depends(get_points_service)):
    result = await svc.award_game_segment(body.child, body.game, body.segment, body.delta, day=body.day)
    return ok(data=result.to_dict())
