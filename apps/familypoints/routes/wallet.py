from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from apps.familypoints.deps import get_wallet_service
from apps.familypoints.services.wallet.reserved import sum_reserved
from apps.familypoints.services.wallet.wallet_service import WalletService
from apps.familypoints.utils.envelope import ok

router = APIRouter(prefix="/wallet", tags=["wallet"])


class CompletedTargetsQuery(BaseModel):
    child_uids: List[str] = Field(..., description="Child ids (either form) to total")


@router.get("/family/{family_id}")
async def family_wallet(family_id: str, svc: WalletService = Depends(get_wallet_service)):
    rows = await svc.fetch_wallet_for_family(family_id)
    return ok(data=[r.to_dict() for r in rows], meta={"family_id": family_id, "count": len(rows)})


@router.post("/targets/completed")
async def completed_targets(body: CompletedTargetsQuery, svc: WalletService = Depends(get_wallet_service)):
    totals = await svc.sum_completed_for_children(body.child_uids)
    return ok(data=totals, meta={"total": sum(totals.values())})


@router.get("/{child_id}")
async def child_wallet(child_id: str, svc: WalletService = Depends(get_wallet_service)):
    wallet = await svc.fetch_wallet(child_id)
    return ok(data=wallet.to_dict())


@router.get("/{child_id}/ids")
async def child_identifiers(child_id: str, svc: WalletService = Depends(get_wallet_service)):
    ids = await svc.resolve_identifiers(child_id)
    return ok(data=ids.to_dict())


@router.get("/{child_id}/breakdown")
async def child_breakdown(child_id: str, svc: WalletService = Depends(get_wallet_service)):
    breakdown = await svc.fetch_earnings_breakdown(child_id)
    return ok(data=breakdown.to_dict())


@router.get("/{child_id}/reserved")
async def child_reserved(child_id: str, svc: WalletService = Depends(get_wallet_service)):
    reserved = await svc.fetch_reserved_points(child_id)
    offers = await svc.fetch_reserved_offers(child_id)
    return ok(
        data={"reserved_points": reserved, "offers": [o.to_dict() for o in offers]},
        meta={"offers_total": sum_reserved(offers)},
    )


@router.get("/{child_id}/ledger")
async def child_ledger(
    child_id: str,
    days: int = Query(90, ge=0, le=3650),
    svc: WalletService = Depends(get_wallet_service),
):
    since = datetime.now(timezone.utc) - timedelta(days=days)
    entries = await svc.fetch_ledger_since(child_id, since)
    return ok(data=[e.to_dict() for e in entries], meta={"since": since.isoformat(), "count": len(entries)})
