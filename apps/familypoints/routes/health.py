from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from apps.familypoints.deps import ServiceContainer, get_container
from apps.familypoints.routes.health_checks.wallet_healthcheck import wallet_healthcheck

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/wallet")
async def health_wallet(container: ServiceContainer = Depends(get_container)):
    res = await wallet_healthcheck(container.repo)
    return JSONResponse(content=res, status_code=200 if res.get("ok") else 503)
