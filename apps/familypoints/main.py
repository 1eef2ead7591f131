# apps/familypoints/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.familypoints.middleware.errors import install_error_handlers
from apps.familypoints.middleware.request_log import RequestLogMiddleware
from apps.familypoints.routes.health import router as health_router
from apps.familypoints.routes.points import router as points_router
from apps.familypoints.routes.wallet import router as wallet_router
from apps.familypoints.utils.settings import settings

logging.basicConfig(level=settings.LOG_LEVEL)
log = logging.getLogger("familypoints.main")

app = FastAPI(
    title="Family Points",
    version=settings.FAMILYPOINTS_VERSION,
    description="Child points wallets, earnings breakdowns and idempotent awards",
)

# -------------------------------------------------------------------
# Error handling (stable envelopes, no stack leaks)
# -------------------------------------------------------------------
install_error_handlers(app)

# -------------------------------------------------------------------
# Request logging
# -------------------------------------------------------------------
app.add_middleware(RequestLogMiddleware)

# -------------------------------------------------------------------
# CORS (parent/child web app)
# -------------------------------------------------------------------
if settings.CORS_MODE == "allowlist":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

# -------------------------------------------------------------------
# Routers
# -------------------------------------------------------------------
app.include_router(health_router)
app.include_router(wallet_router)
app.include_router(points_router)


# -------------------------------------------------------------------
# Root
# -------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "status": "Family Points Online",
        "version": settings.FAMILYPOINTS_VERSION,
        "routes": [
            "/health",
            "/wallet",
            "/points",
        ],
    }


@app.on_event("startup")
async def startup_event():
    log.info("Family Points starting (env=%s, supabase=%s)", settings.ENVIRONMENT, settings.supabase_configured)
