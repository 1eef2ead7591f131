from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from apps.familypoints.services.errors import WalletError

# Seconds a client should wait before refreshing a wallet after a 503.
RETRY_AFTER_SECONDS = 5


def ok(data: Any = None, meta: Optional[Dict[str, Any]] = None, status: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status, content={"ok": True, "data": data, "meta": meta or {}})


def error(message: str, code: str = "error", status: int = 400) -> JSONResponse:
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if status == 503 else None
    return JSONResponse(
        status_code=status,
        content={"ok": False, "error": code, "message": message},
        headers=headers,
    )


def wallet_error(exc: WalletError) -> JSONResponse:
    return error(exc.message, exc.code, exc.status_code)
