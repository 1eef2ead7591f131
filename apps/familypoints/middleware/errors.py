import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from apps.familypoints.services.errors import WalletError
from apps.familypoints.utils.envelope import error, wallet_error

log = logging.getLogger("familypoints.http")


def install_error_handlers(app: FastAPI) -> None:
    """Stable error envelopes; stack traces stay in the logs."""

    @app.exception_handler(WalletError)
    async def _wallet_error(request: Request, exc: WalletError):
        if exc.status_code >= 500:
            log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return wallet_error(exc)

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError):
        return error(str(exc), "invalid_request", 400)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return error("Request body failed validation", "invalid_request", 422)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error("Internal server error", "internal_error", 500)
