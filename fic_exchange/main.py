"""FastAPI application exposing the credential exchange as a diagnostic endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import (
    AccessDenied,
    AssertionRejected,
    ConfigurationError,
    FlowError,
    IdentityUnavailable,
    InvalidScope,
    NetworkError,
    SecretNotFound,
    TokenRequestDenied,
)
from .flow import run_exchange

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    SecretNotFound: 404,
    AccessDenied: 403,
    IdentityUnavailable: 503,
    NetworkError: 502,
    TokenRequestDenied: 502,
    AssertionRejected: 400,
    InvalidScope: 400,
}


app = FastAPI(title="Federated Credential Exchange", version="1.0.0")


def _status_for(exc: FlowError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_class):
            return status_code
    return 500


@app.get("/")
async def root() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz")
async def healthz() -> Dict[str, str]:
    # Liveness only; must not trigger token or vault requests.
    return {"status": "ok"}


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Service is misconfigured: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "ConfigurationError", "message": str(exc)}},
    )


@app.get("/secret")
def secret(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Run the full exchange and return redacted metadata about the result.

    Runs in the threadpool; the SDK calls behind it block.
    """

    try:
        result = run_exchange(settings)
    except FlowError as exc:
        status_code = _status_for(exc)
        logger.error("Exchange failed with %s: %s", type(exc).__name__, exc)
        raise HTTPException(
            status_code=status_code,
            detail={"error": type(exc).__name__, "message": str(exc)},
        ) from exc

    return result.summary()
