"""Global error handlers."""
from fastapi import Request
from fastapi.responses import JSONResponse

from pricefeed.core.gateway.errors import GatewayError


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=422,
        content={"error": str(exc), "code": "VALIDATION_ERROR", "details": {}},
    )


async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc), "code": exc.code, "details": exc.details},
    )


def not_found(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": message, "code": "NOT_FOUND", "details": {}},
    )
