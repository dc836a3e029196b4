"""FastAPI application — pricefeed quote pipeline and edge gateway."""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pricefeed.api.v2 import gateway, markets, quotes
from pricefeed.api.v2.errors import gateway_error_handler, value_error_handler
from pricefeed.core.gateway import get_gateway
from pricefeed.core.gateway.errors import GatewayError
from pricefeed.core.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("startup", version="1.0.0")
    yield
    await get_gateway().cache.drain()
    logger.info("shutdown")


app = FastAPI(
    title="pricefeed",
    version="1.0.0",
    description="Symbol resolution, normalized quotes and a caching edge gateway for market data providers",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "HEAD", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=["X-Cache-Status", "Cache-Control"],
)

app.include_router(markets.router, prefix="/api/v2")
app.include_router(quotes.router, prefix="/api/v2")
app.include_router(gateway.router)

app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(GatewayError, gateway_error_handler)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
