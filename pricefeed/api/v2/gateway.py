"""Gateway surface — ``/?apiId=<route>&<params>`` proxied to the upstream data sources."""
from fastapi import APIRouter, Depends, Query, Request, Response

from pricefeed.core.gateway import get_gateway
from pricefeed.core.gateway.edge_cache import EdgeGateway
from pricefeed.core.gateway.errors import UnknownRouteError

router = APIRouter(tags=["Gateway"])


def client_id(request: Request) -> str:
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.api_route("/", methods=["GET", "POST"])
async def proxy(
    request: Request,
    apiId: str | None = Query(None),
    gateway: EdgeGateway = Depends(get_gateway),
):
    """Route one upstream call through validation, rate limiting and the edge cache."""
    if not apiId:
        raise UnknownRouteError("Missing apiId")
    params = {k: v for k, v in request.query_params.items() if k != "apiId"}
    resp = await gateway.handle(client_id(request), apiId, params)
    return Response(
        content=resp.body,
        status_code=resp.status,
        media_type=resp.content_type,
        headers={
            "X-Cache-Status": resp.cache_status,
            "Cache-Control": f"public, max-age={resp.ttl}",
        },
    )
