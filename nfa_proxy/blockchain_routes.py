"""
Transparent passthrough of the marketplace `/blockchain/models` API.

The caller's method, headers and body are replayed against MARKETPLACE_URL
and the upstream status, headers and body are returned unchanged.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from nfa_proxy.deps import get_http_client, get_settings
from nfa_proxy.exceptions import UpstreamError
from nfa_proxy.logging_config import logger
from nfa_proxy.settings import Settings


PASSTHROUGH_TIMEOUT = 10.0

_DROP_REQUEST_HEADERS = {"host", "content-length"}
_DROP_RESPONSE_HEADERS = {
    "content-length",
    "content-encoding",
    "transfer-encoding",
    "connection",
}


router = APIRouter(tags=["blockchain"])


def _forward_headers(request: Request) -> list[tuple[bytes, bytes]]:
    return [
        (k, v)
        for k, v in request.headers.raw
        if k.decode("latin-1").lower() not in _DROP_REQUEST_HEADERS
    ]


def _relay_response(resp: httpx.Response) -> Response:
    # Repeated headers such as Set-Cookie are appended one by one.
    response = Response(content=resp.content, status_code=resp.status_code)
    for k, v in resp.headers.multi_items():
        if k.lower() not in _DROP_RESPONSE_HEADERS:
            response.headers.append(k, v)
    return response


async def _passthrough(
    request: Request,
    client: httpx.AsyncClient,
    url: str,
) -> Response:
    body = await request.body()
    try:
        resp = await client.request(
            request.method,
            url,
            params=request.query_params,
            headers=_forward_headers(request),
            content=body or None,
            timeout=PASSTHROUGH_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        logger.warning("Marketplace passthrough %s %s failed: %s", request.method, url, exc)
        raise UpstreamError(
            f"failed to reach marketplace: {exc}",
            details={"url": url},
        ) from exc

    logger.info(
        "Marketplace passthrough %s %s -> %s", request.method, url, resp.status_code
    )
    return _relay_response(resp)


@router.get("/blockchain/models")
async def list_blockchain_models(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
) -> Response:
    url = f"{cfg.marketplace_url.rstrip('/')}/blockchain/models"
    return await _passthrough(request, client, url)


@router.api_route("/blockchain/models/{path:path}", methods=["GET", "POST", "DELETE"])
async def blockchain_models_passthrough(
    path: str,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
) -> Response:
    url = f"{cfg.marketplace_url.rstrip('/')}/blockchain/models/{path}"
    return await _passthrough(request, client, url)


__all__ = ["PASSTHROUGH_TIMEOUT", "router"]
