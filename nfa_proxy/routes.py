from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .blockchain_routes import router as blockchain_router
from .chat_service import ChatService
from .deps import ProxyState, get_chat_service
from .errors import install_error_handlers
from .exceptions import InvalidRequestError
from .logging_config import logger
from .marketplace import SessionManager, build_session_manager
from .model_cache import ModelCache
from .models import ChatCompletionRequest
from .routing import ModelResolver, SessionStore
from .settings import Settings, settings
from .upstream import EVENT_STREAM_HEADERS, ChatForwarder


SESSION_HEADER = "session_id"

# Per-call timeouts are set by the session manager; this is the fallback.
DEFAULT_CLIENT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


class HealthResponse(BaseModel):
    status: str = "healthy"


def _redacted_headers(request: Request) -> dict[str, str]:
    return {
        k: ("***REDACTED***" if k.lower() in ("authorization", "cookie") else v)
        for k, v in request.headers.items()
    }


def build_state(
    cfg: Settings,
    *,
    manager: Optional[SessionManager] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ProxyState:
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=DEFAULT_CLIENT_TIMEOUT)
    manager = manager or build_session_manager(client, cfg)
    cache = ModelCache()
    resolver = ModelResolver(manager, cache)
    sessions = SessionStore(manager, expiration_seconds=cfg.session_expiration_seconds)
    forwarder = ChatForwarder(manager)
    return ProxyState(
        settings=cfg,
        http_client=client,
        manager=manager,
        model_cache=cache,
        resolver=resolver,
        sessions=sessions,
        forwarder=forwarder,
        chat=ChatService(resolver, sessions, forwarder),
        owns_client=owns_client,
    )


def create_app(
    config: Optional[Settings] = None,
    *,
    manager: Optional[SessionManager] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sweep_enabled: Optional[bool] = None,
) -> FastAPI:
    """
    Build the proxy application.

    Tests inject `manager` and/or `http_client`; without an injected
    manager the configuration is validated up front and a missing
    CONSUMER_NODE_URL aborts startup.
    """
    cfg = config or settings
    if manager is None:
        cfg.ensure_required()
    state = build_state(cfg, manager=manager, http_client=http_client)
    run_sweeper = cfg.session_sweep_enabled if sweep_enabled is None else sweep_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting proxy (mode=%s, marketplace=%s, consumer_node=%s, session_expiration=%ss)",
            cfg.session_mode,
            cfg.marketplace_url,
            cfg.consumer_node_url,
            cfg.session_expiration_seconds,
        )
        if run_sweeper:
            state.sessions.start_sweeper()
        try:
            yield
        finally:
            await state.sessions.stop_sweeper()
            if state.owns_client:
                await state.http_client.aclose()
            logger.info("Proxy shut down")

    app = FastAPI(title="NFA Proxy", version="0.1.0", lifespan=lifespan)
    app.state.proxy = state
    install_error_handlers(app)
    app.include_router(blockchain_router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Request/response logging with credentials redacted.
        """
        client_host = request.client.host if request.client else "-"
        logger.info(
            "HTTP %s %s from %s, headers=%s",
            request.method,
            request.url.path,
            client_host,
            _redacted_headers(request),
        )
        response = await call_next(request)
        logger.info(
            "HTTP %s %s -> %s", request.method, request.url.path, response.status_code
        )
        return response

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    @app.post("/v1/chat/completions")
    async def chat_completions(
        request: Request,
        payload: ChatCompletionRequest,
        chat: ChatService = Depends(get_chat_service),
    ) -> StreamingResponse:
        """
        OpenAI-compatible chat endpoint. The reply is always streamed as
        server-sent events, whatever `stream` the client asked for.
        """
        if not payload.messages:
            raise InvalidRequestError("Messages array cannot be empty")

        # Starlette keeps underscores in header names, so read it raw.
        route = await chat.route(payload, request.headers.get(SESSION_HEADER))
        upstream = await chat.forwarder.open_stream(payload, route.session_id)

        headers = dict(EVENT_STREAM_HEADERS)
        headers[SESSION_HEADER] = route.session_id
        return StreamingResponse(chat.forwarder.relay(upstream), headers=headers)

    return app


__all__ = ["HealthResponse", "SESSION_HEADER", "build_state", "create_app"]
