from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from .chat_service import ChatService
from .marketplace import SessionManager
from .model_cache import ModelCache
from .routing import ModelResolver, SessionStore
from .settings import Settings
from .upstream import ChatForwarder


@dataclass
class ProxyState:
    """
    Process-wide components shared by all requests, stored on
    `app.state.proxy` by create_app().
    """

    settings: Settings
    http_client: httpx.AsyncClient
    manager: SessionManager
    model_cache: ModelCache
    resolver: ModelResolver
    sessions: SessionStore
    forwarder: ChatForwarder
    chat: ChatService
    owns_client: bool = False


def get_proxy_state(request: Request) -> ProxyState:
    return request.app.state.proxy


def get_settings(request: Request) -> Settings:
    return get_proxy_state(request).settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Shared AsyncClient for upstream calls; its lifetime is the app's.
    """
    return get_proxy_state(request).http_client


def get_chat_service(request: Request) -> ChatService:
    return get_proxy_state(request).chat


__all__ = [
    "ProxyState",
    "get_chat_service",
    "get_http_client",
    "get_proxy_state",
    "get_settings",
]
