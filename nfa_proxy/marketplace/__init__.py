from __future__ import annotations

import httpx

from nfa_proxy.auth import CredentialResolver
from nfa_proxy.settings import Settings

from .base import SessionManager
from .dummy import DummySessionManager
from .live import LiveSessionManager


def build_session_manager(
    client: httpx.AsyncClient,
    cfg: Settings,
    credentials: CredentialResolver | None = None,
) -> SessionManager:
    """
    Pick the session manager variant configured by SESSION_MODE.
    """
    if cfg.session_mode == "dummy":
        return DummySessionManager(session_duration_seconds=cfg.session_duration_seconds)
    return LiveSessionManager.from_settings(client, cfg, credentials)


__all__ = [
    "SessionManager",
    "LiveSessionManager",
    "DummySessionManager",
    "build_session_manager",
]
