from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional

import httpx

from nfa_proxy.models import ModelRecord, SessionResponse


class SessionManager(abc.ABC):
    """
    Capability interface for talking to the marketplace / consumer node.

    The HTTP front and the routing layer only depend on this interface;
    `LiveSessionManager` performs real HTTP calls, `DummySessionManager`
    serves canned data for local runs and tests.
    """

    @abc.abstractmethod
    async def fetch_models(self) -> List[ModelRecord]:
        """Return every model currently listed by the marketplace."""

    @abc.abstractmethod
    async def create_session(
        self, model_id: str, stake_amount: Optional[str] = None
    ) -> SessionResponse:
        """Open a paid session for `model_id`."""

    @abc.abstractmethod
    async def open_chat_stream(
        self, payload: Dict[str, Any], session_id: str
    ) -> httpx.Response:
        """
        Send a chat completion request and return the (still open)
        streaming response. Callers own closing it.
        """


__all__ = ["SessionManager"]
