from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .logging_config import logger
from .models import ChatCompletionRequest
from .routing import ModelResolver, SessionStore
from .upstream import ChatForwarder


@dataclass(frozen=True)
class ChatRoute:
    session_id: str
    model_id: str
    reused_token: bool


class ChatService:
    """
    Decides which session a chat request rides on.

    A `session_id` header that is still valid in the token cache wins;
    otherwise the model handle is validated and the model's active
    session is reused or opened.
    """

    def __init__(
        self,
        resolver: ModelResolver,
        store: SessionStore,
        forwarder: ChatForwarder,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.forwarder = forwarder

    async def route(
        self, request: ChatCompletionRequest, session_header: Optional[str]
    ) -> ChatRoute:
        if session_header:
            cached = await self.store.lookup_token(session_header)
            if cached is not None:
                logger.info(
                    "Using existing session %s for model %s",
                    cached.session_id,
                    cached.model_id,
                )
                return ChatRoute(
                    session_id=cached.session_id,
                    model_id=cached.model_id,
                    reused_token=True,
                )
            logger.info("Session %s not found or expired", session_header)

        model_id = await self.resolver.validate_handle(request.model)
        session = await self.store.ensure_session(model_id, request.stake_amount)
        return ChatRoute(
            session_id=session.session_id,
            model_id=model_id,
            reused_token=False,
        )


__all__ = ["ChatRoute", "ChatService"]
