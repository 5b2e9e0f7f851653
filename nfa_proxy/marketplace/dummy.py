"""
Canned session manager used with SESSION_MODE=dummy.

It mirrors the simplified node API, whose models carry integer ids; they
are converted here so the rest of the proxy keeps seeing string ids.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx

from nfa_proxy.logging_config import logger
from nfa_proxy.models import ModelRecord, SessionResponse

from .base import SessionManager


DEFAULT_DUMMY_MODELS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "name": "LMR-Hermes-2-Theta-Llama-3-8B",
        "endpoint": "http://localhost:8083",
        "description": "Test model",
    },
]


class DummySessionManager(SessionManager):
    def __init__(
        self,
        *,
        models: Optional[List[Dict[str, Any]]] = None,
        session_duration_seconds: int = 3600,
        reply_chunks: Optional[List[str]] = None,
    ) -> None:
        self._raw_models = models if models is not None else DEFAULT_DUMMY_MODELS
        self.session_duration_seconds = session_duration_seconds
        self.reply_chunks = reply_chunks or ["Test ", "response ", "from dummy mode"]
        self.created_sessions: List[str] = []

    async def fetch_models(self) -> List[ModelRecord]:
        return [
            ModelRecord(
                id=str(item["id"]),
                name=item["name"],
                endpoint=item.get("endpoint", ""),
                description=item.get("description", ""),
            )
            for item in self._raw_models
        ]

    async def create_session(
        self, model_id: str, stake_amount: Optional[str] = None
    ) -> SessionResponse:
        session_id = f"dummy-{uuid.uuid4().hex}"
        self.created_sessions.append(session_id)
        logger.info("Dummy session %s opened for model %s", session_id, model_id)
        return SessionResponse(
            session_token=session_id,
            expires_at=time.time() + self.session_duration_seconds,
        )

    async def open_chat_stream(
        self, payload: Dict[str, Any], session_id: str
    ) -> httpx.Response:
        model = payload.get("model")
        frames = []
        for idx, text in enumerate(self.reply_chunks):
            chunk = {
                "id": f"chatcmpl-{session_id}",
                "object": "chat.completion.chunk",
                "model": model,
                "choices": [{"index": 0, "delta": {"content": text}}],
            }
            if idx == len(self.reply_chunks) - 1:
                chunk["choices"][0]["finish_reason"] = "stop"
            frames.append(f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n")
        frames.append("data: [DONE]\n\n")
        return httpx.Response(
            200,
            content="".join(frames).encode("utf-8"),
            headers={"content-type": "text/event-stream"},
        )


__all__ = ["DEFAULT_DUMMY_MODELS", "DummySessionManager"]
