"""
HTTP-backed session manager for the marketplace and consumer node.

Model listing and session creation share one retry policy: up to
MAX_RETRIES attempts, retrying transport errors, 503 and unexpected
statuses with a linear `attempt * retry_delay` pause. 400/401 are final.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Type
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from nfa_proxy.auth import CredentialResolver
from nfa_proxy.exceptions import (
    ChatForwardError,
    ModelFetchError,
    SessionCreationError,
    UpstreamError,
    UpstreamRejectedError,
)
from nfa_proxy.logging_config import logger
from nfa_proxy.models import ModelRecord, ModelsResponse, SessionResponse
from nfa_proxy.settings import Settings

from .base import SessionManager


MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0
SESSION_FEE = "300000000000"

MODELS_TIMEOUT = 30.0
SESSION_TIMEOUT = 60.0
CHAT_TIMEOUT = 300.0

_FINAL_STATUSES = (400, 401)


def _upstream_error_message(resp: httpx.Response) -> str:
    """
    Pull the `error` field out of a marketplace error body, falling back
    to the raw text.
    """
    try:
        payload = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return resp.text


class LiveSessionManager(SessionManager):
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        consumer_node_url: str,
        marketplace_url: str,
        credentials: CredentialResolver,
        session_duration_seconds: int,
        chat_path: str = "/v1/chat/completions",
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self._client = client
        self.consumer_node_url = consumer_node_url.rstrip("/")
        self.marketplace_url = marketplace_url.rstrip("/")
        self._credentials = credentials
        self.session_duration_seconds = session_duration_seconds
        self.chat_path = chat_path if chat_path.startswith("/") else f"/{chat_path}"
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(
        cls,
        client: httpx.AsyncClient,
        cfg: Settings,
        credentials: Optional[CredentialResolver] = None,
    ) -> "LiveSessionManager":
        return cls(
            client,
            consumer_node_url=cfg.consumer_node_url or "",
            marketplace_url=cfg.marketplace_url,
            credentials=credentials or CredentialResolver.from_settings(cfg),
            session_duration_seconds=cfg.session_duration_seconds,
            chat_path=cfg.chat_completions_path,
        )

    async def _pause(self, attempt: int) -> None:
        if attempt < self.max_retries and self.retry_delay > 0:
            await asyncio.sleep(attempt * self.retry_delay)

    async def _request_with_retry(
        self,
        *,
        operation: str,
        method: str,
        url: str,
        timeout: float,
        error_cls: Type[UpstreamError],
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        auth = await self._credentials.abasic_auth()
        last_cause = "no attempt made"
        last_status: Optional[int] = None
        last_body: Optional[str] = None
        timed_out = False

        for attempt in range(1, self.max_retries + 1):
            logger.info("%s attempt %d of %d (%s %s)", operation, attempt, self.max_retries, method, url)
            try:
                resp = await self._client.request(
                    method,
                    url,
                    json=json_body,
                    headers={"Accept": "application/json"},
                    auth=auth,
                    timeout=timeout,
                )
            except httpx.TransportError as exc:
                timed_out = isinstance(exc, httpx.TimeoutException)
                last_cause = f"{type(exc).__name__}: {exc}"
                last_status = None
                last_body = None
                logger.warning("%s transport error (attempt %d): %s", operation, attempt, last_cause)
                await self._pause(attempt)
                continue

            if resp.status_code == 200:
                return resp

            if resp.status_code in _FINAL_STATUSES:
                message = _upstream_error_message(resp)
                logger.warning("%s rejected with status %d: %s", operation, resp.status_code, message)
                raise UpstreamRejectedError(
                    f"{operation} rejected ({resp.status_code}): {message}",
                    status_code=resp.status_code,
                    body=resp.text,
                    attempts=attempt,
                )

            timed_out = False
            last_status = resp.status_code
            last_body = resp.text
            last_cause = f"status {resp.status_code}: {resp.text}"
            if resp.status_code == 503:
                logger.warning("%s service unavailable (attempt %d), retrying", operation, attempt)
            else:
                logger.warning(
                    "%s unexpected status %d (attempt %d), retrying",
                    operation,
                    resp.status_code,
                    attempt,
                )
            await self._pause(attempt)

        verb = "timed out" if timed_out else "failed"
        raise error_cls(
            f"{operation} {verb} after {self.max_retries} attempts, last error: {last_cause}",
            status_code=last_status,
            body=last_body,
            attempts=self.max_retries,
        )

    async def fetch_models(self) -> List[ModelRecord]:
        url = f"{self.marketplace_url}/blockchain/models"
        resp = await self._request_with_retry(
            operation="fetch models",
            method="GET",
            url=url,
            timeout=MODELS_TIMEOUT,
            error_cls=ModelFetchError,
        )
        try:
            parsed = ModelsResponse.model_validate(resp.json())
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            raise ModelFetchError(
                f"failed to decode models response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc
        logger.debug("Marketplace listed %d models", len(parsed.models))
        return parsed.models

    def session_payload(self, stake_amount: Optional[str]) -> Dict[str, Any]:
        return {
            "sessionDuration": str(self.session_duration_seconds),
            "directPayment": False,
            "failover": False,
            "fee": SESSION_FEE,
            "stake": stake_amount or "",
        }

    async def create_session(
        self, model_id: str, stake_amount: Optional[str] = None
    ) -> SessionResponse:
        url = f"{self.consumer_node_url}/blockchain/models/{quote(model_id, safe='')}/session"
        payload = self.session_payload(stake_amount)
        logger.info("Creating session for model %s via %s", model_id, url)

        resp = await self._request_with_retry(
            operation="session creation",
            method="POST",
            url=url,
            timeout=SESSION_TIMEOUT,
            error_cls=SessionCreationError,
            json_body=payload,
        )
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SessionCreationError(
                f"failed to decode session response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        session_id = data.get("sessionID") if isinstance(data, dict) else None
        if not isinstance(session_id, str) or not session_id:
            raise SessionCreationError(
                "session response did not contain a sessionID",
                status_code=resp.status_code,
                body=resp.text,
            )

        logger.info("Created session %s for model %s", session_id, model_id)
        return SessionResponse(
            session_token=session_id,
            expires_at=time.time() + self.session_duration_seconds,
        )

    async def open_chat_stream(
        self, payload: Dict[str, Any], session_id: str
    ) -> httpx.Response:
        url = f"{self.consumer_node_url}{self.chat_path}"
        request = self._client.build_request(
            "POST",
            url,
            json=payload,
            headers={
                "Accept": "text/event-stream",
                "session_id": session_id,
            },
            timeout=CHAT_TIMEOUT,
        )
        auth = await self._credentials.abasic_auth()
        logger.info("Forwarding chat request to %s (session_id=%s)", url, session_id)
        try:
            return await self._client.send(request, stream=True, auth=auth)
        except httpx.TransportError as exc:
            raise ChatForwardError(
                f"failed to connect to consumer node: {exc}"
            ) from exc


__all__ = [
    "MAX_RETRIES",
    "RETRY_BASE_DELAY",
    "SESSION_FEE",
    "LiveSessionManager",
]
