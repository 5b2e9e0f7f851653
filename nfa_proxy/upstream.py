from __future__ import annotations

from typing import AsyncIterator

import httpx

from .exceptions import ChatForwardError
from .logging_config import logger
from .marketplace import SessionManager
from .models import ChatCompletionRequest


DONE_LINE = "data: [DONE]"

EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class ChatForwarder:
    """
    Forwards a chat request to the consumer node and relays its SSE body.

    `open_stream` runs before the caller commits to a 200: upstream
    errors surface there as ChatForwardError. `relay` is the streaming
    half; each yielded chunk is written and flushed by the ASGI server,
    and generator exhaustion completes the response.
    """

    def __init__(self, manager: SessionManager) -> None:
        self._manager = manager

    async def open_stream(
        self, request: ChatCompletionRequest, session_id: str
    ) -> httpx.Response:
        payload = request.upstream_payload()
        resp = await self._manager.open_chat_stream(payload, session_id)
        if resp.status_code != 200:
            try:
                body = (await resp.aread()).decode("utf-8", errors="ignore")
            finally:
                await resp.aclose()
            logger.warning(
                "Chat upstream returned %s for model %r (session_id=%s): %s",
                resp.status_code,
                request.model,
                session_id,
                body,
            )
            raise ChatForwardError(
                f"marketplace request failed, status: {resp.status_code}, response: {body}",
                status_code=resp.status_code,
                body=body,
            )
        logger.info(
            "Chat upstream connected for model %r (session_id=%s)",
            request.model,
            session_id,
        )
        return resp

    async def relay(self, resp: httpx.Response) -> AsyncIterator[bytes]:
        """
        Yield the upstream body line by line until EOF or `data: [DONE]`.

        A read error after the first byte cannot become an HTTP error any
        more; it is logged and re-raised so the server drops the
        connection mid-stream.
        """
        lines = 0
        try:
            async for line in resp.aiter_lines():
                if line.strip() == DONE_LINE:
                    yield f"{DONE_LINE}\n\n".encode("utf-8")
                    break
                lines += 1
                yield f"{line}\n".encode("utf-8")
        except httpx.HTTPError as exc:
            logger.warning("Chat stream truncated after %d lines: %s", lines, exc)
            raise
        finally:
            await resp.aclose()
        logger.info("Chat stream finished after %d lines", lines)


__all__ = ["DONE_LINE", "EVENT_STREAM_HEADERS", "ChatForwarder"]
