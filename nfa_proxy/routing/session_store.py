"""
In-memory session bookkeeping.

Two namespaces are kept, each behind its own lock:

- active sessions, keyed by model id: the session reused for every cold
  chat request against that model until the expiration window elapses;
- the token cache, keyed by session id: lets a client that sends a
  `session_id` header skip model resolution entirely.

Locks only guard dict access; session creation happens outside them, so
two concurrent cold requests for one model may both open a session. The
last one stored wins in the active namespace.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Dict, Optional

from nfa_proxy.logging_config import logger
from nfa_proxy.marketplace import SessionManager
from nfa_proxy.models import ActiveSession, CachedSession


SWEEP_INTERVAL_SECONDS = 300.0


class SessionStore:
    def __init__(
        self,
        manager: SessionManager,
        *,
        expiration_seconds: int,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._manager = manager
        self.expiration_seconds = expiration_seconds
        self.sweep_interval = sweep_interval
        self._active: Dict[str, ActiveSession] = {}
        self._active_lock = asyncio.Lock()
        self._tokens: Dict[str, CachedSession] = {}
        self._tokens_lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def _is_fresh(self, session: ActiveSession, now: float) -> bool:
        return session.age(now) < self.expiration_seconds

    async def get_active(self, model_id: str) -> Optional[ActiveSession]:
        """
        Return the live session for a model, evicting it if it went stale.
        """
        now = time.time()
        async with self._active_lock:
            session = self._active.get(model_id)
            if session is None:
                return None
            if self._is_fresh(session, now):
                return session
            del self._active[model_id]
        logger.info("Evicted expired session %s for model %s", session.session_id, model_id)
        return None

    async def put_active(self, session: ActiveSession) -> None:
        async with self._active_lock:
            self._active[session.model_id] = session

    async def ensure_session(
        self, model_id: str, stake_amount: Optional[str] = None
    ) -> ActiveSession:
        """
        Reuse the model's active session or open a new one.

        Creation errors propagate and leave both namespaces untouched.
        """
        existing = await self.get_active(model_id)
        if existing is not None:
            logger.info("Reusing session %s for model %s", existing.session_id, model_id)
            return existing

        created = await self._manager.create_session(model_id, stake_amount)
        now = time.time()
        session = ActiveSession(
            session_id=created.session_token,
            model_id=model_id,
            created_at=now,
        )
        await self.put_active(session)
        await self.remember_token(
            CachedSession(
                session_id=created.session_token,
                model_id=model_id,
                expires_at=now + self.expiration_seconds,
            )
        )
        return session

    async def remember_token(self, session: CachedSession) -> None:
        async with self._tokens_lock:
            self._tokens[session.session_id] = session

    async def lookup_token(self, session_id: str) -> Optional[CachedSession]:
        """
        Return the cached session for a client-supplied id if it has not
        expired yet.
        """
        if not session_id:
            return None
        async with self._tokens_lock:
            cached = self._tokens.get(session_id)
        if cached is None or cached.is_expired(time.time()):
            return None
        return cached

    async def sweep_expired(self, now: Optional[float] = None) -> int:
        """
        Drop stale entries from both namespaces; returns how many went.
        """
        now = time.time() if now is None else now
        removed = 0
        async with self._active_lock:
            for model_id, session in list(self._active.items()):
                if not self._is_fresh(session, now):
                    del self._active[model_id]
                    removed += 1
                    logger.info("Cleaned up expired session for model %s", model_id)
        async with self._tokens_lock:
            for session_id, cached in list(self._tokens.items()):
                if cached.is_expired(now):
                    del self._tokens[session_id]
                    removed += 1
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                removed = await self.sweep_expired()
            except Exception:
                logger.exception("Session sweep failed")
                continue
            if removed:
                logger.debug("Session sweep removed %d entries", removed)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="session-sweeper")

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()


__all__ = ["SWEEP_INTERVAL_SECONDS", "SessionStore"]
