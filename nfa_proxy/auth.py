"""
Basic-Auth credentials for the consumer node.

Credentials come from a cookie file (`username:password`) written by the
consumer node, falling back to CONSUMER_USERNAME / CONSUMER_PASSWORD.
They are resolved once and reused for the lifetime of the resolver.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from .exceptions import ConfigurationError
from .logging_config import logger
from .settings import Settings


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def as_basic_auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.username, self.password)


def _read_cookie_file(path: Path) -> Optional[Credentials]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return None
    parts = raw.strip().split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        logger.warning("Ignoring malformed cookie file %s", path)
        return None
    return Credentials(username=parts[0], password=parts[1])


class CredentialResolver:
    def __init__(
        self,
        *,
        cookie_path: str | Path = ".cookie",
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self._cookie_path = Path(cookie_path)
        self._username = username
        self._password = password
        self._cached: Optional[Credentials] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CredentialResolver":
        return cls(
            cookie_path=cfg.cookie_file_path,
            username=cfg.consumer_username,
            password=cfg.consumer_password,
        )

    def resolve(self) -> Credentials:
        """
        Return cached credentials, deriving them on first use.
        """
        with self._lock:
            if self._cached is not None:
                return self._cached

            creds = _read_cookie_file(self._cookie_path)
            if creds is not None:
                logger.info("Using consumer credentials from %s", self._cookie_path)
            else:
                if not self._username:
                    raise ConfigurationError(
                        "CONSUMER_USERNAME environment variable is required"
                    )
                if not self._password:
                    raise ConfigurationError(
                        "no credentials found in cookie file or environment"
                    )
                creds = Credentials(username=self._username, password=self._password)
                logger.info("Using consumer credentials from environment")

            self._cached = creds
            return creds

    def basic_auth(self) -> httpx.BasicAuth:
        return self.resolve().as_basic_auth()

    async def abasic_auth(self) -> httpx.BasicAuth:
        """
        Async variant of basic_auth; the first resolution reads the cookie
        file in a worker thread so the event loop is not blocked.
        """
        creds = self._cached
        if creds is None:
            creds = await asyncio.to_thread(self.resolve)
        return creds.as_basic_auth()


__all__ = ["Credentials", "CredentialResolver"]
