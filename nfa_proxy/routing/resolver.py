"""
Model handle resolution.

A handle is looked up in the process-local model cache first; on a miss
the marketplace model list is fetched and the closest name (see
`matcher.similarity`) is accepted when it scores at least MATCH_THRESHOLD.
"""

from __future__ import annotations

from nfa_proxy.exceptions import (
    ConfigurationError,
    ModelResolutionError,
    NoModelRegisteredError,
    ProxyError,
)
from nfa_proxy.logging_config import logger
from nfa_proxy.marketplace import SessionManager
from nfa_proxy.model_cache import ModelCache
from nfa_proxy.models import ModelRecord

from .matcher import MATCH_THRESHOLD, best_match


class ModelResolver:
    def __init__(
        self,
        manager: SessionManager,
        cache: ModelCache,
        *,
        threshold: float = MATCH_THRESHOLD,
    ) -> None:
        self._manager = manager
        self._cache = cache
        self.threshold = threshold

    async def find_model(self, handle: str) -> ModelRecord:
        normalized = (handle or "").strip()
        if not normalized:
            raise ModelResolutionError("model handle cannot be empty")

        cached = await self._cache.get(normalized)
        if cached is not None:
            logger.info("Found cached model id for %r: %s", normalized, cached.id)
            return cached

        try:
            models = await self._manager.fetch_models()
        except ConfigurationError:
            raise
        except ProxyError as exc:
            raise ModelResolutionError(
                f"failed to fetch models: {exc}",
                details={"handle": normalized},
            ) from exc

        if not models:
            raise NoModelRegisteredError()

        match, score = best_match(normalized, models)
        if match is None or score < self.threshold:
            raise ModelResolutionError(
                f"no matching model found for {normalized!r}",
                details={"handle": normalized, "best_score": score},
            )

        logger.info(
            "Resolved model %r -> %s (%s, similarity %.1f)",
            normalized,
            match.id,
            match.name,
            score,
        )
        await self._cache.set(normalized, match)
        return match

    async def resolve_model(self, handle: str) -> str:
        return (await self.find_model(handle)).id

    async def validate_handle(self, handle: str) -> str:
        """
        Resolve a handle for a chat client. Every failure other than
        NoModelRegisteredError is reported as NoModelRegisteredError.
        """
        try:
            return await self.resolve_model(handle)
        except (NoModelRegisteredError, ConfigurationError):
            raise
        except ProxyError as exc:
            logger.warning("Model handle %r rejected: %s", handle, exc)
            raise NoModelRegisteredError(details={"handle": handle}) from exc


__all__ = ["ModelResolver"]
