from pydantic import BaseModel, Field


class ActiveSession(BaseModel):
    """
    The session currently reused for every chat request against a model.
    """

    session_id: str = Field(..., description="Marketplace session id")
    model_id: str = Field(..., description="Model the session was opened for")
    created_at: float = Field(..., description="Creation timestamp (epoch seconds)")

    def age(self, now: float) -> float:
        return now - self.created_at


class CachedSession(BaseModel):
    """
    Token-keyed view of a session, consulted when a client sends session_id.
    """

    session_id: str
    model_id: str
    expires_at: float = Field(..., description="Expiry timestamp (epoch seconds)")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionResponse(BaseModel):
    session_token: str
    expires_at: float


__all__ = ["ActiveSession", "CachedSession", "SessionResponse"]
