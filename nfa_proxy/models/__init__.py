from .chat import ChatCompletionRequest, ChatMessage
from .model import CachedModel, ModelRecord, ModelsResponse
from .session import ActiveSession, CachedSession, SessionResponse

__all__ = [
    "ActiveSession",
    "CachedModel",
    "CachedSession",
    "ChatCompletionRequest",
    "ChatMessage",
    "ModelRecord",
    "ModelsResponse",
    "SessionResponse",
]
