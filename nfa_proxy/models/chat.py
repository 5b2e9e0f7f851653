from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = ""


class ChatCompletionRequest(BaseModel):
    """
    Inbound OpenAI-style chat request. Fields we do not use are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    model: str = Field(..., description="Model handle as sent by the client")
    messages: list[ChatMessage] = Field(default_factory=list)
    stream: bool = False
    stake_amount: Optional[str] = Field(
        default=None, description="Amount to stake in wei"
    )

    @field_validator("stake_amount", mode="before")
    @classmethod
    def _stake_as_string(cls, value: Any) -> Any:
        # Wei amounts travel upstream as decimal strings.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def upstream_payload(self) -> Dict[str, Any]:
        """
        Body sent to the consumer node: the original handle, the messages,
        and streaming always on.
        """
        return {
            "model": self.model,
            "messages": [m.model_dump() for m in self.messages],
            "stream": True,
        }


__all__ = ["ChatMessage", "ChatCompletionRequest"]
