"""
Unified response models.
"""

import time
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class FinishReason(str, Enum):
    """Terminal states exposed to clients."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


def unix_now() -> int:
    return int(time.time())


class Usage(BaseModel):
    """Token usage information."""
    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseToolCall(BaseModel):
    """Tool call in response."""
    model_config = ConfigDict(extra="allow")

    id: str
    type: Literal["function"] = "function"
    function: Dict[str, Any]


class ResponseMessage(BaseModel):
    """Message in response."""
    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ResponseToolCall]] = None


class Choice(BaseModel):
    """A single completion choice."""
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ResponseMessage
    finish_reason: Optional[str] = None


class ChatResponse(BaseModel):
    """
    Unified chat completion response.

    Compatible with OpenAI API format.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(default="")
    object: str = Field(default="chat.completion")
    created: int = Field(default_factory=unix_now)
    model: str = Field(default="")
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None

    def get_content(self) -> Optional[str]:
        """Get the content from the first choice."""
        if self.choices:
            return self.choices[0].message.content
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for clients; finish_reason and content are always present."""
        data = self.model_dump(exclude_none=True)
        for choice in data.get("choices", []):
            choice.setdefault("finish_reason", None)
            choice.get("message", {}).setdefault("content", None)
        return data


class StreamDelta(BaseModel):
    """Delta content for streaming."""
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None


class StreamChoice(BaseModel):
    """A streaming choice."""
    model_config = ConfigDict(extra="allow")

    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: Optional[str] = None


class ChatStreamChunk(BaseModel):
    """One unified streaming event (`chat.completion.chunk`)."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default="")
    object: str = Field(default="chat.completion.chunk")
    created: int = Field(default_factory=unix_now)
    model: str = Field(default="")
    choices: List[StreamChoice] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        id: str,
        model: str,
        content: Optional[str] = None,
        finish_reason: Optional[str] = None,
    ) -> "ChatStreamChunk":
        """Create a single-choice chunk carrying a text delta and/or a finish reason."""
        return cls(
            id=id,
            model=model,
            choices=[StreamChoice(
                index=0,
                delta=StreamDelta(content=content),
                finish_reason=finish_reason,
            )],
        )

    @property
    def delta_text(self) -> str:
        """Visible text of the first choice's delta."""
        if self.choices and self.choices[0].delta.content:
            return self.choices[0].delta.content
        return ""

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        for choice in data.get("choices", []):
            choice.setdefault("finish_reason", None)
            choice.setdefault("delta", {})
        return data


class ErrorDetail(BaseModel):
    message: str
    type: str
    code: Optional[str] = None


class ErrorBody(BaseModel):
    """Unified error: `{"error": {"message", "type", "code"}}`."""
    error: ErrorDetail

    @classmethod
    def of(cls, message: str, type: str, code: Optional[str] = None) -> "ErrorBody":
        return cls(error=ErrorDetail(message=message, type=type, code=code))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class ModelCard(BaseModel):
    """Client-facing model catalog entry."""
    id: str
    object: Literal["model"] = "model"
    created: int = Field(default_factory=unix_now)
    owned_by: str
