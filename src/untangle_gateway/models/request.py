"""
Unified request models.

The unified format is the OpenAI chat-completions request shape; every
adapter translates from it.
"""

from typing import Optional, List, Dict, Any, Union, Literal
from pydantic import BaseModel, ConfigDict, Field


class FunctionDefinition(BaseModel):
    """Function definition for tool use."""
    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class Tool(BaseModel):
    """Tool definition."""
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolCall(BaseModel):
    """Tool call in a message."""
    id: str
    type: Literal["function"] = "function"
    function: Dict[str, Any]  # {"name": str, "arguments": str}


class Message(BaseModel):
    """
    Unified message format.

    Supports:
    - System messages
    - User messages (text or multimodal content parts)
    - Assistant messages (with optional tool calls)
    - Tool messages (results)
    """
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "tool"]
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    @property
    def text(self) -> str:
        """Plain text of the message; text parts of multimodal content are joined."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            part.get("text", "") for part in self.content
            if isinstance(part, dict) and part.get("type") == "text"
        )


class ChatRequest(BaseModel):
    """
    Unified chat completion request.

    Compatible with the OpenAI API format; unknown fields are kept so
    OpenAI-compatible upstreams receive them untouched.
    """
    model_config = ConfigDict(extra="allow")

    # Required
    model: str = Field(..., description="Model identifier or alias")
    messages: List[Message] = Field(..., description="Conversation messages")

    # Optional parameters
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = Field(default=False)
    stop: Optional[Union[str, List[str]]] = None

    # Tool use
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None

    @property
    def stop_sequences(self) -> Optional[List[str]]:
        """Stop sequences normalized to a list."""
        if self.stop is None:
            return None
        if isinstance(self.stop, str):
            return [self.stop]
        return list(self.stop)

    def system_prompt(self) -> Optional[str]:
        """System messages newline-joined in order, or None when there are none."""
        parts = [m.text for m in self.messages if m.role == "system"]
        if not parts:
            return None
        return "\n".join(parts)

    def non_system_messages(self) -> List[Message]:
        return [m for m in self.messages if m.role != "system"]

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI API format, dropping unset fields."""
        return self.model_dump(exclude_none=True)
