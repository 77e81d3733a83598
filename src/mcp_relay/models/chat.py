"""Pydantic models for the chat API request and its stream events.

The streaming endpoint emits one JSON object per SSE ``data:`` record. Every
event model here serializes (with ``by_alias=True``) to exactly one of the
record shapes clients understand.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class HistoryTurn(BaseModel):
    """A prior conversation turn sent along with a chat request."""

    role: str = Field(
        description="'user' for user turns; any other role is treated as the model"
    )
    content: str = Field(default="", description="Plain text of the turn")


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/chat/stream."""

    message: str = Field(min_length=1, description="The new user message")
    history: list[HistoryTurn] = Field(
        default_factory=list, description="Prior turns, oldest first"
    )
    use_tools: bool = Field(
        default=True,
        description="Whether tools from connected providers may be used.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "message": "echo hi",
                    "history": [
                        {"role": "user", "content": "Hello"},
                        {"role": "model", "content": "Hi! How can I help?"},
                    ],
                    "use_tools": True,
                }
            ]
        }
    )


class FunctionCallInfo(BaseModel):
    """The encoded function name and arguments of a model function call."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class TextEvent(BaseModel):
    """An incremental or final text fragment."""

    text: str


class FunctionCallEvent(BaseModel):
    """The model requested a function call."""

    type: Literal["function_call"] = "function_call"
    function_call: FunctionCallInfo = Field(alias="functionCall")

    model_config = ConfigDict(populate_by_name=True)


class FunctionResultEvent(BaseModel):
    """A function call finished; ``result`` is the (relocated) tool output."""

    type: Literal["function_result"] = "function_result"
    function_call: FunctionCallInfo = Field(alias="functionCall")
    result: Any = None

    model_config = ConfigDict(populate_by_name=True)


class ErrorEvent(BaseModel):
    """A late failure; no further content follows."""

    error: str


StreamEvent = Union[TextEvent, FunctionCallEvent, FunctionResultEvent, ErrorEvent]

DONE_SENTINEL = "[DONE]"
