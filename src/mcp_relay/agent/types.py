"""Conversation data types used by the agent loop.

Turns use two roles, ``user`` and ``model``, and are rendered into Ollama's
message format (user/assistant/tool) right before each model call.
"""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FunctionCall:
    """A function call requested by the model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    index: int = 0


@dataclass
class FunctionResult:
    """The outcome of executing one FunctionCall."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    index: int = 0
    response: Any = None
    error: str | None = None

    @property
    def payload(self) -> Any:
        """What the model and the client get to see for this call."""
        if self.error is None:
            return self.response
        payload: dict[str, Any] = {"error": self.error}
        # Error results reported by the tool keep their content for the model
        if isinstance(self.response, dict) and "content" in self.response:
            payload["content"] = self.response["content"]
        return payload


@dataclass
class ConversationTurn:
    """One turn of the conversation.

    At most one of ``function_call`` or ``function_response`` is set. A
    function call turn may also carry the text the model sent with it.
    """

    role: str = "user"
    text: str | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResult | None = None

    def to_ollama_message(self) -> dict[str, Any]:
        """Render the turn as an Ollama chat message."""
        if self.function_call is not None:
            return {
                "role": "assistant",
                "content": self.text or "",
                "tool_calls": [
                    {
                        "function": {
                            "name": self.function_call.name,
                            "arguments": self.function_call.args,
                        }
                    }
                ],
            }
        if self.function_response is not None:
            return {
                "role": "tool",
                "content": json.dumps(self.function_response.payload, default=str),
                "tool_name": self.function_response.name,
            }
        return {
            "role": "user" if self.role == "user" else "assistant",
            "content": self.text or "",
        }


def validate_conversation(turns: list[ConversationTurn]) -> None:
    """Check that every function-call turn is answered before the next call.

    A model turn carrying a function call must be immediately followed by a
    user turn carrying the response for the same function.

    Raises:
        ValueError: If the conversation is ill-formed.
    """
    for position, turn in enumerate(turns):
        if turn.function_call is None:
            continue
        if turn.role != "model":
            raise ValueError(f"Turn {position}: function calls must come from the model")
        following = turns[position + 1] if position + 1 < len(turns) else None
        if (
            following is None
            or following.role != "user"
            or following.function_response is None
            or following.function_response.name != turn.function_call.name
        ):
            raise ValueError(
                f"Turn {position}: function call '{turn.function_call.name}' "
                "is not followed by its response"
            )
