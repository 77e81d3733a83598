"""The agent loop: alternate model calls and provider tool executions.

One AgentLoop instance handles one orchestration run, i.e. one user message.
It is an async generator of stream events so that the caller can publish
every function call and result as soon as it happens.

State machine::

    AWAITING_MODEL --function calls--> EXECUTING_TOOLS --results--> AWAITING_MODEL
    AWAITING_MODEL --text only--> DONE
    EXECUTING_TOOLS --iteration cap reached--> DONE
    any --cancel() or model error--> ABORTED
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator

from mcp_relay.agent.types import (
    ConversationTurn,
    FunctionCall,
    FunctionResult,
    validate_conversation,
)
from mcp_relay.media import MediaStore, relocate_media
from mcp_relay.models.chat import (
    ErrorEvent,
    FunctionCallEvent,
    FunctionCallInfo,
    FunctionResultEvent,
    HistoryTurn,
    StreamEvent,
    TextEvent,
)
from mcp_relay.ollama import OllamaClient
from mcp_relay.providers import ConnectionRegistry, dump_response
from mcp_relay.tools import ToolNameTable, collect_declarations, resolve_function_call

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5
INVALID_NAME_ERROR = "Invalid function name format"


class AgentState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unparseable function arguments: {raw[:200]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _extract_calls(message: dict[str, Any]) -> list[FunctionCall]:
    calls = []
    for index, tool_call in enumerate(message.get("tool_calls") or []):
        function = tool_call.get("function") or {}
        calls.append(
            FunctionCall(
                name=function.get("name") or "",
                args=_parse_arguments(function.get("arguments")),
                index=index,
            )
        )
    return calls


def _error_text(response: dict[str, Any]) -> str:
    """Join the text items of an error result into one message."""
    texts = [
        item.get("text", "")
        for item in response.get("content") or []
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(t for t in texts if t) or "Tool returned an error"


def history_to_turns(history: list[HistoryTurn]) -> list[ConversationTurn]:
    """Convert request history into conversation turns."""
    return [
        ConversationTurn(
            role="user" if turn.role == "user" else "model",
            text=turn.content,
        )
        for turn in history
    ]


class AgentLoop:
    """Runs a single orchestration run against the model and the providers.

    Attributes:
        state: Current AgentState of the run.
        iterations: Completed model → tools round-trips.
    """

    def __init__(
        self,
        ollama_client: OllamaClient,
        registry: ConnectionRegistry,
        media_store: MediaStore,
        model: str,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        enabled_providers: set[str] | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            ollama_client: Client used for every model call.
            registry: Registry used to list and call provider tools.
            media_store: Where inline images in tool results are relocated.
            model: Ollama model name.
            max_iterations: Cap on model → tools round-trips.
            enabled_providers: Optional whitelist of provider ids whose tools
                are offered to the model. None offers every connected provider.
        """
        self.ollama_client = ollama_client
        self.registry = registry
        self.media_store = media_store
        self.model = model
        self.max_iterations = max_iterations
        self.enabled_providers = enabled_providers
        self.state = AgentState.AWAITING_MODEL
        self.iterations = 0
        self._cancelled = False

    def cancel(self) -> None:
        """Stop the run before its next model call.

        Tool calls already in flight are left to finish.
        """
        if not self._cancelled:
            logger.info("Agent run cancelled by caller")
        self._cancelled = True

    async def run(
        self,
        message: str,
        history: list[HistoryTurn] | None = None,
        use_tools: bool = True,
    ) -> AsyncIterator[StreamEvent]:
        """Handle one user message, yielding stream events as they occur.

        Args:
            message: The new user message.
            history: Prior turns, oldest first.
            use_tools: Whether provider tools may be offered to the model.

        Yields:
            TextEvent, FunctionCallEvent, FunctionResultEvent, or a terminal
            ErrorEvent.
        """
        turns = history_to_turns(history or [])
        turns.append(ConversationTurn(role="user", text=message))

        declarations: list[dict[str, Any]] = []
        table = ToolNameTable()
        if use_tools:
            declarations, table = await collect_declarations(
                self.registry, enabled=self.enabled_providers
            )

        if not declarations:
            logger.info("No tools available, streaming plain model response")
            async for event in self._stream_text(turns):
                yield event
            return

        logger.info(
            f"Starting agent run with {len(declarations)} tools, "
            f"max {self.max_iterations} iterations"
        )
        last_text = ""

        while True:
            if self._cancelled:
                self.state = AgentState.ABORTED
                yield ErrorEvent(error="Run cancelled")
                return

            self.state = AgentState.AWAITING_MODEL
            try:
                validate_conversation(turns)
                response = await self.ollama_client.chat(
                    model=self.model,
                    messages=[turn.to_ollama_message() for turn in turns],
                    tools=declarations,
                )
            except Exception as e:
                logger.error(f"Model call failed: {e}")
                self.state = AgentState.ABORTED
                yield ErrorEvent(error=f"Model call failed: {e}")
                return

            reply = response.get("message") or {}
            text = reply.get("content") or ""
            calls = _extract_calls(reply)

            if not calls:
                self.state = AgentState.DONE
                yield TextEvent(text=text)
                return

            last_text = text
            for call in calls:
                yield FunctionCallEvent(
                    function_call=FunctionCallInfo(name=call.name, args=call.args)
                )

            self.state = AgentState.EXECUTING_TOOLS
            # Shielded so that a cancelled run still lets provider calls complete
            results = await asyncio.shield(
                asyncio.gather(*(self._execute(call, table) for call in calls))
            )

            for result in results:
                yield FunctionResultEvent(
                    function_call=FunctionCallInfo(name=result.name, args=result.args),
                    result=result.payload,
                )

            for position, (call, result) in enumerate(zip(calls, results)):
                # Text sent along with the calls stays on the first call turn
                turns.append(
                    ConversationTurn(
                        role="model",
                        text=text if position == 0 else None,
                        function_call=call,
                    )
                )
                turns.append(ConversationTurn(role="user", function_response=result))

            self.iterations += 1
            if self.iterations >= self.max_iterations:
                logger.warning(
                    f"Agent run reached iteration cap ({self.max_iterations}), stopping"
                )
                self.state = AgentState.DONE
                yield TextEvent(text=last_text)
                return

    async def _execute(self, call: FunctionCall, table: ToolNameTable) -> FunctionResult:
        """Execute one function call; errors become the call's result."""
        resolved = resolve_function_call(
            {"name": call.name, "arguments": call.args}, table
        )
        if resolved is None:
            logger.warning(f"Unresolvable function name from model: {call.name}")
            return FunctionResult(
                name=call.name,
                args=call.args,
                index=call.index,
                error=INVALID_NAME_ERROR,
            )

        try:
            raw = await self.registry.call_tool(
                resolved.provider_id, resolved.tool_name, resolved.arguments
            )
        except Exception as e:
            logger.error(
                f"Tool {resolved.provider_id}/{resolved.tool_name} failed: {e}"
            )
            return FunctionResult(
                name=call.name, args=call.args, index=call.index, error=str(e)
            )

        response = await relocate_media(dump_response(raw), self.media_store)
        if isinstance(response, dict) and response.get("isError"):
            logger.warning(
                f"Tool {resolved.provider_id}/{resolved.tool_name} reported an error"
            )
            return FunctionResult(
                name=call.name,
                args=call.args,
                index=call.index,
                response=response,
                error=_error_text(response),
            )

        logger.info(f"Tool {resolved.provider_id}/{resolved.tool_name} completed")
        return FunctionResult(
            name=call.name, args=call.args, index=call.index, response=response
        )

    async def _stream_text(
        self, turns: list[ConversationTurn]
    ) -> AsyncIterator[StreamEvent]:
        """Single streaming model call, used when there is nothing to orchestrate."""
        self.state = AgentState.AWAITING_MODEL
        try:
            async for chunk in self.ollama_client.chat_stream(
                model=self.model,
                messages=[turn.to_ollama_message() for turn in turns],
            ):
                if self._cancelled:
                    self.state = AgentState.ABORTED
                    yield ErrorEvent(error="Run cancelled")
                    return

                content = (chunk.get("message") or {}).get("content", "")
                if content:
                    yield TextEvent(text=content)
                if chunk.get("done"):
                    break
        except Exception as e:
            logger.error(f"Model stream failed: {e}")
            self.state = AgentState.ABORTED
            yield ErrorEvent(error=f"Model call failed: {e}")
            return

        self.state = AgentState.DONE
