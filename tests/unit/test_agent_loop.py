"""Unit tests for the agent loop and its conversation types."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.types import CallToolResult, TextContent

from mcp_relay.agent import (
    AgentLoop,
    AgentState,
    ConversationTurn,
    FunctionCall,
    FunctionResult,
    validate_conversation,
)
from mcp_relay.agent.loop import INVALID_NAME_ERROR
from mcp_relay.media import LocalMediaStore
from mcp_relay.models.chat import (
    ErrorEvent,
    FunctionCallEvent,
    FunctionResultEvent,
    HistoryTurn,
    TextEvent,
)
from mcp_relay.providers import NotConnectedError, ProviderConfig
from mcp_relay.tools.codec import encode_name

ECHO = encode_name("providerA", "echo")


def _tool_calls(*calls):
    return {
        "message": {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"function": {"name": name, "arguments": args}} for name, args in calls
            ],
        }
    }


def _text(text):
    return {"message": {"role": "assistant", "content": text}}


@pytest.fixture
def registry():
    """Registry with one connected provider exposing an echo tool."""
    mock = MagicMock()
    mock.list_connected.return_value = [
        ProviderConfig(
            id="providerA", name="Provider A", transport="stdio", command="echo-server"
        )
    ]
    mock.list_tools = AsyncMock(
        return_value={
            "tools": [
                {
                    "name": "echo",
                    "description": "Echo text back",
                    "inputSchema": {
                        "type": "object",
                        "properties": {"text": {"type": "string"}},
                    },
                }
            ]
        }
    )

    async def call_tool(provider_id, name, arguments):
        return {"content": [{"type": "text", "text": arguments.get("text", "")}]}

    mock.call_tool = AsyncMock(side_effect=call_tool)
    return mock


@pytest.fixture
def ollama_client():
    return AsyncMock()


@pytest.fixture
def media_store(tmp_path):
    return LocalMediaStore(media_dir=tmp_path / "media", base_url="http://media.test")


@pytest.fixture
def agent(ollama_client, registry, media_store):
    return AgentLoop(
        ollama_client=ollama_client,
        registry=registry,
        media_store=media_store,
        model="test-model",
        max_iterations=5,
    )


async def _collect(agent, message="echo hi", **kwargs):
    return [event async for event in agent.run(message, **kwargs)]


class TestConversationTypes:
    """Tests for ConversationTurn and validate_conversation()."""

    def test_text_turns(self):
        """Test rendering plain turns."""
        assert ConversationTurn(role="user", text="hi").to_ollama_message() == {
            "role": "user",
            "content": "hi",
        }
        assert ConversationTurn(role="model", text="yo").to_ollama_message() == {
            "role": "assistant",
            "content": "yo",
        }

    def test_function_turns(self):
        """Test rendering function call and response turns."""
        call = FunctionCall(name=ECHO, args={"text": "hi"})
        result = FunctionResult(name=ECHO, args={"text": "hi"}, response={"ok": True})

        call_message = ConversationTurn(role="model", function_call=call).to_ollama_message()
        result_message = ConversationTurn(
            role="user", function_response=result
        ).to_ollama_message()

        assert call_message["tool_calls"][0]["function"] == {
            "name": ECHO,
            "arguments": {"text": "hi"},
        }
        assert result_message["role"] == "tool"
        assert json.loads(result_message["content"]) == {"ok": True}

    def test_error_payload(self):
        """Test that errors replace the response."""
        result = FunctionResult(name="x", response={"ignored": 1}, error="failed")
        assert result.payload == {"error": "failed"}

    def test_validate_accepts_answered_calls(self):
        """Test a well-formed call/response pair."""
        call = FunctionCall(name="f")
        validate_conversation(
            [
                ConversationTurn(role="user", text="go"),
                ConversationTurn(role="model", function_call=call),
                ConversationTurn(role="user", function_response=FunctionResult(name="f")),
            ]
        )

    def test_validate_rejects_unanswered_call(self):
        """Test a call that is not followed by its response."""
        with pytest.raises(ValueError):
            validate_conversation(
                [ConversationTurn(role="model", function_call=FunctionCall(name="f"))]
            )

    def test_validate_rejects_mismatched_response(self):
        """Test a response for a different function."""
        with pytest.raises(ValueError):
            validate_conversation(
                [
                    ConversationTurn(role="model", function_call=FunctionCall(name="f")),
                    ConversationTurn(
                        role="user", function_response=FunctionResult(name="g")
                    ),
                ]
            )

    def test_validate_rejects_user_function_call(self):
        """Test that only the model may call functions."""
        with pytest.raises(ValueError):
            validate_conversation(
                [ConversationTurn(role="user", function_call=FunctionCall(name="f"))]
            )


class TestAgentLoop:
    """Tests for AgentLoop.run()."""

    @pytest.mark.asyncio
    async def test_echo_round_trip(self, agent, ollama_client, registry):
        """Test one function call followed by a text answer."""
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "hi"})),
            _text("It said hi."),
        ]

        events = await _collect(agent)

        assert [type(e) for e in events] == [
            FunctionCallEvent,
            FunctionResultEvent,
            TextEvent,
        ]
        assert events[0].function_call.name == ECHO
        assert events[1].result == {"content": [{"type": "text", "text": "hi"}]}
        assert events[2].text == "It said hi."
        assert agent.state == AgentState.DONE
        assert agent.iterations == 1
        registry.call_tool.assert_awaited_once_with("providerA", "echo", {"text": "hi"})

        # Declarations are passed to every model call
        tools = ollama_client.chat.call_args_list[0].kwargs["tools"]
        assert tools[0]["function"]["name"] == ECHO

    @pytest.mark.asyncio
    async def test_text_only_answer(self, agent, ollama_client, registry):
        """Test that a text answer ends the run without tool calls."""
        ollama_client.chat.return_value = _text("No tools needed.")

        events = await _collect(agent)

        assert events == [TextEvent(text="No tools needed.")]
        registry.call_tool.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_providers_streams_text(self, agent, ollama_client, registry):
        """Test that zero tools fall back to one streaming call."""
        registry.list_connected.return_value = []

        async def chat_stream(**kwargs):
            yield {"message": {"content": "Hel"}, "done": False}
            yield {"message": {"content": "lo"}, "done": True}

        ollama_client.chat_stream = chat_stream

        events = await _collect(agent, message="hi")

        assert events == [TextEvent(text="Hel"), TextEvent(text="lo")]
        ollama_client.chat.assert_not_called()
        assert agent.state == AgentState.DONE

    @pytest.mark.asyncio
    async def test_stream_failure_emits_error(self, agent, ollama_client, registry):
        """Test a failing plain stream."""
        registry.list_connected.return_value = []

        async def chat_stream(**kwargs):
            raise ConnectionError("ollama down")
            yield  # pragma: no cover

        ollama_client.chat_stream = chat_stream

        events = await _collect(agent, message="hi")

        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        assert "ollama down" in events[0].error
        assert agent.state == AgentState.ABORTED

    @pytest.mark.asyncio
    async def test_use_tools_false_skips_collection(self, agent, ollama_client, registry):
        """Test that tools can be switched off for a message."""

        async def chat_stream(**kwargs):
            yield {"message": {"content": "plain"}, "done": True}

        ollama_client.chat_stream = chat_stream

        events = await _collect(agent, use_tools=False)

        assert events == [TextEvent(text="plain")]
        registry.list_tools.assert_not_called()

    @pytest.mark.asyncio
    async def test_iteration_cap(self, agent, ollama_client, registry):
        """Test that a model that never stops calling tools is cut off."""
        ollama_client.chat.return_value = _tool_calls((ECHO, {"text": "again"}))

        events = await _collect(agent)

        assert ollama_client.chat.await_count == 5
        assert registry.call_tool.await_count == 5
        assert sum(isinstance(e, FunctionCallEvent) for e in events) == 5
        assert isinstance(events[-1], TextEvent)
        assert agent.iterations == 5
        assert agent.state == AgentState.DONE

    @pytest.mark.asyncio
    async def test_custom_iteration_cap(self, ollama_client, registry, media_store):
        """Test a lower cap."""
        agent = AgentLoop(
            ollama_client=ollama_client,
            registry=registry,
            media_store=media_store,
            model="test-model",
            max_iterations=2,
        )
        ollama_client.chat.return_value = _tool_calls((ECHO, {"text": "again"}))

        await _collect(agent)

        assert ollama_client.chat.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_tool_becomes_error_result(self, agent, ollama_client, registry):
        """Test that a tool failure is reported to the model, not raised."""
        registry.call_tool.side_effect = RuntimeError("tool crashed")
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "hi"})),
            _text("The tool failed."),
        ]

        events = await _collect(agent)

        assert events[1].result == {"error": "tool crashed"}
        assert events[-1] == TextEvent(text="The tool failed.")
        assert ollama_client.chat.await_count == 2

        # The error result is part of the second model call
        messages = ollama_client.chat.call_args_list[1].kwargs["messages"]
        assert json.loads(messages[-1]["content"]) == {"error": "tool crashed"}

    @pytest.mark.asyncio
    async def test_not_connected_provider_becomes_error_result(
        self, agent, ollama_client, registry
    ):
        """Test a provider that disconnected between listing and calling."""
        registry.call_tool.side_effect = NotConnectedError("providerA")
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "hi"})),
            _text("done"),
        ]

        events = await _collect(agent)

        assert "providerA" in events[1].result["error"]

    @pytest.mark.asyncio
    async def test_unresolvable_name(self, agent, ollama_client, registry):
        """Test that a made-up function name is answered with an error."""
        ollama_client.chat.side_effect = [
            _tool_calls(("garbage", {})),
            _text("Sorry."),
        ]

        events = await _collect(agent)

        assert events[1].result == {"error": INVALID_NAME_ERROR}
        registry.call_tool.assert_not_called()

    @pytest.mark.asyncio
    async def test_parallel_calls_keep_order(self, agent, ollama_client, registry):
        """Test several calls in one model turn."""

        async def call_tool(provider_id, name, arguments):
            # The first call finishes last
            if arguments["text"] == "first":
                await asyncio.sleep(0.01)
            return {"content": [{"type": "text", "text": arguments["text"]}]}

        registry.call_tool.side_effect = call_tool
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "first"}), (ECHO, {"text": "second"})),
            _text("ok"),
        ]

        events = await _collect(agent)
        results = [e for e in events if isinstance(e, FunctionResultEvent)]

        assert [r.result["content"][0]["text"] for r in results] == ["first", "second"]

        messages = ollama_client.chat.call_args_list[1].kwargs["messages"]
        assert [m["role"] for m in messages] == [
            "user",
            "assistant",
            "tool",
            "assistant",
            "tool",
        ]

    @pytest.mark.asyncio
    async def test_string_arguments_are_parsed(self, agent, ollama_client, registry):
        """Test arguments delivered as a JSON string."""
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, '{"text": "hi"}')),
            _text("ok"),
        ]

        await _collect(agent)

        registry.call_tool.assert_awaited_once_with("providerA", "echo", {"text": "hi"})

    @pytest.mark.asyncio
    async def test_model_error(self, agent, ollama_client):
        """Test that a failing model call aborts the run."""
        ollama_client.chat.side_effect = Exception("model exploded")

        events = await _collect(agent)

        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        assert "model exploded" in events[0].error
        assert agent.state == AgentState.ABORTED

    @pytest.mark.asyncio
    async def test_history_precedes_message(self, agent, ollama_client):
        """Test that history turns are sent before the new message."""
        ollama_client.chat.return_value = _text("ok")

        await _collect(
            agent,
            message="now",
            history=[
                HistoryTurn(role="user", content="before"),
                HistoryTurn(role="model", content="reply"),
            ],
        )

        messages = ollama_client.chat.call_args.kwargs["messages"]
        assert messages == [
            {"role": "user", "content": "before"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "now"},
        ]

    @pytest.mark.asyncio
    async def test_cancel_before_next_model_call(self, agent, ollama_client, registry):
        """Test that cancelling lets in-flight tools finish, then stops."""
        ollama_client.chat.return_value = _tool_calls((ECHO, {"text": "hi"}))

        events = []
        async for event in agent.run("echo hi"):
            events.append(event)
            if isinstance(event, FunctionCallEvent):
                agent.cancel()

        assert [type(e) for e in events] == [
            FunctionCallEvent,
            FunctionResultEvent,
            ErrorEvent,
        ]
        assert ollama_client.chat.await_count == 1
        registry.call_tool.assert_awaited_once()
        assert agent.state == AgentState.ABORTED

    @pytest.mark.asyncio
    async def test_enabled_providers_filter(self, ollama_client, registry, media_store):
        """Test that an empty whitelist offers no tools."""
        agent = AgentLoop(
            ollama_client=ollama_client,
            registry=registry,
            media_store=media_store,
            model="test-model",
            enabled_providers=set(),
        )

        async def chat_stream(**kwargs):
            yield {"message": {"content": "no tools"}, "done": True}

        ollama_client.chat_stream = chat_stream

        events = await _collect(agent)

        assert events == [TextEvent(text="no tools")]
        registry.list_tools.assert_not_called()

    @pytest.mark.asyncio
    async def test_image_results_are_relocated(
        self, agent, ollama_client, registry, media_store
    ):
        """Test that base64 images never reach the model."""
        payload = base64.b64encode(b"\x89PNG data").decode()
        registry.call_tool.side_effect = None
        registry.call_tool.return_value = {
            "content": [{"type": "image", "data": payload, "mimeType": "image/png"}]
        }
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "draw"})),
            _text("drawn"),
        ]

        events = await _collect(agent)

        image = events[1].result["content"][0]
        assert image["data"].startswith("http://media.test/api/v1/media/")

        messages = ollama_client.chat.call_args_list[1].kwargs["messages"]
        assert payload not in messages[-1]["content"]

        key = image["data"].rsplit("/", 1)[1]
        data, mime_type = await media_store.fetch(key)
        assert data == b"\x89PNG data"
        assert mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_tool_error_result_carries_error(self, agent, ollama_client, registry):
        """Test that an isError result from the provider is reported as an error."""
        registry.call_tool.side_effect = None
        registry.call_tool.return_value = CallToolResult(
            content=[TextContent(type="text", text="boom")], isError=True
        )
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "hi"})),
            _text("The tool failed."),
        ]

        events = await _collect(agent)

        assert events[1].result == {
            "error": "boom",
            "content": [{"type": "text", "text": "boom"}],
        }
        assert events[-1] == TextEvent(text="The tool failed.")

        messages = ollama_client.chat.call_args_list[1].kwargs["messages"]
        assert json.loads(messages[-1]["content"])["error"] == "boom"

    @pytest.mark.asyncio
    async def test_tool_error_result_without_text(self, agent, ollama_client, registry):
        """Test the fallback message for an error result with no text."""
        registry.call_tool.side_effect = None
        registry.call_tool.return_value = {"content": [], "isError": True}
        ollama_client.chat.side_effect = [
            _tool_calls((ECHO, {"text": "hi"})),
            _text("ok"),
        ]

        events = await _collect(agent)

        assert events[1].result["error"] == "Tool returned an error"

    @pytest.mark.asyncio
    async def test_text_with_calls_is_kept(self, agent, ollama_client):
        """Test that text sent along with function calls stays in the conversation."""
        response = _tool_calls((ECHO, {"text": "a"}), (ECHO, {"text": "b"}))
        response["message"]["content"] = "Let me check."
        ollama_client.chat.side_effect = [response, _text("done")]

        await _collect(agent)

        messages = ollama_client.chat.call_args_list[1].kwargs["messages"]
        assert messages[1]["role"] == "assistant"
        assert messages[1]["content"] == "Let me check."
        assert messages[1]["tool_calls"][0]["function"]["arguments"] == {"text": "a"}
        assert messages[3]["content"] == ""
