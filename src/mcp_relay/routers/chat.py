"""Chat API endpoint.

This module publishes agent runs to the client as Server-Sent Events. Each SSE
``data:`` record is one JSON event (text fragment, function call, function
result or error), followed by a final ``[DONE]`` sentinel on success.
"""

import logging
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from mcp_relay.agent import AgentLoop
from mcp_relay.dependencies import (
    get_connection_registry,
    get_media_store,
    get_ollama_client,
    get_provider_store,
)
from mcp_relay.media import MediaStore
from mcp_relay.models.chat import DONE_SENTINEL, ChatRequest, ErrorEvent
from mcp_relay.ollama import OllamaClient
from mcp_relay.providers import ConnectionRegistry, ProviderConfigStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def _enabled_providers(
    registry: ConnectionRegistry,
    store: ProviderConfigStore,
) -> set[str] | None:
    """Connected provider ids whose tools may be offered to the model.

    Providers are offered unless the config store marks them disabled.
    Returns None when nothing is disabled.
    """
    try:
        disabled = store.disabled_ids()
    except ValueError as e:
        logger.error(f"Failed to read provider store: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": {
                    "code": "provider_store_error",
                    "message": str(e),
                    "details": {},
                }
            },
        )
    if not disabled:
        return None
    return {c.id for c in registry.list_connected() if c.id not in disabled}


@router.post("/stream")
async def chat_streaming(
    request_body: ChatRequest,
    request: Request,
    ollama_client: OllamaClient = Depends(get_ollama_client),
    registry: ConnectionRegistry = Depends(get_connection_registry),
    media_store: MediaStore = Depends(get_media_store),
    provider_store: ProviderConfigStore = Depends(get_provider_store),
) -> EventSourceResponse:
    """Stream an agent run via Server-Sent Events (SSE).

    The request body is validated before streaming starts; a missing or
    non-string message is rejected with 422.

    Args:
        request_body: Message, prior history and the tool-use flag
        request: FastAPI request object
        ollama_client: Injected Ollama client
        registry: Injected provider connection registry
        media_store: Injected media store
        provider_store: Injected provider config store

    Returns:
        EventSourceResponse with SSE events

    SSE data records:
        - {"text": ...}: Text fragment from the model
        - {"type": "function_call", "functionCall": {...}}: Model requested a tool
        - {"type": "function_result", "functionCall": {...}, "result": ...}
        - {"error": ...}: Run failed; the stream ends without [DONE]
        - [DONE]: Run completed
    """
    settings = request.app.state.settings

    agent = AgentLoop(
        ollama_client=ollama_client,
        registry=registry,
        media_store=media_store,
        model=settings.model,
        max_iterations=settings.max_tool_iterations,
        enabled_providers=_enabled_providers(registry, provider_store),
    )

    logger.info(
        f"Starting streaming chat with {len(request_body.history)} history turns "
        f"(tools: {request_body.use_tools})"
    )

    async def event_generator():
        """Publish agent events in emission order."""
        try:
            async with aclosing(
                agent.run(
                    message=request_body.message,
                    history=request_body.history,
                    use_tools=request_body.use_tools,
                )
            ) as events:
                async for event in events:
                    if await request.is_disconnected():
                        logger.warning("Client disconnected during streaming")
                        agent.cancel()
                        return

                    yield {"data": event.model_dump_json(by_alias=True)}

                    if isinstance(event, ErrorEvent):
                        return

            yield {"data": DONE_SENTINEL}

        except Exception as e:
            logger.error(f"Error during streaming: {e}")
            yield {"data": ErrorEvent(error=str(e)).model_dump_json()}

    return EventSourceResponse(event_generator())
