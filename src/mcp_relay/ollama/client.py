"""Async Ollama client wrapper.

This module provides an async wrapper around the ollama.AsyncClient for
communicating with the Ollama API. The client is created once at startup and
reused by every orchestration run.
"""

import logging
from typing import Any, AsyncIterator

import ollama

logger = logging.getLogger(__name__)


def _to_dict(response: Any) -> dict[str, Any]:
    """Convert an ollama response object into a plain dict."""
    if hasattr(response, "model_dump"):
        return response.model_dump()
    if isinstance(response, dict):
        return response
    return vars(response)


class OllamaClient:
    """Async client for the Ollama chat API.

    Tool-calling turns use a single non-streaming request, because the model's
    function calls are only complete once the whole message has arrived.
    Plain conversations without tools are streamed.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(self, host: str) -> None:
        """Initialize the Ollama client.

        Args:
            host: The Ollama server URL
        """
        self.host = host
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one chat request and wait for the complete response.

        Args:
            model: The model name to use for the chat
            messages: Messages in Ollama format
            tools: Optional function tool declarations
            options: Optional model parameters (temperature, etc.)

        Returns:
            dict: The response. ``message.content`` holds the text and
                  ``message.tool_calls`` any function calls, each shaped
                  ``{"function": {"name": ..., "arguments": {...}}}``.

        Raises:
            Exception: If the Ollama API request fails
        """
        try:
            logger.debug(
                f"Chat request with model {model}: {len(messages)} messages, "
                f"{len(tools or [])} tools"
            )
            response = await self._client.chat(
                model=model,
                messages=messages,
                tools=tools or None,
                stream=False,
                options=options,
            )
            return _to_dict(response)
        except Exception as e:
            logger.error(f"Chat request failed: {e}")
            raise

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat responses from Ollama.

        Args:
            model: The model name to use for the chat
            messages: List of message dicts in Ollama format:
                      [{"role": "user", "content": "..."}, ...]
            options: Optional model parameters (temperature, etc.)

        Yields:
            dict: Response chunks from Ollama. Each chunk contains:
                  - model: str - The model name
                  - message: dict - Contains role and content
                  - done: bool - True on the final chunk

        Raises:
            Exception: If the Ollama API request fails
        """
        try:
            logger.debug(f"Starting chat stream with model: {model}")

            async for chunk in await self._client.chat(
                model=model,
                messages=messages,
                stream=True,
                options=options,
            ):
                yield _to_dict(chunk)

            logger.debug("Chat stream completed")

        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            raise

    async def close(self) -> None:
        """Close the client.

        ollama.AsyncClient uses httpx internally, which handles its own cleanup.
        """
        logger.debug("OllamaClient closed")
