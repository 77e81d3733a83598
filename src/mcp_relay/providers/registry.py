"""Registry of live MCP provider connections.

The registry is created once at application startup, stored in app.state and
handed to request handlers and the agent loop. Connections (especially
subprocess-backed stdio ones) are expensive to set up, so they are kept open
across requests and only torn down on explicit disconnect or at shutdown.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation
from pydantic import AnyUrl

from mcp_relay.providers.errors import (
    AlreadyConnectedError,
    NotConnectedError,
    ProviderConfigError,
    ProviderConnectionError,
)
from mcp_relay.providers.types import ProviderConfig, TransportKind

logger = logging.getLogger(__name__)

CLIENT_INFO = Implementation(name="mcp-relay", version="0.1.0")


def dump_response(raw: Any) -> Any:
    """Convert an mcp result object into plain JSON data."""
    if hasattr(raw, "model_dump"):
        return raw.model_dump(mode="json", by_alias=True, exclude_none=True)
    return raw


@dataclass
class ProviderConnection:
    """A live connection to one provider.

    Attributes:
        config: The config the connection was opened with.
        session: The initialized MCP client session.
        task: Background task owning the transport and session contexts.
        stop: Event that tells the owning task to close the connection.
        connected: False once the connection has been closed or was lost.
    """

    config: ProviderConfig
    session: ClientSession
    task: asyncio.Task
    stop: asyncio.Event
    connected: bool = True


class ConnectionRegistry:
    """Owns the set of live provider connections, keyed by provider id.

    Connect and disconnect for the same provider id are serialized by a
    per-id lock; different ids proceed in parallel. Tool, resource and prompt
    calls on a connected provider do not take the lock.

    Each connection's transport and session are entered and exited by one
    dedicated background task, because the transports' cancel scopes must be
    closed by the task that opened them. Request handlers only talk to the
    session object.
    """

    def __init__(self, connect_timeout: float = 30.0) -> None:
        """Initialize an empty registry.

        Args:
            connect_timeout: Seconds to wait for a transport to open and the
                protocol handshake to finish (also bounds closing).
        """
        self.connect_timeout = connect_timeout
        self._connections: dict[str, ProviderConnection] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _lock(self, provider_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock. Locks nobody holds or waits on are dropped."""
        lock = self._locks.setdefault(provider_id, asyncio.Lock())
        self._lock_users[provider_id] = self._lock_users.get(provider_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[provider_id] -= 1
            if not self._lock_users[provider_id]:
                del self._lock_users[provider_id]
                del self._locks[provider_id]

    # --- Lifecycle ---

    async def connect(self, config: ProviderConfig) -> None:
        """Open a connection to a provider and register it.

        Args:
            config: The provider configuration.

        Raises:
            AlreadyConnectedError: If a live connection exists for config.id.
            ProviderConfigError: If the config cannot be turned into a transport.
            ProviderConnectionError: If the transport or handshake fails.
        """
        async with self._lock(config.id):
            existing = self._connections.get(config.id)
            if existing is not None:
                if existing.connected:
                    raise AlreadyConnectedError(config.id)
                logger.info(f"Replacing stale connection for provider {config.id}")
                await self._close(config.id)

            logger.info(
                f"Connecting provider {config.id} via {config.transport.value} "
                f"(auth: {'yes' if config.auth_token else 'no'})"
            )
            connection = await self._open(config)
            self._connections[config.id] = connection
            logger.info(f"Provider {config.id} connected")

    async def disconnect(self, provider_id: str) -> None:
        """Close and remove a provider connection.

        Unknown ids are ignored. Errors while closing are logged, and the
        entry is removed regardless.
        """
        async with self._lock(provider_id):
            await self._close(provider_id)

    async def disconnect_all(self) -> None:
        """Disconnect every registered provider concurrently."""
        provider_ids = list(self._connections)
        if not provider_ids:
            return
        logger.info(f"Disconnecting {len(provider_ids)} provider(s)")
        await asyncio.gather(*(self.disconnect(pid) for pid in provider_ids))

    def _transport(self, config: ProviderConfig) -> AsyncContextManager[Any]:
        """Build the transport context manager for a config."""
        headers = config.auth_headers() or None

        if config.transport == TransportKind.STDIO:
            if not config.command:
                raise ProviderConfigError("Command is required for stdio transport")
            return stdio_client(
                StdioServerParameters(
                    command=config.command,
                    args=list(config.args),
                    env=config.env,
                )
            )

        if not config.url:
            raise ProviderConfigError(
                f"URL is required for {config.transport.value} transport"
            )
        if config.transport == TransportKind.SSE:
            return sse_client(config.url, headers=headers)
        if config.transport == TransportKind.STREAMABLE_HTTP:
            return streamablehttp_client(config.url, headers=headers)

        raise ProviderConfigError(f"Unsupported transport type: {config.transport}")

    async def _open(self, config: ProviderConfig) -> ProviderConnection:
        transport = self._transport(config)
        ready: asyncio.Future[ClientSession] = (
            asyncio.get_running_loop().create_future()
        )
        stop = asyncio.Event()
        task = asyncio.create_task(
            self._serve(transport, ready, stop),
            name=f"mcp-provider-{config.id}",
        )

        try:
            session = await asyncio.wait_for(ready, timeout=self.connect_timeout)
        except BaseException as e:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            if isinstance(e, asyncio.TimeoutError):
                logger.error(f"Timed out connecting to provider {config.id}")
                raise ProviderConnectionError(
                    f"Timed out connecting to provider '{config.id}'"
                ) from e
            if isinstance(e, Exception):
                logger.error(f"Connection to provider {config.id} failed: {e}")
                raise ProviderConnectionError(
                    f"Failed to connect to provider '{config.id}': {e}"
                ) from e
            raise

        connection = ProviderConnection(
            config=config, session=session, task=task, stop=stop
        )
        task.add_done_callback(lambda t: self._on_closed(connection, t))
        return connection

    async def _serve(
        self,
        transport: AsyncContextManager[Any],
        ready: "asyncio.Future[ClientSession]",
        stop: asyncio.Event,
    ) -> None:
        """Hold a transport and session open until ``stop`` is set."""
        try:
            async with AsyncExitStack() as stack:
                streams = await stack.enter_async_context(transport)
                # streamable-http also yields a session id callback
                read_stream, write_stream = streams[0], streams[1]
                session = await stack.enter_async_context(
                    ClientSession(read_stream, write_stream, client_info=CLIENT_INFO)
                )
                await session.initialize()
                ready.set_result(session)
                await stop.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
                return
            raise
        finally:
            if not ready.done():
                ready.set_exception(
                    ProviderConnectionError("Connection closed during handshake")
                )

    def _on_closed(self, connection: ProviderConnection, task: asyncio.Task) -> None:
        connection.connected = False
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and not connection.stop.is_set():
            logger.error(f"Lost connection to provider {connection.config.id}: {error}")

    async def _close(self, provider_id: str) -> None:
        connection = self._connections.pop(provider_id, None)
        if connection is None:
            return

        connection.connected = False
        connection.stop.set()
        # A lost connection's task has already finished
        if not connection.task.done():
            try:
                await asyncio.wait_for(connection.task, timeout=self.connect_timeout)
            except Exception as e:
                logger.error(f"Error disconnecting provider {provider_id}: {e}")
        logger.info(f"Provider {provider_id} disconnected")

    # --- Introspection ---

    def get_connection(self, provider_id: str) -> ProviderConnection | None:
        return self._connections.get(provider_id)

    def is_connected(self, provider_id: str) -> bool:
        connection = self._connections.get(provider_id)
        return connection is not None and connection.connected

    def list_connected(self) -> list[ProviderConfig]:
        """Return the configs of all currently connected providers."""
        return [c.config for c in self._connections.values() if c.connected]

    def _session(self, provider_id: str) -> ClientSession:
        connection = self._connections.get(provider_id)
        if connection is None or not connection.connected:
            raise NotConnectedError(provider_id)
        return connection.session

    # --- Provider operations (responses are returned verbatim) ---

    async def list_tools(self, provider_id: str) -> Any:
        return await self._session(provider_id).list_tools()

    async def list_resources(self, provider_id: str) -> Any:
        return await self._session(provider_id).list_resources()

    async def list_prompts(self, provider_id: str) -> Any:
        return await self._session(provider_id).list_prompts()

    async def call_tool(
        self,
        provider_id: str,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> Any:
        """Invoke a tool on a connected provider.

        Raises:
            NotConnectedError: If the provider is not connected.
        """
        session = self._session(provider_id)
        logger.debug(f"Calling tool {provider_id}/{name}")
        return await session.call_tool(name, arguments=arguments or {})

    async def read_resource(self, provider_id: str, uri: str) -> Any:
        return await self._session(provider_id).read_resource(AnyUrl(uri))

    async def get_prompt(
        self,
        provider_id: str,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> Any:
        session = self._session(provider_id)
        return await session.get_prompt(
            name,
            arguments={key: str(value) for key, value in (arguments or {}).items()},
        )
