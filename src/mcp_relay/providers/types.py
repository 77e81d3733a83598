"""Data types for provider configuration."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TransportKind(str, Enum):
    """Wire-level channel used to reach a provider."""

    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"


class ProviderConfig(BaseModel):
    """Connection settings for one tool provider.

    Configs are immutable; changing a provider means saving a new config and
    reconnecting.
    """

    id: str = Field(min_length=1, description="Opaque provider identifier")
    name: str = Field(min_length=1, description="Display name")
    transport: TransportKind = Field(description="Transport kind")

    # stdio
    command: str | None = Field(default=None, description="Executable to spawn")
    args: list[str] = Field(default_factory=list, description="Command arguments")
    env: dict[str, str] | None = Field(
        default=None, description="Environment for the spawned process"
    )

    # sse / streamable-http
    url: str | None = Field(default=None, description="Provider endpoint URL")

    # auth
    auth_token: str | None = Field(default=None, description="Bearer credential")
    auth_header: str | None = Field(
        default=None, description="Header carrying the credential (Authorization)"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "files",
                    "name": "Filesystem",
                    "transport": "stdio",
                    "command": "npx",
                    "args": ["-y", "@modelcontextprotocol/server-filesystem", "."],
                },
                {
                    "id": "search",
                    "name": "Search",
                    "transport": "streamable-http",
                    "url": "https://tools.example.com/mcp",
                    "auth_token": "secret",
                },
            ]
        },
    )

    @model_validator(mode="after")
    def _check_transport_parameters(self) -> "ProviderConfig":
        """Reject configs missing the parameter their transport needs."""
        if self.transport == TransportKind.STDIO and not self.command:
            raise ValueError("Command is required for stdio transport")
        if self.transport != TransportKind.STDIO and not self.url:
            raise ValueError(f"URL is required for {self.transport.value} transport")
        return self

    @property
    def uses_http(self) -> bool:
        return self.transport != TransportKind.STDIO

    def auth_headers(self) -> dict[str, str]:
        """Headers carrying the bearer credential, for HTTP transports.

        The token is sent as ``Bearer <token>`` unless it already carries the
        prefix.
        """
        if not self.auth_token or not self.uses_http:
            return {}

        value = self.auth_token
        if not value.startswith("Bearer "):
            value = f"Bearer {value}"
        return {self.auth_header or "Authorization": value}
