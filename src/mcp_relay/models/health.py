"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of mcp-relay.
        ollama_connected: Whether the Ollama server is reachable.
        ollama_host: The Ollama host URL.
        providers_connected: Number of connected MCP providers.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of mcp-relay")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
    providers_connected: int = Field(
        default=0,
        description="Number of connected MCP providers",
    )
