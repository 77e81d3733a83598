"""Configuration module for mcp-relay using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Main configuration settings for mcp-relay.

    All settings can be overridden via environment variables with the MCP_RELAY_
    prefix. For example, MCP_RELAY_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "llama3.2:latest"

    # Agent loop
    max_tool_iterations: int = Field(default=5, ge=1)

    # Providers
    provider_connect_timeout: float = Field(default=30.0, gt=0)

    # Data locations (relative to data_dir)
    data_dir: str = "."
    providers_file: str = "providers.json"
    media_dir: str = "media"

    # Base URL used when building links to relocated media
    public_base_url: str = "http://127.0.0.1:8000"

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MCP_RELAY_")

    @property
    def resolved_providers_file(self) -> Path:
        """Get the full path to the provider configuration file."""
        return Path(self.data_dir) / self.providers_file

    @property
    def resolved_media_dir(self) -> Path:
        """Get the full path to the media directory."""
        return Path(self.data_dir) / self.media_dir
