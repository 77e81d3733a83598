"""Pydantic models for the provider management API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcp_relay.providers.types import ProviderConfig, TransportKind


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str


class ConnectResponse(BaseModel):
    """Response for POST /api/v1/providers/connect."""

    success: bool = True
    message: str
    already_connected: bool = Field(
        default=False,
        description="True when the provider was connected before this request",
    )


class ProviderIdRequest(BaseModel):
    """Request body naming a single provider."""

    provider_id: str = Field(min_length=1)


class SetEnabledRequest(BaseModel):
    """Request body for POST /api/v1/providers/enabled."""

    provider_id: str = Field(min_length=1)
    enabled: bool


class ProviderListResponse(BaseModel):
    """List of provider configurations."""

    providers: list[ProviderConfig]


class EnabledState(BaseModel):
    id: str
    enabled: bool


class EnabledStatesResponse(BaseModel):
    """Enabled flag of every stored provider."""

    states: list[EnabledState]


class ProviderStatus(BaseModel):
    id: str
    name: str
    transport: TransportKind


class StatusResponse(BaseModel):
    """Currently connected providers."""

    connected: int = Field(description="Number of connected providers")
    providers: list[ProviderStatus]


class ValidateConfigResponse(BaseModel):
    success: bool = True
    config: ProviderConfig


class CallToolRequest(BaseModel):
    """Request body for POST /api/v1/providers/{provider_id}/call-tool."""

    tool_name: str = Field(min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{"tool_name": "echo", "arguments": {"text": "hi"}}]
        }
    )


class ReadResourceRequest(BaseModel):
    """Request body for POST /api/v1/providers/{provider_id}/read-resource."""

    uri: str = Field(min_length=1)


class GetPromptRequest(BaseModel):
    """Request body for POST /api/v1/providers/{provider_id}/get-prompt."""

    name: str = Field(min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)
