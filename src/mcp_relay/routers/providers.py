"""Provider management API endpoints.

This module provides REST API endpoints for:
- Storing, listing, validating and deleting provider configurations
- Enabling or disabling providers for chat
- Connecting and disconnecting providers
- Listing a provider's tools, resources and prompts
- Calling tools, reading resources and rendering prompts directly
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from mcp_relay.dependencies import get_connection_registry, get_provider_store
from mcp_relay.models.providers import (
    CallToolRequest,
    ConnectResponse,
    EnabledState,
    EnabledStatesResponse,
    GetPromptRequest,
    ProviderIdRequest,
    ProviderListResponse,
    ProviderStatus,
    ReadResourceRequest,
    SetEnabledRequest,
    StatusResponse,
    SuccessResponse,
    ValidateConfigResponse,
)
from mcp_relay.providers import (
    AlreadyConnectedError,
    ConnectionRegistry,
    NotConnectedError,
    ProviderConfig,
    ProviderConfigError,
    ProviderConfigStore,
    ProviderConnectionError,
    dump_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/providers", tags=["providers"])

Registry = Annotated[ConnectionRegistry, Depends(get_connection_registry)]
Store = Annotated[ProviderConfigStore, Depends(get_provider_store)]


def _error(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
    )


def _provider_call_error(provider_id: str, action: str, e: Exception) -> HTTPException:
    """Translate a failed provider operation into an HTTPException."""
    if isinstance(e, NotConnectedError):
        return _error(
            status.HTTP_409_CONFLICT,
            "provider_not_connected",
            str(e),
            {"provider_id": provider_id},
        )
    logger.error(f"Failed to {action} on provider {provider_id}: {e}")
    return _error(
        status.HTTP_502_BAD_GATEWAY,
        "provider_error",
        f"Failed to {action}: {e}",
        {"provider_id": provider_id},
    )


# --- Configurations ---


@router.get("/configs", response_model=ProviderListResponse)
async def list_configs(store: Store) -> ProviderListResponse:
    """List all stored provider configurations."""
    try:
        return ProviderListResponse(providers=store.list_all())
    except ValueError as e:
        logger.error(f"Failed to list provider configs: {e}")
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "provider_store_error", str(e))


@router.post("/configs", response_model=SuccessResponse)
async def save_configs(
    body: ProviderConfig | list[ProviderConfig],
    store: Store,
) -> SuccessResponse:
    """Save one provider configuration, or replace the whole set with a list."""
    try:
        if isinstance(body, list):
            store.save_all(body)
            return SuccessResponse(message="Providers saved")
        store.save(body)
        return SuccessResponse(message="Provider saved")
    except ValueError as e:
        logger.error(f"Failed to save provider configs: {e}")
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "provider_store_error", str(e))


@router.delete("/configs/{provider_id}", response_model=SuccessResponse)
async def delete_config(provider_id: str, store: Store) -> SuccessResponse:
    """Delete a stored provider configuration."""
    try:
        store.delete(provider_id)
    except FileNotFoundError as e:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            "provider_not_found",
            str(e),
            {"provider_id": provider_id},
        )
    except ValueError as e:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "provider_store_error", str(e))
    return SuccessResponse(message="Provider deleted")


@router.post("/configs/validate", response_model=ValidateConfigResponse)
async def validate_config(body: dict[str, Any]) -> ValidateConfigResponse:
    """Validate a provider configuration without storing or connecting it."""
    try:
        config = ProviderConfig.model_validate(body)
    except ValidationError as e:
        raise _error(
            status.HTTP_400_BAD_REQUEST,
            "invalid_provider_config",
            "Invalid provider config",
            {"issues": e.errors(include_url=False, include_context=False)},
        )
    return ValidateConfigResponse(config=config)


# --- Enabled flags ---


@router.get(
    "/enabled",
    response_model=ProviderListResponse | EnabledStatesResponse,
)
async def get_enabled(
    store: Store,
    include_all: bool = Query(
        default=False, alias="all", description="Return the state of every provider"
    ),
) -> ProviderListResponse | EnabledStatesResponse:
    """List enabled providers, or with ``?all=true`` the flag of every provider."""
    try:
        if include_all:
            return EnabledStatesResponse(
                states=[
                    EnabledState(id=pid, enabled=enabled)
                    for pid, enabled in store.enabled_states().items()
                ]
            )
        return ProviderListResponse(providers=store.list_enabled())
    except ValueError as e:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "provider_store_error", str(e))


@router.post("/enabled", response_model=SuccessResponse)
async def set_enabled(body: SetEnabledRequest, store: Store) -> SuccessResponse:
    """Enable or disable a provider's tools for chat."""
    try:
        store.set_enabled(body.provider_id, body.enabled)
    except FileNotFoundError as e:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            "provider_not_found",
            str(e),
            {"provider_id": body.provider_id},
        )
    except ValueError as e:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "provider_store_error", str(e))
    return SuccessResponse(message="Provider enabled status updated")


# --- Connections ---


@router.post("/connect", response_model=ConnectResponse)
async def connect_provider(config: ProviderConfig, registry: Registry) -> ConnectResponse:
    """Connect to a provider.

    Connecting an already connected provider succeeds with
    ``already_connected`` set.

    Raises:
        HTTPException: 400 for unusable configs, 502 if the connection fails
    """
    try:
        await registry.connect(config)
    except AlreadyConnectedError:
        logger.info(f"Provider {config.id} already connected")
        return ConnectResponse(message="Already connected", already_connected=True)
    except ProviderConfigError as e:
        raise _error(
            status.HTTP_400_BAD_REQUEST,
            "invalid_provider_config",
            str(e),
            {"provider_id": config.id},
        )
    except ProviderConnectionError as e:
        raise _error(
            status.HTTP_502_BAD_GATEWAY,
            "provider_connection_failed",
            str(e),
            {"provider_id": config.id},
        )
    return ConnectResponse(message="Connected")


@router.post("/disconnect", response_model=SuccessResponse)
async def disconnect_provider(body: ProviderIdRequest, registry: Registry) -> SuccessResponse:
    """Disconnect a provider. Unknown ids are accepted."""
    await registry.disconnect(body.provider_id)
    return SuccessResponse(message="Disconnected")


@router.get("/status", response_model=StatusResponse)
async def connection_status(registry: Registry) -> StatusResponse:
    """List currently connected providers."""
    configs = registry.list_connected()
    return StatusResponse(
        connected=len(configs),
        providers=[
            ProviderStatus(id=c.id, name=c.name, transport=c.transport)
            for c in configs
        ],
    )


# --- Provider operations ---


@router.get("/{provider_id}/tools")
async def list_tools(provider_id: str, registry: Registry) -> Any:
    """List the tools a connected provider exposes."""
    try:
        return dump_response(await registry.list_tools(provider_id))
    except Exception as e:
        raise _provider_call_error(provider_id, "list tools", e)


@router.get("/{provider_id}/resources")
async def list_resources(provider_id: str, registry: Registry) -> Any:
    """List the resources a connected provider exposes."""
    try:
        return dump_response(await registry.list_resources(provider_id))
    except Exception as e:
        raise _provider_call_error(provider_id, "list resources", e)


@router.get("/{provider_id}/prompts")
async def list_prompts(provider_id: str, registry: Registry) -> Any:
    """List the prompts a connected provider exposes."""
    try:
        return dump_response(await registry.list_prompts(provider_id))
    except Exception as e:
        raise _provider_call_error(provider_id, "list prompts", e)


@router.post("/{provider_id}/call-tool")
async def call_tool(provider_id: str, body: CallToolRequest, registry: Registry) -> Any:
    """Call a tool on a connected provider and return its raw result."""
    try:
        result = await registry.call_tool(provider_id, body.tool_name, body.arguments)
    except Exception as e:
        raise _provider_call_error(provider_id, "call tool", e)
    return dump_response(result)


@router.post("/{provider_id}/read-resource")
async def read_resource(
    provider_id: str, body: ReadResourceRequest, registry: Registry
) -> Any:
    """Read a resource from a connected provider."""
    try:
        result = await registry.read_resource(provider_id, body.uri)
    except Exception as e:
        raise _provider_call_error(provider_id, "read resource", e)
    return dump_response(result)


@router.post("/{provider_id}/get-prompt")
async def get_prompt(provider_id: str, body: GetPromptRequest, registry: Registry) -> Any:
    """Render a prompt from a connected provider."""
    try:
        result = await registry.get_prompt(provider_id, body.name, body.arguments)
    except Exception as e:
        raise _provider_call_error(provider_id, "get prompt", e)
    return dump_response(result)
