"""Exceptions raised by the provider connection layer."""


class ProviderError(Exception):
    """Base class for provider errors."""


class ProviderConfigError(ProviderError):
    """A provider configuration is invalid or incomplete."""


class ProviderConnectionError(ProviderError):
    """Opening the connection or the protocol handshake failed."""


class AlreadyConnectedError(ProviderError):
    """A live connection already exists for the provider id.

    Callers treat this as success: the provider is connected.
    """

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider '{provider_id}' is already connected")


class NotConnectedError(ProviderError):
    """No live connection exists for the provider id."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider '{provider_id}' is not connected")
