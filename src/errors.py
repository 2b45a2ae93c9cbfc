"""Typed failures shared by adapters, registry, orchestrator and sequencer."""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


class ModelCompareError(Exception):
    """Base for every error this package raises on purpose."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.context = dict(context or {})
        super().__init__(message)


class ConfigurationError(ModelCompareError):
    """Unknown model id, missing credential or a request the vendor rejected.

    Fatal to the single call; never retried automatically.
    """

    kind = ErrorKind.CONFIGURATION


class ProviderError(ModelCompareError):
    """Raised when a provider call fails."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}", context)


class ProviderConfigurationError(ProviderError, ConfigurationError):
    """Vendor rejected the request (bad request, auth) or the adapter is unusable."""

    kind = ErrorKind.CONFIGURATION


class TransientProviderError(ProviderError):
    """Timeout, connection failure, 5xx or rate limit. Eligible for caller retry."""

    kind = ErrorKind.TRANSIENT


class MalformedResponseError(ProviderError):
    """Vendor returned a payload of unexpected shape."""

    kind = ErrorKind.MALFORMED


class SequencerStateError(ModelCompareError):
    """Illegal TurnSequencer transition (e.g. advancing a cancelled session)."""
