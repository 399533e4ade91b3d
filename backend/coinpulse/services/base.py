"""
Base Service Interface

All services inherit from this base class.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for all services.

    Each service:
    - Has a defined input type
    - Has a defined output type
    - Can check its health
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name for logging."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Execute the service's main function.

        Args:
            input_data: Validated input conforming to InputT schema

        Returns:
            Output conforming to OutputT schema

        Raises:
            ServiceError: If execution fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if service is healthy and can process requests."""
        pass


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class ExternalAPIError(ServiceError):
    """External API call failed."""
    pass


class SourceUnavailableError(ExternalAPIError):
    """
    One price source could not answer (timeout, connection error, non-2xx).

    Absorbed by the aggregator; never reaches the caller.
    """
    pass


class MalformedPayloadError(SourceUnavailableError):
    """Source answered but the payload did not match the expected schema."""
    pass


class RateLimitError(SourceUnavailableError):
    """Rate limit exceeded."""
    pass


class InsufficientDataError(ServiceError):
    """Not enough data to produce a result (e.g. no quote source answered)."""
    pass
