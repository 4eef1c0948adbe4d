"""Exception hierarchy for eventfabric."""

from typing import Any, Dict, Optional


class EventFabricException(Exception):
    """Base eventfabric exception."""

    def __init__(
        self,
        message: str,
        component: str = "eventfabric",
        error_code: str = "error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            component: Component raising the error
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.component = component
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(EventFabricException):
    """Invalid or unsupported configuration. Fatal at construction."""

    def __init__(
        self,
        message: str,
        component: str = "config",
        error_code: str = "invalid_configuration",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, component, error_code, details)


class UnsupportedTransportError(ConfigurationError):
    """Publisher transport is not supported by the driver."""

    def __init__(self, transport: str, expected: Any) -> None:
        super().__init__(
            f"Unsupported publisher transport {transport!r}, "
            f"expected one of {sorted(expected)}",
            component="pubsub",
            error_code="unsupported_transport",
            details={"transport": transport},
        )
        self.transport = transport


class UnknownDriverError(ConfigurationError):
    """No pub/sub driver is registered under the given name."""

    def __init__(self, name: Any) -> None:
        super().__init__(
            f"Unknown pub/sub driver {name!r}",
            component="pubsub",
            error_code="unknown_driver",
            details={"driver": name},
        )
        self.name = name


class TransportError(EventFabricException):
    """Socket or broker I/O failure."""

    def __init__(
        self,
        message: str,
        component: str = "pubsub",
        error_code: str = "transport_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, component, error_code, details)


class DecodeError(TransportError):
    """A received frame could not be unpacked or decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="decode_error")


class NotFoundError(EventFabricException):
    """Key does not exist in the shared store."""

    def __init__(self, table: str, key: str) -> None:
        super().__init__(
            f"Key {key!r} not found in table {table!r}",
            component="db",
            error_code="not_found",
            details={"table": table, "key": key},
        )
        self.table = table
        self.key = key


__all__ = [
    "EventFabricException",
    "ConfigurationError",
    "UnsupportedTransportError",
    "UnknownDriverError",
    "TransportError",
    "DecodeError",
    "NotFoundError",
]
