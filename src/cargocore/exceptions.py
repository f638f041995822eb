"""Unified exception hierarchy for cargocore.

All errors raised by the authorization core and the tracking state machine
inherit from CargoCoreError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for protocol mapping
- public_message() for caller-facing text that never leaks configuration state
- gRPC error handler decorators (unary + streaming)

Usage in services:
    from cargocore.exceptions import (
        ForbiddenError,
        TerminalStateViolation,
        grpc_error_handler,
    )

Deny outcomes from the resolver and the scope filter are plain return values;
only configuration problems and store failures are raised.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "CargoCoreError",
    "ConfigurationError",
    "UnauthenticatedError",
    "ForbiddenError",
    "InvalidConfigurationError",
    "ProtectedRoleError",
    "NotFoundError",
    "TerminalStateViolation",
    "ConcurrentUpdateConflict",
    "StorageError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # Caller-facing helpers
    "NOT_PERMITTED",
    "public_message",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
    "grpc_stream_error_handler",
]

logger = logging.getLogger(__name__)

NOT_PERMITTED = "not permitted"


# ---- Exception Hierarchy ----------------------------------------------------


class CargoCoreError(Exception):
    """Base exception for cargocore.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "PERMISSION_DENIED").
        message: Human-readable error description (internal, may name permissions).
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"
    transient: bool = False

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(CargoCoreError):
    """Invalid or missing service settings."""

    code: str = "CONFIGURATION_ERROR"


class UnauthenticatedError(CargoCoreError):
    """No resolvable principal for the request."""

    code: str = "UNAUTHENTICATED"
    message: str = "not authenticated"


class ForbiddenError(CargoCoreError):
    """Principal resolved but the permission was denied.

    ``permission`` names the capability that failed so that logs are
    diagnosable. Callers only ever see :data:`NOT_PERMITTED`.
    """

    code: str = "PERMISSION_DENIED"
    message: str = NOT_PERMITTED

    def __init__(self, message: str | None = None, *, permission: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.permission = permission


class InvalidConfigurationError(ForbiddenError):
    """Authorization data is broken (role missing, owned-entity id missing).

    Subclasses ForbiddenError so every boundary treats it as a deny; the
    distinct code keeps it visible to operators.
    """

    code: str = "INVALID_CONFIGURATION"
    message: str = "authorization configuration is invalid"


class ProtectedRoleError(ForbiddenError):
    """Attempt to delete or modify a system role without authority."""

    code: str = "PROTECTED_ROLE"
    message: str = "system roles are protected"


class NotFoundError(CargoCoreError):
    """Requested record does not exist."""

    code: str = "NOT_FOUND"
    message: str = "not found"


class TerminalStateViolation(CargoCoreError):
    """Status-affecting write against a delivered or cancelled shipment."""

    code: str = "TERMINAL_STATE"
    message: str = "shipment is in a terminal state"


class ConcurrentUpdateConflict(CargoCoreError):
    """Compare-and-set on the shipment status lost a race."""

    code: str = "CONCURRENT_UPDATE"
    message: str = "shipment was modified concurrently"
    transient: bool = True


class StorageError(CargoCoreError):
    """Backing store failure."""

    code: str = "STORAGE_ERROR"
    transient: bool = True


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[CargoCoreError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[CargoCoreError]] = {}

    def register(self, code: str, error_cls: type[CargoCoreError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[CargoCoreError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[CargoCoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("INVOICE_LOCKED")
        class InvoiceLockedError(CargoCoreError):
            code = "INVOICE_LOCKED"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    CargoCoreError,
    ConfigurationError,
    UnauthenticatedError,
    ForbiddenError,
    InvalidConfigurationError,
    ProtectedRoleError,
    NotFoundError,
    TerminalStateViolation,
    ConcurrentUpdateConflict,
    StorageError,
):
    error_registry.register(_cls.code, _cls)


# ---- Caller-facing messages -------------------------------------------------


def public_message(error: CargoCoreError) -> str:
    """Message safe to return to the caller.

    Every flavour of deny collapses to the same text, so a broken role
    reference cannot be told apart from a missing permission.
    """
    if isinstance(error, ForbiddenError):
        return NOT_PERMITTED
    if isinstance(error, UnauthenticatedError):
        return UnauthenticatedError.message
    if isinstance(error, ConcurrentUpdateConflict):
        return "temporarily unavailable, retry the request"
    if isinstance(error, StorageError):
        return "temporarily unavailable"
    return error.message


def _public_code(error: CargoCoreError) -> str:
    if isinstance(error, ForbiddenError):
        return ForbiddenError.code
    return error.code


def _log_error(where: str, error: CargoCoreError) -> None:
    """Log with a severity and event name that separate misconfiguration from denies."""
    extra = {"error_code": error.code, "error_details": error.details}
    if isinstance(error, InvalidConfigurationError):
        logger.error("authz.misconfigured %s: %s", where, error.message, extra=extra)
    elif isinstance(error, ForbiddenError):
        logger.warning(
            "authz.denied %s: %s permission=%s", where, error.message, error.permission, extra=extra
        )
    else:
        logger.error("%s failed: [%s] %s", where, error.code, error.message, extra=extra)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: CargoCoreError) -> int:
    """Map CargoCoreError to gRPC status code.

    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    if isinstance(error, ForbiddenError):
        return grpc.StatusCode.PERMISSION_DENIED

    error_to_status = {
        "UNAUTHENTICATED": grpc.StatusCode.UNAUTHENTICATED,
        "NOT_FOUND": grpc.StatusCode.NOT_FOUND,
        "TERMINAL_STATE": grpc.StatusCode.FAILED_PRECONDITION,
        "CONCURRENT_UPDATE": grpc.StatusCode.ABORTED,
        "STORAGE_ERROR": grpc.StatusCode.UNAVAILABLE,
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods with proper error handling.

    Catches CargoCoreError, logs it with the internal detail, and aborts the
    call with the mapped status code and the caller-safe message.

    Usage:
        @grpc_error_handler
        async def RecordTrackingEvent(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except CargoCoreError as e:
            _log_error(method.__name__, e)
            context.set_trailing_metadata([("error-code", _public_code(e))])
            await context.abort(get_grpc_status_code(e), public_message(e))
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(grpc.StatusCode.INTERNAL, "internal error")
            return

    return wrapper


def grpc_stream_error_handler(method):
    """Decorator for streaming gRPC service methods with proper error handling.

    Works with async generator methods that use 'yield'.
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            async for item in method(self, request, context):
                yield item
        except CargoCoreError as e:
            _log_error(method.__name__, e)
            context.set_trailing_metadata([("error-code", _public_code(e))])
            await context.abort(get_grpc_status_code(e), public_message(e))
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(grpc.StatusCode.INTERNAL, "internal error")
            return

    return wrapper
