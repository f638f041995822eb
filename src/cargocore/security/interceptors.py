"""gRPC server interceptor enforcing per-RPC permission requirements.

Provides:
- ``RequireAll`` / ``RequireAny`` — requirement declarations for the RPC map.
- ``AuthorizationInterceptor`` — parameterised ``grpc.aio`` server interceptor.
- ``_extract_rpc_name``, ``_should_skip`` — helper utilities.

The interceptor only decides allow/deny. Handlers load the principal again
through the same loader and pass it explicitly to services; nothing is
stashed on the call context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import grpc

from ..config import EnforcementMode
from ..exceptions import (
    CargoCoreError,
    ForbiddenError,
    UnauthenticatedError,
    _public_code,
    get_grpc_status_code,
    public_message,
)
from ..permissions.constants import Permission, permission_key
from ..principal import Principal
from .gate import AuthorizationGate, GateResult

logger = logging.getLogger(__name__)

PrincipalSource = Callable[[Mapping[str, str]], Awaitable[Optional[Principal]]]

# Method prefixes that bypass permission checks
_SKIP_PREFIXES = (
    "grpc.health.v1",
    "grpc.reflection.v1",
)


# ── Requirements ─────────────────────────────────────────────────


@dataclass(frozen=True)
class RequireAll:
    permissions: tuple[str, ...]

    def __init__(self, *permissions: Permission | str) -> None:
        object.__setattr__(self, "permissions", tuple(permission_key(p) for p in permissions))

    def evaluate(self, gate: AuthorizationGate, principal: Principal | None) -> GateResult:
        return gate.check_all(principal, *self.permissions)


@dataclass(frozen=True)
class RequireAny:
    permissions: tuple[str, ...]

    def __init__(self, *permissions: Permission | str) -> None:
        object.__setattr__(self, "permissions", tuple(permission_key(p) for p in permissions))

    def evaluate(self, gate: AuthorizationGate, principal: Principal | None) -> GateResult:
        return gate.check_any(principal, *self.permissions)


Requirement = Union[RequireAll, RequireAny]


# ── Helpers ──────────────────────────────────────────────────────


def _extract_rpc_name(full_method: str) -> str:
    """Extract RPC name from fully-qualified method string.

    ``/cargo.TrackingService/RecordEvent`` → ``RecordEvent``
    """
    return full_method.rsplit("/", 1)[-1] if "/" in full_method else full_method


def _should_skip(method: str) -> bool:
    """Check if this method should skip permission checks."""
    return any(prefix in method for prefix in _SKIP_PREFIXES)


def _denied_handler(status: grpc.StatusCode, message: str, code: str) -> grpc.RpcMethodHandler:
    async def _denied(request, context):
        context.set_trailing_metadata([("error-code", code)])
        await context.abort(status, message)

    return grpc.unary_unary_rpc_method_handler(_denied)


# ── Interceptor ──────────────────────────────────────────────────


class AuthorizationInterceptor(grpc.aio.ServerInterceptor):
    """Fail-closed authorization at the gRPC boundary.

    For each call:
    1. Skips health checks and reflection.
    2. Maps the RPC name to a ``RequireAll`` / ``RequireAny`` requirement.
    3. Loads the principal from invocation metadata through ``principal_source``.
    4. Evaluates the requirement with the ``AuthorizationGate``.
    5. Aborts with ``UNAUTHENTICATED`` / ``PERMISSION_DENIED`` on denial.

    Unmapped RPCs are denied. Callers always receive the generic
    "not permitted" text; the internal reason only goes to the log.

    Args:
        rpc_map: RPC name → requirement.
        principal_source: Async callable turning metadata into a Principal
            (None when no identity could be established).
        gate: Gate to evaluate with (default: fresh AuthorizationGate).
        service_name: Label for log messages.
        enforcement: off / warn / enforce (default: enforce).

    Usage::

        interceptor = AuthorizationInterceptor(
            {
                "RecordEvent": RequireAll(Permission.TRACKING_WRITE),
                "ListShipments": RequireAny(Permission.SHIPMENTS_READ, Permission.SHIPMENTS_READ_OWN),
            },
            principal_source=load_principal_from_metadata,
            service_name="Tracking",
        )
        server = grpc.aio.server(interceptors=[interceptor])
    """

    def __init__(
        self,
        rpc_map: Mapping[str, Requirement],
        principal_source: PrincipalSource,
        *,
        gate: Optional[AuthorizationGate] = None,
        service_name: str = "Service",
        enforcement: EnforcementMode = EnforcementMode.ENFORCE,
    ) -> None:
        self._rpc_map = dict(rpc_map)
        self._principal_source = principal_source
        self._gate = gate or AuthorizationGate()
        self._service_name = service_name
        self._mode = EnforcementMode(enforcement)

        if self._mode != EnforcementMode.ENFORCE:
            logger.warning("%s authorization interceptor mode: %s", self._service_name, self._mode.value)

    async def _load_principal(self, metadata: Mapping[str, str]) -> tuple[Principal | None, CargoCoreError | None]:
        try:
            return await self._principal_source(metadata), None
        except CargoCoreError as e:
            return None, e

    async def intercept_service(
        self,
        continuation: Any,
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        method = handler_call_details.method or ""

        if _should_skip(method):
            return await continuation(handler_call_details)

        rpc_name = _extract_rpc_name(method)

        if self._mode == EnforcementMode.OFF:
            logger.debug("%s RPC %s | enforcement off", self._service_name, rpc_name)
            return await continuation(handler_call_details)

        metadata = {k: v for k, v in (handler_call_details.invocation_metadata or []) if isinstance(v, str)}
        requirement = self._rpc_map.get(rpc_name)

        error: CargoCoreError | None = None
        principal: Principal | None = None
        if requirement is None:
            error = ForbiddenError(f"RPC {rpc_name} is not mapped to a permission requirement")
        else:
            principal, error = await self._load_principal(metadata)
            if error is None:
                result = requirement.evaluate(self._gate, principal)
                try:
                    result.raise_for_denial(principal)
                except (UnauthenticatedError, ForbiddenError) as e:
                    error = e

        caller = principal.user_id if principal is not None else "anonymous"
        if error is None:
            logger.debug("%s ALLOWED %s for %s", self._service_name, rpc_name, caller)
            return await continuation(handler_call_details)

        if self._mode == EnforcementMode.WARN:
            logger.warning(
                "%s WARN_DENIED %s caller=%s [%s] %s (would block in enforce mode)",
                self._service_name,
                rpc_name,
                caller,
                error.code,
                error.message,
            )
            return await continuation(handler_call_details)

        if error.code == "INVALID_CONFIGURATION":
            logger.error("authz.misconfigured %s %s caller=%s: %s", self._service_name, rpc_name, caller, error.message)
        else:
            logger.warning("authz.denied %s %s caller=%s [%s] %s", self._service_name, rpc_name, caller, error.code, error.message)

        return _denied_handler(get_grpc_status_code(error), public_message(error), _public_code(error))


__all__ = [
    "AuthorizationInterceptor",
    "PrincipalSource",
    "RequireAll",
    "RequireAny",
    "Requirement",
    "_extract_rpc_name",
    "_should_skip",
]
