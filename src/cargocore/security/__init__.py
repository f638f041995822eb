"""Authorization boundary for cargocore services.

Usage (in a gRPC service)::

    from cargocore.security import AuthorizationInterceptor, RequireAll, RequireAny

    server = grpc.aio.server(interceptors=[
        AuthorizationInterceptor(RPC_MAP, principal_source=load_principal),
    ])

Or directly in a handler::

    from cargocore.security import AuthorizationGate

    gate.require_all(principal, Permission.TRACKING_WRITE)
"""

from .gate import NONE_GRANTED, AuthorizationGate, GateResult
from .interceptors import (
    AuthorizationInterceptor,
    PrincipalSource,
    RequireAll,
    RequireAny,
    Requirement,
    _extract_rpc_name,
    _should_skip,
)

__all__ = [
    # Gate
    "NONE_GRANTED",
    "AuthorizationGate",
    "GateResult",
    # Interceptor
    "AuthorizationInterceptor",
    "PrincipalSource",
    "RequireAll",
    "RequireAny",
    "Requirement",
    "_extract_rpc_name",
    "_should_skip",
]
