from .config import CargoConfig, EnforcementMode, LogLevel, load_config_from_env
from .logging import (
    safe_preview,
    redact_secrets,
    safe_log_value,
    CargoFormatter,
    RequestLoggerAdapter,
    setup_logging,
    get_request_logger,
)
from .permissions import (
    Permission,
    PermissionResolver,
    ResourceKind,
    ResourceScopeFilter,
    Role,
    RoleCatalog,
    UserType,
    default_catalog,
)
from .principal import IdentityRecord, Principal, PrincipalLoader
from .security import AuthorizationGate, AuthorizationInterceptor, RequireAll, RequireAny
from .tracking import (
    NO_CHANGE,
    Shipment,
    ShipmentService,
    ShipmentStatus,
    TrackingEvent,
    TrackingEventCode,
    TrackingService,
    project,
)
from .storage import InMemoryShipmentStore, RedisShipmentStore, ShipmentStore

__all__ = [
    'CargoConfig',
    'EnforcementMode',
    'LogLevel',
    'load_config_from_env',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'CargoFormatter',
    'RequestLoggerAdapter',
    'setup_logging',
    'get_request_logger',
    'Permission',
    'PermissionResolver',
    'ResourceKind',
    'ResourceScopeFilter',
    'Role',
    'RoleCatalog',
    'UserType',
    'default_catalog',
    'IdentityRecord',
    'Principal',
    'PrincipalLoader',
    'AuthorizationGate',
    'AuthorizationInterceptor',
    'RequireAll',
    'RequireAny',
    'NO_CHANGE',
    'Shipment',
    'ShipmentService',
    'ShipmentStatus',
    'TrackingEvent',
    'TrackingEventCode',
    'TrackingService',
    'project',
    'InMemoryShipmentStore',
    'RedisShipmentStore',
    'ShipmentStore',
]
