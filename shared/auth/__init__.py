"""Request authentication for the control-plane services."""

from shared.auth.guard import (
    API_KEY_PRINCIPAL_ROLE,
    Principal,
    authenticate_authorization,
    authenticate_websocket,
    require_auth,
    require_roles,
)

__all__ = [
    "API_KEY_PRINCIPAL_ROLE",
    "Principal",
    "authenticate_authorization",
    "authenticate_websocket",
    "require_auth",
    "require_roles",
]
