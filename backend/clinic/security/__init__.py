# Re-export security primitives from a single namespace.
from .auth import require_bearer, AuthPrincipal
from .authz import (
    require_roles, roles,
    HEALTH_PROFESSIONAL, SECRETARY, ADMIN,
)

__all__ = [
    "require_bearer", "AuthPrincipal",
    "require_roles", "roles",
    "HEALTH_PROFESSIONAL", "SECRETARY", "ADMIN",
]
