# clinic/security/authz.py
from fastapi import Depends, HTTPException

from .auth import AuthPrincipal, require_bearer

HEALTH_PROFESSIONAL = "HEALTH_PROFESSIONAL"
SECRETARY = "SECRETARY"
ADMIN = "ADMIN"

# Super-role: passes every role check
GLOBAL = ADMIN


def require_roles(principal, *allowed: str) -> None:
    """
    Allow if principal is ADMIN or has a role from `allowed`.
    Otherwise -> 403 Forbidden.
    """
    if principal.role == GLOBAL or principal.role in allowed:
        return
    raise HTTPException(status_code=403, detail="Forbidden")


def roles(*allowed: str):
    """Route dependency: authenticated principal restricted to `allowed` roles."""
    def _dep(principal: AuthPrincipal = Depends(require_bearer)) -> AuthPrincipal:
        require_roles(principal, *allowed)
        return principal
    return _dep
