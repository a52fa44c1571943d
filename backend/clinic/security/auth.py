# clinic/security/auth.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException
import jwt  # PyJWT

from clinic.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class AuthPrincipal:
    """The authenticated user; `id` is the integer user id used for key derivation."""
    id: int
    subject: Optional[str] = None
    issuer: Optional[str] = None
    role: Optional[str] = None


def _unauth(detail: str):
    logger.warning("Auth failed: %s", detail)
    raise HTTPException(status_code=401, detail="Unauthorized")


def _extract_role(payload: Dict[str, Any]) -> Optional[str]:
    role = payload.get("role")
    if isinstance(role, str) and role.strip():
        return role.strip().upper()
    roles = payload.get("roles")
    if isinstance(roles, (list, tuple)) and roles:
        return str(roles[0]).strip().upper()
    return None


def require_bearer(authorization: str | None = Header(default=None)) -> AuthPrincipal:
    """Validate a Bearer JWT issued by the login service and build the principal."""
    if not authorization:
        _unauth("Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        _unauth("Malformed Authorization header")

    settings = get_settings()
    if not settings.jwt_signing_key:
        _unauth("JWT_SIGNING_KEY not configured")

    try:
        payload = jwt.decode(
            parts[1],
            settings.jwt_signing_key,
            algorithms=[settings.jwt_alg],
            audience=settings.jwt_audience,
            issuer=settings.issuer or None,
            leeway=30,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        _unauth("Token expired")
    except jwt.InvalidAudienceError:
        _unauth("Bad audience")
    except jwt.InvalidIssuerError:
        _unauth("Bad issuer")
    except jwt.InvalidSignatureError:
        _unauth("Bad signature")
    except jwt.PyJWTError as e:
        _unauth(f"JWT error: {e}")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        _unauth("Non-numeric subject")

    return AuthPrincipal(
        id=user_id,
        subject=str(payload["sub"]),
        issuer=payload.get("iss"),
        role=_extract_role(payload),
    )


__all__ = ["require_bearer", "AuthPrincipal"]
