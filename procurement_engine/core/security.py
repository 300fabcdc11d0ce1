from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional

from jose import jwt

from procurement_engine.core.settings import get_app_settings


@dataclass(frozen=True)
class Actor:
    """Identity performing an operation, with the role names granted to it."""

    id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)


# PUBLIC_INTERFACE
def system_actor() -> Actor:
    """Return the actor recorded on requisitions created by sweeps."""
    return Actor(id=get_app_settings().SYSTEM_ACTOR_ID, roles=frozenset({"system"}))


# PUBLIC_INTERFACE
def create_access_token(
    subject: str,
    roles: list[str] | None = None,
    expires_minutes: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """Create a signed access token with subject (actor id) and roles."""
    settings = get_app_settings()
    now = datetime.now(tz=timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {"sub": subject, "roles": roles or []}
    if extra:
        payload.update(extra)
    payload.update({"exp": expire, "iat": now, "type": "access"})
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT; raises JWTError if invalid/expired."""
    settings = get_app_settings()
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# PUBLIC_INTERFACE
def actor_from_claims(claims: Dict[str, Any]) -> Optional[Actor]:
    """Build an Actor from decoded token claims, or None when 'sub' is missing."""
    subject = claims.get("sub")
    if not subject:
        return None
    roles = claims.get("roles") or []
    return Actor(id=str(subject), roles=frozenset(str(r) for r in roles))
