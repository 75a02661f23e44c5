"""FastAPI dependency utilities.

Authentication happens upstream: the gateway forwards the caller's identity
in the ``X-User-Id`` and ``X-User-Role`` headers.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.application.services import NotificationServices

ROLE_ADMIN = "admin"
ROLE_SYSTEM = "system"
ROLE_USER = "user"


@dataclass(frozen=True)
class Principal:
    """Identity of the caller as asserted by the gateway."""

    user_id: str
    role: str = ROLE_USER

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


def get_services(request: Request) -> NotificationServices:
    """Return the services container created by the application lifespan."""

    services = getattr(request.app.state, "notification_services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification services are not ready",
        )
    return services


def get_db(
    services: NotificationServices = Depends(get_services),
) -> Generator[Session, None, None]:
    """Yield a database session and close it afterwards."""

    db = services.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """Return the caller described by the gateway headers."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    role = (x_user_role or ROLE_USER).strip().lower() or ROLE_USER
    return Principal(user_id=user_id, role=role)


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Build a dependency that only lets callers with one of ``roles`` through."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized",
            )
        return principal

    return dependency


__all__ = [
    "Principal",
    "ROLE_ADMIN",
    "ROLE_SYSTEM",
    "ROLE_USER",
    "get_current_principal",
    "get_db",
    "get_services",
    "require_roles",
]
