from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from backoffice.api.deps.services import get_settings
from backoffice.config import Settings


@dataclass(frozen=True)
class Actor:
    id: str
    role: str | None = None


def get_actor(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Actor | None:
    if not x_user_id or not x_user_id.strip():
        return None
    role = x_user_role.strip().lower() if x_user_role else None
    return Actor(id=x_user_id.strip(), role=role or None)


def actor_id(actor: Actor | None) -> str | None:
    return actor.id if actor else None


def require_roles(*roles: str) -> Callable[..., Actor | None]:
    """Dependency that admits only actors holding one of ``roles``."""

    def dependency(
        actor: Actor | None = Depends(get_actor),
        settings: Settings = Depends(get_settings),
    ) -> Actor | None:
        if settings.auth_disabled:
            return actor
        if actor is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
            )
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return dependency


CurrentActor = Depends(get_actor)
