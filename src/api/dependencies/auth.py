# src/api/dependencies/auth.py
from typing import Optional

from fastapi import Header, HTTPException, status

from src.services.grading.actors import Actor, actor_from


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: Optional[str] = Header(default=None),
) -> Actor:
    """
    The gateway in front of this service authenticates the user and
    forwards the identity as X-Actor-Id / X-Actor-Role.
    """
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity headers",
        )
    return actor_from(x_actor_id, x_actor_role)
