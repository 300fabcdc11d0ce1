from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.logging import actor_id_var
from procurement_engine.core.security import Actor, actor_from_claims, decode_token
from procurement_engine.db.session import get_async_session

logger = logging.getLogger(__name__)

# Tokens are issued by the surrounding application; the URL only feeds the docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# PUBLIC_INTERFACE
async def get_db_session(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession with no transaction open.

    Services open and close their own units of work on it.
    """
    yield session


# PUBLIC_INTERFACE
async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """
    Resolve the acting identity from the Authorization bearer token.

    The token's 'sub' claim is the actor id and its 'roles' claim the granted roles.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type", "access") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    actor = actor_from_claims(payload)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    actor_id_var.set(actor.id)
    return actor


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current actor to hold one of the specified roles.
    """

    async def _dep(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.has_any_role(required):
            logger.info("Actor %s lacks any of roles %s", actor.id, ", ".join(required))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return actor

    return _dep
