"""FastAPI dependency injection for the database session and the actor.

get_actor resolves the bearer token to an active user and builds the
ActorContext passed into every meeting action. The organization and linked
person always come from the database, never from the token or the request.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.manageros.core.context import ActorContext
from src.manageros.core.database import get_session, parse_uuid
from src.manageros.core.security import verify_token
from src.manageros.models.shared import User
from src.manageros.models.tenant import Person


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session."""
    async for session in get_session():
        yield session


async def get_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ActorContext:
    """Extract the actor from the Authorization bearer JWT.

    Raises:
        HTTPException(401): If no valid token is provided or the user is
            missing or inactive.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(auth_header[7:], token_type="access")
    user_id = parse_uuid(payload.get("sub"))
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.is_active == True,  # noqa: E712
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    person_id = None
    if user.organization_id is not None:
        result = await db.execute(
            select(Person.id).where(
                Person.user_id == user.id,
                Person.organization_id == user.organization_id,
            )
        )
        person_id = result.scalar_one_or_none()

    return ActorContext(
        user_id=str(user.id),
        organization_id=str(user.organization_id) if user.organization_id else None,
        person_id=str(person_id) if person_id else None,
    )


# Alias for cleaner endpoint signatures
require_actor = Depends(get_actor)
