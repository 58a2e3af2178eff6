"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Identity
from src.domain.enums import Role
from src.infrastructure.database import unit_of_work


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with unit_of_work() as session:
        yield session


async def get_identity(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Identity:
    """
    Caller identity as forwarded by the credential-verification gateway.

    The core trusts these headers as-is; it never parses credentials.
    """
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    try:
        return Identity(actor_id=int(x_actor_id), role=Role(x_actor_role.upper()))
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed caller identity")
