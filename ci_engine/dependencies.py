"""
ABFI CI Engine - FastAPI Dependencies

Shared dependencies for database sessions, the acting user, and role checks.

Authentication happens upstream: the gateway forwards the authenticated
user's ID and role in the X-Actor-Id and X-Actor-Role headers.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ci_engine.database import get_async_session
from ci_engine.models.ci_enums import ActorRole
from ci_engine.services.ci_report_service import CIReportService
from ci_engine.utils.error_handling import AuthorizationException


@dataclass(frozen=True)
class Actor:
    """User performing a request."""
    id: uuid.UUID
    role: ActorRole

    @property
    def can_verify(self) -> bool:
        return self.role in (ActorRole.AUDITOR, ActorRole.ADMIN)


async def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """
    Get the acting user from the gateway headers.

    Raises:
        HTTPException: 401 if the headers are missing or malformed
    """
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        actor_id = uuid.UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid actor ID",
        )

    try:
        role = ActorRole(x_actor_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid actor role. Must be one of: {[r.value for r in ActorRole]}",
        )

    return Actor(id=actor_id, role=role)


async def require_verifier(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Only auditors and admins may act on submitted reports."""
    if not actor.can_verify:
        raise AuthorizationException(
            message="Not authorized - auditor or admin role required",
            required_role="auditor",
        )
    return actor


async def get_ci_report_service(
    db: AsyncSession = Depends(get_async_session),
) -> CIReportService:
    return CIReportService(db)
