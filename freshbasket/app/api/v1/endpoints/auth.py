"""
Authentication API endpoints.

Credential checks live with the storefront's identity provider; this
service only issues development tokens and revokes tokens on logout.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.core.config import settings
from freshbasket.app.core.dependencies import get_current_user
from freshbasket.app.core.jwt import create_access_token
from freshbasket.app.core.token_revocation import revoke_token
from freshbasket.app.db.session import get_db
from freshbasket.app.models.user import User
from freshbasket.app.schemas.auth import TokenRequest, TokenResponse
from freshbasket.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    request: TokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a token for an existing user.

    Only available when DEBUG is on.
    """
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    result = await db.execute(select(User).where(User.id == request.user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found or inactive"
        )

    token = create_access_token(
        data={"sub": user.email, "user_id": user.id, "role": user.role.value}
    )
    return TokenResponse(access_token=token, user_id=user.id, role=user.role)


@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token."""
    revoked = await revoke_token(current_user["token"], current_user["user_id"])

    await log_event(
        db=db,
        action=AuditAction.LOGOUT,
        actor_id=current_user["user_id"],
        actor_email=current_user.get("sub"),
    )

    return {"success": revoked, "message": "Logged out"}
