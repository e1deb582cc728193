"""
Security guards for role-based access control.

Provides dependencies for protecting agent and admin endpoints.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from freshbasket.app.models.enums import UserRole
from freshbasket.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/agent/orders")
        async def list_orders(current_user: dict = Depends(require_role([UserRole.AGENT]))):
            ...

    Raises:
        HTTPException 403 if the token role is missing, unknown, or not allowed
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


require_agent = require_role([UserRole.AGENT])
require_admin = require_role([UserRole.ADMIN])
require_customer = require_role([UserRole.CUSTOMER])
