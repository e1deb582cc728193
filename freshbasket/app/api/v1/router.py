"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from freshbasket.app.api.v1.endpoints import auth, orders, agent, admin

router = APIRouter()

router.include_router(auth.router)
router.include_router(orders.router)
router.include_router(agent.router)
router.include_router(admin.router)
