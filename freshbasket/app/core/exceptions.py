"""
Custom exceptions and error handlers for consistent error responses.

Every error leaves the API as {"error_code", "message", "details"} so the
tracking client can show the message and keep the code for logs.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("freshbasket.api")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class OrderNotAssignedError(AppException):
    """Raised when an agent acts on an order that is not assigned to them."""

    def __init__(self, order_id: Any):
        super().__init__(
            message="Order not found or not assigned to you",
            error_code="ERR_ORDER_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"order_id": order_id}
        )


class OrderClosedError(AppException):
    """Raised when a delivered or cancelled order is asked to change."""

    def __init__(self, action: str, order_status: str):
        super().__init__(
            message=f"Cannot {action} for {order_status.lower()} orders",
            error_code="ERR_ORDER_002",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"status": order_status}
        )


class InvalidStatusError(AppException):
    """Raised when an agent requests a status they are not allowed to set."""

    def __init__(self, requested: str, allowed: list):
        super().__init__(
            message=f"Invalid status. Allowed: {', '.join(allowed)}",
            error_code="ERR_ORDER_003",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"requested": requested, "allowed": allowed}
        )


class InvalidAssigneeError(AppException):
    """Raised when an order is assigned to a user who is not an active agent."""

    def __init__(self, agent_id: int):
        super().__init__(
            message="Delivery agent not found or inactive",
            error_code="ERR_AGENT_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"agent_id": agent_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code_map.get(exc.status_code, "ERR_UNKNOWN"),
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
