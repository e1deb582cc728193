"""
HTTP client for the FreshBasket tracking API.

Every call has a bounded timeout. Transport failures, timeouts and 5xx
answers become ``NetworkFailure``; 4xx answers become ``RequestRejected``
carrying the backend's message.
"""

import contextlib
import logging
from typing import Iterator, List, Optional

import httpx
from pydantic import ValidationError

from freshbasket.app.core.config import settings
from freshbasket.app.models.enums import OrderStatus
from freshbasket.app.schemas.order import OrderResponse
from freshbasket.app.schemas.tracking import AgentCoordinateUpdate, LocationPoint, TrackingSnapshot
from freshbasket.tracking.errors import NetworkFailure, RequestRejected

logger = logging.getLogger("freshbasket.tracking.client")


@contextlib.contextmanager
def _expect_shape(what: str) -> Iterator[None]:
    """Turn a 2xx body that does not match the schema into NetworkFailure."""
    try:
        yield
    except (ValidationError, KeyError, TypeError, AttributeError) as e:
        raise NetworkFailure(f"{what} returned an unexpected body: {e}") from e


class FreshBasketClient:
    """
    Async API client.

    Args:
        base_url: Server root, e.g. "http://localhost:8000"
        token: Bearer token for agent calls; tracking reads need none
        timeout: Per-request bound in seconds
        transport: Optional httpx transport (tests pass an ASGITransport)
    """

    def __init__(
        self,
        base_url: str = settings.client_base_url,
        token: Optional[str] = None,
        timeout: float = settings.client_request_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{settings.api_version}",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "FreshBasketClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{method} {path} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        if response.status_code >= 500:
            raise NetworkFailure(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise RequestRejected(
                body.get("message") or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                error_code=body.get("error_code"),
            )
        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailure(f"{method} {path} returned a non-JSON body") from e

    async def publish_location(
        self,
        order_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
    ) -> LocationPoint:
        """POST /orders/agent/location"""
        update = AgentCoordinateUpdate(
            order_id=str(order_id), latitude=latitude, longitude=longitude, accuracy=accuracy
        )
        body = await self._request(
            "POST", "/orders/agent/location",
            json=update.model_dump(by_alias=True, exclude_none=True),
        )
        with _expect_shape("POST /orders/agent/location"):
            return LocationPoint.model_validate(body["agentLocation"])

    async def fetch_tracking(self, order_id: str) -> TrackingSnapshot:
        """GET /orders/{order_id}/track"""
        body = await self._request("GET", f"/orders/{order_id}/track")
        with _expect_shape(f"GET /orders/{order_id}/track"):
            return TrackingSnapshot.model_validate(body)

    async def list_agent_orders(self) -> List[OrderResponse]:
        """GET /agent/orders"""
        body = await self._request("GET", "/agent/orders")
        with _expect_shape("GET /agent/orders"):
            return [OrderResponse.model_validate(o) for o in body["orders"]]

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """PATCH /agent/orders/{order_id}/status"""
        body = await self._request(
            "PATCH", f"/agent/orders/{order_id}/status",
            json={"status": OrderStatus(status).value},
        )
        with _expect_shape(f"PATCH /agent/orders/{order_id}/status"):
            return OrderResponse.model_validate(body["order"])

    async def logout(self) -> None:
        """POST /auth/logout, then forget the token."""
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.token = None
