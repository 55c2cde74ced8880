"""
HTTP client for the order service

Every response is a {success, data, message} envelope; the client returns
data and turns anything else into ServiceError.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from backoffice.allocation.batches import BatchAvailability
from backoffice.allocation.errors import ServiceError
from backoffice.core.config import settings

logger = logging.getLogger(__name__)


class OrderServiceClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if client is None:
            kwargs: Dict[str, Any] = {"base_url": base_url or settings.API_BASE_URL}
            timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
            if timeout is not None:
                kwargs["timeout"] = timeout
            client = httpx.AsyncClient(**kwargs)
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    async def __aenter__(self) -> "OrderServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise ServiceError(f"Network error: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            raise ServiceError(
                f"Unexpected response from server (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ServiceError(
                message or f"Request failed (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        return payload.get("data")

    # ===== Orders =====

    async def fetch_order(self, order_id: Any) -> Dict[str, Any]:
        return await self._request("GET", f"/api/orders/{order_id}")

    async def transition_status(
        self,
        order_id: Any,
        status: str,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Any:
        return await self._request("PUT", f"/api/orders/{order_id}/status", json={
            "status": status,
            "changed_by": changed_by or settings.DEFAULT_CHANGED_BY,
            "notes": notes,
        })

    async def deliver_with_deduction(self, order_id: Any, mark_delivered: bool = False) -> Any:
        return await self._request(
            "POST", f"/api/orders/{order_id}/deliver-with-deduction",
            json={"markDelivered": mark_delivered},
        )

    # ===== Allocations =====

    async def fetch_allocations(self, order_id: Any) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/api/orders/{order_id}/allocations") or []

    async def save_allocations(self, order_id: Any, allocations: Sequence[Dict[str, Any]]) -> Any:
        return await self._request(
            "POST", f"/api/orders/{order_id}/allocations",
            json={"allocations": list(allocations)},
        )

    # ===== Inventory =====

    async def fetch_batches(self, product_id: int) -> List[BatchAvailability]:
        rows = await self._request("GET", f"/api/inventory/product/{product_id}/batches") or []
        return [BatchAvailability.from_api(row, default_unit=settings.DEFAULT_UNIT) for row in rows]
