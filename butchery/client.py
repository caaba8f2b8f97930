# client.py
"""
Async HTTP client for the storefront API.

Every response is unwrapped from the ``{success, data, error}`` envelope.
A non-success envelope or a transport failure raises ``ApiError``; nothing
is retried here.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from butchery.schemas import CategoryIn, CategoryOut, OrderOut, ProductOut
from butchery.settings import settings
from butchery.validators import checkout_form_errors, first_error

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StorefrontClient:
    def __init__(
        self,
        base_url: str = settings.API_BASE_URL,
        timeout: float = settings.API_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_id: Optional[str] = None,
    ):
        headers = {"x-user-id": user_id} if user_id else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Sends a request and returns the envelope's ``data``."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            raise ApiError(f"Unexpected response ({response.status_code})", response.status_code)
        if not isinstance(body, dict):
            raise ApiError(f"Unexpected response ({response.status_code})", response.status_code)

        if response.is_error or not body.get("success", False):
            message = body.get("error") or body.get("message") or f"HTTP {response.status_code}"
            raise ApiError(message, response.status_code)
        return body.get("data")

    # --- Categories ---

    async def list_categories(self) -> List[CategoryOut]:
        data = await self.request("GET", "/categories")
        return [CategoryOut.model_validate(c) for c in data or []]

    async def create_category(self, category: CategoryIn) -> CategoryOut:
        data = await self.request("POST", "/categories", json=category.model_dump(exclude_none=True))
        return CategoryOut.model_validate(data)

    async def update_category(self, category_id: str, changes: Dict[str, Any]) -> CategoryOut:
        data = await self.request("PUT", f"/categories/{category_id}", json=changes)
        return CategoryOut.model_validate(data)

    async def delete_category(self, category_id: str) -> None:
        await self.request("DELETE", f"/categories/{category_id}")

    # --- Products ---

    async def list_products(self, **params) -> List[ProductOut]:
        query = {key: value for key, value in params.items() if value is not None}
        data = await self.request("GET", "/products", params=query)
        return [ProductOut.model_validate(p) for p in data or []]

    async def get_product(self, product_id: str) -> ProductOut:
        return ProductOut.model_validate(await self.request("GET", f"/products/{product_id}"))

    # --- Orders ---

    async def place_order(self, checkout: Dict[str, Any], language: str = "en") -> OrderOut:
        """Checks the customer fields locally, then submits the order."""
        errors = checkout_form_errors(
            checkout.get("customer_name", ""),
            checkout.get("customer_email", ""),
            checkout.get("customer_mobile", ""),
            language,
        )
        if errors:
            raise ApiError(first_error(errors), 400)
        return OrderOut.model_validate(await self.request("POST", "/orders", json=checkout))

    async def get_order(self, order_id: str) -> OrderOut:
        return OrderOut.model_validate(await self.request("GET", f"/orders/{order_id}"))

    async def update_order_status(self, order_id: str, status: str, notes: Optional[str] = None) -> OrderOut:
        data = await self.request("PATCH", f"/orders/{order_id}/status", json={"status": status, "notes": notes})
        return OrderOut.model_validate(data)

    # --- Analytics & Reports ---

    async def dashboard_stats(self) -> Dict[str, Any]:
        return await self.request("GET", "/analytics/dashboard")

    async def revenue_chart(self, period: str = "week") -> List[Dict[str, Any]]:
        return await self.request("GET", "/analytics/revenue-chart", params={"period": period})

    async def orders_by_status(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/analytics/orders-by-status")

    async def sales_by_category(self, period: str = "month") -> List[Dict[str, Any]]:
        return await self.request("GET", "/reports/sales-by-category", params={"period": period})
