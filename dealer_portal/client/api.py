from typing import Any, Dict, List, Optional

import httpx

from dealer_portal.client.config import ClientConfig
from dealer_portal.schemas.dealer import Dealer
from dealer_portal.schemas.order import Order
from dealer_portal.schemas.product import Product


class PortalApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _err(response: httpx.Response) -> str:
    try:
        data = response.json()
        if isinstance(data, dict):
            return str(data.get("detail") or data.get("error") or data)
        return str(data)
    except ValueError:
        return response.text or f"API error {response.status_code}"


class PortalApi:
    """Thin async wrapper over the portal's HTTP API."""

    def __init__(self, config: ClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.token: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=config.api_base,
            timeout=config.timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise PortalApiError(f"Network error: {e}") from e
        if response.is_error:
            raise PortalApiError(_err(response), response.status_code)
        return response.json()

    async def health(self) -> dict:
        return await self._request("GET", "/health")

    async def login(self, code: str, password: str) -> Dealer:
        data = await self._request("POST", "/auth/login", json={"code": code, "password": password})
        self.token = data["access_token"]
        return Dealer(**data["dealer"])

    async def get_products(self, category: Optional[str] = None) -> List[Product]:
        params = {"category": category} if category else None
        data = await self._request("GET", "/products", params=params)
        return [Product(**p) for p in data]

    async def get_orders(self) -> List[Order]:
        data = await self._request("GET", "/orders")
        return [Order(**o) for o in data]

    async def submit_order(
        self,
        record: Dict[str, Any],
        is_draft: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        return await self._request(
            "POST", "/orders/submit-order",
            json={"record": record, "isDraft": is_draft},
            headers=headers,
        )

    async def update_order(self, order_id: str, changes: Dict[str, Any]) -> dict:
        return await self._request("PUT", f"/orders/{order_id}", json=changes)

    async def change_password(self, code: str, current_password: str, new_password: str) -> dict:
        return await self._request(
            "PUT", "/auth/change-password",
            json={"code": code, "current_password": current_password, "new_password": new_password},
        )

    async def register(self, data: Dict[str, Any]) -> dict:
        return await self._request("POST", "/auth/register", json=data)
