"""Async client for the Kintone REST API.

Each Kintone app (products, dealers, orders) has its own API token. Writes
that resolve lookups into other apps need a token made of every involved
app's token joined with commas.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Request

from dealer_portal.core.config import Settings
from dealer_portal.core.enums import StoreApp
from dealer_portal.core.metrics import track_store_call

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class AppConfig:
    id: str
    token: str


class KintoneClient:

    def __init__(
        self,
        base_url: str,
        apps: Dict[str, AppConfig],
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.apps = apps
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        apps = {
            StoreApp.PRODUCTS.value: AppConfig(settings.KINTONE_PRODUCTS_APP_ID, settings.KINTONE_PRODUCTS_TOKEN),
            StoreApp.DEALERS.value: AppConfig(settings.KINTONE_DEALERS_APP_ID, settings.KINTONE_DEALERS_TOKEN),
            StoreApp.ORDERS.value: AppConfig(settings.KINTONE_ORDERS_APP_ID, settings.KINTONE_ORDERS_TOKEN),
        }
        return cls(settings.KINTONE_BASE_URL, apps, timeout=settings.KINTONE_TIMEOUT, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    def _app(self, app) -> AppConfig:
        config = self.apps.get(str(app))
        if config is None:
            raise RecordStoreError(f"Unknown app: {app}", status_code=400)
        return config

    def combined_token(self, *apps) -> str:
        return ",".join(self._app(app).token for app in apps)

    async def _request(
        self,
        app,
        method: str,
        endpoint: str,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> dict:
        config = self._app(app)
        headers = {"X-Cybozu-API-Token": token or config.token}
        kwargs: Dict[str, Any] = {"headers": headers}
        if method == "GET":
            kwargs["params"] = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        elif body is not None:
            kwargs["json"] = body

        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Kintone {method} {endpoint} timed out for app {app}")
            raise RecordStoreError(f"Kintone request timed out: {e}", status_code=504) from e
        except httpx.HTTPError as e:
            logger.error(f"Kintone {method} {endpoint} failed for app {app}: {e}")
            raise RecordStoreError(f"Kintone unreachable: {e}", status_code=502) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = (data.get("message") if isinstance(data, dict) else None) or f"Kintone error {response.status_code}"
            logger.warning(f"Kintone {method} {endpoint} returned {response.status_code} for app {app}: {message}")
            raise RecordStoreError(message, status_code=response.status_code, details=data)
        return data

    @track_store_call("get_records")
    async def get_records(
        self,
        app,
        query: str = "",
        fields: Optional[List[str]] = None,
        total_count: bool = True,
    ) -> dict:
        params = {
            "app": self._app(app).id,
            "query": query,
            "totalCount": "true" if total_count else None,
        }
        for i, name in enumerate(fields or []):
            params[f"fields[{i}]"] = name
        return await self._request(app, "GET", "/k/v1/records.json", params=params)

    @track_store_call("get_record")
    async def get_record(self, app, record_id: str) -> dict:
        return await self._request(
            app, "GET", "/k/v1/record.json", params={"app": self._app(app).id, "id": record_id}
        )

    @track_store_call("create_record")
    async def create_record(self, app, record: dict, token: Optional[str] = None) -> dict:
        return await self._request(
            app, "POST", "/k/v1/record.json",
            body={"app": self._app(app).id, "record": record},
            token=token,
        )

    @track_store_call("create_records")
    async def create_records(self, app, records: List[dict], token: Optional[str] = None) -> dict:
        return await self._request(
            app, "POST", "/k/v1/records.json",
            body={"app": self._app(app).id, "records": records},
            token=token,
        )

    @track_store_call("update_record")
    async def update_record(self, app, record_id: str, record: dict) -> dict:
        return await self._request(
            app, "PUT", "/k/v1/record.json",
            body={"app": self._app(app).id, "id": record_id, "record": record},
        )

    @track_store_call("update_status")
    async def update_status(self, app, record_id: str, action: str, assignee: Optional[str] = None) -> dict:
        body = {"app": self._app(app).id, "id": record_id, "action": str(action)}
        if assignee:
            body["assignee"] = assignee
        return await self._request(app, "PUT", "/k/v1/record/status.json", body=body)


def get_record_store(request: Request) -> KintoneClient:
    return request.app.state.record_store
