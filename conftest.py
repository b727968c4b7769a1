import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("KINTONE_BASE_URL", "https://kintone.test")
os.environ.setdefault("KINTONE_ORDERS_APP_ID", "3")
os.environ.setdefault("KINTONE_ORDERS_TOKEN", "orders-token")
os.environ.setdefault("KINTONE_PRODUCTS_APP_ID", "1")
os.environ.setdefault("KINTONE_PRODUCTS_TOKEN", "products-token")
os.environ.setdefault("KINTONE_DEALERS_APP_ID", "2")
os.environ.setdefault("KINTONE_DEALERS_TOKEN", "dealers-token")

import re
from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from dealer_portal.main import app
from dealer_portal.core.enums import UserRole
from dealer_portal.core.security import create_access_token, hash_password
from dealer_portal.services.kintone import RecordStoreError, get_record_store


STATUS_AFTER_ACTION = {
    "Submit Order": "Submitted",
    "Send for Approval": "Pending ONB Approval",
    "Submit for Review": "Pending Review",
}

EQUALS_CLAUSE = re.compile(r'(\w+) = "((?:[^"\\]|\\.)*)"')


def _v(value):
    return {"value": value}


class FakeRecordStore:
    """In-memory stand-in for KintoneClient that records every call.

    Order creation copies product name and price into each line the way the
    store's lookup fields do.
    """

    def __init__(self):
        self.records = {"products": {}, "dealers": {}, "orders": {}}
        self.calls = []
        self.next_id = 1
        self.create_error = None
        self.action_errors = {}
        self.tokens = {"products": "products-token", "dealers": "dealers-token", "orders": "orders-token"}

    def combined_token(self, *apps):
        return ",".join(self.tokens[str(app)] for app in apps)

    def calls_for(self, app):
        return [c for c in self.calls if c[1] == str(app)]

    def _add(self, app, fields):
        record_id = str(self.next_id)
        self.next_id += 1
        record = {"$id": _v(record_id), "$revision": _v("1"), "Status": _v("New")}
        record.update(fields)
        self.records[app][record_id] = record
        return record_id

    def seed(self, app, fields):
        return self._add(str(app), fields)

    def _snapshot_lines(self, record):
        by_code = {r["product_code"]["value"]: r for r in self.records["products"].values()}
        for row in record.get("order_items", {}).get("value", []):
            cells = row["value"]
            product = by_code.get(cells["product_lookup"]["value"])
            if product:
                price = product["unit_price"]["value"]
                cells["product_name_display"] = _v(product["product_name"]["value"])
                cells["item_unit_price"] = _v(price)
                cells["line_total"] = _v(str(int(cells["quantity"]["value"]) * float(price)))

    async def create_record(self, app, record, token=None):
        app = str(app)
        self.calls.append(("create_record", app, token))
        if self.create_error is not None:
            raise self.create_error
        record = {k: dict(v) for k, v in record.items()}
        if app == "orders":
            self._snapshot_lines(record)
        record_id = self._add(app, record)
        return {"id": record_id, "revision": "1"}

    async def create_records(self, app, records, token=None):
        ids = [(await self.create_record(app, r, token))["id"] for r in records]
        return {"ids": ids, "revisions": ["1"] * len(ids)}

    async def update_status(self, app, record_id, action, assignee=None):
        app, action = str(app), str(action)
        self.calls.append(("update_status", app, action, assignee))
        if action in self.action_errors:
            raise self.action_errors[action]
        record = self._get(app, record_id)
        record["Status"] = _v(STATUS_AFTER_ACTION.get(action, action))
        record["$revision"] = _v(str(int(record["$revision"]["value"]) + 1))
        return {"revision": record["$revision"]["value"]}

    async def update_record(self, app, record_id, record):
        app = str(app)
        self.calls.append(("update_record", app, record_id))
        existing = self._get(app, record_id)
        existing.update(record)
        existing["$revision"] = _v(str(int(existing["$revision"]["value"]) + 1))
        return {"revision": existing["$revision"]["value"]}

    def _get(self, app, record_id):
        record = self.records[app].get(str(record_id))
        if record is None:
            raise RecordStoreError(f"The specified record (ID: {record_id}) is not found.", 404)
        return record

    async def get_record(self, app, record_id):
        app = str(app)
        self.calls.append(("get_record", app, record_id))
        return {"record": self._get(app, record_id)}

    async def get_records(self, app, query="", fields=None, total_count=True):
        app = str(app)
        self.calls.append(("get_records", app, query))
        clauses = [(name, value.replace('\\"', '"')) for name, value in EQUALS_CLAUSE.findall(query)]
        match = any if " or " in query else all
        records = [
            r for r in self.records[app].values()
            if not clauses or match(r.get(name, {}).get("value") == value for name, value in clauses)
        ]
        return {"records": records, "totalCount": str(len(records))}


class FakeRedis:

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value if isinstance(value, bytes) else str(value).encode()

    async def incr(self, key):
        self.data[key] = str(int(self.data.get(key, b"0")) + 1).encode()
        return int(self.data[key])

    async def delete(self, key):
        self.data.pop(key, None)

    async def ping(self):
        return True

    async def close(self):
        pass


def _dealer_fields(code, name, status, password, **extra):
    fields = {
        "dealer_code": _v(code),
        "dealer_name": _v(name),
        "contact_person": _v("Juan Dela Cruz"),
        "email": _v(f"{code.lower()}@dealers.test"),
        "region": _v("NCR"),
        "Status": _v(status),
        "login_password": _v(password),
        "outstanding_balance": _v("12500"),
        "credit_limit": _v("100000"),
        "credit_terms": _v("Net 30"),
        "password_expiry": _v((date.today() + timedelta(days=30)).isoformat()),
        "dealer_stores": _v([
            {"value": {
                "ds_store_code": _v(f"{code}-A"),
                "ds_store_name": _v("SM North EDSA Branch"),
                "ds_store_address": _v("2F SM North EDSA, QC"),
            }},
        ]),
    }
    fields.update(extra)
    return fields


@pytest.fixture
def store():
    s = FakeRecordStore()
    for code, name, category, price in [
        ("ITM-BV-001", "Classic Pearl Shake", "Beverages", "85"),
        ("ITM-TS-001", "Caramel Syrup - 1L", "Toppings & Syrups", "320"),
        ("ITM-FI-001", "Tapioca Pearl Mix - 10kg", "Food Ingredients", "1250"),
    ]:
        s.seed("products", {
            "product_code": _v(code),
            "product_name": _v(name),
            "category": _v(category),
            "unit_price": _v(price),
            "stock_qty": _v("100"),
            "product_status": _v("Active"),
        })
    s.seed("dealers", _dealer_fields("DLR-001", "Juan's Franchise", "Active", hash_password("secret123")))
    s.seed("dealers", _dealer_fields("DLR-002", "Legacy Dealer", "Active", "legacy-pass"))
    s.seed("dealers", _dealer_fields("DLR-003", "Waiting Dealer", "Pending Review", "whatever1"))
    s.seed("dealers", _dealer_fields("DLR-004", "Closed Dealer", "Inactive", "whatever1"))
    s.calls.clear()
    return s


@pytest.fixture
def fake_redis(monkeypatch):
    r = FakeRedis()
    monkeypatch.setattr("dealer_portal.core.redis.redis", r)
    return r


@pytest.fixture
async def test_client(store):
    app.dependency_overrides[get_record_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_record_store, None)


@pytest.fixture
def dealer_token():
    return create_access_token("DLR-001", UserRole.DEALER)


@pytest.fixture
def other_dealer_token():
    return create_access_token("DLR-002", UserRole.DEALER)


@pytest.fixture
def staff_token():
    return create_access_token("backoffice", UserRole.STAFF)


@pytest.fixture
def auth_headers(dealer_token):
    return {"Authorization": f"Bearer {dealer_token}"}


@pytest.fixture
def staff_headers(staff_token):
    return {"Authorization": f"Bearer {staff_token}"}


@pytest.fixture
def order_record_factory():
    def _order_record(items=None, **kwargs):
        data = {
            "order_number": "ORD-20260201-101500123",
            "dealer_code": "DLR-001",
            "store_code": "DLR-001-A",
            "store_name": "SM North EDSA Branch",
            "order_date": "2026-02-01",
            "payment_method": "Cash",
            "notes": "Deliver before 10am",
            "outstanding_balance": 12500,
            "items": items if items is not None else [{"product_code": "ITM-BV-001", "quantity": "50"}],
        }
        data.update(kwargs)
        return data
    return _order_record


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that go through the HTTP API"
    )
    config.addinivalue_line(
        "markers", "workflow: marks tests of the order submission workflow"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests related to authentication"
    )
    config.addinivalue_line(
        "markers", "client: marks tests of the client-side controller"
    )
    config.addinivalue_line(
        "markers", "idempotency: marks tests related to idempotency"
    )
