"""Conversion between Kintone records and the portal's typed models.

Kintone wraps every field as ``{"value": ...}``, numbers arrive as strings
and subtable rows carry their own ``value`` wrapper. Nothing outside this
module should see that shape.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from dealer_portal.core.enums import (
    DealerStatus,
    OrderStatus,
    STORE_STATUS_ALIASES,
)
from dealer_portal.schemas.dealer import Dealer, Store
from dealer_portal.schemas.order import (
    LineItem,
    Order,
    OrderDraft,
    OrderLineIn,
    OrderUpdate,
)
from dealer_portal.schemas.product import Product

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def wrap(value: Any) -> Dict[str, Any]:
    return {"value": value}


def field_value(record: Record, name: str, default: Any = "") -> Any:
    field = record.get(name)
    if not isinstance(field, dict):
        return default
    value = field.get("value")
    return default if value is None else value


def _number(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    return float(value)


def _yes(value: Any) -> bool:
    return str(value).strip().lower() == "yes"


def _date(value: Any) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def quote_query_value(value: str) -> str:
    """Escape a value for use inside a double-quoted Kintone query literal."""
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def normalize_status(label: Optional[str]) -> OrderStatus:
    if not label:
        return OrderStatus.NEW
    if label in STORE_STATUS_ALIASES:
        return STORE_STATUS_ALIASES[label]
    return OrderStatus(label)


def _line_row(line: OrderLineIn) -> Dict[str, Any]:
    # Name and price are filled by the store's product lookup at save time
    return {
        "value": {
            "product_lookup": wrap(line.product_code),
            "quantity": wrap(str(line.quantity)),
        }
    }


def order_draft_to_record(draft: OrderDraft, is_draft: bool) -> Record:
    return {
        "order_number": wrap(draft.order_number),
        "order_date": wrap(draft.order_date.isoformat()),
        "dealer_lookup": wrap(draft.dealer_code),
        "store_code_order": wrap(draft.store_code),
        "store_name_order": wrap(draft.store_name),
        "payment_method": wrap(str(draft.payment_method)),
        "notes": wrap(draft.notes),
        "outstanding_balance_snapshot": wrap(str(draft.outstanding_balance)),
        "is_draft": wrap("Yes" if is_draft else "No"),
        "order_items": wrap([_line_row(line) for line in draft.items]),
    }


def order_update_to_record(update: OrderUpdate) -> Record:
    fields = update.model_dump(exclude_unset=True)
    record: Record = {}
    if "store_code" in fields:
        record["store_code_order"] = wrap(update.store_code or "")
    if "store_name" in fields:
        record["store_name_order"] = wrap(update.store_name or "")
    if "payment_method" in fields and update.payment_method is not None:
        record["payment_method"] = wrap(str(update.payment_method))
    if "notes" in fields:
        record["notes"] = wrap(update.notes or "")
    if update.items is not None:
        record["order_items"] = wrap([_line_row(line) for line in update.items])
    return record


def _line_from_row(row: Record) -> LineItem:
    cells = row.get("value", {})
    return LineItem(
        product_code=field_value(cells, "product_lookup"),
        name=field_value(cells, "product_name_display"),
        quantity=int(_number(field_value(cells, "quantity", "0"))),
        unit_price=_number(field_value(cells, "item_unit_price", "0")),
    )


def record_to_order(record: Record) -> Order:
    balance = field_value(record, "outstanding_balance_snapshot", None)
    revision = field_value(record, "$revision", None)
    status = normalize_status(field_value(record, "Status", None))
    # the draft flag is not cleared when staff advance a draft
    is_draft = _yes(field_value(record, "is_draft", "No")) and status == OrderStatus.NEW
    return Order(
        id=str(field_value(record, "$id")),
        order_number=field_value(record, "order_number"),
        dealer_code=field_value(record, "dealer_lookup"),
        store_code=field_value(record, "store_code_order"),
        store_name=field_value(record, "store_name_order"),
        order_date=_date(field_value(record, "order_date", None)),
        items=[_line_from_row(row) for row in field_value(record, "order_items", [])],
        payment_method=field_value(record, "payment_method"),
        notes=field_value(record, "notes"),
        is_draft=is_draft,
        status=status,
        outstanding_balance=None if balance in (None, "") else _number(balance),
        revision=None if revision is None else str(revision),
    )


def records_to_orders(records: List[Record]) -> List[Order]:
    """Map a page of order records, dropping (and logging) malformed ones."""
    orders = []
    for record in records:
        try:
            orders.append(record_to_order(record))
        except (ValidationError, ValueError) as e:
            logger.warning(f"Skipping malformed order record {field_value(record, '$id')}: {e}")
    return orders


def dealer_status(record: Record) -> Optional[DealerStatus]:
    label = field_value(record, "Status", "") or field_value(record, "dealer_status", "")
    try:
        return DealerStatus(label)
    except ValueError:
        return None


def record_to_dealer(record: Record) -> Dealer:
    stores = [
        Store(
            code=field_value(row.get("value", {}), "ds_store_code"),
            name=field_value(row.get("value", {}), "ds_store_name"),
            address=field_value(row.get("value", {}), "ds_store_address"),
        )
        for row in field_value(record, "dealer_stores", [])
    ]
    return Dealer(
        id=str(field_value(record, "$id")) or None,
        code=field_value(record, "dealer_code"),
        name=field_value(record, "dealer_name"),
        sap_bp_code=field_value(record, "sap_bp_code"),
        contact=field_value(record, "contact_person"),
        email=field_value(record, "email"),
        region=field_value(record, "region"),
        status=dealer_status(record),
        outstanding_balance=_number(field_value(record, "outstanding_balance", "0")),
        credit_limit=_number(field_value(record, "credit_limit", "0")),
        credit_terms=field_value(record, "credit_terms", "None") or "None",
        mfa_enabled=_yes(field_value(record, "mfa_enabled", "No")),
        password_expiry=_date(field_value(record, "password_expiry", None)),
        stores=stores,
    )


def record_to_product(record: Record) -> Product:
    return Product(
        id=str(field_value(record, "$id")),
        code=field_value(record, "product_code"),
        name=field_value(record, "product_name"),
        category=field_value(record, "category"),
        item_category=field_value(record, "item_category"),
        price=_number(field_value(record, "unit_price", "0")),
        stock=int(_number(field_value(record, "stock_qty", "0"))),
        description=field_value(record, "description"),
        variant_label=field_value(record, "variant_label"),
        has_variants=_yes(field_value(record, "has_variants", "No")),
        status=field_value(record, "product_status", None),
    )


def dealer_registration_record(
    dealer_code: str,
    dealer_name: str,
    email: str,
    contact_person: str,
    phone: str,
    region: str,
    password_hash: str,
    password_expiry: date,
) -> Record:
    return {
        "dealer_code": wrap(dealer_code),
        "dealer_name": wrap(dealer_name),
        "email": wrap(email),
        "contact_person": wrap(contact_person),
        "phone": wrap(phone),
        "region": wrap(region),
        "login_password": wrap(password_hash),
        "password_expiry": wrap(password_expiry.isoformat()),
        "credit_terms": wrap("None"),
        "mfa_enabled": wrap("No"),
    }


def password_change_record(password_hash: str, password_expiry: date) -> Record:
    return {
        "login_password": wrap(password_hash),
        "password_expiry": wrap(password_expiry.isoformat()),
    }
