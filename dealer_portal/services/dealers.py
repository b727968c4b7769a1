import logging
from datetime import date, timedelta
from typing import Optional, Tuple

from dealer_portal.core.config import settings
from dealer_portal.core.enums import StoreApp, WorkflowAction
from dealer_portal.core.security import hash_password
from dealer_portal.schemas.dealer import RegisterIn
from dealer_portal.services.kintone import RecordStoreError
from dealer_portal.services.mappers import (
    Record,
    dealer_registration_record,
    field_value,
    password_change_record,
    quote_query_value,
)

logger = logging.getLogger(__name__)


def next_password_expiry(today: Optional[date] = None) -> date:
    return (today or date.today()) + timedelta(days=settings.PASSWORD_EXPIRY_DAYS)


async def find_dealer(store, code: str) -> Optional[Record]:
    data = await store.get_records(
        StoreApp.DEALERS, query=f"dealer_code = {quote_query_value(code)} limit 1"
    )
    records = data.get("records", [])
    return records[0] if records else None


async def find_conflicting_dealer(store, code: str, email: str) -> Optional[str]:
    """Return which identifier is already taken ("code" or "email"), if any."""
    data = await store.get_records(
        StoreApp.DEALERS,
        query=f"dealer_code = {quote_query_value(code)} or email = {quote_query_value(email)} limit 1",
    )
    for record in data.get("records", []):
        if field_value(record, "dealer_code") == code:
            return "code"
        if field_value(record, "email") == email:
            return "email"
    return None


async def register_dealer(store, payload: RegisterIn) -> Tuple[str, Optional[str]]:
    """Create a dealer in New and hand it to back office for review.

    Returns the record id and, when the review transition failed, its error.
    """
    record = dealer_registration_record(
        dealer_code=payload.dealer_code,
        dealer_name=payload.dealer_name,
        email=payload.email,
        contact_person=payload.contact_person,
        phone=payload.phone,
        region=payload.region or "NCR",
        password_hash=hash_password(payload.password),
        password_expiry=next_password_expiry(),
    )
    created = await store.create_record(StoreApp.DEALERS, record)
    record_id = str(created["id"])
    try:
        await store.update_status(
            StoreApp.DEALERS, record_id, WorkflowAction.SUBMIT_FOR_REVIEW,
            assignee=settings.APPROVAL_ASSIGNEE,
        )
    except RecordStoreError as e:
        logger.warning(f"Dealer {payload.dealer_code} registered as {record_id} but review step failed: {e.message}")
        return record_id, e.message
    return record_id, None


async def set_password(store, dealer_record: Record, new_password: str) -> date:
    expiry = next_password_expiry()
    await store.update_record(
        StoreApp.DEALERS,
        str(field_value(dealer_record, "$id")),
        password_change_record(hash_password(new_password), expiry),
    )
    return expiry
