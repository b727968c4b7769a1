from typing import List

from fastapi import APIRouter, Depends

from dealer_portal.core.audit import audit_log
from dealer_portal.core.auth_utils import check_not_found
from dealer_portal.core.enums import AuditAction, PaymentMethod, StoreApp
from dealer_portal.core.security import Principal, get_current_user, require_staff
from dealer_portal.schemas.dealer import Dealer
from dealer_portal.schemas.order import StatusActionIn
from dealer_portal.services.dealers import find_dealer
from dealer_portal.services.kintone import get_record_store
from dealer_portal.services.mappers import record_to_dealer
from dealer_portal.services.orders import change_status
from dealer_portal.services.payments import available_payment_methods

router = APIRouter(prefix="/api/dealers", tags=["dealers"])


async def _load_dealer(store, code: str) -> Dealer:
    record = await find_dealer(store, code)
    check_not_found(record, "Dealer", code)
    return record_to_dealer(record)


@router.get("/me", response_model=Dealer)
async def get_profile(
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    return await _load_dealer(store, current_user.code)


@router.get("/me/payment-methods", response_model=List[PaymentMethod])
async def get_payment_methods(
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    return available_payment_methods(await _load_dealer(store, current_user.code))


@router.post("/status")
@audit_log(AuditAction.DEALER_STATUS)
async def dealer_status_action(
    payload: StatusActionIn,
    store=Depends(get_record_store),
    current_user: Principal = Depends(require_staff),
):
    return await change_status(store, StoreApp.DEALERS, payload.id, payload.action, payload.assignee)
