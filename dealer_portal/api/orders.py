import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from typing import Optional, List

from dealer_portal.core.audit import audit_log
from dealer_portal.core.auth_utils import check_dealer_scope
from dealer_portal.core.enums import AuditAction, PaymentMethod, StoreApp, SubmissionOutcome
from dealer_portal.core.metrics import order_submissions
from dealer_portal.core.rate_limit import check_rate_limit
from dealer_portal.core.security import Principal, get_current_user, require_staff
from dealer_portal.schemas.order import (
    Order,
    OrderSubmission,
    OrderUpdate,
    StatusActionIn,
    SubmissionOut,
)
from dealer_portal.services.dealers import find_dealer
from dealer_portal.services.kintone import get_record_store
from dealer_portal.services.orders import (
    Accepted,
    Invalid,
    RemoteFailure,
    change_status,
    get_order,
    list_orders,
    submit_order,
    update_draft,
)
from dealer_portal.services.mappers import record_to_dealer
from dealer_portal.services.payments import available_payment_methods
from dealer_portal.services.push import send_push
from dealer_portal.services.tasks import reconcile_order
from dealer_portal.utils.idempotency import get_idempotent, set_idempotent

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])

PUSH_MESSAGES = {
    SubmissionOutcome.PENDING_APPROVAL: (
        "Order submitted",
        "Order {number} has been sent for approval.",
    ),
    SubmissionOutcome.CREATED_BUT_STATUS_PENDING: (
        "Order received",
        "Order {number} was saved; our staff will complete its submission.",
    ),
}


async def check_payment_method(store, dealer_code: str, method: Optional[PaymentMethod]):
    """Reject a payment method the dealer is not offered"""
    if method != PaymentMethod.CREDIT_TERMS:
        return
    record = await find_dealer(store, dealer_code)
    if record is None or method not in available_payment_methods(record_to_dealer(record)):
        raise HTTPException(status_code=400, detail=f"Payment method '{method}' is not available for dealer {dealer_code}")


def build_submission_response(result: Accepted) -> SubmissionOut:
    return SubmissionOut(
        id=result.id,
        revision=result.revision,
        status=result.status,
        status_error=result.status_error,
    )


@router.post(
    "/submit-order",
    response_model=SubmissionOut,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
@audit_log(AuditAction.SUBMIT_ORDER)
async def submit(
    payload: OrderSubmission,
    background_tasks: BackgroundTasks,
    idempotency_key: Optional[str] = Header(None),
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    check_dealer_scope(payload.record.dealer_code, current_user)
    await check_rate_limit(current_user.code)

    # Opt-in only: without the header a resubmission creates a second order
    scoped_key = f"{current_user.code}:{idempotency_key}" if idempotency_key else None
    if scoped_key:
        prev = await get_idempotent(scoped_key)
        if prev:
            logger.info(f"Replaying submission for idempotency key {idempotency_key}")
            return prev

    await check_payment_method(store, payload.record.dealer_code, payload.record.payment_method)

    result = await submit_order(store, payload.record, payload.is_draft)

    if isinstance(result, Invalid):
        raise HTTPException(status_code=400, detail="; ".join(result.errors))
    if isinstance(result, RemoteFailure):
        raise HTTPException(status_code=result.status_code, detail=result.message)

    order_submissions.labels(outcome=str(result.status)).inc()
    out = build_submission_response(result)

    if result.status in PUSH_MESSAGES:
        title, body = PUSH_MESSAGES[result.status]
        background_tasks.add_task(
            send_push,
            payload.record.dealer_code,
            title,
            body.format(number=payload.record.order_number),
            {"orderId": result.id, "status": str(result.status)},
        )

    if scoped_key:
        await set_idempotent(scoped_key, out.model_dump(by_alias=True, exclude_none=True, mode="json"))
    return out


@router.get("", response_model=List[Order])
async def list_dealer_orders(
    dealer_code: Optional[str] = None,
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    code = dealer_code or current_user.code
    check_dealer_scope(code, current_user)
    return await list_orders(store, code)


@router.get("/{order_id}", response_model=Order)
async def get_dealer_order(
    order_id: str,
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    order = await get_order(store, order_id)
    check_dealer_scope(order.dealer_code, current_user)
    return order


@router.put("/{order_id}")
@audit_log(AuditAction.UPDATE_ORDER)
async def update_order(
    order_id: str,
    update: OrderUpdate,
    store=Depends(get_record_store),
    current_user: Principal = Depends(get_current_user),
):
    """Edit a draft; submitted orders belong to the approval workflow"""
    await check_rate_limit(current_user.code)

    order = await get_order(store, order_id)
    check_dealer_scope(order.dealer_code, current_user)
    if not order.is_draft:
        raise HTTPException(status_code=409, detail="Only draft orders can be edited")

    if update.items is not None:
        if not update.items:
            raise HTTPException(status_code=400, detail="Order must contain at least one item")
        if any(line.quantity <= 0 for line in update.items):
            raise HTTPException(status_code=400, detail="Quantities must be positive integers")
    await check_payment_method(store, order.dealer_code, update.payment_method)

    return await update_draft(store, order, update)


@router.post("/status")
@audit_log(AuditAction.ORDER_STATUS)
async def order_status_action(
    payload: StatusActionIn,
    store=Depends(get_record_store),
    current_user: Principal = Depends(require_staff),
):
    return await change_status(store, StoreApp.ORDERS, payload.id, payload.action, payload.assignee)


@router.post("/{order_id}/reconcile")
@audit_log(AuditAction.RECONCILE_ORDER)
async def reconcile(
    order_id: str,
    current_user: Principal = Depends(require_staff),
):
    reconcile_order.delay(order_id)
    return {"status": "queued", "id": order_id}
