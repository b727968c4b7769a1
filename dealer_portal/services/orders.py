"""Order submission workflow and the order reads/updates around it.

``submit_order`` creates the order record and, for non-drafts, walks it
through "Submit Order" then "Send for Approval". Creation failures abort;
transition failures leave the record in place and are reported as
``created_but_status_pending``. Nothing here retries.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from pydantic import ValidationError

from dealer_portal.core.config import settings
from dealer_portal.core.enums import (
    ACTION_RESULTS,
    OrderStatus,
    StoreApp,
    SubmissionOutcome,
    WorkflowAction,
    WorkflowStep,
)
from dealer_portal.schemas.order import (
    Order,
    OrderDraft,
    OrderUpdate,
    WorkflowTransition,
)
from dealer_portal.services.kintone import RecordStoreError
from dealer_portal.services.mappers import (
    order_draft_to_record,
    order_update_to_record,
    quote_query_value,
    record_to_order,
    records_to_orders,
)

logger = logging.getLogger(__name__)

ORDER_LIST_LIMIT = 50


@dataclass(frozen=True)
class Accepted:
    id: str
    revision: str
    status: SubmissionOutcome
    status_error: Optional[str] = None
    failed_step: Optional[WorkflowStep] = None
    transitions: Tuple[WorkflowTransition, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Invalid:
    errors: List[str]


@dataclass(frozen=True)
class RemoteFailure:
    step: WorkflowStep
    message: str
    status_code: int = 500
    details: Any = None


SubmissionResult = Union[Accepted, Invalid, RemoteFailure]

APPROVAL_STEPS = (
    (WorkflowStep.SUBMIT, WorkflowAction.SUBMIT_ORDER),
    (WorkflowStep.SEND_FOR_APPROVAL, WorkflowAction.SEND_FOR_APPROVAL),
)


def validate_draft(draft: OrderDraft) -> List[str]:
    errors = []
    if not draft.order_number.strip():
        errors.append("Order number is required")
    if not draft.dealer_code.strip():
        errors.append("Dealer code is required")
    if not draft.items:
        errors.append("Order must contain at least one item")
    for line in draft.items:
        if not line.product_code.strip():
            errors.append("Every item needs a product code")
        if line.quantity <= 0:
            errors.append(f"Quantity for {line.product_code} must be a positive integer")
    return errors


async def advance_workflow(
    store,
    record_id: str,
    steps=APPROVAL_STEPS,
    assignee: Optional[str] = None,
) -> Tuple[List[WorkflowTransition], Optional[Tuple[WorkflowStep, RecordStoreError]]]:
    """Run status actions in order, stopping at the first failure."""
    transitions: List[WorkflowTransition] = []
    for step, action in steps:
        step_assignee = (assignee or settings.APPROVAL_ASSIGNEE) if action == WorkflowAction.SEND_FOR_APPROVAL else None
        try:
            await store.update_status(StoreApp.ORDERS, record_id, action, assignee=step_assignee)
        except RecordStoreError as e:
            return transitions, (step, e)
        transitions.append(
            WorkflowTransition(record_id=record_id, action=action, status=ACTION_RESULTS[action])
        )
        logger.info(f"Order {record_id}: '{action}' -> {ACTION_RESULTS[action]}")
    return transitions, None


async def submit_order(store, draft: OrderDraft, is_draft: bool, assignee: Optional[str] = None) -> SubmissionResult:
    errors = validate_draft(draft)
    if errors:
        logger.info(f"Rejected order {draft.order_number or '<unnumbered>'}: {errors}")
        return Invalid(errors)

    record = order_draft_to_record(draft, is_draft)
    token = store.combined_token(StoreApp.ORDERS, StoreApp.PRODUCTS, StoreApp.DEALERS)
    try:
        created = await store.create_record(StoreApp.ORDERS, record, token=token)
    except RecordStoreError as e:
        logger.error(f"Order {draft.order_number} for dealer {draft.dealer_code} was not created: {e.message}")
        return RemoteFailure(WorkflowStep.CREATE, e.message, e.status_code, e.details)

    record_id = str(created["id"])
    revision = str(created.get("revision", ""))
    logger.info(
        f"Created order {draft.order_number} as record {record_id} "
        f"(dealer {draft.dealer_code}, {len(draft.items)} items, draft={is_draft})"
    )

    if is_draft:
        return Accepted(record_id, revision, SubmissionOutcome.DRAFT)

    transitions, failure = await advance_workflow(store, record_id, assignee=assignee)
    if failure:
        step, error = failure
        logger.warning(
            f"Order {record_id} created but '{step}' failed: {error.message}; "
            f"staff must advance it manually"
        )
        return Accepted(
            record_id,
            revision,
            SubmissionOutcome.CREATED_BUT_STATUS_PENDING,
            status_error=error.message,
            failed_step=step,
            transitions=tuple(transitions),
        )

    return Accepted(record_id, revision, SubmissionOutcome.PENDING_APPROVAL, transitions=tuple(transitions))


async def list_orders(store, dealer_code: str, limit: int = ORDER_LIST_LIMIT) -> List[Order]:
    query = f"dealer_lookup = {quote_query_value(dealer_code)} order by order_date desc limit {limit}"
    data = await store.get_records(StoreApp.ORDERS, query=query)
    return records_to_orders(data.get("records", []))


async def get_order(store, order_id: str) -> Order:
    data = await store.get_record(StoreApp.ORDERS, order_id)
    try:
        return record_to_order(data["record"])
    except (ValidationError, ValueError) as e:
        logger.error(f"Order record {order_id} could not be mapped: {e}")
        raise RecordStoreError(
            f"Order record {order_id} is malformed",
            status_code=422,
            details={"record_id": str(order_id), "reason": str(e)},
        ) from e


async def update_draft(store, order: Order, update: OrderUpdate) -> dict:
    return await store.update_record(StoreApp.ORDERS, order.id, order_update_to_record(update))


async def change_status(store, app: StoreApp, record_id: str, action: str, assignee: Optional[str] = None) -> dict:
    logger.info(f"Status action '{action}' on {app} record {record_id}")
    return await store.update_status(app, record_id, action, assignee=assignee)
