import logging
from typing import List

from dealer_portal.core.config import settings
from dealer_portal.core.enums import OrderStatus, WorkflowAction, WorkflowStep
from dealer_portal.schemas.order import WorkflowTransition
from dealer_portal.services.kintone import KintoneClient
from dealer_portal.services.orders import advance_workflow, get_order

logger = logging.getLogger(__name__)

# Only the transitions a stuck submission is missing; approval itself stays with staff
REMAINING_STEPS = {
    OrderStatus.NEW: (
        (WorkflowStep.SUBMIT, WorkflowAction.SUBMIT_ORDER),
        (WorkflowStep.SEND_FOR_APPROVAL, WorkflowAction.SEND_FOR_APPROVAL),
    ),
    OrderStatus.SUBMITTED: (
        (WorkflowStep.SEND_FOR_APPROVAL, WorkflowAction.SEND_FOR_APPROVAL),
    ),
}


async def reconcile_order_async(order_id: str, store=None) -> List[WorkflowTransition]:
    """Re-issue the approval transitions a submitted order never received"""
    owns_store = store is None
    if owns_store:
        store = KintoneClient.from_settings(settings)
    try:
        order = await get_order(store, order_id)
        if order.is_draft:
            logger.info(f"Order {order_id} is a draft; nothing to reconcile")
            return []

        steps = REMAINING_STEPS.get(order.status)
        if not steps:
            logger.info(f"Order {order_id} is already '{order.status}'; nothing to reconcile")
            return []

        transitions, failure = await advance_workflow(store, order_id, steps=steps)
        if failure:
            step, error = failure
            logger.error(f"Reconcile of order {order_id} failed at '{step}': {error.message}")
            raise error
        logger.info(f"Reconciled order {order_id}: {[str(t.action) for t in transitions]}")
        return transitions
    finally:
        if owns_store:
            await store.aclose()
