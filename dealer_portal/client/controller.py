"""Client-side ordering state: cart, checkout and order history.

``SubmissionController.submit`` turns the cart into an order payload, sends
it to ``/orders/submit-order`` and reconciles local state with the outcome.
A ``created_but_status_pending`` answer is treated like a success for state
cleanup; only the notification differs. Any HTTP or network error leaves the
cart untouched so the dealer can try again.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from dealer_portal.client.api import PortalApi, PortalApiError
from dealer_portal.client.cart import Cart
from dealer_portal.client.config import ClientConfig
from dealer_portal.core.enums import OrderStatus, PaymentMethod, SubmissionOutcome
from dealer_portal.schemas.dealer import Dealer, Store
from dealer_portal.schemas.order import Order
from dealer_portal.schemas.product import Product
from dealer_portal.services.payments import available_payment_methods

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    LOGIN = "login"
    CATALOG = "catalog"
    CHECKOUT = "checkout"
    CONFIRMATION = "confirmation"
    HISTORY = "history"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Notification:
    message: str
    kind: str = "success"  # success | warning | error


@dataclass(frozen=True)
class SubmissionReceipt:
    order_number: str
    total: float
    outcome: SubmissionOutcome
    record_id: str
    status_error: Optional[str] = None


def generate_order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{now:%H%M%S}{now.microsecond // 1000:03d}"


PENDING_STATUSES = (OrderStatus.SUBMITTED, OrderStatus.PENDING_APPROVAL)

SUBMISSION_MESSAGES = {
    SubmissionOutcome.DRAFT: Notification("Order saved as draft"),
    SubmissionOutcome.PENDING_APPROVAL: Notification("Order submitted successfully!"),
    SubmissionOutcome.CREATED_BUT_STATUS_PENDING: Notification(
        "Order received. Its approval request is delayed; our staff will follow up.",
        "warning",
    ),
}


@dataclass(frozen=True)
class OrderSummary:
    total_spent: float = 0.0
    average_order: float = 0.0
    pending: int = 0
    completed: int = 0
    rejected: int = 0
    top_products: Tuple[Tuple[str, float], ...] = ()


def summarize_orders(orders: List[Order], since: Optional[date] = None, top: int = 8) -> OrderSummary:
    """Dashboard figures over submitted (non-draft) orders, optionally from ``since`` on."""
    submitted = [
        o for o in orders
        if not o.is_draft and (since is None or (o.order_date is not None and o.order_date >= since))
    ]
    if not submitted:
        return OrderSummary()

    total = round(sum(o.total for o in submitted), 2)
    by_product: Dict[str, float] = {}
    for order in submitted:
        for item in order.items:
            name = item.name or item.product_code
            by_product[name] = by_product.get(name, 0.0) + item.line_total
    ranked = sorted(by_product.items(), key=lambda kv: kv[1], reverse=True)[:top]

    return OrderSummary(
        total_spent=total,
        average_order=round(total / len(submitted), 2),
        pending=sum(1 for o in submitted if o.status in PENDING_STATUSES),
        completed=sum(1 for o in submitted if o.status == OrderStatus.COMPLETED),
        rejected=sum(1 for o in submitted if o.status == OrderStatus.REJECTED),
        top_products=tuple((name, round(value, 2)) for name, value in ranked),
    )


class SubmissionController:

    def __init__(
        self,
        config: ClientConfig,
        api: Optional[PortalApi] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.api = api or PortalApi(config)
        self._clock = clock

        self.screen = Screen.LOGIN
        self.dealer: Optional[Dealer] = None
        self.selected_store: Optional[Store] = None
        self.products: List[Product] = []
        self.orders: List[Order] = []
        self.cart = Cart()
        self.notes = ""
        self.payment_method = PaymentMethod.CASH
        self.submitting = False
        self.notifications: List[Notification] = []

    def notify(self, message: str, kind: str = "success"):
        self.notifications.append(Notification(message, kind))

    @property
    def payment_methods(self) -> List[PaymentMethod]:
        if self.dealer is None:
            return []
        return available_payment_methods(self.dealer)

    async def login(self, code: str, password: str) -> bool:
        try:
            self.dealer = await self.api.login(code, password)
        except PortalApiError as e:
            self.notify(e.message or "Login failed", "error")
            return False
        self.selected_store = self.dealer.stores[0] if self.dealer.stores else None
        await self.load_products()
        await self.refresh_orders()
        self.screen = Screen.CATALOG
        return True

    async def load_products(self):
        try:
            self.products = await self.api.get_products()
        except PortalApiError as e:
            logger.warning(f"Could not load products: {e.message}")
            self.notify("Could not load products", "error")

    async def refresh_orders(self):
        try:
            self.orders = await self.api.get_orders()
        except PortalApiError as e:
            logger.warning(f"Could not refresh orders: {e.message}")

    def summary(self, since: Optional[date] = None) -> OrderSummary:
        return summarize_orders(self.orders, since=since)

    def open_checkout(self) -> bool:
        if not self.cart:
            self.notify("Your cart is empty", "warning")
            return False
        self.screen = Screen.CHECKOUT
        return True

    async def open_history(self):
        await self.refresh_orders()
        self.screen = Screen.HISTORY

    def back_to_catalog(self):
        self.screen = Screen.CATALOG

    def add_to_cart(self, product: Product):
        self.cart.add(product)
        self.notify(f"{product.name} added to cart")

    def update_qty(self, code: str, delta: int):
        self.cart.update_qty(code, delta)

    def remove_from_cart(self, code: str):
        self.cart.remove(code)

    def build_payload(self) -> dict:
        now = self._clock()
        store = self.selected_store
        return {
            "order_number": generate_order_number(now),
            "dealer_code": self.dealer.code,
            "store_code": store.code if store else "",
            "store_name": store.name if store else "",
            "order_date": now.date().isoformat(),
            "payment_method": str(self.payment_method),
            "notes": self.notes,
            "outstanding_balance": self.dealer.outstanding_balance,
            "items": [
                {"product_code": line.code, "quantity": str(line.qty)}
                for line in self.cart.lines
            ],
        }

    async def submit(self, is_draft: bool = False) -> Optional[SubmissionReceipt]:
        if not self.cart or self.submitting or self.dealer is None:
            return None

        self.submitting = True
        try:
            record = self.build_payload()
            total = self.cart.total
            try:
                result = await self.api.submit_order(record, is_draft)
            except PortalApiError as e:
                logger.warning(f"Order {record['order_number']} not submitted: {e.message}")
                self.notify(e.message or "Failed to submit order", "error")
                return None

            outcome = SubmissionOutcome(result["status"])
            message = SUBMISSION_MESSAGES[outcome]
            self.notify(message.message, message.kind)

            self.cart.clear()
            self.notes = ""
            await self.refresh_orders()
            self.screen = Screen.CATALOG if is_draft else Screen.CONFIRMATION

            return SubmissionReceipt(
                order_number=record["order_number"],
                total=total,
                outcome=outcome,
                record_id=str(result["id"]),
                status_error=result.get("statusError"),
            )
        finally:
            self.submitting = False
