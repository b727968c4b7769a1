from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from dealer_portal.core.enums import (
    OrderStatus,
    PaymentMethod,
    SubmissionOutcome,
    WorkflowAction,
)


class LineItem(BaseModel):
    """A line as persisted; name and price are snapshots taken at submission."""

    model_config = ConfigDict(frozen=True)

    product_code: str
    name: str = ""
    quantity: int = Field(gt=0)
    unit_price: float = 0.0

    @computed_field
    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class Order(BaseModel):
    id: str
    order_number: str = ""
    dealer_code: str
    store_code: str = ""
    store_name: str = ""
    order_date: Optional[date] = None
    items: List[LineItem] = []
    payment_method: str = ""
    notes: str = ""
    is_draft: bool = False
    status: OrderStatus = OrderStatus.NEW
    outstanding_balance: Optional[float] = None
    revision: Optional[str] = None

    @computed_field
    @property
    def total(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)

    @model_validator(mode="after")
    def _draft_stays_new(self):
        if self.is_draft and self.status != OrderStatus.NEW:
            raise ValueError(f"draft order {self.id} has status {self.status}")
        return self


class OrderLineIn(BaseModel):
    product_code: str
    # positivity is checked by the orchestrator so it can reject with 400
    quantity: int
    name: Optional[str] = None
    unit_price: Optional[float] = None


class OrderDraft(BaseModel):
    order_number: str
    dealer_code: str
    store_code: str = ""
    store_name: str = ""
    order_date: date
    items: List[OrderLineIn]
    payment_method: PaymentMethod
    notes: str = ""
    outstanding_balance: float = 0.0

    @property
    def total(self) -> float:
        return round(sum(i.quantity * (i.unit_price or 0.0) for i in self.items), 2)


class OrderSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record: OrderDraft
    is_draft: bool = Field(False, alias="isDraft")


class SubmissionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    revision: str
    status: SubmissionOutcome
    status_error: Optional[str] = Field(None, alias="statusError")


class OrderUpdate(BaseModel):
    store_code: Optional[str] = None
    store_name: Optional[str] = None
    items: Optional[List[OrderLineIn]] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class StatusActionIn(BaseModel):
    id: str
    action: str
    assignee: Optional[str] = None


class WorkflowTransition(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str
    action: WorkflowAction
    status: OrderStatus
