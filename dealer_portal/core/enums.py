from enum import Enum


class UserRole(str, Enum):
    DEALER = "dealer"
    STAFF = "staff"

    def __str__(self):
        return self.value


class StoreApp(str, Enum):
    PRODUCTS = "products"
    DEALERS = "dealers"
    ORDERS = "orders"

    def __str__(self):
        return self.value


class OrderStatus(str, Enum):
    NEW = "New"
    SUBMITTED = "Submitted"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    POSTED = "Posted"
    PICKING = "Picking"
    READY = "Ready"
    COMPLETED = "Completed"
    REJECTED = "Rejected"

    def __str__(self):
        return self.value


# Labels the store's process management uses for the same states
STORE_STATUS_ALIASES = {
    "Pending ONB Approval": OrderStatus.PENDING_APPROVAL,
    "Posted to SAP": OrderStatus.POSTED,
    "Ready for Pickup": OrderStatus.READY,
}


class SubmissionOutcome(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    CREATED_BUT_STATUS_PENDING = "created_but_status_pending"

    def __str__(self):
        return self.value


class WorkflowStep(str, Enum):
    CREATE = "create"
    SUBMIT = "submit"
    SEND_FOR_APPROVAL = "send_for_approval"

    def __str__(self):
        return self.value


class WorkflowAction(str, Enum):
    SUBMIT_ORDER = "Submit Order"
    SEND_FOR_APPROVAL = "Send for Approval"
    SUBMIT_FOR_REVIEW = "Submit for Review"

    def __str__(self):
        return self.value


class DealerStatus(str, Enum):
    ACTIVE = "Active"
    PENDING_REVIEW = "Pending Review"
    PENDING_APPROVAL = "Pending Approval"
    INACTIVE = "Inactive"

    def __str__(self):
        return self.value


class PaymentMethod(str, Enum):
    CASH = "Cash"
    GCASH = "GCash"
    MAYA = "Maya"
    CREDIT_CARD = "Credit Card"
    CREDIT_TERMS = "Credit Terms"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    SUBMIT_ORDER = "submit_order"
    UPDATE_ORDER = "update_order"
    ORDER_STATUS = "order_status"
    RECONCILE_ORDER = "reconcile_order"
    DEALER_STATUS = "dealer_status"
    REGISTER = "register"
    CHANGE_PASSWORD = "change_password"
    LOGIN = "login"

    def __str__(self):
        return self.value


# Status a record lands in after each order workflow action succeeds
ACTION_RESULTS = {
    WorkflowAction.SUBMIT_ORDER: OrderStatus.SUBMITTED,
    WorkflowAction.SEND_FOR_APPROVAL: OrderStatus.PENDING_APPROVAL,
}
