"""Audit trail for mutating endpoints.

Every audited call emits one log line on the ``dealer_portal.audit`` logger
with the acting user, the action and a SHA-256 hash of the request payload.
"""
import logging
from functools import wraps
from typing import Any, Callable, Optional

from dealer_portal.core.enums import AuditAction
from dealer_portal.core.metrics import audit_logs_created
from dealer_portal.utils.hashing import payload_hash

logger = logging.getLogger("dealer_portal.audit")

PAYLOAD_KWARGS = ["payload", "order", "update", "data", "body"]


def _payload_dict(payload: Any) -> dict:
    if hasattr(payload, "model_dump"):
        data = payload.model_dump(mode="json", exclude_unset=True)
    elif isinstance(payload, dict):
        data = payload
    else:
        return {}
    return {k: v for k, v in data.items() if "password" not in k}


def _actor(current_user: Any, payload: Any) -> str:
    if current_user is not None:
        return current_user.code
    # unauthenticated endpoints identify the dealer in the body
    return getattr(payload, "dealer_code", None) or getattr(payload, "code", None) or "anonymous"


def log_audit(user_code: str, action: AuditAction, payload: Optional[Any] = None) -> None:
    try:
        digest = payload_hash(_payload_dict(payload))
        logger.info(f"audit action={action} user={user_code} payload_sha256={digest}")
        audit_logs_created.labels(action=str(action), user_id=user_code).inc()
    except Exception as e:
        logger.error(f"Audit logging failed for action {action}: {e}", exc_info=True)


def audit_log(action: AuditAction) -> Callable:

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            current_user = kwargs.get("current_user")
            payload = next((kwargs[key] for key in PAYLOAD_KWARGS if key in kwargs), None)
            log_audit(_actor(current_user, payload), action, payload)

            return result

        return wrapper
    return decorator
