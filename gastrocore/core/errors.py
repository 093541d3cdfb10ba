"""
Typed failures raised by the core services.

Each error carries a stable ``code`` that the HTTP layer and the provisioner
return to callers. ``DuplicateMovement`` and ``LimitExceeded`` are expected
outcomes, not system failures.
"""
from typing import Any, Dict, Optional


class CoreError(Exception):
    code = "CORE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidTransition(CoreError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status, to_status, message: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot move order from {from_status} to {to_status}.",
            {"from": str(from_status), "to": str(to_status)},
        )


class ReasonRequired(InvalidTransition):
    code = "REASON_REQUIRED"
    status_code = 422

    def __init__(self, from_status, to_status):
        super().__init__(
            from_status, to_status,
            f"A reason is required to move an order to {to_status}.",
        )


class NotFound(CoreError):
    code = "NOT_FOUND"
    status_code = 404


class Unauthorized(CoreError):
    code = "UNAUTHORIZED"
    status_code = 403


class InvalidRequest(CoreError):
    code = "INVALID_REQUEST"
    status_code = 422


class InvalidMovement(CoreError):
    code = "INVALID_MOVEMENT"
    status_code = 422


class DuplicateMovement(CoreError):
    code = "DUPLICATE_MOVEMENT"
    status_code = 409

    def __init__(self, item_id, ref_order_id):
        self.item_id = item_id
        self.ref_order_id = ref_order_id
        super().__init__(
            f"Movement for item {item_id} and order {ref_order_id} was already applied.",
            {"item_id": str(item_id), "ref_order_id": str(ref_order_id)},
        )


class LimitExceeded(CoreError):
    code = "LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, limit_type: str, current: int, limit: int):
        self.limit_type = limit_type
        self.current = current
        self.limit = limit
        super().__init__(
            f"Limit reached for {limit_type}: {current}/{limit}.",
            {"limit_type": limit_type, "current": current, "limit": limit},
        )


class AlreadyHasBusiness(CoreError):
    code = "ALREADY_HAS_BUSINESS"
    status_code = 409


class AccountBlocked(CoreError):
    code = "ACCOUNT_BLOCKED"
    status_code = 403


class ConnectivityError(CoreError):
    code = "CONNECTIVITY_ERROR"
    status_code = 503
