"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and optional details.
Routes turn these into the standard error envelope via to_dict().
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ORDER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422). Raised before any state mutation."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class PricingError(AppError):
    """
    The combination cannot be priced (422).

    No partial price is ever returned alongside this error.
    """

    def __init__(
        self,
        message: str,
        code: str = "PRICING_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class CapacityError(AppError):
    """Production capacity rule rejected the change (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CAPACITY_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# NOT FOUND
# ===================

class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class SlotNotFoundError(NotFoundError):
    """Production slot not found."""

    def __init__(self, slot_id: str):
        super().__init__(
            resource="Production slot",
            identifier=slot_id,
            code="SLOT_NOT_FOUND"
        )


class AssignmentNotFoundError(NotFoundError):
    """Order slot assignment not found."""

    def __init__(self, assignment_id: str):
        super().__init__(
            resource="Assignment",
            identifier=assignment_id,
            code="ASSIGNMENT_NOT_FOUND"
        )


class SettingsNotFoundError(NotFoundError):
    """The shop settings row is missing."""

    def __init__(self):
        super().__init__(
            resource="Settings",
            identifier="settings",
            code="SETTINGS_NOT_FOUND"
        )


class PremadeNotFoundError(NotFoundError):
    """Premade candy not found."""

    def __init__(self, premade_id: str):
        super().__init__(
            resource="Premade candy",
            identifier=premade_id,
            code="PREMADE_NOT_FOUND"
        )


class QuoteBlockNotFoundError(NotFoundError):
    """Quote block not found."""

    def __init__(self, block_id: str):
        super().__init__(
            resource="Quote block",
            identifier=block_id,
            code="QUOTE_BLOCK_NOT_FOUND"
        )


# ===================
# PRICING
# ===================

class NoTierMatchError(PricingError):
    """No weight tier covers the requested weight."""

    def __init__(self, category_id: str, weight_kg: float):
        super().__init__(
            code="NO_TIER_MATCH",
            message="Cannot price this combination: no weight tier covers the order weight",
            details={"category_id": category_id, "weight_kg": weight_kg}
        )


class LabelsOutOfRangeError(PricingError):
    """Label count is outside the configured label ranges."""

    def __init__(self, labels_count: int, code: str, message: str, limit: Optional[int] = None):
        details: dict[str, Any] = {"labels_count": labels_count}
        if limit is not None:
            details["limit"] = limit
        super().__init__(code=code, message=message, details=details)


# ===================
# CAPACITY
# ===================

class PastDateAssignmentError(CapacityError):
    """Slot date is before today."""

    def __init__(self, slot_date: str):
        super().__init__(
            code="PAST_DATE_ASSIGNMENT",
            message="Cannot assign orders to past dates",
            details={"slot_date": slot_date}
        )


class OrderWeightExceededError(CapacityError):
    """Assigned kg across all slots would exceed the order weight."""

    def __init__(self, order_id: str, assigned_kg: float, total_weight_kg: float):
        super().__init__(
            code="ORDER_WEIGHT_EXCEEDED",
            message="Assigned kg exceeds the order's total weight",
            details={
                "order_id": order_id,
                "assigned_kg": assigned_kg,
                "total_weight_kg": total_weight_kg,
            }
        )


class SlotOccupiedError(CapacityError):
    """Slot already holds another order."""

    def __init__(self, slot_id: str, order_id: Optional[str] = None):
        super().__init__(
            code="SLOT_OCCUPIED",
            message="This slot already has an order assigned",
            details={"slot_id": slot_id, "order_id": order_id}
        )


class SlotCapacityExceededError(CapacityError):
    """Assignment is heavier than the slot capacity."""

    def __init__(self, slot_id: str, kg_assigned: float, capacity_kg: float):
        super().__init__(
            code="SLOT_CAPACITY_EXCEEDED",
            message="Assigned kg exceeds the slot capacity",
            details={
                "slot_id": slot_id,
                "kg_assigned": kg_assigned,
                "capacity_kg": capacity_kg,
            }
        )


# ===================
# ORDERS
# ===================

class OrderNumberExhaustedError(ConflictError):
    """Could not find a free order number within the retry bound."""

    def __init__(self, attempts: int, last_error: Optional[str] = None):
        super().__init__(
            code="ORDER_NUMBER_EXHAUSTED",
            message="Unable to create order: order number conflicts persisted",
            details={"attempts": attempts, "last_error": last_error}
        )


class DateUnavailableError(ValidationError):
    """Requested due date is blocked for quoting."""

    def __init__(self, due_date: str):
        super().__init__(
            code="DATE_UNAVAILABLE",
            message="Selected date is unavailable",
            details={"due_date": due_date}
        )


class RefundNotAllowedError(ValidationError):
    """Order cannot be refunded as requested."""

    def __init__(self, order_id: str, reason: str):
        super().__init__(
            code="REFUND_NOT_ALLOWED",
            message=f"Refund failed: {reason}",
            details={"order_id": order_id}
        )


# ===================
# CHECKOUT
# ===================

class InvalidSignatureError(AppError):
    """Webhook signature did not verify (401)."""

    def __init__(self, source: str):
        super().__init__(
            code="INVALID_SIGNATURE",
            message="Invalid signature",
            status_code=401,
            details={"source": source}
        )
