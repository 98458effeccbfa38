"""
Custom exceptions module.

Import errors from here rather than from exceptions.errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    PricingError,
    CapacityError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Not found
    OrderNotFoundError,
    SlotNotFoundError,
    AssignmentNotFoundError,
    SettingsNotFoundError,
    PremadeNotFoundError,
    QuoteBlockNotFoundError,

    # Pricing
    NoTierMatchError,
    LabelsOutOfRangeError,

    # Capacity
    PastDateAssignmentError,
    OrderWeightExceededError,
    SlotOccupiedError,
    SlotCapacityExceededError,

    # Orders
    OrderNumberExhaustedError,
    DateUnavailableError,
    RefundNotAllowedError,

    # Checkout
    InvalidSignatureError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "PricingError",
    "CapacityError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Not found
    "OrderNotFoundError",
    "SlotNotFoundError",
    "AssignmentNotFoundError",
    "SettingsNotFoundError",
    "PremadeNotFoundError",
    "QuoteBlockNotFoundError",

    # Pricing
    "NoTierMatchError",
    "LabelsOutOfRangeError",

    # Capacity
    "PastDateAssignmentError",
    "OrderWeightExceededError",
    "SlotOccupiedError",
    "SlotCapacityExceededError",

    # Orders
    "OrderNumberExhaustedError",
    "DateUnavailableError",
    "RefundNotAllowedError",

    # Checkout
    "InvalidSignatureError",
]
