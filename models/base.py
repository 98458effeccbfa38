"""
Base schemas and helpers for all models.
"""

from pydantic import BaseModel, ConfigDict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


def store_value(value: Any) -> Any:
    """Convert a Python value to something PostgREST accepts as JSON."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [store_value(v) for v in value]
    if isinstance(value, dict):
        return {k: store_value(v) for k, v in value.items()}
    return value


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )

    def to_row(self, exclude_unset: bool = False, exclude: Optional[set] = None) -> dict:
        """Dump to a dict ready for insert/update."""
        data = self.model_dump(exclude_unset=exclude_unset, exclude=exclude)
        return {key: store_value(value) for key, value in data.items()}


class TimestampMixin(BaseModel):
    """Add timestamps to response models."""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
