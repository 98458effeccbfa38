"""
Pricing engine.

calculate_pricing() is a pure function over a request, the catalog
tables and the settings row:

    base (weight tier) + packaging + labels + jacket extras
    + urgency fee (% of goods, inside the urgency window)
    + transaction fee (% of everything above)

Every component is a Decimal rounded half-up to cents, and the total is
the sum of the rounded components, so the breakdown always adds up.
"""

import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import structlog

from models.catalog import CatalogTables, WeightTier
from models.settings import ShopSettings
from models.pricing import (
    JacketExtraType,
    JACKET_SURCHARGE_FIELDS,
    JACKET_LABELS,
    PricingRequest,
    PriceLine,
    PricingBreakdown,
)
from exceptions import (
    ValidationError,
    NoTierMatchError,
    LabelsOutOfRangeError,
)
from services.catalog_service import get_catalog_service
from services.settings_service import get_settings_service
from services.calendar_service import get_calendar_service
from utils.date_utils import local_today

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
GRAMS_PER_KG = Decimal("1000")


def to_cents(amount: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(percent: Decimal, amount: Decimal) -> Decimal:
    return to_cents(Decimal(percent) * Decimal(amount) / HUNDRED)


# ===================
# ENGINE STEPS
# ===================

def find_weight_tier(tables: CatalogTables, category_id: str, weight_kg: Decimal) -> Optional[WeightTier]:
    """First tier (ascending min_kg) whose inclusive range holds the weight."""
    for tier in tables.tiers_for(category_id):
        if tier.contains(weight_kg):
            return tier
    return None


def _validate_request(request: PricingRequest, tables: CatalogTables) -> list[tuple]:
    """
    Resolve packaging lines before any arithmetic.

    Returns:
        List of (PackagingOption, Decimal quantity)
    """
    if not request.category_id or tables.category(request.category_id) is None:
        raise ValidationError(
            "Unknown category",
            code="UNKNOWN_CATEGORY",
            details={"category_id": request.category_id}
        )

    if not request.packaging:
        raise ValidationError("At least one packaging option is required", code="PACKAGING_REQUIRED")

    resolved = []
    for line in request.packaging:
        option = tables.packaging_option(line.option_id)
        if option is None:
            raise ValidationError(
                "Unknown packaging option",
                code="UNKNOWN_PACKAGING_OPTION",
                details={"option_id": line.option_id}
            )

        if not math.isfinite(line.quantity) or line.quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive number",
                code="INVALID_QUANTITY",
                details={"option_id": line.option_id, "quantity": line.quantity}
            )

        if request.category_id not in option.allowed_categories:
            raise ValidationError(
                "Packaging option is not available for this category",
                code="PACKAGING_NOT_ALLOWED",
                details={"option_id": option.id, "category_id": request.category_id}
            )

        if option.max_packages is not None and line.quantity > option.max_packages:
            raise ValidationError(
                f"Maximum {option.max_packages} packages for {option.display_name}",
                code="PACKAGING_QUANTITY_EXCEEDED",
                details={"option_id": option.id, "max_packages": option.max_packages}
            )

        resolved.append((option, Decimal(str(line.quantity))))

    return resolved


def _labels_price(labels_count: Optional[int], tables: CatalogTables, settings: ShopSettings) -> Decimal:
    if not labels_count or labels_count <= 0:
        return to_cents(Decimal("0"))

    if settings.labels_max_bulk and labels_count > settings.labels_max_bulk:
        raise LabelsOutOfRangeError(
            labels_count,
            code="LABELS_BULK_MANUAL_PRICING",
            message="Label quantity needs a manual quote",
            limit=settings.labels_max_bulk,
        )

    candidates = [r for r in tables.label_ranges if r.upper_bound >= labels_count]
    if not candidates:
        raise LabelsOutOfRangeError(
            labels_count,
            code="NO_LABEL_RANGE",
            message="No label pricing covers this quantity",
        )

    label_range = min(candidates, key=lambda r: r.upper_bound)
    return to_cents(
        label_range.range_cost * settings.labels_markup_multiplier
        + settings.labels_supplier_shipping
    )


def _billable_extras(request: PricingRequest) -> list[JacketExtraType]:
    """Decompose combined jackets, one entry per type in request order."""
    billable: list[JacketExtraType] = []
    for extra in request.extras:
        for jacket in extra.jacket.billable():
            if jacket not in billable:
                billable.append(jacket)
    return billable


def is_within_urgency_window(due_date: Optional[date], today: date, window_days: int) -> bool:
    """Due date within window_days calendar days of today (inclusive)."""
    if due_date is None:
        return False
    return (due_date - today).days <= window_days


def calculate_pricing(
    request: PricingRequest,
    tables: CatalogTables,
    settings: ShopSettings,
    today: date,
) -> PricingBreakdown:
    """
    Price one custom item.

    Args:
        request: Category, packaging lines, labels, due date, extras
        tables: Catalog lookup tables
        settings: Shop settings row
        today: Shop-local calendar date

    Returns:
        PricingBreakdown

    Raises:
        ValidationError: Unknown category/option, bad quantity, packaging rules
        PricingError: No weight tier, or label count out of range
    """
    packaging = _validate_request(request, tables)

    # Weight
    total_weight_g = sum((option.candy_weight_g * qty for option, qty in packaging), Decimal("0"))
    total_weight_kg = total_weight_g / GRAMS_PER_KG

    # Base
    tier = find_weight_tier(tables, request.category_id, total_weight_kg)
    if tier is None:
        raise NoTierMatchError(request.category_id, float(total_weight_kg))
    base_price = to_cents(tier.price * total_weight_kg if tier.per_kg else tier.price)

    # Packaging
    packaging_price = to_cents(sum((option.unit_price * qty for option, qty in packaging), Decimal("0")))

    # Labels
    labels_price = _labels_price(request.labels_count, tables, settings)

    # Jacket extras
    extra_lines = []
    for jacket in _billable_extras(request):
        amount = to_cents(getattr(settings, JACKET_SURCHARGE_FIELDS[jacket]))
        extra_lines.append(PriceLine(key=f"jacket_{jacket.value}", label=JACKET_LABELS[jacket], amount=amount))
    extras_price = to_cents(sum((line.amount for line in extra_lines), Decimal("0")))

    goods_total = base_price + packaging_price + labels_price + extras_price

    # Urgency
    urgency_fee = to_cents(Decimal("0"))
    if is_within_urgency_window(request.due_date, today, settings.urgency_period_days):
        urgency_fee = percent_of(settings.urgency_fee, goods_total)

    # Transaction fee
    transaction_fee = percent_of(settings.transaction_fee_percent, goods_total + urgency_fee)

    total = goods_total + urgency_fee + transaction_fee

    items = [
        PriceLine(key="base", label=f"Base price ({total_weight_kg.normalize():f} kg)", amount=base_price),
    ]
    if packaging_price:
        items.append(PriceLine(key="packaging", label="Packaging", amount=packaging_price))
    if labels_price:
        items.append(PriceLine(key="labels", label=f"Labels ({request.labels_count})", amount=labels_price))
    items.extend(line for line in extra_lines if line.amount)
    if urgency_fee:
        items.append(PriceLine(
            key="urgency",
            label=f"Urgency fee ({settings.urgency_fee.normalize():f}%)",
            amount=urgency_fee
        ))
    if transaction_fee:
        items.append(PriceLine(
            key="transaction_fee",
            label=f"Transaction fee ({settings.transaction_fee_percent.normalize():f}%)",
            amount=transaction_fee
        ))

    return PricingBreakdown(
        base_price=base_price,
        packaging_price=packaging_price,
        labels_price=labels_price,
        extras_price=extras_price,
        urgency_fee=urgency_fee,
        transaction_fee=transaction_fee,
        total=total,
        total_weight_kg=total_weight_kg,
        items=items,
    )


# ===================
# SERVICE
# ===================

class PricingService:
    """
    Pricing business logic.

    Loads tables and settings from the store and runs the engine.
    """

    def __init__(self):
        self.catalog_service = get_catalog_service()
        self.settings_service = get_settings_service()
        self.calendar_service = get_calendar_service()

    def quote(self, request: PricingRequest, today: Optional[date] = None) -> PricingBreakdown:
        """
        Price a request against current tables.

        Args:
            request: Pricing request
            today: Override for the shop-local date (defaults to now)

        Returns:
            PricingBreakdown

        Raises:
            DateUnavailableError: due_date falls in a quote block
        """
        self.calendar_service.ensure_quote_date_available(request.due_date)

        tables = self.catalog_service.get_tables()
        shop_settings = self.settings_service.get()

        breakdown = calculate_pricing(request, tables, shop_settings, today or local_today())

        logger.info(
            "pricing_quoted",
            category_id=request.category_id,
            total_weight_kg=float(breakdown.total_weight_kg),
            total=float(breakdown.total)
        )
        return breakdown


# Singleton instance
_pricing_service: Optional[PricingService] = None


def get_pricing_service() -> PricingService:
    """Get or create PricingService instance."""
    global _pricing_service
    if _pricing_service is None:
        _pricing_service = PricingService()
    return _pricing_service
