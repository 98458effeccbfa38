"""
Order service.

Order numbers, admin and customer order creation, partial updates and
the archive / shipped lifecycle.

Order numbers are allocated as max(existing) + 1 and are not reserved;
a concurrent insert can take the same number. Inserts therefore retry
with a fresh number when the store reports a unique violation on
order_number, up to settings.order_number_max_attempts.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional
import structlog

from config import get_supabase_client, is_unique_violation
from config.settings import settings
from models.order import (
    OrderStatus,
    OrderCreate,
    OrderPatch,
    OrderRecord,
    PremadeSelection,
    PREMADE_DESIGN_TYPE,
    merge_order,
    apply_category_rules,
)
from models.settings import ShopSettings
from exceptions import (
    DatabaseError,
    ValidationError,
    OrderNotFoundError,
    PremadeNotFoundError,
    OrderNumberExhaustedError,
)
from services.settings_service import get_settings_service
from services.catalog_service import get_catalog_service
from services.calendar_service import get_calendar_service
from services.email_service import get_email_service
from utils.date_utils import utc_now
from utils.order_numbers import (
    CUSTOM_KIND,
    PREMADE_KIND,
    cart_row_numbers,
    next_order_number,
    normalize_base_order_number,
)

logger = structlog.get_logger(__name__)

SHIPPED_VISIBLE_FOR = timedelta(hours=24)
GRAMS_PER_KG = Decimal("1000")


def format_premade_weight(weight_g: Optional[Decimal]) -> str:
    """
    Short weight label for premade rows.

    - 1500 -> "1.5kg"
    - 2000 -> "2kg"
    - 250  -> "250g"
    """
    if weight_g is None or weight_g <= 0:
        return ""
    weight_g = Decimal(weight_g)
    if weight_g >= GRAMS_PER_KG:
        kg = weight_g / GRAMS_PER_KG
        return f"{kg:.0f}kg" if kg == kg.to_integral_value() else f"{kg:.1f}kg"
    return f"{weight_g.normalize():f}g"


def is_visible_additional_item(order: OrderRecord, now: datetime) -> bool:
    """Shipped premade rows drop off the list 24h after shipping."""
    if order.status != OrderStatus.SHIPPED.value or order.shipped_at is None:
        return True
    return now - order.shipped_at < SHIPPED_VISIBLE_FOR


class OrderService:
    """
    Order business logic.

    Handles numbering, creation with premade siblings, updates and
    status transitions.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"
        self.settings_service = get_settings_service()
        self.catalog_service = get_catalog_service()
        self.calendar_service = get_calendar_service()
        self.email_service = get_email_service()

    # ===================
    # NUMBERING
    # ===================

    def generate_order_number(self) -> str:
        """
        Next free base number: highest numeric order number + 1.

        Returns:
            Order number string, e.g. "1042"
        """
        try:
            result = self.db.table(self.table).select("order_number").execute()
        except Exception as e:
            logger.error("generate_order_number_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return next_order_number(
            (row.get("order_number") for row in result.data),
            settings.order_number_start
        )

    def insert_with_number(
        self,
        build_rows: Callable[[str], list[dict]],
        seed: Optional[str] = None,
    ) -> tuple[str, list[dict]]:
        """
        Insert rows numbered from one base, retrying on number conflicts.

        Args:
            build_rows: Returns the rows to insert for a base number
            seed: Requested base number for the first attempt

        Returns:
            (base number used, inserted rows)

        Raises:
            OrderNumberExhaustedError: Every attempt hit a conflict
        """
        max_attempts = settings.order_number_max_attempts
        base = normalize_base_order_number(seed) or self.generate_order_number()
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            rows = build_rows(base)
            try:
                result = self.db.table(self.table).insert(rows).execute()
                if attempt > 1:
                    logger.info("order_number_retry_succeeded", order_number=base, attempt=attempt)
                return base, result.data

            except Exception as e:
                if not is_unique_violation(e, "order_number"):
                    logger.error("order_insert_failed", order_number=base, error=str(e))
                    raise DatabaseError("insert", str(e))

                last_error = str(e)
                logger.warning("order_number_conflict", order_number=base, attempt=attempt)
                base = self.generate_order_number()

        logger.error("order_number_exhausted", attempts=max_attempts, error=last_error)
        raise OrderNumberExhaustedError(max_attempts, last_error)

    # ===================
    # CREATE
    # ===================

    def _check_weight(self, weight_kg: Optional[Decimal], shop_settings: ShopSettings) -> None:
        if weight_kg is None or weight_kg <= 0:
            raise ValidationError("Order weight is required", code="INVALID_WEIGHT")
        if weight_kg > shop_settings.max_total_kg:
            raise ValidationError(
                f"Max total kg per settings is {shop_settings.max_total_kg}",
                code="WEIGHT_EXCEEDS_MAXIMUM",
                details={"total_weight_kg": float(weight_kg), "max_total_kg": float(shop_settings.max_total_kg)}
            )

    def _premade_rows(
        self,
        selections: list[PremadeSelection],
        order_row: dict,
        shop_settings: ShopSettings,
    ) -> list[dict]:
        """Sibling rows for premade selections (order_number filled in later)."""
        premade = self.catalog_service.get_premade_many([s.premade_id for s in selections])

        rows = []
        for selection in selections:
            candy = premade.get(selection.premade_id)
            if candy is None:
                raise PremadeNotFoundError(selection.premade_id)

            weight_kg = (candy.weight_g or Decimal("0")) * selection.quantity / GRAMS_PER_KG
            self._check_weight(weight_kg, shop_settings)

            weight_label = format_premade_weight(candy.weight_g)
            rows.append({
                "title": candy.name or "Premade candy",
                "order_description": f"{weight_label} premade candy" if weight_label else "Premade candy",
                "customer_name": order_row.get("customer_name"),
                "customer_email": order_row.get("customer_email"),
                "design_type": PREMADE_DESIGN_TYPE,
                "design_text": candy.name,
                "due_date": order_row.get("due_date"),
                "quantity": selection.quantity,
                "total_weight_kg": float(weight_kg),
                "total_price": float(candy.price * selection.quantity) if candy.price is not None else None,
                "status": OrderStatus.PENDING.value,
                "made": False,
                "pickup": order_row.get("pickup"),
                "state": order_row.get("state"),
                "first_name": order_row.get("first_name"),
                "last_name": order_row.get("last_name"),
                "phone": order_row.get("phone"),
                "organization_name": order_row.get("organization_name"),
                "address_line1": order_row.get("address_line1"),
                "address_line2": order_row.get("address_line2"),
                "suburb": order_row.get("suburb"),
                "postcode": order_row.get("postcode"),
            })
        return rows

    def create(self, data: OrderCreate) -> list[OrderRecord]:
        """
        Create an order from the admin console.

        Premade selections become sibling rows numbered "<base>-b"
        with the custom row as "<base>-a"; a second premade row is
        "<base>-b-2". Staff are emailed per row.

        Returns:
            Inserted rows, custom row first

        Raises:
            ValidationError: Weight missing or above max_total_kg
            PremadeNotFoundError: Unknown premade selection
            OrderNumberExhaustedError: No free order number found
        """
        shop_settings = self.settings_service.get()
        self._check_weight(data.total_weight_kg, shop_settings)

        order_row = data.to_row(exclude={"order_number", "premade"})
        order_row["status"] = order_row.get("status") or OrderStatus.PENDING.value
        order_row["made"] = False
        if order_row.get("customer_name") is None:
            full_name = " ".join(p for p in (data.first_name, data.last_name) if p)
            order_row["customer_name"] = full_name or None
        apply_category_rules(order_row, derive_jacket=bool(data.jacket) and data.jacket_type is None)

        premade_rows = self._premade_rows(data.premade, order_row, shop_settings) if data.premade else []

        kinds = [CUSTOM_KIND] + [PREMADE_KIND] * len(premade_rows)

        def build_rows(base: str) -> list[dict]:
            custom_number, *premade_numbers = cart_row_numbers(kinds, base)
            rows = [{**order_row, "order_number": custom_number}]
            for row, number in zip(premade_rows, premade_numbers):
                rows.append({**row, "order_number": number, "notes": f"Quote order: #{custom_number}"})
            return rows

        base, inserted = self.insert_with_number(build_rows, seed=data.order_number)
        orders = [OrderRecord(**row) for row in inserted]

        logger.info(
            "order_created",
            order_number=base,
            order_id=orders[0].id if orders else None,
            premade_rows=len(premade_rows)
        )

        for order in orders:
            self.notify_staff(order)

        return orders

    def place(self, data: OrderCreate) -> list[OrderRecord]:
        """
        Customer quote submission.

        Raises:
            DateUnavailableError: The due date is quote-blocked
        """
        self.calendar_service.ensure_quote_date_available(data.due_date)
        return self.create(data)

    def notify_staff(self, order: OrderRecord) -> bool:
        """Email the orders inbox; never fails the caller."""
        recipients = self.email_service.orders_recipients()
        if not recipients:
            return False
        try:
            return self.email_service.send_order_email(recipients, order.to_row())
        except Exception as e:
            logger.error("order_email_failed", order_number=order.order_number, error=str(e))
            return False

    # ===================
    # READ
    # ===================

    def get(self, order_id: str) -> OrderRecord:
        """
        Get order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist
        """
        try:
            result = self.db.table(self.table).select("*").eq("id", order_id).execute()
        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise OrderNotFoundError(order_id)
        return OrderRecord(**result.data[0])

    def list_orders(
        self,
        status: Optional[str] = None,
        include_archived: bool = False,
        design_type: Optional[str] = None,
    ) -> list[OrderRecord]:
        """
        List orders, newest first.

        Args:
            status: Only this status
            include_archived: Include archived rows when no status is given
            design_type: Only this design type (e.g. "premade")
        """
        try:
            query = self.db.table(self.table).select("*")
            if status:
                query = query.eq("status", status)
            elif not include_archived:
                query = query.neq("status", OrderStatus.ARCHIVED.value)
            if design_type:
                query = query.eq("design_type", design_type)

            result = query.order("created_at", desc=True).execute()
            return [OrderRecord(**row) for row in result.data]

        except Exception as e:
            logger.error("list_orders_failed", status=status, error=str(e))
            raise DatabaseError("select", str(e))

    def list_additional_items(self, now: Optional[datetime] = None) -> list[OrderRecord]:
        """Premade rows, hiding those shipped more than 24h ago."""
        now = now or utc_now()
        orders = self.list_orders(design_type=PREMADE_DESIGN_TYPE, include_archived=True)
        return [order for order in orders if is_visible_additional_item(order, now)]

    # ===================
    # UPDATE
    # ===================

    def update(self, order_id: str, patch: OrderPatch) -> OrderRecord:
        """
        Apply a partial update.

        Fields set on the patch overwrite (explicit None clears), every
        other column keeps its stored value.
        """
        existing = self.get(order_id)
        merged = merge_order(existing, patch)

        if "total_weight_kg" in patch.model_fields_set:
            self._check_weight(patch.total_weight_kg, self.settings_service.get())

        current = existing.to_row()
        changes = {
            key: value for key, value in merged.items()
            if key not in ("id", "updated_at") and current.get(key) != value
        }
        if not changes:
            return existing

        updated = self._update(order_id, changes)
        logger.info("order_updated", order_id=order_id, fields=sorted(changes.keys()))
        return updated

    def _update(self, order_id: str, changes: dict[str, Any]) -> OrderRecord:
        try:
            result = self.db.table(self.table).update(changes).eq("id", order_id).execute()
        except Exception as e:
            logger.error("update_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise OrderNotFoundError(order_id)
        return OrderRecord(**result.data[0])

    def set_status(self, order_id: str, status: OrderStatus) -> OrderRecord:
        order = self._update(order_id, {"status": status.value})
        logger.info("order_status_changed", order_id=order_id, status=status.value)
        return order

    def archive(self, order_id: str) -> OrderRecord:
        return self.set_status(order_id, OrderStatus.ARCHIVED)

    def unarchive(self, order_id: str) -> OrderRecord:
        return self.set_status(order_id, OrderStatus.PENDING)

    def mark_shipped(self, order_id: str) -> OrderRecord:
        """
        Mark a premade row shipped.

        Raises:
            ValidationError: Order is not a premade row
        """
        order = self.get(order_id)
        if not order.is_premade:
            raise ValidationError(
                "Only premade items can be marked shipped",
                code="NOT_PREMADE_ORDER",
                details={"order_id": order_id}
            )
        return self.mark_many_shipped([order_id])[0]

    def mark_many_shipped(self, order_ids: list[str]) -> list[OrderRecord]:
        """Mark premade rows shipped; non-premade ids are ignored."""
        if not order_ids:
            raise ValidationError("Missing order ids", code="ORDER_IDS_REQUIRED")

        try:
            result = (
                self.db.table(self.table)
                .update({"status": OrderStatus.SHIPPED.value, "shipped_at": utc_now().isoformat()})
                .in_("id", order_ids)
                .eq("design_type", PREMADE_DESIGN_TYPE)
                .execute()
            )
        except Exception as e:
            logger.error("mark_shipped_failed", count=len(order_ids), error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("orders_marked_shipped", requested=len(order_ids), updated=len(result.data))
        return [OrderRecord(**row) for row in result.data]

    def mark_paid(
        self,
        order_id: str,
        provider: Optional[str] = None,
        transaction_id: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> OrderRecord:
        """
        Record payment on an order.

        Orders waiting on payment move to "pending"; other statuses are
        kept.
        """
        order = self.get(order_id)
        changes: dict[str, Any] = {"paid_at": (paid_at or utc_now()).isoformat()}
        if provider:
            changes["payment_provider"] = provider
        if transaction_id:
            changes["payment_transaction_id"] = transaction_id
        if order.status == OrderStatus.PENDING_PAYMENT.value:
            changes["status"] = OrderStatus.PENDING.value

        updated = self._update(order_id, changes)
        logger.info("order_marked_paid", order_id=order_id, provider=provider)
        return updated


# Singleton instance
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create OrderService instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
