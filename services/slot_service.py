"""
Slot allocation service.

Assigns (part of) an order's weight to a dated, indexed production slot.

Rules, all checked before anything is written:
- a slot holds at most one assignment row
- the kg assigned across an order's rows never exceeds its weight
- kg per row never exceeds the slot capacity
- nothing is assigned to a slot dated before today (shop-local)

Slots are created lazily on first assignment to a (date, index) with
capacity defaulting to the max_total_kg setting.
"""

import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
import structlog

from config import get_supabase_client, is_unique_violation
from models.settings import ShopSettings
from models.order import OrderStatus
from models.production import (
    ProductionSlot,
    ProductionSlotUpsert,
    OrderSlot,
    SlotAssignmentRequest,
    SlotAssignmentResponse,
    ScheduleStatus,
    ScheduleSlotView,
    ScheduleDay,
)
from exceptions import (
    AppError,
    DatabaseError,
    ValidationError,
    OrderNotFoundError,
    SlotNotFoundError,
    AssignmentNotFoundError,
    PastDateAssignmentError,
    OrderWeightExceededError,
    SlotOccupiedError,
    SlotCapacityExceededError,
)
from services.settings_service import get_settings_service
from services.calendar_service import get_calendar_service
from utils.date_utils import local_today

logger = structlog.get_logger(__name__)

MAX_SCHEDULE_DAYS = 62


def schedule_status(
    order_status: str,
    assignments: list[OrderSlot],
    slots_by_id: dict[str, ProductionSlot],
    today: date,
) -> ScheduleStatus:
    """
    Derived scheduling state for display (never stored).

    archived > unassigned > pending completion (latest slot already
    past) > scheduled.
    """
    if order_status == OrderStatus.ARCHIVED.value:
        return ScheduleStatus.ARCHIVED
    if not assignments:
        return ScheduleStatus.UNASSIGNED

    slot_dates = [slots_by_id[a.slot_id].slot_date for a in assignments if a.slot_id in slots_by_id]
    if slot_dates and max(slot_dates) < today:
        return ScheduleStatus.PENDING_COMPLETION
    return ScheduleStatus.SCHEDULED


class SlotService:
    """
    Slot allocation business logic.

    Handles slot upserts, assignments and the schedule board.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.slots_table = "production_slots"
        self.assignments_table = "order_slots"
        self.orders_table = "orders"
        self.settings_service = get_settings_service()
        self.calendar_service = get_calendar_service()

    # ===================
    # LOOKUPS
    # ===================

    def get_slot(self, slot_id: str) -> ProductionSlot:
        """
        Raises:
            SlotNotFoundError: Unknown slot id
        """
        try:
            result = self.db.table(self.slots_table).select("*").eq("id", slot_id).execute()
        except Exception as e:
            logger.error("get_slot_failed", slot_id=slot_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SlotNotFoundError(slot_id)
        return ProductionSlot(**result.data[0])

    def find_slot(self, slot_date: date, slot_index: int) -> Optional[ProductionSlot]:
        """Existing slot at (date, index), or None."""
        try:
            result = (
                self.db.table(self.slots_table)
                .select("*")
                .eq("slot_date", slot_date.isoformat())
                .eq("slot_index", slot_index)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_slot_failed", slot_date=str(slot_date), slot_index=slot_index, error=str(e))
            raise DatabaseError("select", str(e))

        return ProductionSlot(**result.data[0]) if result.data else None

    def get_assignment(self, assignment_id: str) -> OrderSlot:
        """
        Raises:
            AssignmentNotFoundError: Unknown assignment id
        """
        try:
            result = self.db.table(self.assignments_table).select("*").eq("id", assignment_id).execute()
        except Exception as e:
            logger.error("get_assignment_failed", assignment_id=assignment_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise AssignmentNotFoundError(assignment_id)
        return OrderSlot(**result.data[0])

    def get_assignments_for_order(self, order_id: str) -> list[OrderSlot]:
        return self._select_assignments("order_id", order_id)

    def get_assignments_for_slot(self, slot_id: str) -> list[OrderSlot]:
        return self._select_assignments("slot_id", slot_id)

    def _select_assignments(self, column: str, value: str) -> list[OrderSlot]:
        try:
            result = self.db.table(self.assignments_table).select("*").eq(column, value).execute()
            return [OrderSlot(**row) for row in result.data]
        except Exception as e:
            logger.error("get_assignments_failed", column=column, value=value, error=str(e))
            raise DatabaseError("select", str(e))

    def _get_order_row(self, order_id: str) -> dict:
        try:
            result = (
                self.db.table(self.orders_table)
                .select("id,status,total_weight_kg")
                .eq("id", order_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_order_for_slot_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise OrderNotFoundError(order_id)
        return result.data[0]

    def _check_slot_index(self, slot_index: int, shop_settings: ShopSettings) -> None:
        if not 1 <= slot_index <= shop_settings.production_slots_per_day:
            raise ValidationError(
                f"Slot index must be between 1 and {shop_settings.production_slots_per_day}",
                code="INVALID_SLOT_INDEX",
                details={"slot_index": slot_index}
            )

    # ===================
    # ASSIGN / UNASSIGN
    # ===================

    def assign(self, request: SlotAssignmentRequest, today: Optional[date] = None) -> SlotAssignmentResponse:
        """
        Assign kg of an order to a slot.

        The row replaced is the one named by assignment_id, else the
        order's existing row in the target slot; otherwise a new row is
        inserted. The order moves to "scheduled".

        Raises:
            ValidationError: Bad kg or slot index, refunded order
            CapacityError: Past date, slot capacity, order weight, slot occupied
            NotFoundError: Unknown order, slot or assignment
        """
        today = today or local_today()
        shop_settings = self.settings_service.get()

        if not math.isfinite(request.kg_assigned) or request.kg_assigned <= 0:
            raise ValidationError(
                "Assigned kg must be greater than zero",
                code="INVALID_KG_ASSIGNED",
                details={"kg_assigned": request.kg_assigned}
            )
        kg = Decimal(str(request.kg_assigned))

        # Resolve slot (without creating it yet)
        slot: Optional[ProductionSlot] = None
        if request.slot_id:
            slot = self.get_slot(request.slot_id)
            slot_date = slot.slot_date
        else:
            self._check_slot_index(request.slot_index, shop_settings)
            slot_date = request.slot_date
            slot = self.find_slot(slot_date, request.slot_index)

        if slot_date < today:
            raise PastDateAssignmentError(slot_date.isoformat())

        capacity_kg = slot.capacity_kg if slot else shop_settings.max_total_kg
        if kg > capacity_kg:
            raise SlotCapacityExceededError(slot.id if slot else "", float(kg), float(capacity_kg))

        order = self._get_order_row(request.order_id)
        if order.get("status") == OrderStatus.REFUNDED.value:
            raise ValidationError(
                "Refunded orders cannot be scheduled",
                code="ORDER_NOT_SCHEDULABLE",
                details={"order_id": request.order_id, "status": order.get("status")}
            )
        order_assignments = self.get_assignments_for_order(request.order_id)
        slot_assignments = self.get_assignments_for_slot(slot.id) if slot else []

        # Which row is being replaced
        replaced: Optional[OrderSlot] = None
        if request.assignment_id:
            replaced = self.get_assignment(request.assignment_id)
            if replaced.order_id != request.order_id:
                raise ValidationError(
                    "Assignment belongs to a different order",
                    code="ASSIGNMENT_ORDER_MISMATCH",
                    details={"assignment_id": request.assignment_id}
                )
        else:
            replaced = next((a for a in slot_assignments if a.order_id == request.order_id), None)
        replaced_id = replaced.id if replaced else None

        # Order weight
        total_weight_kg = Decimal(str(order.get("total_weight_kg") or 0))
        other_kg = sum(
            (a.kg_assigned for a in order_assignments if a.id != replaced_id),
            Decimal("0")
        )
        if other_kg + kg > total_weight_kg:
            raise OrderWeightExceededError(request.order_id, float(other_kg + kg), float(total_weight_kg))

        # One row per slot
        holder = next((a for a in slot_assignments if a.id != replaced_id), None)
        if holder:
            raise SlotOccupiedError(holder.slot_id, holder.order_id)

        # Write
        if slot is None:
            slot = self._create_slot(slot_date, request.slot_index, shop_settings.max_total_kg)

        assignment = self._write_assignment(request.order_id, slot.id, kg, replaced_id)
        self._set_order_status(request.order_id, OrderStatus.SCHEDULED.value)

        logger.info(
            "order_assigned_to_slot",
            order_id=request.order_id,
            slot_id=slot.id,
            slot_date=slot.slot_date.isoformat(),
            kg_assigned=float(kg),
            replaced=replaced_id
        )

        return SlotAssignmentResponse(
            assignment=assignment,
            slot=slot,
            order_status=OrderStatus.SCHEDULED.value,
        )

    def unassign(self, assignment_id: str) -> str:
        """
        Delete an assignment.

        The order goes back to "unassigned" once it has no rows left.

        Returns:
            The order's status after the change
        """
        assignment = self.get_assignment(assignment_id)

        try:
            self.db.table(self.assignments_table).delete().eq("id", assignment_id).execute()
        except Exception as e:
            logger.error("unassign_failed", assignment_id=assignment_id, error=str(e))
            raise DatabaseError("delete", str(e))

        remaining = self.get_assignments_for_order(assignment.order_id)
        if remaining:
            status = OrderStatus.SCHEDULED.value
        else:
            status = OrderStatus.UNASSIGNED.value
            self._set_order_status(assignment.order_id, status)

        logger.info(
            "order_unassigned_from_slot",
            assignment_id=assignment_id,
            order_id=assignment.order_id,
            remaining=len(remaining)
        )
        return status

    def _create_slot(self, slot_date: date, slot_index: int, capacity_kg: Decimal) -> ProductionSlot:
        try:
            result = self.db.table(self.slots_table).insert({
                "slot_date": slot_date.isoformat(),
                "slot_index": slot_index,
                "capacity_kg": float(capacity_kg),
                "status": "open",
            }).execute()
        except Exception as e:
            logger.error("create_slot_failed", slot_date=str(slot_date), slot_index=slot_index, error=str(e))
            raise DatabaseError("insert", str(e))

        slot = ProductionSlot(**result.data[0])
        logger.info("slot_created", slot_id=slot.id, slot_date=slot_date.isoformat(), slot_index=slot_index)
        return slot

    def _write_assignment(
        self,
        order_id: str,
        slot_id: str,
        kg: Decimal,
        replaced_id: Optional[str]
    ) -> OrderSlot:
        payload = {"order_id": order_id, "slot_id": slot_id, "kg_assigned": float(kg)}

        try:
            if replaced_id:
                result = (
                    self.db.table(self.assignments_table)
                    .update(payload)
                    .eq("id", replaced_id)
                    .execute()
                )
            else:
                result = self.db.table(self.assignments_table).insert(payload).execute()
        except Exception as e:
            if is_unique_violation(e, "slot_id"):
                logger.warning("slot_taken_concurrently", slot_id=slot_id, order_id=order_id)
                raise SlotOccupiedError(slot_id)
            logger.error("write_assignment_failed", order_id=order_id, slot_id=slot_id, error=str(e))
            raise DatabaseError("upsert", str(e))

        return OrderSlot(**result.data[0])

    def _set_order_status(self, order_id: str, status: str) -> None:
        try:
            self.db.table(self.orders_table).update({"status": status}).eq("id", order_id).execute()
        except Exception as e:
            logger.error("order_status_update_failed", order_id=order_id, status=status, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # SLOT ADMIN
    # ===================

    def upsert_slot(self, data: ProductionSlotUpsert) -> ProductionSlot:
        """
        Create or edit the slot at (slot_date, slot_index).

        Capacity may not drop below what is already assigned there.
        """
        shop_settings = self.settings_service.get()
        self._check_slot_index(data.slot_index, shop_settings)

        existing = self.find_slot(data.slot_date, data.slot_index)

        try:
            if existing is None:
                result = self.db.table(self.slots_table).insert({
                    "slot_date": data.slot_date.isoformat(),
                    "slot_index": data.slot_index,
                    "capacity_kg": float(data.capacity_kg or shop_settings.max_total_kg),
                    "status": data.status or "open",
                    "notes": data.notes,
                }).execute()
                slot = ProductionSlot(**result.data[0])
                logger.info("slot_created", slot_id=slot.id, slot_date=str(data.slot_date))
                return slot

            changes = data.to_row(exclude_unset=True, exclude={"slot_date", "slot_index"})
            if data.capacity_kg is not None:
                assigned = sum(
                    (a.kg_assigned for a in self.get_assignments_for_slot(existing.id)),
                    Decimal("0")
                )
                if data.capacity_kg < assigned:
                    raise SlotCapacityExceededError(existing.id, float(assigned), float(data.capacity_kg))

            if not changes:
                return existing

            result = (
                self.db.table(self.slots_table)
                .update(changes)
                .eq("id", existing.id)
                .execute()
            )
            logger.info("slot_updated", slot_id=existing.id, fields=sorted(changes.keys()))
            return ProductionSlot(**result.data[0])

        except AppError:
            raise
        except Exception as e:
            logger.error("upsert_slot_failed", slot_date=str(data.slot_date), error=str(e))
            raise DatabaseError("upsert", str(e))

    # ===================
    # SCHEDULE VIEW
    # ===================

    def get_schedule(self, start: date, end: date) -> list[ScheduleDay]:
        """
        Production board for [start, end]: every day with its blocked
        flag and the slots that exist, each with its assignment.
        """
        if end < start:
            raise ValidationError("End date must be on or after start date", code="INVALID_DATE_RANGE")
        if (end - start).days >= MAX_SCHEDULE_DAYS:
            raise ValidationError(
                f"Schedule range is limited to {MAX_SCHEDULE_DAYS} days",
                code="INVALID_DATE_RANGE"
            )

        shop_settings = self.settings_service.get()
        blocked = self.calendar_service.blocked_days(start, end, shop_settings)

        try:
            slot_rows = (
                self.db.table(self.slots_table)
                .select("*")
                .gte("slot_date", start.isoformat())
                .lte("slot_date", end.isoformat())
                .order("slot_date")
                .execute()
            ).data
            slots = sorted(
                (ProductionSlot(**row) for row in slot_rows),
                key=lambda s: (s.slot_date, s.slot_index)
            )

            assignments: dict[str, OrderSlot] = {}
            if slots:
                rows = (
                    self.db.table(self.assignments_table)
                    .select("*")
                    .in_("slot_id", [s.id for s in slots])
                    .execute()
                ).data
                assignments = {row["slot_id"]: OrderSlot(**row) for row in rows}

        except Exception as e:
            logger.error("get_schedule_failed", start=str(start), end=str(end), error=str(e))
            raise DatabaseError("select", str(e))

        days = []
        day = start
        while day <= end:
            days.append(ScheduleDay(
                date=day,
                blocked=day in blocked,
                slots=[
                    ScheduleSlotView(slot=s, assignment=assignments.get(s.id))
                    for s in slots if s.slot_date == day
                ],
            ))
            day += timedelta(days=1)

        return days

    def get_schedule_status(self, order_id: str, today: Optional[date] = None) -> ScheduleStatus:
        """Derived schedule status of one order."""
        order = self._get_order_row(order_id)
        assignments = self.get_assignments_for_order(order_id)
        slots_by_id = {a.slot_id: self.get_slot(a.slot_id) for a in assignments}
        return schedule_status(order["status"], assignments, slots_by_id, today or local_today())


# Singleton instance
_slot_service: Optional[SlotService] = None


def get_slot_service() -> SlotService:
    """Get or create SlotService instance."""
    global _slot_service
    if _slot_service is None:
        _slot_service = SlotService()
    return _slot_service
