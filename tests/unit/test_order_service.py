"""
Unit tests for OrderService.

Run: pytest tests/unit/test_order_service.py -v
Run with coverage: pytest tests/unit/test_order_service.py --cov=services/order_service
"""

import pytest
from unittest.mock import patch
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

# Import what we're testing
from services.order_service import (
    OrderService,
    format_premade_weight,
    is_visible_additional_item,
)
from models.order import OrderCreate, OrderPatch, OrderRecord, PremadeSelection, merge_order
from models.production import QuoteBlockCreate
from services.calendar_service import get_calendar_service
from exceptions import (
    ValidationError,
    DatabaseError,
    DateUnavailableError,
    OrderNotFoundError,
    OrderNumberExhaustedError,
    PremadeNotFoundError,
)

# Import test utilities
from tests.factories import OrderFactory, PremadeFactory, unique_violation

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def new_order(**overrides) -> OrderCreate:
    data = {
        "title": "Sam & Alex",
        "first_name": "Sam",
        "last_name": "Lee",
        "customer_email": "sam@example.com",
        "category_id": "weddings-hearts",
        "total_weight_kg": Decimal("5"),
    }
    data.update(overrides)
    return OrderCreate(**data)


class TestOrderServiceNumbering:
    """Tests for OrderService.generate_order_number() and insert retries"""

    def test_first_number_is_configured_start(self, seeded_db):
        """Should start at 1000 on an empty table."""
        assert OrderService().generate_order_number() == "1000"

    def test_next_number_after_highest(self, seeded_db, mock_supabase):
        """Should continue after the highest base number."""
        # Arrange
        mock_supabase.set_table_data("orders", [
            OrderFactory.create(order_number="1041-a"),
            OrderFactory.create(order_number="1041-b"),
            OrderFactory.create(order_number="999"),
        ])

        # Act & Assert
        assert OrderService().generate_order_number() == "1042"

    def test_conflicting_seed_retries_with_fresh_number(self, seeded_db, mock_supabase):
        """Should retry with max+1 when the requested number is taken."""
        # Arrange
        mock_supabase.set_table_data("orders", [OrderFactory.create(order_number="1000")])
        mock_supabase.set_unique("orders", "order_number")
        service = OrderService()

        # Act
        orders = service.create(new_order(order_number="#1000"))

        # Assert
        assert orders[0].order_number == "1001"
        assert len(mock_supabase.rows("orders")) == 2

    def test_exhausted_retries_raise(self, seeded_db, mock_supabase):
        """Should give up after the configured attempts and insert nothing."""
        # Arrange
        mock_supabase.fail_next("orders", "insert", unique_violation("orders", "order_number"), times=5)
        service = OrderService()

        # Act & Assert
        with pytest.raises(OrderNumberExhaustedError) as exc_info:
            service.create(new_order())

        assert exc_info.value.details["attempts"] == 5
        assert exc_info.value.status_code == 409
        assert mock_supabase.rows("orders") == []

    def test_other_insert_errors_are_not_retried(self, seeded_db, mock_supabase):
        """Should raise DatabaseError for failures that are not number conflicts."""
        # Arrange
        mock_supabase.fail_next("orders", "insert", RuntimeError("connection reset"))
        service = OrderService()

        # Act & Assert
        with pytest.raises(DatabaseError):
            service.create(new_order())


class TestOrderServiceCreate:
    """Tests for OrderService.create() and place()"""

    def test_create_fills_defaults(self, seeded_db, mock_supabase):
        """Should default status, made and customer_name."""
        # Act
        orders = OrderService().create(new_order())

        # Assert
        assert len(orders) == 1
        order = orders[0]
        assert order.order_number == "1000"
        assert order.status == "pending"
        assert order.made is False
        assert order.customer_name == "Sam Lee"

    def test_premade_selection_creates_siblings(self, seeded_db, mock_supabase):
        """Should number the custom row -a and premade rows -b."""
        # Arrange
        premade = PremadeFactory.create(name="Fruit Mix", weight_g=500, price=12)
        mock_supabase.set_table_data("premade_candies", [premade])
        data = new_order(premade=[PremadeSelection(premade_id=premade["id"], quantity=2)])

        # Act
        orders = OrderService().create(data)

        # Assert
        custom, sibling = orders
        assert custom.order_number == "1000-a"
        assert sibling.order_number == "1000-b"
        assert sibling.design_type == "premade"
        assert sibling.notes == "Quote order: #1000-a"
        assert sibling.order_description == "500g premade candy"
        assert sibling.total_weight_kg == Decimal("1")
        assert sibling.total_price == Decimal("24")
        assert sibling.customer_email == "sam@example.com"

    def test_several_premade_selections_get_line_numbers(self, seeded_db, mock_supabase):
        """Should give a second premade row its own -b-2 number."""
        # Arrange
        mock_supabase.set_unique("orders", "order_number")
        fruit = PremadeFactory.create(name="Fruit Mix")
        mints = PremadeFactory.create(name="Mint Rock")
        mock_supabase.set_table_data("premade_candies", [fruit, mints])
        data = new_order(premade=[
            PremadeSelection(premade_id=fruit["id"], quantity=1),
            PremadeSelection(premade_id=mints["id"], quantity=1),
        ])

        # Act
        orders = OrderService().create(data)

        # Assert
        assert [o.order_number for o in orders] == ["1000-a", "1000-b", "1000-b-2"]
        assert len(mock_supabase.rows("orders")) == 3

    def test_unknown_premade_rejected(self, seeded_db, mock_supabase):
        """Should reject an unknown premade id before inserting."""
        # Arrange
        data = new_order(premade=[PremadeSelection(premade_id="nope", quantity=1)])

        # Act & Assert
        with pytest.raises(PremadeNotFoundError):
            OrderService().create(data)

        assert mock_supabase.rows("orders") == []

    @pytest.mark.parametrize("weight,code", [
        (Decimal("0"), "INVALID_WEIGHT"),
        (Decimal("25"), "WEIGHT_EXCEEDS_MAXIMUM"),
    ])
    def test_weight_bounds(self, seeded_db, weight, code):
        """Should reject missing weight and weight above max_total_kg."""
        with pytest.raises(ValidationError) as exc_info:
            OrderService().create(new_order(total_weight_kg=weight))

        assert exc_info.value.code == code

    def test_category_rules_clear_unused_colours(self, seeded_db):
        """Should drop text colour for branded and heart colour outside weddings."""
        # Act
        order = OrderService().create(new_order(
            category_id="branded",
            text_color="red",
            heart_color="pink",
            jacket="two_colour_pinstripe",
        ))[0]

        # Assert
        assert order.text_color is None
        assert order.heart_color is None
        assert order.jacket_type == "two_colour"

    def test_wedding_keeps_heart_colour(self, seeded_db):
        """Should keep heart colour for weddings categories."""
        order = OrderService().create(new_order(heart_color="pink"))[0]
        assert order.heart_color == "pink"

    def test_email_failure_does_not_fail_creation(self, seeded_db, mock_supabase):
        """Should store the order even when the staff email raises."""
        # Arrange
        service = OrderService()

        # Act
        with patch.object(service.email_service, "send_order_email", side_effect=RuntimeError("smtp down")):
            orders = service.create(new_order())

        # Assert
        assert len(orders) == 1
        assert len(mock_supabase.rows("orders")) == 1

    def test_place_rejects_quote_blocked_date(self, seeded_db, mock_supabase):
        """Should refuse a due date inside a quote block."""
        # Arrange
        due = date(2026, 12, 24)
        get_calendar_service().add_quote_block(QuoteBlockCreate(start_date=due))
        service = OrderService()

        # Act & Assert
        with pytest.raises(DateUnavailableError):
            service.place(new_order(due_date=due))

        assert mock_supabase.rows("orders") == []

    def test_place_accepts_open_date(self, seeded_db):
        """Should create the order for an available due date."""
        orders = OrderService().place(new_order(due_date=date(2026, 12, 1)))
        assert orders[0].due_date == date(2026, 12, 1)


class TestOrderServiceUpdate:
    """Tests for OrderService.update() and merge_order()"""

    def test_explicit_null_clears_and_absent_keeps(self, seeded_db, mock_supabase):
        """Should clear fields sent as null and keep fields not sent."""
        # Arrange
        row = OrderFactory.create(notes="Call first", flavor="strawberry")
        mock_supabase.set_table_data("orders", [row])

        # Act
        updated = OrderService().update(row["id"], OrderPatch(notes=None))

        # Assert
        assert updated.notes is None
        assert updated.flavor == "strawberry"
        assert updated.title == row["title"]

    def test_jacket_change_derives_jacket_type(self):
        """Should derive jacket_type from jacket unless it is sent too."""
        # Arrange
        existing = {"id": "1", "jacket": None, "jacket_type": None, "category_id": "weddings"}

        # Act
        derived = merge_order(existing, OrderPatch(jacket="rainbow"))
        explicit = merge_order(existing, OrderPatch(jacket="rainbow", jacket_type="custom"))

        # Assert
        assert derived["jacket_type"] == "rainbow"
        assert explicit["jacket_type"] == "custom"

    def test_unchanged_patch_skips_write(self, seeded_db, mock_supabase):
        """Should return the stored order when nothing changes."""
        # Arrange
        row = OrderFactory.create(title="Same")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        # Act
        with patch.object(service, "_update") as update:
            order = service.update(row["id"], OrderPatch(title="Same"))

        # Assert
        update.assert_not_called()
        assert order.title == "Same"

    def test_weight_above_maximum_rejected(self, seeded_db, mock_supabase):
        """Should validate a new weight against max_total_kg."""
        # Arrange
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])

        # Act & Assert
        with pytest.raises(ValidationError):
            OrderService().update(row["id"], OrderPatch(total_weight_kg=Decimal("30")))

    def test_unknown_order(self, seeded_db):
        """Should raise OrderNotFoundError."""
        with pytest.raises(OrderNotFoundError):
            OrderService().update("missing", OrderPatch(title="x"))


class TestOrderServiceLifecycle:
    """Tests for listing, archive and shipped handling"""

    def test_list_hides_archived_newest_first(self, seeded_db, mock_supabase):
        """Should exclude archived rows and sort by created_at descending."""
        # Arrange
        old = OrderFactory.create(created_at="2026-01-01T00:00:00+00:00")
        new = OrderFactory.create(created_at="2026-02-01T00:00:00+00:00")
        archived = OrderFactory.create(status="archived")
        mock_supabase.set_table_data("orders", [old, archived, new])

        # Act
        orders = OrderService().list_orders()

        # Assert
        assert [o.id for o in orders] == [new["id"], old["id"]]

    def test_archive_and_unarchive(self, seeded_db, mock_supabase):
        """Should archive then restore to pending."""
        # Arrange
        row = OrderFactory.create(status="scheduled")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        # Act
        archived = service.archive(row["id"])
        restored = service.unarchive(row["id"])

        # Assert
        assert archived.status == "archived"
        assert restored.status == "pending"

    def test_mark_shipped_requires_premade(self, seeded_db, mock_supabase):
        """Should refuse to ship a custom order."""
        # Arrange
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            OrderService().mark_shipped(row["id"])

        assert exc_info.value.code == "NOT_PREMADE_ORDER"

    def test_mark_many_shipped_ignores_custom_rows(self, seeded_db, mock_supabase):
        """Should only ship premade rows."""
        # Arrange
        premade = OrderFactory.create_premade()
        custom = OrderFactory.create()
        mock_supabase.set_table_data("orders", [premade, custom])

        # Act
        shipped = OrderService().mark_many_shipped([premade["id"], custom["id"]])

        # Assert
        assert [o.id for o in shipped] == [premade["id"]]
        assert shipped[0].shipped_at is not None

    def test_additional_items_hide_after_24_hours(self, seeded_db, mock_supabase):
        """Should hide premade rows shipped 24h or more ago."""
        # Arrange
        waiting = OrderFactory.create_premade(status="pending")
        recent = OrderFactory.create_premade(status="shipped", shipped_at=NOW - timedelta(hours=2))
        stale = OrderFactory.create_premade(status="shipped", shipped_at=NOW - timedelta(hours=24))
        custom = OrderFactory.create()
        mock_supabase.set_table_data("orders", [waiting, recent, stale, custom])

        # Act
        items = OrderService().list_additional_items(now=NOW)

        # Assert
        assert {o.id for o in items} == {waiting["id"], recent["id"]}

    def test_mark_paid_moves_pending_payment_to_pending(self, seeded_db, mock_supabase):
        """Should record payment details and release the order."""
        # Arrange
        row = OrderFactory.create(status="pending_payment")
        mock_supabase.set_table_data("orders", [row])

        # Act
        order = OrderService().mark_paid(row["id"], provider="square", transaction_id="pay-1", paid_at=NOW)

        # Assert
        assert order.status == "pending"
        assert order.payment_transaction_id == "pay-1"
        assert order.paid_at == NOW


class TestOrderHelpers:
    """Tests for module helpers"""

    @pytest.mark.parametrize("weight_g,expected", [
        (Decimal("1500"), "1.5kg"),
        (Decimal("2000"), "2kg"),
        (Decimal("250"), "250g"),
        (None, ""),
    ])
    def test_format_premade_weight(self, weight_g, expected):
        """Should format grams as a short label."""
        assert format_premade_weight(weight_g) == expected

    def test_unshipped_rows_always_visible(self):
        """Should keep rows that have not shipped."""
        order = OrderRecord(id="1", status="pending", design_type="premade")
        assert is_visible_additional_item(order, NOW) is True
