"""
Unit tests for SettingsService.

Run: pytest tests/unit/test_settings_service.py -v
"""

import pytest
from decimal import Decimal

# Import what we're testing
from services.settings_service import SettingsService
from models.settings import ShopSettingsUpdate
from exceptions import SettingsNotFoundError


class TestSettingsServiceGet:
    """Tests for SettingsService.get()"""

    def test_returns_seeded_row(self, seeded_db):
        """Should load the single settings row."""
        # Act
        result = SettingsService().get()

        # Assert
        assert result.urgency_period_days == 3
        assert result.no_production_sat is True

    def test_missing_row(self, mock_db):
        """Should raise SettingsNotFoundError when the row is not seeded."""
        with pytest.raises(SettingsNotFoundError):
            SettingsService().get()


class TestSettingsServiceUpdate:
    """Tests for SettingsService.update()"""

    def test_updates_only_provided_fields(self, seeded_db, mock_supabase):
        """Should write the provided fields and keep the rest."""
        # Arrange
        service = SettingsService()

        # Act
        result = service.update(ShopSettingsUpdate(urgency_fee=Decimal("15"), no_production_sat=False))

        # Assert
        assert result.urgency_fee == Decimal("15")
        assert result.no_production_sat is False
        assert result.no_production_sun is True

    def test_empty_update_is_noop(self, seeded_db, mock_supabase):
        """Should return the current row without writing."""
        # Arrange
        before = dict(mock_supabase.rows("settings")[0])

        # Act
        SettingsService().update(ShopSettingsUpdate())

        # Assert
        assert mock_supabase.rows("settings")[0] == before
