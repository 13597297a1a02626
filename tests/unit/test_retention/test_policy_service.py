# tests/unit/test_retention/test_policy_service.py
"""Unit tests for organization retention policy service."""

import uuid
from unittest.mock import MagicMock

import pytest


class TestSettingsFromRow:
    """Tests for settings_from_row()."""

    def test_missing_row_uses_defaults(self):
        """Should fall back to 30 days / 12 months / no consent required."""
        from skolapp.services.retention.policy_service import settings_from_row

        org_id = uuid.uuid4()
        settings = settings_from_row(org_id, None)

        assert settings.org_id == org_id
        assert settings.retention_korttid_days == 30
        assert settings.consent_valid_months == 12
        assert settings.require_guardian_consent is False
        assert settings.is_default is True

    def test_null_fields_fall_back_individually(self):
        """A row with a null window keeps its other values."""
        from skolapp.models import OrgSettings
        from skolapp.services.retention.policy_service import settings_from_row

        row = MagicMock(spec=OrgSettings)
        row.retention_korttid_days = None
        row.consent_valid_months = 6
        row.require_guardian_consent = True

        settings = settings_from_row(uuid.uuid4(), row)

        assert settings.retention_korttid_days == 30
        assert settings.consent_valid_months == 6
        assert settings.require_guardian_consent is True
        assert settings.is_default is False


class TestResolveRetentionSettings:
    """Tests for resolve_retention_settings()."""

    def test_returns_stored_values(self):
        """Should use the org_settings row when present."""
        from skolapp.models import OrgSettings
        from skolapp.services.retention.policy_service import resolve_retention_settings

        row = MagicMock(spec=OrgSettings)
        row.retention_korttid_days = 7
        row.consent_valid_months = 24
        row.require_guardian_consent = False

        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = row

        settings = resolve_retention_settings(mock_db, uuid.uuid4())

        assert settings.retention_korttid_days == 7
        assert settings.consent_valid_months == 24

    def test_returns_defaults_when_unconfigured(self):
        from skolapp.services.retention.policy_service import resolve_retention_settings

        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = None

        settings = resolve_retention_settings(mock_db, uuid.uuid4())

        assert settings.retention_korttid_days == 30
        assert settings.is_default is True


class TestUpdateOrgSettings:
    """Tests for update_org_settings()."""

    def test_raises_error_for_unknown_org(self):
        """Should raise ValueError for an unknown organization."""
        from skolapp.services.retention.policy_service import update_org_settings

        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = None

        with pytest.raises(ValueError, match="not found"):
            update_org_settings(mock_db, uuid.uuid4(), retention_korttid_days=14)

        mock_db.commit.assert_not_called()

    def test_rejects_non_positive_window(self, make, db):
        from skolapp.services.retention.policy_service import update_org_settings

        org = make.org()

        with pytest.raises(ValueError, match="at least 1"):
            update_org_settings(db, org.id, retention_korttid_days=0)

    def test_creates_row_with_defaults_for_omitted_fields(self, make, db):
        """First update creates the row; omitted fields get the defaults."""
        from skolapp.services.retention.policy_service import update_org_settings

        org = make.org()

        row = update_org_settings(db, org.id, retention_korttid_days=14)

        assert row.retention_korttid_days == 14
        assert row.consent_valid_months == 12
        assert row.require_guardian_consent is False

    def test_only_updates_provided_fields(self, make, db):
        from skolapp.services.retention.policy_service import update_org_settings

        org = make.org(retention_korttid_days=10, consent_valid_months=6, require_guardian_consent=True)

        row = update_org_settings(db, org.id, consent_valid_months=18)

        assert row.retention_korttid_days == 10
        assert row.consent_valid_months == 18
        assert row.require_guardian_consent is True


class TestListOrgRetention:
    """Tests for list_org_retention()."""

    def test_includes_orgs_without_settings(self, make, db):
        """Every org is listed, configured or not, ordered by name."""
        from skolapp.services.retention.policy_service import list_org_retention

        make.org(name="Björkskolan", retention_korttid_days=7)
        make.org(name="Almskolan")

        rows = list_org_retention(db)

        assert [org.name for org, _ in rows] == ["Almskolan", "Björkskolan"]
        assert rows[0][1].is_default is True
        assert rows[1][1].retention_korttid_days == 7


class TestGetRetentionConfig:
    """Tests for get_retention_config()."""

    def test_returns_serializable_config(self, make, db):
        from skolapp.services.retention.policy_service import get_retention_config

        org = make.org(retention_korttid_days=21)

        config = get_retention_config(db, org.id)

        assert config == {
            "org_id": str(org.id),
            "retention_korttid_days": 21,
            "consent_valid_months": 12,
            "require_guardian_consent": False,
            "is_default": False,
        }
