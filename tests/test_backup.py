"""
Tests for backup export and import.
"""

import json

import pytest

from monthwise.models import AllowanceSourceCreate, CategoryCreate, EXPORT_VERSION
from monthwise.services.backup import BackupService
from monthwise.storage import ImportValidationError, TransactionError


def snapshot(app, run):
    """Every row of every exported table, as plain dicts."""
    document = run(app.backup.export_data())
    return document.model_dump(by_alias=True)["data"]


@pytest.fixture
def populated(app, run, add_expense, month):
    """A dataset with a second profile, soft-deleted rows and an override."""
    second = run(app.profiles.create("Work"))
    run(app.security.enable(second.id, "hunter2"))
    run(app.allowance_sources.create(AllowanceSourceCreate(year=2026, name="Salary", amount_cents=50000)))
    gone = run(app.allowance_sources.create(AllowanceSourceCreate(year=2026, name="Gone", amount_cents=5)))
    run(app.allowance_sources.soft_delete(gone.id))
    run(app.allowance_sources.create(
        AllowanceSourceCreate(year=2026, name="Contract", amount_cents=12000), second.id
    ))
    pets = run(app.categories.create(CategoryCreate(name="Pets")))
    run(app.categories.soft_delete(pets.id))
    run(app.months.set_allowance_override(month.id, 75000))
    add_expense(1234, is_paid=True, note="groceries")
    deleted = add_expense(999, category_id=pets.id)
    run(app.expenses.soft_delete(deleted.id))
    run(app.expenses.verify_all_for_month(month.id))
    return app


class TestExport:
    """Tests for the exported document."""

    def test_export_contains_deleted_rows(self, populated, run):
        data = snapshot(populated, run)
        assert any(e["deletedAt"] for e in data["expenses"])
        assert any(s["deletedAt"] for s in data["allowanceSources"])
        assert any(c["deletedAt"] for c in data["categories"])
        assert len(data["profiles"]) == 2

    def test_export_json_shape(self, populated, run):
        document = json.loads(run(populated.backup.export_json()))
        assert document["version"] == EXPORT_VERSION
        assert document["appVersion"] == populated.settings.app.app_version
        assert set(document["data"]) == {
            "allowanceSources", "categories", "months", "expenses", "profiles",
        }


class TestImport:
    """Tests for all-or-nothing import."""

    def test_round_trip_is_exact(self, populated, run):
        """import(export()) reproduces ids, timestamps and deletion markers."""
        before = snapshot(populated, run)
        text = run(populated.backup.export_json())

        result = run(populated.backup.import_data(text))

        assert result.success
        assert result.records_imported == sum(
            len(before[key]) for key in ("allowanceSources", "categories", "months", "expenses")
        )
        assert snapshot(populated, run) == before

    def test_import_replaces_current_data(self, populated, run, add_expense):
        text = run(populated.backup.export_json())
        extra = add_expense(42)

        run(populated.backup.import_data(text))

        assert run(populated.expenses.find_by_id(extra.id)) is None

    def test_password_protection_survives(self, populated, run):
        text = run(populated.backup.export_json())
        run(populated.security.disable(2))

        run(populated.backup.import_data(text))

        assert run(populated.security.verify(2, "hunter2")) is True

    def test_invalid_json(self, app, run):
        with pytest.raises(ImportValidationError, match="Invalid JSON format"):
            run(app.backup.import_data("{not json"))

    def test_newer_version_rejected(self, populated, run):
        """A document from a newer app is refused and nothing changes."""
        before = snapshot(populated, run)
        document = json.loads(run(populated.backup.export_json()))
        document["version"] = EXPORT_VERSION + 1
        document["data"]["futureTable"] = []

        with pytest.raises(ImportValidationError, match="newer app version"):
            run(populated.backup.import_data(json.dumps(document)))
        assert snapshot(populated, run) == before

    def test_missing_array_rejected(self, app, run):
        payload = {"version": 1, "exportedAt": "x", "data": {"categories": [], "months": []}}
        with pytest.raises(ImportValidationError):
            run(app.backup.import_data(payload))

    def test_missing_version_rejected(self, app, run):
        with pytest.raises(ImportValidationError, match="version"):
            run(app.backup.import_data({"data": {}}))

    def test_dangling_reference_rejected(self, populated, run):
        document = json.loads(run(populated.backup.export_json()))
        document["data"]["expenses"][0]["monthId"] = 9999

        with pytest.raises(ImportValidationError, match="unknown months"):
            run(populated.backup.import_data(document))

    def test_failed_write_rolls_back(self, populated, run):
        """A constraint failure mid-import leaves the previous dataset intact."""
        before = snapshot(populated, run)
        document = json.loads(run(populated.backup.export_json()))
        clash = dict(document["data"]["categories"][0])
        clash["id"] = 5000
        clash["name"] = clash["name"].upper()
        document["data"]["categories"].append(clash)

        with pytest.raises(TransactionError):
            run(populated.backup.import_data(document))
        assert snapshot(populated, run) == before

    def test_document_without_profiles(self, populated, run):
        """Older documents without a profiles array still import."""
        document = json.loads(run(populated.backup.export_json()))
        del document["data"]["profiles"]

        result = run(populated.backup.import_data(document))

        assert result.success
        assert result.profiles_restored == 0


class TestParseDocument:
    """Tests for validation that never touches the database."""

    def test_rejects_non_object(self):
        with pytest.raises(ImportValidationError, match="JSON object"):
            BackupService.parse_document("[1, 2, 3]")

    def test_rejects_boolean_version(self):
        with pytest.raises(ImportValidationError):
            BackupService.parse_document({"version": True, "data": {}})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ImportValidationError):
            BackupService.parse_document({
                "version": 1,
                "exportedAt": "x",
                "data": {
                    "allowanceSources": [], "categories": [], "months": [], "expenses": [],
                    "budgets": [],
                },
            })


LEGACY_DOCUMENT = {
    "version": 1,
    "exportedAt": "2025-03-01T10:00:00.000Z",
    "appVersion": "1.0.0",
    "data": {
        "allowanceSources": [
            {
                "id": 3, "year": 2025, "name": "Salary", "amountCents": 50000,
                "isActive": True, "createdAt": "2025-01-01", "updatedAt": "2025-01-01",
                "deletedAt": None,
            },
        ],
        "categories": [
            {"id": 1, "name": "Food", "icon": None, "color": None, "sortOrder": 0},
            {"id": 2, "name": "Rent", "icon": "R", "color": "#112233", "sortOrder": 1},
        ],
        "months": [
            {
                "id": 5, "year": 2025, "month": 2, "allowanceOverrideCents": None,
                "createdAt": "2025-02-01", "updatedAt": "2025-02-01",
            },
        ],
        "expenses": [
            {
                "id": 9, "monthId": 5, "categoryId": 2, "amountCents": 80000,
                "note": None, "expenseDate": "2025-02-03", "isPaid": True,
                "isVerified": False, "createdAt": "2025-02-03", "updatedAt": "2025-02-03",
                "deletedAt": None,
            },
        ],
    },
}


class TestLegacyDocuments:
    """Tests for version 1 documents written before timestamps and profiles were exported."""

    def test_import_fills_missing_fields(self, app, run):
        result = run(app.backup.import_data(json.dumps(LEGACY_DOCUMENT)))

        assert result.success
        assert result.records_imported == 5

        food = run(app.categories.find_by_id(1))
        assert food.name == "Food"
        assert food.created_at and food.created_at == food.updated_at

        month = run(app.months.find_by_id(5))
        assert month.profile_id == 1
        assert [s.name for s in run(app.allowance_sources.find_active_by_year(2025))] == ["Salary"]
        assert run(app.expenses.find_by_month_id(5))[0].amount_cents == 80000

    def test_caller_document_left_untouched(self):
        document = json.loads(json.dumps(LEGACY_DOCUMENT))

        parsed = BackupService.parse_document(document)

        assert parsed.data.months[0].profile_id == 1
        assert "createdAt" not in document["data"]["categories"][0]
        assert "profileId" not in document["data"]["months"][0]

    def test_present_fields_win(self):
        document = json.loads(json.dumps(LEGACY_DOCUMENT))
        document["data"]["categories"][0]["createdAt"] = "2020-01-01"
        document["data"]["categories"][0]["updatedAt"] = "2020-01-02"

        parsed = BackupService.parse_document(document)

        assert parsed.data.categories[0].created_at == "2020-01-01"
        assert parsed.data.categories[0].updated_at == "2020-01-02"
