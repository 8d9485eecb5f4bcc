"""Tests for medicine services."""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from django_medstock.activity import RequestOrigin
from django_medstock.exceptions import (
    DuplicateBarcodeError,
    InvalidInputError,
    MedicineNotFoundError,
)
from django_medstock.models import (
    ActionType,
    ActivityLog,
    Alert,
    AlertType,
    Issuance,
    Medicine,
    MedicineCategory,
)
from django_medstock.selectors import get_medicine, list_medicines
from django_medstock.services import (
    create_medicine,
    delete_medicine,
    issue_medicine,
    update_medicine,
)


def alert_types_for(medicine):
    return sorted(
        Alert.objects.filter(entity_id=str(medicine.pk)).values_list("type", flat=True)
    )


def medicine_data(**overrides):
    data = {
        "name": "Paracetamol 500mg",
        "category": MedicineCategory.PAINKILLERS,
        "quantity": 50,
        "price": Decimal("1.25"),
        "expiry_date": timezone.now() + timedelta(days=365),
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestCreateMedicine:
    """Tests for create_medicine service."""

    def test_create_sets_initial_stock(self, staff_user):
        medicine = create_medicine(staff_user, **medicine_data())

        assert medicine.quantity == 50
        assert medicine.initial_stock == 50
        assert medicine.stock_out == 0
        assert medicine.min_quantity == 10
        assert medicine.created_by == staff_user
        assert medicine.is_active is True

    def test_create_logs_add_with_snapshot(self, staff_user):
        origin = RequestOrigin(ip_address="192.0.2.1", user_agent="pytest")
        medicine = create_medicine(staff_user, origin=origin, **medicine_data())

        entry = ActivityLog.objects.get(entity_id=str(medicine.pk))
        assert entry.action_type == ActionType.ADD
        assert entry.description == "Added new medicine: Paracetamol 500mg"
        assert entry.new_data["quantity"] == 50
        assert entry.ip_address == "192.0.2.1"

    def test_healthy_medicine_emits_only_added(self, staff_user):
        medicine = create_medicine(staff_user, **medicine_data())

        assert alert_types_for(medicine) == [AlertType.MEDICINE_ADDED]

    def test_low_and_expiring_medicine_emits_checks(self, staff_user):
        medicine = create_medicine(
            staff_user,
            **medicine_data(quantity=3, expiry_date=timezone.now() + timedelta(days=10)),
        )

        assert alert_types_for(medicine) == sorted([
            AlertType.MEDICINE_ADDED,
            AlertType.STOCK_LOW,
            AlertType.MEDICINE_EXPIRING,
        ])

    def test_invalid_category_is_rejected_before_write(self, staff_user):
        with pytest.raises(InvalidInputError) as exc_info:
            create_medicine(staff_user, **medicine_data(category="Snacks"))

        assert "category" in exc_info.value.errors
        assert Medicine.objects.count() == 0
        assert ActivityLog.objects.count() == 0
        assert Alert.objects.count() == 0

    def test_negative_quantity_is_rejected(self, staff_user):
        with pytest.raises(InvalidInputError) as exc_info:
            create_medicine(staff_user, **medicine_data(quantity=-1))

        assert "quantity" in exc_info.value.errors

    def test_min_quantity_must_be_positive(self, staff_user):
        with pytest.raises(InvalidInputError):
            create_medicine(staff_user, **medicine_data(min_quantity=0))

    def test_negative_price_is_rejected(self, staff_user):
        with pytest.raises(InvalidInputError):
            create_medicine(staff_user, **medicine_data(price=Decimal("-1.00")))

    def test_duplicate_active_barcode_is_rejected(self, staff_user):
        create_medicine(staff_user, **medicine_data(barcode="8901234567890"))

        with pytest.raises(DuplicateBarcodeError) as exc_info:
            create_medicine(staff_user, **medicine_data(name="Other", barcode="8901234567890"))

        assert exc_info.value.barcode == "8901234567890"
        assert Medicine.objects.count() == 1

    def test_barcode_of_deleted_medicine_can_be_reused(self, staff_user):
        first = create_medicine(staff_user, **medicine_data(barcode="8901234567890"))
        delete_medicine(staff_user, first.pk)

        second = create_medicine(staff_user, **medicine_data(barcode="8901234567890"))

        assert second.barcode == "8901234567890"

    def test_blank_barcode_is_stored_as_null(self, staff_user):
        medicine = create_medicine(staff_user, **medicine_data(barcode="  "))

        assert medicine.barcode is None

    def test_naive_expiry_is_stored_aware(self, staff_user):
        with pytest.warns(RuntimeWarning, match="naive datetime"):
            medicine = create_medicine(
                staff_user, **medicine_data(expiry_date="2035-01-01T00:00:00")
            )

        assert timezone.is_aware(medicine.expiry_date)
        assert medicine.expiry_date.year == 2035
        assert alert_types_for(medicine) == [AlertType.MEDICINE_ADDED]
        assert ActivityLog.objects.filter(entity_id=str(medicine.pk)).count() == 1


@pytest.mark.django_db
class TestUpdateMedicine:
    """Tests for update_medicine service."""

    def test_restock_raises_quantity_and_initial_stock(self, staff_user, make_medicine):
        medicine = make_medicine(quantity=30, initial_stock=40)

        updated = update_medicine(staff_user, medicine.pk, stock_to_add=20)

        assert updated.quantity == 50
        assert updated.initial_stock == 60
        assert updated.stock_out == 10
        assert updated.updated_by == staff_user

    def test_restock_only_logs_stock_in(self, staff_user, medicine):
        update_medicine(staff_user, medicine.pk, stock_to_add=5)

        entry = ActivityLog.objects.get(entity_id=str(medicine.pk))
        assert entry.action_type == ActionType.STOCK_IN
        assert entry.old_data["quantity"] == 100
        assert entry.new_data["quantity"] == 105

    def test_restock_emits_stock_entry(self, staff_user, medicine):
        update_medicine(staff_user, medicine.pk, stock_to_add=5)

        assert alert_types_for(medicine) == [AlertType.STOCK_ENTRY]

    def test_edit_logs_update_without_stock_entry(self, staff_user, medicine):
        update_medicine(staff_user, medicine.pk, name="Amoxicillin 250mg")

        entry = ActivityLog.objects.get(entity_id=str(medicine.pk))
        assert entry.action_type == ActionType.UPDATE
        assert entry.old_data["name"] == "Amoxicillin 500mg"
        assert entry.new_data["name"] == "Amoxicillin 250mg"
        assert alert_types_for(medicine) == []

    def test_edit_and_restock_logs_update(self, staff_user, medicine):
        update_medicine(staff_user, medicine.pk, stock_to_add=5, supplier="New Supplier")

        entry = ActivityLog.objects.get(entity_id=str(medicine.pk))
        assert entry.action_type == ActionType.UPDATE

    def test_raising_threshold_is_checked_against_current_stock(self, staff_user, make_medicine):
        medicine = make_medicine(quantity=15, min_quantity=10)

        update_medicine(staff_user, medicine.pk, min_quantity=20)

        assert alert_types_for(medicine) == [AlertType.STOCK_LOW]

    def test_quantity_cannot_be_edited_directly(self, staff_user, medicine):
        with pytest.raises(InvalidInputError) as exc_info:
            update_medicine(staff_user, medicine.pk, quantity=500)

        assert "quantity" in exc_info.value.errors
        medicine.refresh_from_db()
        assert medicine.quantity == 100

    def test_initial_stock_cannot_be_edited_directly(self, staff_user, medicine):
        with pytest.raises(InvalidInputError):
            update_medicine(staff_user, medicine.pk, initial_stock=500)

    def test_negative_restock_is_rejected(self, staff_user, medicine):
        with pytest.raises(InvalidInputError) as exc_info:
            update_medicine(staff_user, medicine.pk, stock_to_add=-5)

        assert "stock_to_add" in exc_info.value.errors

    def test_non_numeric_restock_is_rejected(self, staff_user, medicine):
        with pytest.raises(InvalidInputError):
            update_medicine(staff_user, medicine.pk, stock_to_add="lots")

    def test_invalid_edit_writes_nothing(self, staff_user, medicine):
        with pytest.raises(InvalidInputError):
            update_medicine(staff_user, medicine.pk, stock_to_add=5, category="Snacks")

        medicine.refresh_from_db()
        assert medicine.quantity == 100
        assert medicine.category == MedicineCategory.ANTIBIOTICS
        assert ActivityLog.objects.count() == 0

    def test_keeping_own_barcode_is_allowed(self, staff_user, make_medicine):
        medicine = make_medicine(barcode="111")

        updated = update_medicine(staff_user, medicine.pk, barcode="111", name="Renamed")

        assert updated.name == "Renamed"

    def test_taking_another_active_barcode_is_rejected(self, staff_user, make_medicine):
        make_medicine(barcode="111")
        other = make_medicine(barcode="222")

        with pytest.raises(DuplicateBarcodeError):
            update_medicine(staff_user, other.pk, barcode="111")

        other.refresh_from_db()
        assert other.barcode == "222"

    def test_deleted_medicine_cannot_be_updated(self, staff_user, make_medicine):
        medicine = make_medicine(is_active=False)

        with pytest.raises(MedicineNotFoundError):
            update_medicine(staff_user, medicine.pk, stock_to_add=5)

    def test_stock_out_holds_after_repeated_restocks(self, staff_user, medicine, recipient):
        issue_medicine(staff_user, medicine.pk, quantity=7, **recipient)
        for delta in (3, 10, 25):
            update_medicine(staff_user, medicine.pk, stock_to_add=delta)

        medicine.refresh_from_db()
        assert medicine.quantity == 100 - 7 + 38
        assert medicine.initial_stock == 138
        assert medicine.stock_out == 7


@pytest.mark.django_db
class TestInventoryScenario:
    """Create, issue and restock a low-stock medicine end to end."""

    def test_low_stock_issue_then_restock(self, staff_user, recipient):
        medicine = create_medicine(
            staff_user,
            **medicine_data(quantity=5, min_quantity=10),
        )
        assert alert_types_for(medicine) == sorted([
            AlertType.MEDICINE_ADDED,
            AlertType.STOCK_LOW,
        ])

        Alert.objects.all().delete()
        issue_medicine(staff_user, medicine.pk, quantity=2, **recipient)

        medicine.refresh_from_db()
        assert medicine.quantity == 3
        assert medicine.stock_out == 2
        assert alert_types_for(medicine) == sorted([
            AlertType.MEDICINE_ISSUED,
            AlertType.STOCK_LOW,
        ])

        Alert.objects.all().delete()
        update_medicine(staff_user, medicine.pk, stock_to_add=20)

        medicine.refresh_from_db()
        assert medicine.quantity == 23
        assert medicine.initial_stock == 25
        assert medicine.stock_out == 2
        assert alert_types_for(medicine) == [AlertType.STOCK_ENTRY]


@pytest.mark.django_db
class TestDeleteMedicine:
    """Tests for delete_medicine service."""

    def test_soft_delete_keeps_quantity(self, staff_user, medicine):
        deleted = delete_medicine(staff_user, medicine.pk)

        assert deleted.is_active is False
        assert deleted.quantity == 100
        assert Medicine.objects.filter(pk=medicine.pk).exists()

    def test_deleted_medicine_is_hidden(self, staff_user, medicine):
        delete_medicine(staff_user, medicine.pk)

        assert medicine not in list_medicines()
        assert medicine not in list_medicines(search="amoxicillin")
        with pytest.raises(MedicineNotFoundError):
            get_medicine(medicine.pk)

    def test_delete_logs_without_alert(self, staff_user, medicine):
        delete_medicine(staff_user, medicine.pk)

        entry = ActivityLog.objects.get(entity_id=str(medicine.pk))
        assert entry.action_type == ActionType.DELETE
        assert entry.old_data["is_active"] is True
        assert Alert.objects.count() == 0

    def test_delete_twice_is_not_found(self, staff_user, medicine):
        delete_medicine(staff_user, medicine.pk)

        with pytest.raises(MedicineNotFoundError):
            delete_medicine(staff_user, medicine.pk)


@pytest.mark.django_db
class TestSideEffectFailures:
    """A failing audit or alert write never undoes the stock change."""

    @patch.object(ActivityLog.objects, "create", side_effect=RuntimeError("audit down"))
    @patch.object(Alert.objects, "create", side_effect=RuntimeError("alerts down"))
    def test_create_commits_without_log_or_alerts(self, alert_create, log_create, staff_user):
        medicine = create_medicine(staff_user, **medicine_data(quantity=2))

        assert Medicine.objects.filter(pk=medicine.pk, quantity=2).exists()
        assert alert_create.called
        assert log_create.called
        assert Alert.objects.count() == 0
        assert ActivityLog.objects.count() == 0

    @patch.object(ActivityLog.objects, "create", side_effect=RuntimeError("audit down"))
    @patch.object(Alert.objects, "create", side_effect=RuntimeError("alerts down"))
    def test_restock_commits_without_log_or_alerts(self, alert_create, log_create, staff_user, medicine):
        updated = update_medicine(staff_user, medicine.pk, stock_to_add=25)

        medicine.refresh_from_db()
        assert updated.quantity == 125
        assert medicine.quantity == 125
        assert medicine.initial_stock == 125
        assert alert_create.called
        assert log_create.called

    @patch.object(ActivityLog.objects, "create", side_effect=RuntimeError("audit down"))
    @patch.object(Alert.objects, "create", side_effect=RuntimeError("alerts down"))
    def test_issue_commits_without_log_or_alerts(
        self, alert_create, log_create, staff_user, medicine, recipient
    ):
        issuance = issue_medicine(staff_user, medicine.pk, quantity=1, **recipient)

        medicine.refresh_from_db()
        assert medicine.quantity == 99
        assert Issuance.objects.filter(pk=issuance.pk).exists()
        assert alert_create.called
        assert log_create.called
