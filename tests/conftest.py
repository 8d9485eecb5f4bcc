"""Pytest configuration for django-medstock tests."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from django_medstock.models import Medicine, MedicineCategory, RecipientType


@pytest.fixture
def staff_user(db, django_user_model):
    """Create an administrator."""
    return django_user_model.objects.create_user(
        username="pharmacist",
        email="pharmacist@example.com",
        password="testpass123",
        first_name="Paula",
        last_name="Pharmacist",
        is_staff=True,
    )


@pytest.fixture
def user(db, django_user_model):
    """Create a regular (non-admin) user."""
    return django_user_model.objects.create_user(
        username="clerk",
        email="clerk@example.com",
        password="testpass123",
        first_name="Carl",
        last_name="Clerk",
    )


@pytest.fixture
def make_medicine(db):
    """Factory for medicines written straight to the database."""

    def _make(**overrides):
        data = {
            "name": "Amoxicillin 500mg",
            "category": MedicineCategory.ANTIBIOTICS,
            "quantity": 100,
            "min_quantity": 10,
            "price": Decimal("2.50"),
            "expiry_date": timezone.now() + timedelta(days=365),
            "supplier": "Acme Pharma",
            "batch_number": "B-001",
        }
        data.update(overrides)
        data.setdefault("initial_stock", data["quantity"])
        return Medicine.objects.create(**data)

    return _make


@pytest.fixture
def medicine(make_medicine):
    return make_medicine()


@pytest.fixture
def recipient():
    """Recipient details for issue_medicine."""
    return {
        "recipient_type": RecipientType.EMPLOYEE,
        "recipient_name": "Jane Doe",
        "recipient_id": "EMP-042",
        "prescribed_by": "Dr. Smith",
    }
