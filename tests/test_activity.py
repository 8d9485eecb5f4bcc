"""Tests for activity logging."""
import logging

import pytest
from django.test import RequestFactory

from django_medstock.activity import RequestOrigin, actor_display, log_activity
from django_medstock.models import ActionType, ActivityLog, EntityType


class TestRequestOrigin:
    """Extracting client metadata from a request."""

    def test_uses_first_forwarded_address(self):
        request = RequestFactory().get(
            "/",
            HTTP_X_FORWARDED_FOR="203.0.113.5, 10.0.0.1",
            HTTP_USER_AGENT="Mozilla/5.0",
        )

        origin = RequestOrigin.from_request(request)

        assert origin.ip_address == "203.0.113.5"
        assert origin.user_agent == "Mozilla/5.0"

    def test_falls_back_to_remote_addr(self):
        request = RequestFactory().get("/", REMOTE_ADDR="192.0.2.10")

        assert RequestOrigin.from_request(request).ip_address == "192.0.2.10"

    def test_truncates_user_agent(self):
        request = RequestFactory().get("/", HTTP_USER_AGENT="x" * 800)

        assert len(RequestOrigin.from_request(request).user_agent) == 500

    def test_no_request(self):
        origin = RequestOrigin.from_request(None)

        assert origin.ip_address is None
        assert origin.user_agent == ""


@pytest.mark.django_db
class TestActorDisplay:
    """Display snapshot for the acting user."""

    def test_prefers_full_name(self, staff_user):
        assert actor_display(staff_user) == "Paula Pharmacist"

    def test_falls_back_to_email(self, django_user_model):
        actor = django_user_model.objects.create_user(username="nofull", email="nf@example.com")
        assert actor_display(actor) == "nf@example.com"

    def test_falls_back_to_username(self, django_user_model):
        actor = django_user_model.objects.create_user(username="bare")
        assert actor_display(actor) == "bare"

    def test_system_action(self):
        assert actor_display(None) == ""


@pytest.mark.django_db
class TestLogActivity:
    """Best-effort audit writes."""

    def test_creates_entry_with_snapshots_and_origin(self, staff_user, medicine):
        origin = RequestOrigin(ip_address="198.51.100.7", user_agent="pytest")

        result = log_activity(
            ActionType.UPDATE,
            EntityType.MEDICINE,
            medicine.pk,
            staff_user,
            "Updated medicine: Amoxicillin 500mg",
            old_data={"name": "Amoxicillin"},
            new_data={"name": "Amoxicillin 500mg"},
            origin=origin,
        )

        assert result.success is True
        entry = ActivityLog.objects.get(pk=result.entry.pk)
        assert entry.entity_id == str(medicine.pk)
        assert entry.performed_by == staff_user
        assert entry.performed_by_display == "Paula Pharmacist"
        assert entry.old_data == {"name": "Amoxicillin"}
        assert entry.new_data == {"name": "Amoxicillin 500mg"}
        assert entry.ip_address == "198.51.100.7"
        assert entry.user_agent == "pytest"

    def test_truncates_description(self, staff_user):
        result = log_activity(ActionType.LOGIN, EntityType.USER, staff_user.pk, staff_user, "d" * 600)

        assert len(result.entry.description) == 500

    def test_failure_is_reported_not_raised(self, staff_user, caplog):
        with caplog.at_level(logging.WARNING, logger="django_medstock.activity"):
            result = log_activity(ActionType.ADD, None, "x", staff_user, "Broken entry")

        assert result.success is False
        assert result.error
        assert "Failed to log Add activity" in caplog.text
        assert ActivityLog.objects.count() == 0
