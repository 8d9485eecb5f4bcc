"""
Django Medstock Selectors - Public read-only API.

Query functions for inventory, issuances, activity and alerts. Everything
medicine-related is scoped to active records; issuance and activity history is
kept for soft-deleted medicines too.

Usage:
    from django_medstock.selectors import get_medicine, list_active_alerts
"""
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.contrib.auth import get_user_model
from django.db.models import Count, DecimalField, ExpressionWrapper, F, QuerySet, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from django_medstock.conf import expiry_window
from django_medstock.exceptions import (
    AlertNotFoundError,
    IssuanceNotFoundError,
    MedicineNotFoundError,
)
from django_medstock.models import ActivityLog, Alert, Issuance, Medicine


def _as_uuid(value, error_class):
    """Coerce an id to UUID, raising the not-found error for malformed ids."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise error_class(value)


STOCK_VALUE = ExpressionWrapper(
    F("quantity") * F("price"),
    output_field=DecimalField(max_digits=18, decimal_places=2),
)


# =============================================================================
# MEDICINE SELECTORS
# =============================================================================

def get_medicine(medicine_id) -> Medicine:
    """Get an active medicine by ID.

    Raises:
        MedicineNotFoundError: Missing, malformed ID, or soft-deleted
    """
    pk = _as_uuid(medicine_id, MedicineNotFoundError)
    medicine = Medicine.objects.active().filter(pk=pk).first()
    if medicine is None:
        raise MedicineNotFoundError(medicine_id)
    return medicine


def list_medicines(
    category: Optional[str] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    expiring: bool = False,
    now=None,
) -> QuerySet[Medicine]:
    """List active medicines with optional filters."""
    qs = Medicine.objects.active()
    if category:
        qs = qs.filter(category=category)
    if search:
        qs = qs.search(search)
    if low_stock:
        qs = qs.low_stock()
    if expiring:
        qs = qs.expiring_soon(now)
    return qs


def get_low_stock_medicines() -> QuerySet[Medicine]:
    return Medicine.objects.active().low_stock()


def get_expiring_medicines(now=None) -> QuerySet[Medicine]:
    return Medicine.objects.active().expiring_soon(now).order_by("expiry_date")


def get_expired_medicines(now=None) -> QuerySet[Medicine]:
    return Medicine.objects.active().expired(now).order_by("expiry_date")


def find_active_by_barcode(barcode: str, exclude_pk=None) -> Optional[Medicine]:
    """Active medicine holding a barcode, ignoring exclude_pk."""
    qs = Medicine.objects.active().with_barcode(barcode)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.first()


# =============================================================================
# ISSUANCE SELECTORS
# =============================================================================

def get_issuance(issuance_id) -> Issuance:
    """Get an issuance by ID (regardless of medicine state)."""
    pk = _as_uuid(issuance_id, IssuanceNotFoundError)
    issuance = Issuance.objects.select_related("medicine", "issued_by").filter(pk=pk).first()
    if issuance is None:
        raise IssuanceNotFoundError(issuance_id)
    return issuance


def list_issuances(
    medicine_id=None,
    recipient_type: Optional[str] = None,
    start=None,
    end=None,
) -> QuerySet[Issuance]:
    """List issuances, newest first. Includes soft-deleted medicines."""
    qs = Issuance.objects.select_related("medicine", "issued_by").issued_between(start, end)
    if medicine_id is not None:
        qs = qs.filter(medicine_id=_as_uuid(medicine_id, MedicineNotFoundError))
    if recipient_type:
        qs = qs.filter(recipient_type=recipient_type)
    return qs


# =============================================================================
# ACTIVITY SELECTORS
# =============================================================================

def list_activities(
    action_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    performed_by=None,
    start=None,
    end=None,
) -> QuerySet[ActivityLog]:
    """List activity log entries, newest first."""
    qs = ActivityLog.objects.select_related("performed_by")
    if action_type:
        qs = qs.filter(action_type=action_type)
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if performed_by is not None:
        qs = qs.filter(performed_by=performed_by)
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    return qs


def get_entity_history(entity_type: str, entity_id) -> QuerySet[ActivityLog]:
    """All activity recorded against one entity, oldest first."""
    return ActivityLog.objects.filter(
        entity_type=entity_type,
        entity_id=str(entity_id),
    ).order_by("created_at")


def get_recent_activities(limit: int = 10) -> QuerySet[ActivityLog]:
    return ActivityLog.objects.select_related("performed_by")[:limit]


# =============================================================================
# ALERT SELECTORS
# =============================================================================

def list_active_alerts(
    type: Optional[str] = None,
    severity: Optional[str] = None,
    is_read: Optional[bool] = None,
    now=None,
) -> QuerySet[Alert]:
    """List alerts that are neither dismissed nor past their TTL."""
    qs = Alert.objects.active(now).select_related("triggered_by")
    if type:
        qs = qs.filter(type=type)
    if severity:
        qs = qs.filter(severity=severity)
    if is_read is not None:
        qs = qs.filter(is_read=is_read)
    return qs


def get_alert(alert_id, now=None) -> Alert:
    """Get an active, unexpired alert.

    Raises:
        AlertNotFoundError: Missing, dismissed or past its TTL
    """
    pk = _as_uuid(alert_id, AlertNotFoundError)
    alert = Alert.objects.active(now).filter(pk=pk).first()
    if alert is None:
        raise AlertNotFoundError(alert_id)
    return alert


def unread_alert_count(now=None) -> int:
    return Alert.objects.active(now).unread().count()


# =============================================================================
# REPORTS
# =============================================================================

def _round_money(value) -> Decimal:
    return (value or Decimal("0")).quantize(Decimal("0.01"))


def dashboard_stats(now=None) -> dict:
    """Headline counts for the dashboard."""
    now = now or timezone.now()
    local_now = timezone.localtime(now)
    start_of_day = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)

    medicines = Medicine.objects.active()
    stock_value = medicines.aggregate(total=Sum(STOCK_VALUE))["total"]

    return {
        "total_medicines": medicines.count(),
        "total_users": get_user_model().objects.filter(is_active=True).count(),
        "low_stock_medicines": medicines.low_stock().count(),
        "expiring_medicines": medicines.expiring_soon(now).count(),
        "expired_medicines": medicines.expired(now).count(),
        "today_issuances": Issuance.objects.issued_between(
            start_of_day, start_of_day + timedelta(days=1) - timedelta(microseconds=1)
        ).count(),
        "monthly_issuances": Issuance.objects.filter(issued_at__gte=start_of_month).count(),
        "total_stock_value": _round_money(stock_value),
        "unread_alerts": unread_alert_count(now),
    }


def expiry_report(now=None) -> dict:
    """Active medicines bucketed by expiry.

    Buckets: expired, expiring within the warning window, and expiring in the
    following window (31-60 days with the default setting).
    """
    now = now or timezone.now()
    window = expiry_window()
    medicines = Medicine.objects.active().order_by("expiry_date")
    return {
        "expired": list(medicines.expired(now)),
        "expiring_soon": list(medicines.expiring_soon(now)),
        "expiring_later": list(
            medicines.filter(expiry_date__gt=now + window, expiry_date__lte=now + 2 * window)
        ),
        "generated_at": now,
    }


def issuance_summary(start=None, end=None, recipient_type: Optional[str] = None) -> dict:
    """Totals for issuances in a period, grouped by recipient type."""
    qs = list_issuances(recipient_type=recipient_type, start=start, end=end)
    issued_value = ExpressionWrapper(
        F("quantity_issued") * F("medicine__price"),
        output_field=DecimalField(max_digits=18, decimal_places=2),
    )
    totals = qs.aggregate(
        count=Count("id"),
        quantity=Sum("quantity_issued"),
        value=Sum(issued_value),
    )
    grouped = {
        row["recipient_type"]: {"count": row["count"], "quantity": row["quantity"]}
        for row in qs.order_by().values("recipient_type").annotate(
            count=Count("id"), quantity=Sum("quantity_issued")
        )
    }
    return {
        "total_issuances": totals["count"],
        "total_quantity": totals["quantity"] or 0,
        "total_value": _round_money(totals["value"]),
        "grouped_by_type": grouped,
        "period": {"start": start, "end": end},
    }


def category_distribution() -> list[dict]:
    """Count, quantity and value of active stock per category."""
    return list(
        Medicine.objects.active()
        .order_by()
        .values("category")
        .annotate(
            count=Count("id"),
            total_quantity=Sum("quantity"),
            total_value=Sum(STOCK_VALUE),
        )
        .order_by("-count", "category")
    )


def issuance_trends(days: int = 7, now=None) -> list[dict]:
    """Issuance count and quantity per day for the last `days` days."""
    now = now or timezone.now()
    return list(
        Issuance.objects.filter(issued_at__gte=now - timedelta(days=days))
        .order_by()
        .annotate(date=TruncDate("issued_at"))
        .values("date")
        .annotate(count=Count("id"), total_quantity=Sum("quantity_issued"))
        .order_by("date")
    )
