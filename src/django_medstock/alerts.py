"""Alert derivation engine.

Turns domain events into Alert rows in two steps:

1. Derivation (pure): inspect the post-mutation state and return AlertCause
   objects. No I/O; "now" is always an explicit argument.
2. Emission (best-effort): persist each cause as one Alert. Failures are
   logged and returned as EmitResult, never raised.

Each cause is a frozen dataclass implementing describe(). AlertCause is an
ABC, so a cause without describe() cannot be instantiated, and tests check
that every AlertType is produced by some cause.

No deduplication happens here: every qualifying mutation re-emits its
stock_low / medicine_expiring / medicine_expired alerts.

Usage:
    from django_medstock.alerts import emit_all, issuance_causes

    emit_all(issuance_causes(issuance, medicine, timezone.now()), actor)
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from django.db import transaction

from django_medstock.models import (
    Alert,
    AlertSeverity,
    AlertType,
    EntityType,
    ExpiryStatus,
    classify_expiry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertSpec:
    """Everything needed to persist one Alert."""

    type: str
    title: str
    message: str
    severity: str
    entity_type: str
    entity_id: str


class AlertCause(ABC):
    """A reason to raise an alert. Subclasses map to exactly one AlertType."""

    @abstractmethod
    def describe(self) -> AlertSpec:
        """Return the alert type, title, message and severity for this cause."""
        raise NotImplementedError


# =============================================================================
# User lifecycle causes
# =============================================================================

@dataclass(frozen=True)
class UserAdded(AlertCause):
    user_id: Any
    name: str

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.USER_ADDED,
            title="New User Added",
            message=f'New user "{self.name}" has been added to the system',
            severity=AlertSeverity.SUCCESS,
            entity_type=EntityType.USER,
            entity_id=str(self.user_id),
        )


@dataclass(frozen=True)
class UserUpdated(AlertCause):
    user_id: Any
    name: str

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.USER_UPDATED,
            title="User Updated",
            message=f'User "{self.name}" details have been updated',
            severity=AlertSeverity.INFO,
            entity_type=EntityType.USER,
            entity_id=str(self.user_id),
        )


@dataclass(frozen=True)
class UserDeleted(AlertCause):
    user_id: Any
    name: str

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.USER_DELETED,
            title="User Deleted",
            message=f'User "{self.name}" has been removed from the system',
            severity=AlertSeverity.WARNING,
            entity_type=EntityType.USER,
            entity_id=str(self.user_id),
        )


# =============================================================================
# Medicine causes
# =============================================================================

@dataclass(frozen=True)
class MedicineAdded(AlertCause):
    medicine_id: Any
    name: str

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.MEDICINE_ADDED,
            title="New Medicine Added",
            message=f'New medicine "{self.name}" has been added to inventory',
            severity=AlertSeverity.SUCCESS,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class StockEntry(AlertCause):
    medicine_id: Any
    name: str
    quantity: int

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.STOCK_ENTRY,
            title="Stock Entry Recorded",
            message=(
                f'Stock entry for "{self.name}" has been recorded. '
                f"New quantity: {self.quantity}"
            ),
            severity=AlertSeverity.INFO,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class LowStock(AlertCause):
    medicine_id: Any
    name: str
    quantity: int

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.STOCK_LOW,
            title="Low Stock Alert",
            message=f'"{self.name}" is running low. Current stock: {self.quantity}',
            severity=AlertSeverity.WARNING,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class MedicineExpiring(AlertCause):
    medicine_id: Any
    name: str
    expiry_date: datetime

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.MEDICINE_EXPIRING,
            title="Medicine Expiring Soon",
            message=f'"{self.name}" will expire on {self.expiry_date:%a %b %d %Y}',
            severity=AlertSeverity.WARNING,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class MedicineExpired(AlertCause):
    medicine_id: Any
    name: str
    expiry_date: datetime

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.MEDICINE_EXPIRED,
            title="Medicine Expired",
            message=f'"{self.name}" has expired and should be removed from inventory',
            severity=AlertSeverity.DANGER,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class MedicineIssued(AlertCause):
    medicine_id: Any
    name: str
    quantity: int
    recipient: str

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.MEDICINE_ISSUED,
            title="Medicine Issued",
            message=f'{self.quantity} units of "{self.name}" issued to {self.recipient}',
            severity=AlertSeverity.INFO,
            entity_type=EntityType.MEDICINE,
            entity_id=str(self.medicine_id),
        )


@dataclass(frozen=True)
class SystemNotice(AlertCause):
    """Free-form operational notice (maintenance, imports, etc.)."""

    title: str
    message: str
    severity: str = AlertSeverity.INFO
    entity_id: Any = ""

    def describe(self) -> AlertSpec:
        return AlertSpec(
            type=AlertType.SYSTEM,
            title=self.title,
            message=self.message,
            severity=self.severity,
            entity_type=EntityType.SYSTEM,
            entity_id=str(self.entity_id),
        )


# =============================================================================
# Derivation (pure)
# =============================================================================

def stock_check_causes(medicine, now: datetime) -> list[AlertCause]:
    """Evaluate the stock-check policy against the current record state.

    Three independent conditions, one cause per true condition:
    - quantity <= min_quantity             -> LowStock
    - now < expiry_date <= now + window    -> MedicineExpiring
    - expiry_date <= now                   -> MedicineExpired

    The expiry conditions share classify_expiry(), so they are mutually
    exclusive; low stock combines freely with either.
    """
    causes: list[AlertCause] = []

    if medicine.quantity <= medicine.min_quantity:
        causes.append(LowStock(medicine.pk, medicine.name, medicine.quantity))

    status = classify_expiry(medicine.expiry_date, now)
    if status == ExpiryStatus.EXPIRING_SOON:
        causes.append(MedicineExpiring(medicine.pk, medicine.name, medicine.expiry_date))
    elif status == ExpiryStatus.EXPIRED:
        causes.append(MedicineExpired(medicine.pk, medicine.name, medicine.expiry_date))

    return causes


def medicine_added_causes(medicine, now: datetime) -> list[AlertCause]:
    """MedicineAdded, then the stock checks on the new record."""
    return [MedicineAdded(medicine.pk, medicine.name)] + stock_check_causes(medicine, now)


def stock_update_causes(medicine, previous_quantity: int, now: datetime) -> list[AlertCause]:
    """StockEntry when on-hand quantity rose, then the stock checks.

    StockEntry comes first so a restock that still leaves the item below its
    threshold surfaces both alerts.
    """
    causes: list[AlertCause] = []
    if medicine.quantity > previous_quantity:
        causes.append(StockEntry(medicine.pk, medicine.name, medicine.quantity))
    return causes + stock_check_causes(medicine, now)


def issuance_causes(issuance, medicine, now: datetime) -> list[AlertCause]:
    """MedicineIssued, then the stock checks on the post-deduction record."""
    issued = MedicineIssued(
        medicine.pk,
        medicine.name,
        issuance.quantity_issued,
        issuance.recipient_name,
    )
    return [issued] + stock_check_causes(medicine, now)


USER_CAUSES = {
    "added": UserAdded,
    "updated": UserUpdated,
    "deleted": UserDeleted,
}


def user_display_name(user) -> str:
    return user.get_full_name() or user.get_username()


def user_causes(action: str, user, user_id: Any = None) -> list[AlertCause]:
    """Exactly one user lifecycle cause.

    Args:
        action: 'added', 'updated' or 'deleted'
        user: The user the event is about
        user_id: Overrides user.pk (a deleted user no longer has one)

    Raises:
        ValueError: Unknown action
    """
    try:
        cause_class = USER_CAUSES[action]
    except KeyError:
        raise ValueError(f"Unknown user action: {action!r}")
    return [cause_class(user_id if user_id is not None else user.pk, user_display_name(user))]


# =============================================================================
# Emission (best-effort)
# =============================================================================

@dataclass
class EmitResult:
    """Outcome of persisting one alert."""

    success: bool
    alert_type: str
    alert: Optional[Alert] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, alert: Alert) -> "EmitResult":
        return cls(success=True, alert_type=alert.type, alert=alert)

    @classmethod
    def fail(cls, alert_type: str, error: str) -> "EmitResult":
        return cls(success=False, alert_type=alert_type, error=error)


def emit(cause: AlertCause, triggered_by=None) -> EmitResult:
    """Persist one alert for a cause. Never raises.

    The insert runs in its own savepoint so a failure cannot break an
    enclosing transaction.
    """
    try:
        described = cause.describe()
    except Exception as e:
        logger.warning("Failed to describe %s: %s", type(cause).__name__, e)
        return EmitResult.fail(type(cause).__name__, str(e))

    try:
        with transaction.atomic():
            alert = Alert.objects.create(
                type=described.type,
                title=described.title[:200],
                message=described.message[:500],
                severity=described.severity,
                entity_type=described.entity_type,
                entity_id=described.entity_id,
                triggered_by=triggered_by,
            )
    except Exception as e:
        logger.warning(
            "Failed to create %s alert for %s %s: %s",
            described.type, described.entity_type, described.entity_id, e,
        )
        return EmitResult.fail(described.type, str(e))
    return EmitResult.ok(alert)


def emit_all(causes: list[AlertCause], triggered_by=None) -> list[EmitResult]:
    """Emit causes in order. A failed emission does not stop the rest."""
    return [emit(cause, triggered_by) for cause in causes]
