"""Django Medstock models.

Provides the four stores behind the stock-and-alert engine:
- Medicine: inventory record with derived low-stock / expiry state
- Issuance: append-only ledger of dispensing events
- ActivityLog: append-only audit trail of mutations
- Alert: operational alerts with read/dismiss state and a time-to-live

Users come from settings.AUTH_USER_MODEL. Actor references use SET_NULL plus a
display snapshot so removing a user never removes history.
"""
import json
import uuid

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from django_medstock.conf import alert_ttl, expiry_window
from django_medstock.exceptions import ImmutableRecordError


# =============================================================================
# Closed enumerations
# =============================================================================

class MedicineCategory(models.TextChoices):
    """Medicine categories."""

    ANTIBIOTICS = "Antibiotics", "Antibiotics"
    PAINKILLERS = "Painkillers", "Painkillers"
    SUPPLEMENTS = "Supplements", "Supplements"
    VACCINES = "Vaccines", "Vaccines"
    ANTISEPTICS = "Antiseptics", "Antiseptics"
    CARDIOVASCULAR = "Cardiovascular", "Cardiovascular"
    RESPIRATORY = "Respiratory", "Respiratory"
    DIGESTIVE = "Digestive", "Digestive"
    NEUROLOGICAL = "Neurological", "Neurological"
    OTHER = "Other", "Other"


class RecipientType(models.TextChoices):
    """Who a medicine was issued to."""

    GIZ_GUEST = "GIZ Guest", "GIZ Guest"
    AZI_GUEST = "AZI Guest", "AZI Guest"
    EMPLOYEE = "Employee", "Employee"


class AlertType(models.TextChoices):
    """Alert causes."""

    USER_ADDED = "user_added", "User Added"
    USER_UPDATED = "user_updated", "User Updated"
    USER_DELETED = "user_deleted", "User Deleted"
    MEDICINE_ADDED = "medicine_added", "Medicine Added"
    STOCK_ENTRY = "stock_entry", "Stock Entry"
    STOCK_LOW = "stock_low", "Low Stock"
    MEDICINE_EXPIRING = "medicine_expiring", "Medicine Expiring"
    MEDICINE_EXPIRED = "medicine_expired", "Medicine Expired"
    MEDICINE_ISSUED = "medicine_issued", "Medicine Issued"
    SYSTEM = "system", "System"


class AlertSeverity(models.TextChoices):
    """Alert severity levels."""

    INFO = "info", "Info"
    SUCCESS = "success", "Success"
    WARNING = "warning", "Warning"
    DANGER = "danger", "Danger"


class ActionType(models.TextChoices):
    """Activity log action kinds."""

    ADD = "Add", "Add"
    UPDATE = "Update", "Update"
    DELETE = "Delete", "Delete"
    ISSUE = "Issue", "Issue"
    LOGIN = "Login", "Login"
    LOGOUT = "Logout", "Logout"
    STOCK_IN = "Stock In", "Stock In"
    STOCK_OUT = "Stock Out", "Stock Out"


class EntityType(models.TextChoices):
    """Entity kinds referenced by logs and alerts."""

    MEDICINE = "Medicine", "Medicine"
    USER = "User", "User"
    ISSUANCE = "Issuance", "Issuance"
    SYSTEM = "System", "System"


class ExpiryStatus(models.TextChoices):
    """Derived expiry classification. Never stored."""

    OK = "ok", "OK"
    EXPIRING_SOON = "expiring_soon", "Expiring Soon"
    EXPIRED = "expired", "Expired"


def classify_expiry(expiry_date, now=None) -> str:
    """Classify an expiry date relative to now.

    expired:        expiry_date <= now
    expiring_soon:  now < expiry_date <= now + expiry window
    ok:             otherwise

    The three outcomes are mutually exclusive.
    """
    now = now or timezone.now()
    if expiry_date <= now:
        return ExpiryStatus.EXPIRED
    if expiry_date <= now + expiry_window():
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.OK


def default_alert_expiry():
    """Default Alert.expires_at: creation time plus the alert TTL."""
    return timezone.now() + alert_ttl()


class AppendOnlyMixin:
    """Reject updates and deletes on rows that already exist."""

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(self)
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise ImmutableRecordError(self)


# =============================================================================
# Medicine - Inventory Record Store
# =============================================================================

class MedicineQuerySet(models.QuerySet):
    """Custom queryset for Medicine.

    active() is the single definition of "active scope". Every listing,
    search and uniqueness check starts from it.
    """

    def active(self):
        """Return only active (not soft-deleted) medicines."""
        return self.filter(is_active=True)

    def low_stock(self):
        """Return medicines at or below their minimum quantity."""
        return self.filter(quantity__lte=models.F("min_quantity"))

    def expiring_soon(self, now=None):
        """Return medicines expiring within the warning window."""
        now = now or timezone.now()
        return self.filter(expiry_date__gt=now, expiry_date__lte=now + expiry_window())

    def expired(self, now=None):
        """Return medicines at or past their expiry date."""
        now = now or timezone.now()
        return self.filter(expiry_date__lte=now)

    def search(self, term: str):
        """Case-insensitive search by name, supplier or batch number."""
        return self.filter(
            models.Q(name__icontains=term)
            | models.Q(supplier__icontains=term)
            | models.Q(batch_number__icontains=term)
        )

    def with_barcode(self, barcode: str):
        return self.filter(barcode=barcode)


class Medicine(models.Model):
    """Medicine stock record.

    quantity is on-hand stock. initial_stock is everything ever received
    (set at creation, raised only by restock), so stock_out is the cumulative
    amount dispensed. Restock raises both by the same delta; issuance lowers
    quantity only.

    Soft delete flips is_active. Inactive records are kept for history and are
    excluded from active-scope queries.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    barcode = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Unique among active medicines",
    )
    category = models.CharField(max_length=32, choices=MedicineCategory.choices)

    quantity = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="On-hand stock",
    )
    initial_stock = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Total stock received (creation quantity plus restocks)",
    )
    min_quantity = models.PositiveIntegerField(
        default=10,
        validators=[MinValueValidator(1)],
        help_text="Low-stock threshold (inclusive)",
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    expiry_date = models.DateTimeField(db_index=True)

    supplier = models.CharField(max_length=200, blank=True, default="")
    batch_number = models.CharField(max_length=100, blank=True, default="")
    description = models.CharField(max_length=500, blank=True, default="")

    is_active = models.BooleanField(default=True, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="medstock_medicines_created",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="medstock_medicines_updated",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MedicineQuerySet.as_manager()

    class Meta:
        app_label = "django_medstock"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name", "category"], name="medstock_med_name_cat_idx"),
            models.Index(fields=["quantity", "min_quantity"], name="medstock_med_stock_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["barcode"],
                condition=models.Q(is_active=True, barcode__isnull=False),
                name="medstock_unique_active_barcode",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__lte=models.F("initial_stock")),
                name="medstock_quantity_within_initial_stock",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.quantity} on hand)"

    @property
    def stock_out(self) -> int:
        """Cumulative quantity dispensed since initial stocking."""
        return self.initial_stock - self.quantity

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    def expiry_status(self, now=None) -> str:
        return classify_expiry(self.expiry_date, now)

    @property
    def is_expired(self) -> bool:
        return self.expiry_status() == ExpiryStatus.EXPIRED

    @property
    def is_expiring_soon(self) -> bool:
        return self.expiry_status() == ExpiryStatus.EXPIRING_SOON

    def snapshot(self) -> dict:
        """JSON-serializable view of the stored fields, for audit payloads."""
        data = {}
        for field in self._meta.concrete_fields:
            value = field.value_from_object(self)
            data[field.attname] = value
        data["stock_out"] = self.stock_out
        # Round-trip so Decimal/datetime/UUID become the same strings the
        # JSONField would store.
        return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


# =============================================================================
# Issuance - append-only dispensing ledger
# =============================================================================

class IssuanceQuerySet(models.QuerySet):
    """Custom queryset for Issuance."""

    def for_medicine(self, medicine):
        return self.filter(medicine=medicine)

    def issued_between(self, start=None, end=None):
        qs = self
        if start:
            qs = qs.filter(issued_at__gte=start)
        if end:
            qs = qs.filter(issued_at__lte=end)
        return qs


class Issuance(AppendOnlyMixin, models.Model):
    """Immutable record of medicine dispensed to a recipient.

    Created only after the stock decrement succeeded, in the same transaction.
    It is the only witness that on-hand quantity went down.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    medicine = models.ForeignKey(
        Medicine,
        on_delete=models.PROTECT,
        related_name="issuances",
    )
    recipient_type = models.CharField(max_length=20, choices=RecipientType.choices)
    recipient_name = models.CharField(max_length=200)
    recipient_id = models.CharField(max_length=100, db_index=True)
    quantity_issued = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    prescribed_by = models.CharField(max_length=200)
    notes = models.CharField(max_length=500, blank=True, default="")

    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="medstock_issuances",
    )
    issued_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = IssuanceQuerySet.as_manager()

    class Meta:
        app_label = "django_medstock"
        ordering = ["-issued_at"]
        indexes = [
            models.Index(fields=["medicine", "-issued_at"], name="medstock_iss_med_idx"),
            models.Index(fields=["recipient_type", "-issued_at"], name="medstock_iss_recip_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_issued__gte=1),
                name="medstock_issuance_quantity_positive",
            ),
        ]

    def __str__(self):
        return f"{self.quantity_issued} x {self.medicine_id} to {self.recipient_name}"


# =============================================================================
# ActivityLog - append-only audit trail
# =============================================================================

class ActivityLog(AppendOnlyMixin, models.Model):
    """Immutable audit entry: who did what to which entity, with snapshots."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    action_type = models.CharField(max_length=20, choices=ActionType.choices)
    entity_type = models.CharField(max_length=20, choices=EntityType.choices)
    entity_id = models.CharField(
        max_length=64,
        help_text="Primary key of the affected entity, as string",
    )

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="medstock_activity_logs",
    )
    performed_by_display = models.CharField(
        max_length=200,
        blank=True,
        help_text="Snapshot of actor identity at time of action",
    )
    description = models.CharField(max_length=500)

    old_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        app_label = "django_medstock"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["performed_by", "-created_at"], name="medstock_log_actor_idx"),
            models.Index(fields=["action_type", "-created_at"], name="medstock_log_action_idx"),
            models.Index(fields=["entity_type", "entity_id"], name="medstock_log_entity_idx"),
        ]

    def __str__(self):
        return f"{self.action_type} {self.entity_type}:{self.entity_id}"


# =============================================================================
# Alert - Alert Store
# =============================================================================

class AlertQuerySet(models.QuerySet):
    """Custom queryset for Alert."""

    def active(self, now=None):
        """Return alerts that are not dismissed and not past their TTL."""
        now = now or timezone.now()
        return self.filter(is_active=True, expires_at__gt=now)

    def unread(self):
        return self.filter(is_read=False)

    def expired(self, now=None):
        """Return alerts whose TTL has passed (purge candidates)."""
        now = now or timezone.now()
        return self.filter(expires_at__lte=now)


class Alert(models.Model):
    """Operational alert produced by the alert derivation engine.

    Only is_read and is_active change after creation. Once expires_at passes
    the alert is excluded from every read and removed by purge_expired_alerts.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    type = models.CharField(max_length=32, choices=AlertType.choices)
    title = models.CharField(max_length=200)
    message = models.CharField(max_length=500)
    severity = models.CharField(
        max_length=10,
        choices=AlertSeverity.choices,
        default=AlertSeverity.INFO,
    )
    entity_type = models.CharField(max_length=20, choices=EntityType.choices)
    entity_id = models.CharField(max_length=64)

    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="medstock_alerts",
    )
    is_read = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(default=default_alert_expiry, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AlertQuerySet.as_manager()

    class Meta:
        app_label = "django_medstock"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_read", "is_active", "-created_at"], name="medstock_alert_state_idx"),
            models.Index(fields=["type", "-created_at"], name="medstock_alert_type_idx"),
            models.Index(fields=["triggered_by"], name="medstock_alert_actor_idx"),
        ]

    def __str__(self):
        return f"[{self.severity}] {self.title}"
