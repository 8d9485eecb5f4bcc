"""Medstock services: the write side of the stock-and-alert engine.

Every mutation follows the same order:

1. Validate input (InvalidInputError), before anything is written
2. Load the target (NotFoundError)
3. Check business rules (BusinessRuleError)
4. Apply the primary write inside transaction.atomic()
5. Append the activity log entry (best-effort)
6. Derive alerts from the post-mutation state and emit them (best-effort)

Steps 5 and 6 never raise. Quantity only changes through atomic F()
expressions, so a stale in-memory Medicine can never overwrite or oversell.

Usage:
    from django_medstock.services import issue_medicine

    issuance = issue_medicine(
        request.user, medicine_id,
        quantity=2,
        recipient_type=RecipientType.EMPLOYEE,
        recipient_name="Jane Doe",
        recipient_id="EMP-042",
        prescribed_by="Dr. Smith",
        origin=RequestOrigin.from_request(request),
    )
"""
import uuid
from typing import Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from django_medstock.activity import RequestOrigin, log_activity
from django_medstock.alerts import (
    emit_all,
    issuance_causes,
    medicine_added_causes,
    stock_update_causes,
    user_causes,
    user_display_name,
)
from django_medstock.conf import get_default_min_quantity
from django_medstock.exceptions import (
    DuplicateBarcodeError,
    DuplicateEmailError,
    ExpiredMedicineError,
    InsufficientStockError,
    InvalidInputError,
    LastAdministratorError,
    MedicineNotFoundError,
    SelfDeletionError,
    UserNotFoundError,
)
from django_medstock.models import (
    ActionType,
    Alert,
    EntityType,
    ExpiryStatus,
    Issuance,
    Medicine,
    classify_expiry,
)
from django_medstock.selectors import find_active_by_barcode, get_alert, get_medicine

MEDICINE_EDITABLE_FIELDS = frozenset({
    "name",
    "category",
    "price",
    "expiry_date",
    "supplier",
    "batch_number",
    "barcode",
    "description",
    "min_quantity",
})

USER_EDITABLE_FIELDS = frozenset({
    "first_name",
    "last_name",
    "email",
    "is_active",
    "is_admin",
})


def _full_clean(instance, exclude=None):
    """Run model validation, re-raising as InvalidInputError.

    DB constraints are left to the explicit business-rule checks.
    """
    try:
        instance.full_clean(exclude=exclude, validate_constraints=False)
    except ValidationError as e:
        raise InvalidInputError(e.message_dict)


def _normalize_barcode(barcode) -> Optional[str]:
    if barcode is None:
        return None
    barcode = str(barcode).strip()
    return barcode or None


def _check_barcode_available(barcode, exclude_pk=None):
    if barcode and find_active_by_barcode(barcode, exclude_pk=exclude_pk):
        raise DuplicateBarcodeError(barcode)


def _parse_stock_delta(stock_to_add) -> int:
    if isinstance(stock_to_add, bool):
        raise InvalidInputError({"stock_to_add": ["Must be a whole number"]})
    try:
        delta = int(stock_to_add or 0)
    except (TypeError, ValueError):
        raise InvalidInputError({"stock_to_add": ["Must be a whole number"]})
    if delta < 0:
        raise InvalidInputError({"stock_to_add": ["Cannot be negative"]})
    return delta


# =============================================================================
# MEDICINES
# =============================================================================

def create_medicine(
    actor,
    *,
    name: str,
    category: str,
    quantity: int,
    price,
    expiry_date,
    min_quantity: Optional[int] = None,
    barcode: Optional[str] = None,
    supplier: str = "",
    batch_number: str = "",
    description: str = "",
    origin: Optional[RequestOrigin] = None,
) -> Medicine:
    """Create a medicine. initial_stock starts equal to quantity.

    Raises:
        InvalidInputError: A field fails validation
        DuplicateBarcodeError: An active medicine already has the barcode
    """
    medicine = Medicine(
        name=name,
        category=category,
        quantity=quantity,
        initial_stock=quantity,
        min_quantity=get_default_min_quantity() if min_quantity is None else min_quantity,
        price=price,
        expiry_date=expiry_date,
        barcode=_normalize_barcode(barcode),
        supplier=supplier,
        batch_number=batch_number,
        description=description,
        created_by=actor,
        updated_by=actor,
    )
    _full_clean(medicine)
    _check_barcode_available(medicine.barcode)

    try:
        with transaction.atomic():
            medicine.save()
    except IntegrityError:
        if medicine.barcode:
            raise DuplicateBarcodeError(medicine.barcode)
        raise
    medicine.refresh_from_db()

    now = timezone.now()
    log_activity(
        ActionType.ADD,
        EntityType.MEDICINE,
        medicine.pk,
        actor,
        f"Added new medicine: {medicine.name}",
        new_data=medicine.snapshot(),
        origin=origin,
    )
    emit_all(medicine_added_causes(medicine, now), actor)
    return medicine


def update_medicine(
    actor,
    medicine_id,
    *,
    stock_to_add=0,
    origin: Optional[RequestOrigin] = None,
    **changes,
) -> Medicine:
    """Edit descriptive fields and/or restock a medicine.

    Restock adds stock_to_add to both quantity and initial_stock in one
    atomic UPDATE, so concurrent issuances are never lost. Edited fields
    are saved with update_fields and never touch quantity.

    Args:
        actor: Acting user
        medicine_id: Medicine to update
        stock_to_add: Units received (>= 0)
        origin: Request origin metadata
        **changes: Any of MEDICINE_EDITABLE_FIELDS

    Raises:
        InvalidInputError: Unknown/immutable field, bad value, negative stock
        MedicineNotFoundError: Missing or soft-deleted
        DuplicateBarcodeError: Barcode used by another active medicine
    """
    unknown = sorted(set(changes) - MEDICINE_EDITABLE_FIELDS)
    if unknown:
        raise InvalidInputError({field: ["This field cannot be edited"] for field in unknown})
    delta = _parse_stock_delta(stock_to_add)

    medicine = get_medicine(medicine_id)
    old_data = medicine.snapshot()
    old_barcode = medicine.barcode

    if "barcode" in changes:
        changes["barcode"] = _normalize_barcode(changes["barcode"])
    for field, value in changes.items():
        setattr(medicine, field, value)
    _full_clean(medicine)
    if medicine.barcode != old_barcode:
        _check_barcode_available(medicine.barcode, exclude_pk=medicine.pk)

    now = timezone.now()
    try:
        with transaction.atomic():
            if delta:
                restocked = Medicine.objects.active().filter(pk=medicine.pk).update(
                    quantity=F("quantity") + delta,
                    initial_stock=F("initial_stock") + delta,
                    updated_by=actor,
                    updated_at=now,
                )
                if not restocked:
                    raise MedicineNotFoundError(medicine_id)
            medicine.updated_by = actor
            medicine.save(update_fields=list(changes) + ["updated_by", "updated_at"])
            medicine.refresh_from_db()
    except IntegrityError:
        if medicine.barcode:
            raise DuplicateBarcodeError(medicine.barcode)
        raise

    if delta and not changes:
        action = ActionType.STOCK_IN
        description = f"Added {delta} units of {medicine.name}"
    else:
        action = ActionType.UPDATE
        description = f"Updated medicine: {medicine.name}"
    log_activity(
        action,
        EntityType.MEDICINE,
        medicine.pk,
        actor,
        description,
        old_data=old_data,
        new_data=medicine.snapshot(),
        origin=origin,
    )
    emit_all(stock_update_causes(medicine, medicine.quantity - delta, now), actor)
    return medicine


def issue_medicine(
    actor,
    medicine_id,
    *,
    quantity: int,
    recipient_type: str,
    recipient_name: str,
    recipient_id: str,
    prescribed_by: str,
    notes: str = "",
    origin: Optional[RequestOrigin] = None,
) -> Issuance:
    """Dispense stock to a recipient.

    The decrement is one conditional UPDATE guarded by active, unexpired and
    sufficient stock. Two concurrent issuances can never both succeed against
    the same units. The Issuance row is written in the same transaction,
    only after the decrement matched.

    Raises:
        InvalidInputError: Bad quantity or recipient details
        MedicineNotFoundError: Missing or soft-deleted
        InsufficientStockError: quantity exceeds on-hand stock
        ExpiredMedicineError: Medicine is at or past its expiry date
    """
    issuance = Issuance(
        recipient_type=recipient_type,
        recipient_name=recipient_name,
        recipient_id=recipient_id,
        quantity_issued=quantity,
        prescribed_by=prescribed_by,
        notes=notes,
        issued_by=actor,
    )
    _full_clean(issuance, exclude=["medicine", "issued_by"])
    requested = issuance.quantity_issued
    pk = _medicine_pk(medicine_id)

    now = timezone.now()
    with transaction.atomic():
        decremented = Medicine.objects.active().filter(
            pk=pk,
            expiry_date__gt=now,
            quantity__gte=requested,
        ).update(
            quantity=F("quantity") - requested,
            updated_by=actor,
            updated_at=now,
        )
        if not decremented:
            _raise_issue_rejection(medicine_id, pk, requested, now)

        medicine = Medicine.objects.get(pk=pk)
        issuance.medicine = medicine
        issuance.issued_at = now
        issuance.save()

    log_activity(
        ActionType.ISSUE,
        EntityType.MEDICINE,
        medicine.pk,
        actor,
        f"Issued {requested} units of {medicine.name} to {issuance.recipient_name} "
        f"({issuance.recipient_type})",
        old_data={"quantity": medicine.quantity + requested},
        new_data={"quantity": medicine.quantity, "issuance_id": str(issuance.pk)},
        origin=origin,
    )
    emit_all(issuance_causes(issuance, medicine, now), actor)
    return issuance


def _medicine_pk(medicine_id) -> uuid.UUID:
    if isinstance(medicine_id, uuid.UUID):
        return medicine_id
    try:
        return uuid.UUID(str(medicine_id))
    except ValueError:
        raise MedicineNotFoundError(medicine_id)


def _raise_issue_rejection(medicine_id, pk, requested: int, now):
    """Explain why the conditional decrement matched no row."""
    medicine = Medicine.objects.active().filter(pk=pk).first()
    if medicine is None:
        raise MedicineNotFoundError(medicine_id)
    if medicine.quantity < requested:
        raise InsufficientStockError(medicine.quantity, requested)
    if classify_expiry(medicine.expiry_date, now) == ExpiryStatus.EXPIRED:
        raise ExpiredMedicineError(medicine.pk, medicine.expiry_date)
    # Stock changed between the UPDATE and this read.
    raise InsufficientStockError(medicine.quantity, requested)


def delete_medicine(actor, medicine_id, *, origin: Optional[RequestOrigin] = None) -> Medicine:
    """Soft delete a medicine. Its issuances and logs stay retrievable."""
    medicine = get_medicine(medicine_id)
    old_data = medicine.snapshot()

    now = timezone.now()
    with transaction.atomic():
        deleted = Medicine.objects.active().filter(pk=medicine.pk).update(
            is_active=False,
            updated_by=actor,
            updated_at=now,
        )
        if not deleted:
            raise MedicineNotFoundError(medicine_id)
    medicine.refresh_from_db()

    log_activity(
        ActionType.DELETE,
        EntityType.MEDICINE,
        medicine.pk,
        actor,
        f"Deleted medicine: {medicine.name}",
        old_data=old_data,
        origin=origin,
    )
    return medicine


# =============================================================================
# USERS
# =============================================================================

def _get_user(user_id):
    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, ValidationError):
        raise UserNotFoundError(user_id)


def _check_email_available(email: str, exclude_pk=None):
    qs = get_user_model().objects.filter(email__iexact=email)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise DuplicateEmailError(email)


def _other_admins_exist(user) -> bool:
    return get_user_model().objects.filter(
        is_staff=True,
        is_active=True,
    ).exclude(pk=user.pk).exists()


def user_snapshot(user) -> dict:
    """Audit view of a user. Never includes the password hash."""
    return {
        "id": str(user.pk),
        "username": user.get_username(),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_active": user.is_active,
        "is_admin": user.is_staff,
        "date_joined": user.date_joined.isoformat() if user.date_joined else None,
    }


def add_user(
    actor,
    *,
    username: str,
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    is_admin: bool = False,
    origin: Optional[RequestOrigin] = None,
):
    """Create a user. Administrators are staff users.

    Raises:
        InvalidInputError: Missing email/password or invalid field
        DuplicateEmailError: Email already registered
    """
    User = get_user_model()
    errors = {}
    if not email:
        errors["email"] = ["This field cannot be blank."]
    if not password:
        errors["password"] = ["This field cannot be blank."]
    if errors:
        raise InvalidInputError(errors)

    user = User(
        username=username,
        email=User.objects.normalize_email(email),
        first_name=first_name,
        last_name=last_name,
        is_staff=bool(is_admin),
    )
    user.set_password(password)
    _full_clean(user)
    _check_email_available(user.email)

    with transaction.atomic():
        user.save()

    log_activity(
        ActionType.ADD,
        EntityType.USER,
        user.pk,
        actor,
        f"Added new user: {user_display_name(user)}",
        new_data=user_snapshot(user),
        origin=origin,
    )
    emit_all(user_causes("added", user), actor)
    return user


def update_user(actor, user_id, *, origin: Optional[RequestOrigin] = None, **changes):
    """Edit a user's profile, status or admin flag.

    Demoting or deactivating the only active administrator is rejected.

    Raises:
        InvalidInputError: Unknown field or invalid value
        UserNotFoundError: No such user
        DuplicateEmailError: Email used by another user
        LastAdministratorError: Would leave no active administrator
    """
    unknown = sorted(set(changes) - USER_EDITABLE_FIELDS)
    if unknown:
        raise InvalidInputError({field: ["This field cannot be edited"] for field in unknown})

    user = _get_user(user_id)
    old_data = user_snapshot(user)
    was_admin = user.is_staff and user.is_active

    if "is_admin" in changes:
        user.is_staff = bool(changes.pop("is_admin"))
        changes["is_staff"] = user.is_staff
    if "email" in changes:
        if not changes["email"]:
            raise InvalidInputError({"email": ["This field cannot be blank."]})
        changes["email"] = get_user_model().objects.normalize_email(changes["email"])
    for field, value in changes.items():
        setattr(user, field, value)
    _full_clean(user)

    if "email" in changes:
        _check_email_available(user.email, exclude_pk=user.pk)
    if was_admin and not (user.is_staff and user.is_active) and not _other_admins_exist(user):
        raise LastAdministratorError(user.pk)

    with transaction.atomic():
        user.save(update_fields=list(changes) or None)

    log_activity(
        ActionType.UPDATE,
        EntityType.USER,
        user.pk,
        actor,
        f"Updated user: {user_display_name(user)}",
        old_data=old_data,
        new_data=user_snapshot(user),
        origin=origin,
    )
    emit_all(user_causes("updated", user), actor)
    return user


def delete_user(actor, user_id, *, origin: Optional[RequestOrigin] = None) -> None:
    """Hard delete a user. Logs, issuances and alerts keep a SET_NULL reference.

    Raises:
        UserNotFoundError: No such user
        LastAdministratorError: User is the only active administrator
        SelfDeletionError: Actor is deleting their own account
    """
    user = _get_user(user_id)
    if user.is_staff and not _other_admins_exist(user):
        raise LastAdministratorError(user.pk)
    if actor is not None and actor.pk == user.pk:
        raise SelfDeletionError(user.pk)

    pk = user.pk
    old_data = user_snapshot(user)
    with transaction.atomic():
        user.delete()

    log_activity(
        ActionType.DELETE,
        EntityType.USER,
        pk,
        actor,
        f"Deleted user: {user_display_name(user)}",
        old_data=old_data,
        origin=origin,
    )
    emit_all(user_causes("deleted", user, user_id=pk), actor)


def record_login(user, *, origin: Optional[RequestOrigin] = None):
    """Audit a successful login. Called by the host's auth layer."""
    return log_activity(
        ActionType.LOGIN,
        EntityType.USER,
        user.pk,
        user,
        f"User logged in: {user_display_name(user)}",
        origin=origin,
    )


def record_logout(user, *, origin: Optional[RequestOrigin] = None):
    """Audit a logout. Called by the host's auth layer."""
    return log_activity(
        ActionType.LOGOUT,
        EntityType.USER,
        user.pk,
        user,
        f"User logged out: {user_display_name(user)}",
        origin=origin,
    )


# =============================================================================
# ALERTS
# =============================================================================

def mark_alert_read(alert_id, now=None) -> Alert:
    """Mark one active alert as read.

    Raises:
        AlertNotFoundError: Missing, dismissed or past its TTL
    """
    alert = get_alert(alert_id, now)
    alert.is_read = True
    alert.save(update_fields=["is_read"])
    return alert


def mark_all_alerts_read(now=None) -> int:
    """Mark every active unread alert as read. Returns the number changed."""
    return Alert.objects.active(now).unread().update(is_read=True)


def dismiss_alert(alert_id, now=None) -> Alert:
    """Soft delete an alert. It disappears from every read.

    Raises:
        AlertNotFoundError: Missing, dismissed or past its TTL
    """
    alert = get_alert(alert_id, now)
    alert.is_active = False
    alert.save(update_fields=["is_active"])
    return alert
