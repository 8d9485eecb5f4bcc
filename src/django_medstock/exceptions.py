"""Exceptions for django-medstock.

Three families reach callers:
- InvalidInputError: malformed input, raised before any write
- BusinessRuleError: a rule forbids the mutation, nothing was written
- NotFoundError: the referenced entity is missing or soft-deleted

Audit log and alert failures never raise; see activity.LogResult and
alerts.EmitResult.
"""


class MedstockError(Exception):
    """Base exception for medstock errors."""
    pass


class InvalidInputError(MedstockError):
    """Raised when input fails validation.

    Attributes:
        errors: Mapping of field name to list of messages
    """

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = {"__all__": [errors]}
        self.errors = dict(errors)
        details = "; ".join(
            f"{field}: {', '.join(str(m) for m in messages)}"
            for field, messages in self.errors.items()
        )
        super().__init__(f"Invalid input: {details}")


# =============================================================================
# BUSINESS RULES
# =============================================================================

class BusinessRuleError(MedstockError):
    """Base exception for rejected mutations."""
    pass


class DuplicateBarcodeError(BusinessRuleError):
    """Raised when an active medicine already uses the barcode."""

    def __init__(self, barcode):
        self.barcode = barcode
        super().__init__(f"Medicine with barcode '{barcode}' already exists")


class DuplicateEmailError(BusinessRuleError):
    """Raised when another user already uses the email address."""

    def __init__(self, email):
        self.email = email
        super().__init__(f"User with email '{email}' already exists")


class InsufficientStockError(BusinessRuleError):
    """Raised when an issuance asks for more than is on hand."""

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock. Available: {available}, Requested: {requested}"
        )


class ExpiredMedicineError(BusinessRuleError):
    """Raised when issuing a medicine past its expiry date."""

    def __init__(self, medicine_id, expiry_date=None):
        self.medicine_id = medicine_id
        self.expiry_date = expiry_date
        super().__init__("Cannot issue expired medicine")


class LastAdministratorError(BusinessRuleError):
    """Raised when deleting the only remaining administrator."""

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__("Cannot delete the last admin user")


class SelfDeletionError(BusinessRuleError):
    """Raised when a user tries to delete their own account."""

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__("Cannot delete your own account")


class ImmutableRecordError(BusinessRuleError):
    """Raised when modifying or deleting an append-only record."""

    def __init__(self, record):
        self.record = record
        super().__init__(f"{type(record).__name__} records are append-only")


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(MedstockError):
    """Base exception for missing or soft-deleted entities."""

    entity = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class MedicineNotFoundError(NotFoundError):
    entity = "Medicine"


class IssuanceNotFoundError(NotFoundError):
    entity = "Issuance"


class UserNotFoundError(NotFoundError):
    entity = "User"


class AlertNotFoundError(NotFoundError):
    entity = "Alert"
