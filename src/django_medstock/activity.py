"""Best-effort activity logging.

Every mutating service records who did what through log_activity(). Writing the
log never fails the operation it documents: errors are logged and returned as a
LogResult, which callers may inspect for logging but never branch on.

    from django_medstock.activity import RequestOrigin, log_activity

    origin = RequestOrigin.from_request(request)
    log_activity(
        ActionType.ADD, EntityType.MEDICINE, medicine.pk, request.user,
        f"Added new medicine: {medicine.name}", new_data=medicine.snapshot(),
        origin=origin,
    )
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.db import transaction

from django_medstock.models import ActivityLog

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 500


@dataclass(frozen=True)
class RequestOrigin:
    """Where a request came from. Passed explicitly into every mutation."""

    ip_address: Optional[str] = None
    user_agent: str = ""

    @classmethod
    def from_request(cls, request) -> "RequestOrigin":
        """Extract client IP (proxy-aware) and user agent from a request."""
        if request is None:
            return cls()
        forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
        if forwarded_for:
            ip_address = forwarded_for.split(",")[0].strip()
        else:
            ip_address = request.META.get("REMOTE_ADDR")
        user_agent = request.META.get("HTTP_USER_AGENT", "")[:USER_AGENT_MAX_LENGTH]
        return cls(ip_address=ip_address or None, user_agent=user_agent)


@dataclass
class LogResult:
    """Outcome of an activity log write."""

    success: bool
    entry: Optional[ActivityLog] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, entry: ActivityLog) -> "LogResult":
        return cls(success=True, entry=entry)

    @classmethod
    def fail(cls, error: str) -> "LogResult":
        return cls(success=False, error=error)


def actor_display(actor) -> str:
    """Display string for an actor: full name, then email, then username."""
    if actor is None:
        return ""
    if hasattr(actor, "get_full_name") and actor.get_full_name():
        return actor.get_full_name()
    if getattr(actor, "email", ""):
        return actor.email
    if getattr(actor, "username", ""):
        return actor.username
    return str(actor)


def log_activity(
    action_type: str,
    entity_type: str,
    entity_id: Any,
    performed_by,
    description: str,
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
    origin: Optional[RequestOrigin] = None,
) -> LogResult:
    """Append an ActivityLog entry without ever raising.

    The insert runs in its own savepoint so a failure cannot break an
    enclosing transaction.

    Args:
        action_type: ActionType value
        entity_type: EntityType value
        entity_id: Primary key of the affected entity
        performed_by: Acting user (None for system actions)
        description: Human-readable summary (truncated to 500 chars)
        old_data: State before the mutation
        new_data: State after the mutation
        origin: Request origin metadata

    Returns:
        LogResult with the created entry, or the error message
    """
    origin = origin or RequestOrigin()
    try:
        with transaction.atomic():
            entry = ActivityLog.objects.create(
                action_type=action_type,
                entity_type=entity_type,
                entity_id=str(entity_id),
                performed_by=performed_by,
                performed_by_display=actor_display(performed_by)[:200],
                description=description[:DESCRIPTION_MAX_LENGTH],
                old_data=old_data,
                new_data=new_data,
                ip_address=origin.ip_address,
                user_agent=origin.user_agent[:USER_AGENT_MAX_LENGTH],
            )
    except Exception as e:
        logger.warning(
            "Failed to log %s activity for %s %s: %s",
            action_type, entity_type, entity_id, e,
        )
        return LogResult.fail(str(e))
    return LogResult.ok(entry)
