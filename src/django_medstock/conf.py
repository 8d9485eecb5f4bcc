"""Django Medstock configuration.

All settings can be overridden in your Django settings.py.

Example:
    # settings.py
    MEDSTOCK_EXPIRY_WARNING_DAYS = 30
    MEDSTOCK_ALERT_TTL_DAYS = 7
"""

from datetime import timedelta

from django.conf import settings


# =============================================================================
# DEFAULTS
# =============================================================================

# Lookahead window for "expiring soon" classification. Applied identically by
# the stock-check policy, the Medicine properties and every report query.
DEFAULT_EXPIRY_WARNING_DAYS = 30

# Alerts are unreachable (and purgeable) this long after creation.
DEFAULT_ALERT_TTL_DAYS = 7

# Low-stock threshold used when a medicine is created without one.
DEFAULT_MIN_QUANTITY = 10


def get_setting(name: str, default=None):
    """Get a setting with MEDSTOCK_ prefix."""
    return getattr(settings, f"MEDSTOCK_{name}", default)


def get_expiry_warning_days() -> int:
    """Number of days ahead that counts as expiring soon."""
    return int(get_setting("EXPIRY_WARNING_DAYS", DEFAULT_EXPIRY_WARNING_DAYS))


def get_alert_ttl_days() -> int:
    """Number of days an alert stays reachable after creation."""
    return int(get_setting("ALERT_TTL_DAYS", DEFAULT_ALERT_TTL_DAYS))


def get_default_min_quantity() -> int:
    """Default low-stock threshold for new medicines."""
    return int(get_setting("DEFAULT_MIN_QUANTITY", DEFAULT_MIN_QUANTITY))


def expiry_window() -> timedelta:
    return timedelta(days=get_expiry_warning_days())


def alert_ttl() -> timedelta:
    return timedelta(days=get_alert_ttl_days())


# =============================================================================
# DEFAULT SETTINGS REFERENCE
# =============================================================================

# MEDSTOCK_EXPIRY_WARNING_DAYS = 30   # expiring-soon lookahead
# MEDSTOCK_ALERT_TTL_DAYS = 7         # alert time-to-live
# MEDSTOCK_DEFAULT_MIN_QUANTITY = 10  # default low-stock threshold
