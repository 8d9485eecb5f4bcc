"""Django Medstock - Pharmacy stock and alert consistency engine.

Provides:
- Medicine: Inventory record with derived low-stock and expiry state
- Issuance: Append-only ledger of medicine dispensed to recipients
- ActivityLog: Append-only audit trail of every mutation
- Alert: Operational alerts with read/dismiss state and a time-to-live

Usage:
    INSTALLED_APPS = [
        ...
        'django_medstock',
    ]

    # Optional tuning
    MEDSTOCK_EXPIRY_WARNING_DAYS = 30
    MEDSTOCK_ALERT_TTL_DAYS = 7

See conf.py for all configuration options.
"""

__version__ = "0.1.0"
