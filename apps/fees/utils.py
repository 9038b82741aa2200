# fees/utils.py

"""
Fee Management Utility Functions

Contains:
- Transaction id generation
- Input validation against the closed fee enums
- Audit info resolution
"""

from django.utils.crypto import get_random_string
from decimal import Decimal
import string
import logging

from core.utils import get_school_current_time, safe_decimal, round_money
from fees.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

TRANSACTION_SUFFIX_CHARS = string.ascii_uppercase + string.digits


# =============================================================================
# REFERENCE NUMBER GENERATION
# =============================================================================

def generate_transaction_id(prefix='TXN'):
    """
    Generate a fee transaction id.

    Format: PREFIX-YYYYMMDDHHMMSS-XXXXXX (six random upper-case
    alphanumerics).

    Returns:
        str: Transaction id, e.g. TXN-20240415103000-7KQ2ZD
    """
    from fees.models import FeeTransaction

    timestamp = get_school_current_time().strftime('%Y%m%d%H%M%S')
    prefix = (prefix or 'TXN').strip()

    while True:
        candidate = f"{prefix}-{timestamp}-{get_random_string(6, TRANSACTION_SUFFIX_CHARS)}"
        if not FeeTransaction.objects.filter(transaction_id=candidate).exists():
            return candidate
        logger.warning(f"Transaction id collision on {candidate}, regenerating")


# =============================================================================
# VALIDATION UTILITIES
# =============================================================================

def validate_choice(value, choices, label):
    """
    Return value if it belongs to a CHOICES list.

    Raises:
        ValidationFailed: value is outside the closed set
    """
    allowed = [key for key, _ in choices]
    if value not in allowed:
        raise ValidationFailed(
            f"Invalid {label} '{value}'. Allowed: {', '.join(str(a) for a in allowed)}"
        )
    return value


def validate_month(month):
    """Coerce to an int between 1 and 12."""
    try:
        month = int(month)
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid month selected")
    if not 1 <= month <= 12:
        raise ValidationFailed("Invalid month selected")
    return month


def validate_amount(amount):
    """Coerce to a positive money amount."""
    value = safe_decimal(amount, default=None)
    if value is None or not value.is_finite() or value <= Decimal('0'):
        raise ValidationFailed("Amount must be a positive number")
    return round_money(value)


# =============================================================================
# AUDIT HELPERS
# =============================================================================

def resolve_audit_info(audit_info=None):
    """
    Audit details for a transaction: explicit values win, the current
    request context fills the gaps.
    """
    from utils.context import get_audit_info

    context_info = get_audit_info()
    audit_info = audit_info or {}
    return {
        'ip_address': audit_info.get('ip_address') or context_info.get('ip_address'),
        'device_info': (audit_info.get('device_info') or context_info.get('device_info') or '')[:255],
    }
