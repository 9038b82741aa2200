# core/utils.py

"""
Central utilities for the fee system.
Timezone-aware "today", academic year arithmetic and money helpers used
by every app, so date and rounding rules live in one place.
"""
from django.conf import settings
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, time, timedelta
import calendar
import re
import logging

logger = logging.getLogger(__name__)

ACADEMIC_YEAR_PATTERN = re.compile(r'^(\d{4})-(\d{4})$')

CENTS = Decimal('0.01')


# =============================================================================
# FEE CONFIGURATION
# =============================================================================

DEFAULT_FEE_SETTINGS = {
    'ACADEMIC_YEAR_START_MONTH': 4,
    'DEFAULT_DUE_DAY': 10,
    'DEFAULTER_GRACE_PERIOD_DAYS': 7,
    'LATE_FEE_PERCENTAGE': Decimal('0.00'),
    'RECENT_TRANSACTIONS_LIMIT': 10,
    'REMINDER_INTERVAL_DAYS': 7,
    'CURRENCY': 'INR',
    'TRANSACTION_PREFIX': 'TXN',
}


def get_fee_setting(key):
    """
    Read a value from settings.SCHOOL_FEES, falling back to defaults.

    Example:
        >>> from core.utils import get_fee_setting
        >>> get_fee_setting('DEFAULT_DUE_DAY')
        10
    """
    configured = getattr(settings, 'SCHOOL_FEES', {}) or {}
    if key in configured:
        return configured[key]
    return DEFAULT_FEE_SETTINGS[key]


# =============================================================================
# TIMEZONE UTILITY FUNCTIONS
# =============================================================================

def get_school_current_time():
    """
    Get current time in school's operational timezone (settings.TIME_ZONE).

    Use this for transaction timestamps and audit trails.
    """
    from django.utils import timezone
    return timezone.localtime(timezone.now())


def get_school_today():
    """
    Get today's date in school's operational timezone.

    Always use this instead of date.today() for due date and overdue
    checks, so "today" matches the school's local calendar.

    Example:
        >>> from core.utils import get_school_today
        >>> if payment.due_date < get_school_today():
        >>>     print("Payment is overdue")
    """
    return get_school_current_time().date()


def start_of_day(day):
    """Aware datetime at 00:00 of the given date in the school timezone."""
    from django.utils import timezone
    return timezone.make_aware(datetime.combine(day, time.min))


def end_of_day(day):
    """Aware datetime at the last microsecond of the given date."""
    from django.utils import timezone
    return timezone.make_aware(datetime.combine(day, time.max))


# =============================================================================
# ACADEMIC YEAR HELPERS
# =============================================================================

def parse_academic_year(academic_year):
    """
    Split a 'YYYY-YYYY' academic year into its start and end years.

    Raises:
        ValueError: If the string is not in YYYY-YYYY format or the
            years are not consecutive.
    """
    match = ACADEMIC_YEAR_PATTERN.match(str(academic_year or ''))
    if not match:
        raise ValueError(
            f"Academic year must be in format YYYY-YYYY, got '{academic_year}'"
        )
    start_year, end_year = int(match.group(1)), int(match.group(2))
    if end_year != start_year + 1:
        raise ValueError(
            f"Academic year '{academic_year}' must span two consecutive years"
        )
    return start_year, end_year


def get_current_academic_year(today=None, start_month=None):
    """
    Academic year containing the given date.

    The year rolls over on the first day of the start month (April by
    default): April 2024 onwards is '2024-2025', March 2024 is '2023-2024'.
    """
    today = today or get_school_today()
    start_month = start_month or get_fee_setting('ACADEMIC_YEAR_START_MONTH')

    if today.month >= start_month:
        return f"{today.year}-{today.year + 1}"
    return f"{today.year - 1}-{today.year}"


def academic_month_order(start_month=None):
    """Calendar months in academic order, e.g. [4, 5, ..., 12, 1, 2, 3]."""
    start_month = start_month or get_fee_setting('ACADEMIC_YEAR_START_MONTH')
    return [((start_month + i - 1) % 12) + 1 for i in range(12)]


def clamp_due_day(due_day, default=None):
    """Return due_day if it is a valid day of month (1-31), else the default."""
    default = default or get_fee_setting('DEFAULT_DUE_DAY')
    try:
        due_day = int(due_day)
    except (TypeError, ValueError):
        return default
    if 1 <= due_day <= 31:
        return due_day
    return default


def due_date_for_month(academic_year, month, due_day, start_month=None):
    """
    Due date of a calendar month inside an academic year.

    Months before the start month fall in the second calendar year of the
    academic year. A due day past the end of a short month lands on that
    month's last day (31 in February becomes 28/29).
    """
    start_month = start_month or get_fee_setting('ACADEMIC_YEAR_START_MONTH')
    start_year, _ = parse_academic_year(academic_year)
    year = start_year + (1 if month < start_month else 0)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(due_day, last_day))


# =============================================================================
# MONEY HELPERS
# =============================================================================

def safe_decimal(value, default=Decimal('0.00')):
    """
    Safely convert value to Decimal.

    Example:
        >>> safe_decimal("1500.50")
        Decimal('1500.50')
        >>> safe_decimal("invalid")
        Decimal('0.00')
    """
    try:
        return Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return default


def round_money(amount):
    """Round to cents using half-up rounding."""
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


def split_evenly(total, parts):
    """
    Split a total into equal installments whose sum is exactly the total.

    Every installment except the last is the rounded quotient; the last
    carries the remainder.

    Example:
        >>> split_evenly(Decimal('1000'), 3)
        [Decimal('333.33'), Decimal('333.33'), Decimal('333.34')]
    """
    if parts <= 0:
        raise ValueError("Number of installments must be positive")
    total = round_money(total)
    installment = round_money(total / parts)
    last = total - installment * (parts - 1)
    return [installment] * (parts - 1) + [last]


def format_money(amount, include_symbol=True):
    """
    Format money amount with thousand separators.

    Example:
        >>> format_money(Decimal('1500000'))
        'INR 1,500,000.00'
    """
    try:
        formatted = f"{Decimal(str(amount or 0)):,.2f}"
    except (ValueError, TypeError, InvalidOperation):
        formatted = "0.00"
    if include_symbol:
        return f"{get_fee_setting('CURRENCY')} {formatted}"
    return formatted


# =============================================================================
# REQUEST HELPERS
# =============================================================================

def parse_date(value):
    """Parse an ISO 'YYYY-MM-DD' string, returning None for blanks."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    return datetime.strptime(value, '%Y-%m-%d').date()


def get_period_range(report_type, start=None, end=None, today=None):
    """
    Date range covered by a financial report.

    Args:
        report_type: 'daily', 'weekly', 'monthly' or 'yearly'
        start, end: optional explicit dates overriding the defaults
        today: reference date (defaults to school today)

    Returns:
        tuple: (start_date, end_date), both inclusive
    """
    today = today or get_school_today()

    if report_type == 'daily':
        return start or today, end or today
    if report_type == 'weekly':
        return (start or today) - timedelta(days=7), end or today
    if report_type == 'yearly':
        return start or date(today.year, 1, 1), end or date(today.year, 12, 31)

    # monthly (and anything unrecognised)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return (
        start or date(today.year, today.month, 1),
        end or date(today.year, today.month, last_day),
    )
