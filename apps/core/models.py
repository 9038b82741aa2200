# core/models.py

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import logging

from utils.models import BaseModel
from core.utils import get_fee_setting

logger = logging.getLogger(__name__)


# =============================================================================
# FINANCIAL SETTINGS
# =============================================================================

class FinancialSettings(BaseModel):
    """
    Fee policy settings for a school.
    Singleton per school - created on first access from settings.SCHOOL_FEES.
    """

    MONTH_CHOICES = [
        (1, 'January'), (2, 'February'), (3, 'March'), (4, 'April'),
        (5, 'May'), (6, 'June'), (7, 'July'), (8, 'August'),
        (9, 'September'), (10, 'October'), (11, 'November'), (12, 'December'),
    ]

    school = models.OneToOneField(
        'accounts.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name='financial_settings'
    )

    # -------------------------------------------------------------------------
    # CURRENCY CONFIGURATION
    # -------------------------------------------------------------------------

    school_currency = models.CharField(
        "School Currency",
        max_length=3,
        default='INR',
        help_text='Primary currency for this school (ISO 4217 code)'
    )

    # -------------------------------------------------------------------------
    # ACADEMIC CALENDAR
    # -------------------------------------------------------------------------

    academic_year_start_month = models.PositiveSmallIntegerField(
        "Academic Year Start Month",
        choices=MONTH_CHOICES,
        default=4,
        help_text="Month the fee year (and monthly ledger) starts"
    )
    default_due_day = models.PositiveSmallIntegerField(
        "Default Due Day",
        default=10,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
        help_text="Day of month fees fall due when a structure does not say"
    )

    # -------------------------------------------------------------------------
    # LATE FEES AND DEFAULTERS
    # -------------------------------------------------------------------------

    late_fee_percentage = models.DecimalField(
        "Late Fee Percentage",
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00')), MaxValueValidator(Decimal('100.00'))]
    )
    grace_period_days = models.PositiveIntegerField(
        "Grace Period (Days)",
        default=7,
        help_text="Days after a due date before a student is listed as a defaulter"
    )
    reminder_interval_days = models.PositiveIntegerField(
        "Reminder Interval (Days)",
        default=7,
        help_text="Minimum days between two reminders to the same defaulter"
    )

    # -------------------------------------------------------------------------
    # NUMBERING CONFIGURATION
    # -------------------------------------------------------------------------

    transaction_prefix = models.CharField(
        "Transaction Number Prefix",
        max_length=10,
        default="TXN",
        help_text="Prefix for fee transaction ids"
    )

    class Meta:
        verbose_name = "Financial Settings"
        verbose_name_plural = "Financial Settings"

    def __str__(self):
        return f"Financial Settings - {self.school}"

    @classmethod
    def get_instance(cls, school):
        """Get or create the settings row for a school."""
        instance, created = cls.objects.get_or_create(
            school=school,
            defaults={
                'school_currency': get_fee_setting('CURRENCY'),
                'academic_year_start_month': get_fee_setting('ACADEMIC_YEAR_START_MONTH'),
                'default_due_day': get_fee_setting('DEFAULT_DUE_DAY'),
                'late_fee_percentage': Decimal(str(get_fee_setting('LATE_FEE_PERCENTAGE'))),
                'grace_period_days': get_fee_setting('DEFAULTER_GRACE_PERIOD_DAYS'),
                'reminder_interval_days': get_fee_setting('REMINDER_INTERVAL_DAYS'),
                'transaction_prefix': get_fee_setting('TRANSACTION_PREFIX'),
            }
        )
        if created:
            logger.info(f"Created financial settings for {school}")
        return instance
