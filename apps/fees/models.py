# fees/models.py

from django.db import models, transaction
from django.db.models import Sum, Count, Avg
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
from datetime import timedelta
import logging

from utils.models import BaseModel
from core.utils import (
    get_school_today,
    get_school_current_time,
    get_fee_setting,
    parse_academic_year,
    academic_month_order,
    clamp_due_day,
    due_date_for_month,
    round_money,
    safe_decimal,
    split_evenly,
)
from fees.exceptions import InvalidState, ValidationFailed

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


# =============================================================================
# CHOICES
# =============================================================================

STATUS_PENDING = 'pending'
STATUS_PARTIAL = 'partial'
STATUS_PAID = 'paid'
STATUS_OVERDUE = 'overdue'
STATUS_WAIVED = 'waived'

PAYMENT_STATUS_CHOICES = [
    (STATUS_PENDING, 'Pending'),
    (STATUS_PARTIAL, 'Partially Paid'),
    (STATUS_PAID, 'Paid'),
    (STATUS_OVERDUE, 'Overdue'),
    (STATUS_WAIVED, 'Waived'),
]

# Slot statuses that still owe money
UNPAID_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_OVERDUE)

MONTH_CHOICES = [
    (1, 'January'), (2, 'February'), (3, 'March'), (4, 'April'),
    (5, 'May'), (6, 'June'), (7, 'July'), (8, 'August'),
    (9, 'September'), (10, 'October'), (11, 'November'), (12, 'December'),
]

FEE_TYPE_CHOICES = [
    ('admission', 'Admission Fee'),
    ('annual', 'Annual Fee'),
    ('tuition', 'Tuition Fee'),
    ('exam', 'Exam Fee'),
    ('transport', 'Transport Fee'),
    ('library', 'Library Fee'),
    ('sports', 'Sports Fee'),
    ('computer', 'Computer Fee'),
    ('development', 'Development Fee'),
    ('other', 'Other'),
]

PAYMENT_METHOD_CHOICES = [
    ('cash', 'Cash'),
    ('card', 'Card'),
    ('bank_transfer', 'Bank Transfer'),
    ('upi', 'UPI'),
    ('cheque', 'Cheque'),
    ('online', 'Online'),
]

TRANSACTION_TYPE_CHOICES = [
    ('payment', 'Payment'),
    ('refund', 'Refund'),
    ('adjustment', 'Adjustment'),
    ('late_fee', 'Late Fee'),
    ('waiver', 'Waiver'),
]

TRANSACTION_STATUS_CHOICES = [
    ('completed', 'Completed'),
    ('pending', 'Pending'),
    ('failed', 'Failed'),
    ('reversed', 'Reversed'),
]


def month_name(month):
    return dict(MONTH_CHOICES).get(month, str(month))


def derive_record_status(total_paid, total_due, has_overdue):
    """Overall ledger status from its totals."""
    if total_due <= 0:
        return STATUS_PAID
    if total_paid > 0:
        return STATUS_PARTIAL
    if has_overdue:
        return STATUS_OVERDUE
    return STATUS_PENDING


def build_monthly_schedule(academic_year, installments, due_day=None, start_month=None):
    """
    Twelve monthly slot definitions in academic order.

    Args:
        academic_year: 'YYYY-YYYY'
        installments: list of 12 due amounts, in academic order
        due_day: day of month the fee falls due (invalid values fall back
            to the default due day)
        start_month: calendar month the academic year starts in

    Returns:
        list of dicts with month, sequence, due_amount and due_date
    """
    start_month = start_month or get_fee_setting('ACADEMIC_YEAR_START_MONTH')
    due_day = clamp_due_day(due_day, get_fee_setting('DEFAULT_DUE_DAY'))
    parse_academic_year(academic_year)

    schedule = []
    for sequence, month in enumerate(academic_month_order(start_month)):
        schedule.append({
            'month': month,
            'sequence': sequence,
            'due_amount': installments[sequence],
            'due_date': due_date_for_month(academic_year, month, due_day, start_month),
        })
    return schedule


# =============================================================================
# FEE STRUCTURE MODELS
# =============================================================================

class FeeStructure(BaseModel):
    """
    Fee schedule for a grade in an academic year.
    Several may exist per grade/year; the most recently created active one
    is authoritative.
    """

    school = models.ForeignKey(
        'accounts.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name='fee_structures'
    )
    grade = models.CharField("Grade", max_length=20, db_index=True)
    academic_year = models.CharField(
        "Academic Year",
        max_length=9,
        db_index=True,
        help_text="Format: YYYY-YYYY"
    )

    # -------------------------------------------------------------------------
    # AMOUNTS
    # -------------------------------------------------------------------------

    monthly_amount = models.DecimalField(
        "Monthly Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Recurring amount charged every month"
    )
    due_day = models.PositiveSmallIntegerField(
        "Due Day",
        default=10,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
        help_text="Day of month the monthly fee falls due"
    )
    description = models.TextField("Description", blank=True)
    is_active = models.BooleanField("Active", default=True, db_index=True)

    class Meta:
        verbose_name = "Fee Structure"
        verbose_name_plural = "Fee Structures"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school', 'grade', 'academic_year', 'is_active'], name='idx_structure_lookup'),
        ]

    def __str__(self):
        return f"Grade {self.grade} - {self.academic_year}"

    def clean(self):
        try:
            parse_academic_year(self.academic_year)
        except ValueError as e:
            raise ValidationError({'academic_year': str(e)})

    @classmethod
    def get_latest(cls, school, grade, academic_year):
        """Most recently created active structure, or None"""
        return cls.objects.filter(
            school=school,
            grade=grade,
            academic_year=academic_year,
            is_active=True,
        ).order_by('-created_at').first()

    def get_one_time_components(self):
        return list(self.components.filter(is_one_time=True).order_by('fee_type'))

    @property
    def one_time_total(self):
        total = self.components.filter(is_one_time=True).aggregate(total=Sum('amount'))['total']
        return total or ZERO

    @property
    def yearly_total(self):
        """Twelve monthly installments plus every one-time component"""
        return round_money(self.monthly_amount * 12 + self.one_time_total)


class FeeComponent(BaseModel):
    """Named part of a fee structure (admission, exam, transport, ...)"""

    structure = models.ForeignKey(
        FeeStructure,
        verbose_name="Fee Structure",
        on_delete=models.CASCADE,
        related_name='components'
    )
    fee_type = models.CharField("Fee Type", max_length=20, choices=FEE_TYPE_CHOICES)
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    is_one_time = models.BooleanField(
        "One-Time",
        default=False,
        help_text="Charged once per academic year rather than monthly"
    )

    class Meta:
        verbose_name = "Fee Component"
        verbose_name_plural = "Fee Components"
        constraints = [
            models.UniqueConstraint(
                fields=['structure', 'fee_type'],
                name='uq_fee_component_structure_type'
            ),
        ]

    def __str__(self):
        return f"{self.get_fee_type_display()} - {self.amount}"


# =============================================================================
# STUDENT FEE LEDGER
# =============================================================================

class StudentFeeRecord(BaseModel):
    """
    Fee ledger for one student in one academic year.

    Totals and status are derived from the monthly and one-time slots on
    every save (see fees.signals) and are never trusted from input.
    """

    # -------------------------------------------------------------------------
    # OWNERSHIP
    # -------------------------------------------------------------------------

    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='fee_records'
    )
    school = models.ForeignKey(
        'accounts.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name='fee_records'
    )
    grade = models.CharField("Grade", max_length=20, db_index=True)
    academic_year = models.CharField("Academic Year", max_length=9, db_index=True)
    fee_structure = models.ForeignKey(
        FeeStructure,
        verbose_name="Fee Structure",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fee_records',
        help_text="Structure the slots were generated from (may be superseded)"
    )

    # -------------------------------------------------------------------------
    # DERIVED TOTALS
    # -------------------------------------------------------------------------

    total_fee_amount = models.DecimalField(
        "Total Fee Amount", max_digits=12, decimal_places=2, default=ZERO
    )
    total_paid_amount = models.DecimalField(
        "Total Paid Amount", max_digits=12, decimal_places=2, default=ZERO
    )
    total_due_amount = models.DecimalField(
        "Total Due Amount", max_digits=12, decimal_places=2, default=ZERO
    )
    status = models.CharField(
        "Status",
        max_length=10,
        choices=PAYMENT_STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )

    # -------------------------------------------------------------------------
    # CONCURRENCY AND FIRST-PAYMENT TRACKING
    # -------------------------------------------------------------------------

    has_received_payment = models.BooleanField(
        "Has Received Payment",
        default=False,
        help_text="Set once any payment has been applied to this ledger"
    )
    version = models.PositiveIntegerField("Version", default=0)

    class Meta:
        verbose_name = "Student Fee Record"
        verbose_name_plural = "Student Fee Records"
        ordering = ['-academic_year', 'grade']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'academic_year'],
                name='uq_fee_record_student_year'
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'academic_year', 'status'], name='idx_record_school_year'),
            models.Index(fields=['school', 'grade'], name='idx_record_school_grade'),
        ]

    def __str__(self):
        return f"{self.student} - {self.academic_year}"

    # -------------------------------------------------------------------------
    # CREATION
    # -------------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def create_for_student(cls, student, school, grade, academic_year, fee_structure,
                           total_fee_amount, due_day=10, start_month=None,
                           one_time_fees=None):
        """
        Create a ledger with twelve pending monthly slots.

        The monthly share of total_fee_amount (everything not covered by
        one_time_fees) is split into twelve installments; eleven equal
        rounded amounts and the remainder on the final month.

        Args:
            one_time_fees: optional list of (fee_type, amount) pairs

        Raises:
            ValidationFailed: academic_year is not 'YYYY-YYYY'
        """
        try:
            parse_academic_year(academic_year)
        except ValueError as e:
            raise ValidationFailed(str(e))

        one_time_fees = [(fee_type, round_money(amount)) for fee_type, amount in (one_time_fees or [])]
        total_fee_amount = round_money(total_fee_amount)
        monthly_total = total_fee_amount - sum((amount for _, amount in one_time_fees), ZERO)

        schedule = build_monthly_schedule(
            academic_year,
            split_evenly(monthly_total, 12),
            due_day=due_day,
            start_month=start_month,
        )

        record = cls.objects.create(
            student=student,
            school=school,
            grade=grade,
            academic_year=academic_year,
            fee_structure=fee_structure,
            total_fee_amount=total_fee_amount,
        )
        for slot in schedule:
            MonthlyPayment.objects.create(fee_record=record, **slot)
        for fee_type, amount in one_time_fees:
            OneTimeFee.objects.create(fee_record=record, fee_type=fee_type, due_amount=amount)

        # Recompute now that the slots exist
        record.save()

        logger.info(
            f"Created fee record {record.pk} for student {student.pk} "
            f"({academic_year}, total {total_fee_amount})"
        )
        return record

    # -------------------------------------------------------------------------
    # DERIVED STATE
    # -------------------------------------------------------------------------

    def recalculate_totals(self, today=None):
        """
        Recompute total paid, total due and status from the slots.
        Called from the pre_save signal on every save.
        """
        today = today or get_school_today()

        if self._state.adding:
            monthly_paid = one_time_paid = ZERO
            has_overdue = False
        else:
            monthly_paid = MonthlyPayment.objects.filter(fee_record=self).aggregate(
                total=Sum('paid_amount'))['total'] or ZERO
            one_time_paid = OneTimeFee.objects.filter(fee_record=self).aggregate(
                total=Sum('paid_amount'))['total'] or ZERO
            has_overdue = MonthlyPayment.objects.filter(
                fee_record=self,
                status__in=[STATUS_PENDING, STATUS_OVERDUE],
                waived=False,
                due_date__lt=today,
            ).exists()

        self.total_paid_amount = round_money(monthly_paid + one_time_paid)
        self.total_due_amount = round_money(self.total_fee_amount - self.total_paid_amount)
        self.status = derive_record_status(self.total_paid_amount, self.total_due_amount, has_overdue)

        logger.debug(
            f"Recalculated fee record {self.pk}: paid={self.total_paid_amount} "
            f"due={self.total_due_amount} status={self.status}"
        )

    def get_monthly_slot(self, month):
        """
        Raises:
            InvalidState: no slot exists for the month
        """
        try:
            return self.monthly_payments.get(month=month)
        except MonthlyPayment.DoesNotExist:
            raise InvalidState(f"No payment record found for month {month}")

    def get_overdue_months(self, today=None):
        """Unpaid, unwaived months whose due date has passed, in academic order"""
        today = today or get_school_today()
        return list(
            self.monthly_payments.filter(due_date__lt=today, waived=False)
            .exclude(status__in=[STATUS_PAID, STATUS_WAIVED])
            .order_by('sequence')
            .values_list('month', flat=True)
        )

    def get_upcoming_due(self):
        """First pending or overdue unwaived slot in academic order"""
        return self.monthly_payments.filter(
            status__in=[STATUS_PENDING, STATUS_OVERDUE],
            waived=False,
        ).order_by('sequence').first()

    def get_pending_one_time_fees(self):
        return list(
            self.one_time_fees.filter(status__in=[STATUS_PENDING, STATUS_PARTIAL])
            .order_by('fee_type')
        )

    @property
    def is_first_payment(self):
        return not self.has_received_payment

    # -------------------------------------------------------------------------
    # SLOT MUTATIONS
    # -------------------------------------------------------------------------

    def record_payment(self, month, amount, paid_on=None):
        """
        Add a payment to a monthly slot.

        Overpayment is accepted here; amount rules are enforced by
        FeeCollectionService.

        Raises:
            InvalidState: the month has no slot or is already paid
        """
        slot = self.get_monthly_slot(month)
        if slot.status == STATUS_PAID:
            raise InvalidState(f"Payment for month {month} is already completed")

        slot.paid_amount = round_money(slot.paid_amount + safe_decimal(amount))
        slot.paid_date = paid_on or get_school_today()
        if slot.paid_amount >= slot.due_amount + slot.late_fee:
            slot.status = STATUS_PAID
        else:
            slot.status = STATUS_PARTIAL
        slot.save()

        self.has_received_payment = True
        self.save()

        logger.info(
            f"Recorded {amount} for month {month} on fee record {self.pk} "
            f"(slot status {slot.status})"
        )
        return slot

    def apply_late_fee(self, month, late_fee_percentage, today=None):
        """
        Charge a late fee on a past-due slot.

        The fee is recomputed from the due amount on each call and never
        accumulates. Paid and waived slots are left untouched.
        """
        today = today or get_school_today()
        slot = self.get_monthly_slot(month)

        if slot.status == STATUS_PAID or slot.waived:
            return slot

        if today > slot.due_date:
            slot.late_fee = round_money(slot.due_amount * safe_decimal(late_fee_percentage) / 100)
            slot.status = STATUS_OVERDUE
            slot.save()
            self.save()
            logger.info(f"Applied late fee {slot.late_fee} to month {month} on fee record {self.pk}")

        return slot

    def waive_fee(self, month, reason, waived_by):
        """
        Waive a monthly slot. Amounts already paid stay on the ledger.
        """
        slot = self.get_monthly_slot(month)
        slot.waived = True
        slot.waiver_reason = reason
        slot.waived_by_id = str(waived_by) if waived_by else None
        slot.waiver_date = get_school_current_time()
        slot.status = STATUS_WAIVED
        slot.save()
        self.save()

        logger.info(f"Waived month {month} on fee record {self.pk}: {reason}")
        return slot

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    @classmethod
    def find_defaulters(cls, school, grace_period_days=7, today=None):
        """Records with an unpaid, unwaived slot past the grace cutoff"""
        today = today or get_school_today()
        cutoff = today - timedelta(days=grace_period_days)
        record_ids = MonthlyPayment.objects.filter(
            fee_record__school=school,
            status__in=UNPAID_STATUSES,
            waived=False,
            due_date__lt=cutoff,
        ).values('fee_record_id')
        return cls.objects.filter(pk__in=record_ids).select_related('student')

    def to_dict(self):
        return {
            'id': str(self.pk),
            'student': str(self.student_id),
            'school': str(self.school_id),
            'grade': self.grade,
            'academic_year': self.academic_year,
            'fee_structure': str(self.fee_structure_id) if self.fee_structure_id else None,
            'total_fee_amount': self.total_fee_amount,
            'total_paid_amount': self.total_paid_amount,
            'total_due_amount': self.total_due_amount,
            'status': self.status,
            'has_received_payment': self.has_received_payment,
            'version': self.version,
            'monthly_payments': [p.to_dict() for p in self.monthly_payments.order_by('sequence')],
            'one_time_fees': [f.to_dict() for f in self.one_time_fees.order_by('fee_type')],
        }


class MonthlyPayment(BaseModel):
    """One month of a student's fee ledger"""

    fee_record = models.ForeignKey(
        StudentFeeRecord,
        verbose_name="Fee Record",
        on_delete=models.CASCADE,
        related_name='monthly_payments'
    )
    month = models.PositiveSmallIntegerField("Month", choices=MONTH_CHOICES)
    sequence = models.PositiveSmallIntegerField(
        "Sequence",
        help_text="Position of the month within the academic year (0-11)"
    )

    # -------------------------------------------------------------------------
    # AMOUNTS AND STATUS
    # -------------------------------------------------------------------------

    due_amount = models.DecimalField(
        "Due Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    paid_amount = models.DecimalField(
        "Paid Amount",
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    late_fee = models.DecimalField(
        "Late Fee",
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    status = models.CharField(
        "Status", max_length=10, choices=PAYMENT_STATUS_CHOICES, default=STATUS_PENDING, db_index=True
    )
    due_date = models.DateField("Due Date", db_index=True)
    paid_date = models.DateField("Paid Date", null=True, blank=True)

    # -------------------------------------------------------------------------
    # WAIVER
    # -------------------------------------------------------------------------

    waived = models.BooleanField("Waived", default=False)
    waiver_reason = models.CharField("Waiver Reason", max_length=255, blank=True)
    waived_by_id = models.CharField("Waived By ID", max_length=50, null=True, blank=True)
    waiver_date = models.DateTimeField("Waiver Date", null=True, blank=True)

    class Meta:
        verbose_name = "Monthly Payment"
        verbose_name_plural = "Monthly Payments"
        ordering = ['fee_record', 'sequence']
        constraints = [
            models.UniqueConstraint(
                fields=['fee_record', 'month'],
                name='uq_monthly_payment_record_month'
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'waived', 'due_date'], name='idx_monthly_overdue'),
        ]

    def __str__(self):
        return f"{month_name(self.month)} - {self.get_status_display()}"

    @property
    def outstanding_amount(self):
        """Remaining balance including any late fee"""
        return max(ZERO, self.due_amount + self.late_fee - self.paid_amount)

    def is_overdue(self, today=None):
        today = today or get_school_today()
        return self.status in UNPAID_STATUSES and not self.waived and self.due_date < today

    def to_dict(self):
        return {
            'month': self.month,
            'month_name': month_name(self.month),
            'due_amount': self.due_amount,
            'paid_amount': self.paid_amount,
            'late_fee': self.late_fee,
            'status': self.status,
            'due_date': self.due_date,
            'paid_date': self.paid_date,
            'waived': self.waived,
            'waiver_reason': self.waiver_reason or None,
        }


class OneTimeFee(BaseModel):
    """Fee charged once per academic year, collected with the first payment"""

    fee_record = models.ForeignKey(
        StudentFeeRecord,
        verbose_name="Fee Record",
        on_delete=models.CASCADE,
        related_name='one_time_fees'
    )
    fee_type = models.CharField("Fee Type", max_length=20, choices=FEE_TYPE_CHOICES)
    due_amount = models.DecimalField(
        "Due Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    paid_amount = models.DecimalField(
        "Paid Amount",
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    status = models.CharField(
        "Status", max_length=10, choices=PAYMENT_STATUS_CHOICES, default=STATUS_PENDING
    )
    due_date = models.DateField("Due Date", null=True, blank=True)
    paid_date = models.DateField("Paid Date", null=True, blank=True)

    waived = models.BooleanField("Waived", default=False)
    waiver_reason = models.CharField("Waiver Reason", max_length=255, blank=True)
    waived_by_id = models.CharField("Waived By ID", max_length=50, null=True, blank=True)
    waiver_date = models.DateTimeField("Waiver Date", null=True, blank=True)

    class Meta:
        verbose_name = "One-Time Fee"
        verbose_name_plural = "One-Time Fees"
        ordering = ['fee_record', 'fee_type']
        constraints = [
            models.UniqueConstraint(
                fields=['fee_record', 'fee_type'],
                name='uq_one_time_fee_record_type'
            ),
        ]

    def __str__(self):
        return f"{self.get_fee_type_display()} - {self.get_status_display()}"

    @property
    def outstanding_amount(self):
        return max(ZERO, self.due_amount - self.paid_amount)

    def to_dict(self):
        return {
            'fee_type': self.fee_type,
            'due_amount': self.due_amount,
            'paid_amount': self.paid_amount,
            'remaining_amount': self.outstanding_amount,
            'status': self.status,
            'due_date': self.due_date,
            'paid_date': self.paid_date,
            'waived': self.waived,
        }


# =============================================================================
# FEE DEFAULTERS
# =============================================================================

class FeeDefaulter(BaseModel):
    """
    Students with overdue fees past the grace period.
    Rebuilt from the ledgers by sync_defaulters_for_school and never
    written back to them.
    """

    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='fee_defaulter_entries'
    )
    fee_record = models.ForeignKey(
        StudentFeeRecord,
        verbose_name="Fee Record",
        on_delete=models.CASCADE,
        related_name='defaulter_entries'
    )
    school = models.ForeignKey(
        'accounts.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name='fee_defaulters'
    )
    grade = models.CharField("Grade", max_length=20, db_index=True)

    total_due_amount = models.DecimalField(
        "Total Due Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    overdue_months = models.JSONField("Overdue Months", default=list)
    days_since_first_due = models.PositiveIntegerField("Days Since First Due", default=0)

    # -------------------------------------------------------------------------
    # REMINDERS
    # -------------------------------------------------------------------------

    last_reminder_date = models.DateTimeField("Last Reminder Date", null=True, blank=True)
    notification_count = models.PositiveIntegerField("Notification Count", default=0)

    class Meta:
        verbose_name = "Fee Defaulter"
        verbose_name_plural = "Fee Defaulters"
        ordering = ['-days_since_first_due', '-total_due_amount']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'fee_record'],
                name='uq_fee_defaulter_student_record'
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'days_since_first_due'], name='idx_defaulter_school_days'),
            models.Index(fields=['school', 'total_due_amount'], name='idx_defaulter_school_due'),
            models.Index(fields=['grade', 'days_since_first_due'], name='idx_defaulter_grade_days'),
        ]

    def __str__(self):
        return f"{self.student} - {self.total_due_amount} overdue"

    @property
    def severity_level(self):
        if self.days_since_first_due > 60 or self.total_due_amount > 50000:
            return 'critical'
        if self.days_since_first_due > 30 or self.total_due_amount > 20000:
            return 'high'
        if self.days_since_first_due > 14 or self.total_due_amount > 10000:
            return 'medium'
        return 'low'

    # -------------------------------------------------------------------------
    # SYNC
    # -------------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def sync_defaulters_for_school(cls, school, grace_period_days=7, today=None):
        """
        Rebuild the defaulter rows for a school from its fee ledgers.

        A ledger qualifies when it has a pending, partial or overdue
        unwaived slot due before today minus the grace period. Existing
        rows keep their reminder history; rows whose ledger no longer
        qualifies are deleted. Rows are only written when a value changed.

        Returns:
            dict: {'synced': qualifying ledgers, 'removed': rows deleted}
        """
        today = today or get_school_today()
        cutoff = today - timedelta(days=grace_period_days)

        slots = MonthlyPayment.objects.filter(
            fee_record__school=school,
            status__in=UNPAID_STATUSES,
            waived=False,
            due_date__lt=cutoff,
        ).select_related('fee_record').order_by('fee_record_id', 'sequence')

        computed = {}
        for slot in slots:
            entry = computed.setdefault(slot.fee_record_id, {
                'record': slot.fee_record,
                'months': [],
                'total_due': ZERO,
                'first_due': slot.due_date,
            })
            entry['months'].append(slot.month)
            entry['total_due'] += slot.due_amount - slot.paid_amount + slot.late_fee
            entry['first_due'] = min(entry['first_due'], slot.due_date)

        existing = {d.fee_record_id: d for d in cls.objects.filter(school=school)}

        for record_id, entry in computed.items():
            record = entry['record']
            values = {
                'grade': record.grade,
                'total_due_amount': round_money(max(ZERO, entry['total_due'])),
                'overdue_months': entry['months'],
                'days_since_first_due': (today - entry['first_due']).days,
            }
            defaulter = existing.get(record_id)
            if defaulter is None:
                cls.objects.create(
                    student_id=record.student_id,
                    fee_record=record,
                    school=school,
                    notification_count=0,
                    **values
                )
                continue

            changed = [field for field, value in values.items() if getattr(defaulter, field) != value]
            if changed:
                for field in changed:
                    setattr(defaulter, field, values[field])
                defaulter.save(update_fields=changed)

        removed, _ = cls.objects.filter(school=school).exclude(
            fee_record_id__in=list(computed.keys())
        ).delete()

        logger.info(
            f"Synced fee defaulters for {school}: {len(computed)} synced, {removed} removed"
        )
        return {'synced': len(computed), 'removed': removed}

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    @classmethod
    def get_critical_defaulters(cls, school, min_amount=None, min_days=None, limit=50, grade=None):
        queryset = cls.objects.filter(school=school).select_related('student')
        if grade:
            queryset = queryset.filter(grade=grade)
        if min_amount:
            queryset = queryset.filter(total_due_amount__gte=min_amount)
        if min_days:
            queryset = queryset.filter(days_since_first_due__gte=min_days)
        return list(queryset.order_by('-days_since_first_due', '-total_due_amount')[:limit])

    @classmethod
    def get_defaulters_by_grade(cls, school, grade=None):
        queryset = cls.objects.filter(school=school)
        if grade:
            queryset = queryset.filter(grade=grade)
        return list(
            queryset.values('grade')
            .annotate(
                count=Count('id'),
                total_due_amount=Sum('total_due_amount'),
                avg_days_since_first_due=Avg('days_since_first_due'),
            )
            .order_by('-total_due_amount')
        )

    @classmethod
    def get_defaulters_needing_reminders(cls, school, interval_days=7, grade=None):
        cutoff = get_school_current_time() - timedelta(days=interval_days)
        queryset = cls.objects.filter(school=school)
        if grade:
            queryset = queryset.filter(grade=grade)
        return list(
            queryset
            .filter(models.Q(last_reminder_date__isnull=True) | models.Q(last_reminder_date__lt=cutoff))
            .select_related('student')
            .order_by('-days_since_first_due')
        )

    def record_reminder(self):
        self.last_reminder_date = get_school_current_time()
        self.notification_count += 1
        self.save(update_fields=['last_reminder_date', 'notification_count'])
        logger.info(f"Recorded reminder #{self.notification_count} for defaulter {self.pk}")

    def is_reminder_due(self, interval_days=7):
        if not self.last_reminder_date:
            return True
        elapsed = get_school_current_time() - self.last_reminder_date
        return elapsed.days >= interval_days

    def to_dict(self):
        return {
            'id': str(self.pk),
            'student': self.student.to_summary(),
            'fee_record': str(self.fee_record_id),
            'grade': self.grade,
            'total_due_amount': self.total_due_amount,
            'overdue_months': self.overdue_months,
            'days_since_first_due': self.days_since_first_due,
            'last_reminder_date': self.last_reminder_date,
            'notification_count': self.notification_count,
            'severity_level': self.severity_level,
        }


# =============================================================================
# FEE TRANSACTIONS
# =============================================================================

class FeeTransaction(BaseModel):
    """Append-only record of money applied to a fee ledger"""

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    transaction_id = models.CharField("Transaction ID", max_length=40, unique=True, db_index=True)
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='fee_transactions'
    )
    fee_record = models.ForeignKey(
        StudentFeeRecord,
        verbose_name="Fee Record",
        on_delete=models.PROTECT,
        related_name='transactions'
    )
    school = models.ForeignKey(
        'accounts.School',
        verbose_name="School",
        on_delete=models.PROTECT,
        related_name='fee_transactions'
    )

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    transaction_type = models.CharField(
        "Transaction Type", max_length=15, choices=TRANSACTION_TYPE_CHOICES, default='payment'
    )
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    payment_method = models.CharField("Payment Method", max_length=20, choices=PAYMENT_METHOD_CHOICES)
    month = models.PositiveSmallIntegerField("Month", choices=MONTH_CHOICES, null=True, blank=True)
    fee_type = models.CharField("Fee Type", max_length=20, choices=FEE_TYPE_CHOICES, blank=True)
    collected_by_id = models.CharField(
        "Collected By ID",
        max_length=50,
        db_index=True,
        help_text="ID of the user who collected the payment"
    )
    remarks = models.TextField("Remarks", blank=True)
    status = models.CharField(
        "Status", max_length=10, choices=TRANSACTION_STATUS_CHOICES, default='completed', db_index=True
    )

    # -------------------------------------------------------------------------
    # AUDIT LOG
    # -------------------------------------------------------------------------

    ip_address = models.GenericIPAddressField("IP Address", null=True, blank=True)
    device_info = models.CharField("Device Info", max_length=255, blank=True)
    audit_timestamp = models.DateTimeField("Audit Timestamp", null=True, blank=True)

    class Meta:
        verbose_name = "Fee Transaction"
        verbose_name_plural = "Fee Transactions"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['student', 'created_at'], name='idx_txn_student_created'),
            models.Index(fields=['school', 'created_at'], name='idx_txn_school_created'),
            models.Index(fields=['school', 'collected_by_id', 'created_at'], name='idx_txn_collector'),
        ]

    def __str__(self):
        return f"{self.transaction_id} - {self.amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidState(f"Fee transaction {self.transaction_id} cannot be modified")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidState(f"Fee transaction {self.transaction_id} cannot be deleted")

    def get_collected_by_user(self):
        """Get the user who collected this payment"""
        from django.contrib.auth import get_user_model
        User = get_user_model()

        if not self.collected_by_id:
            return None
        try:
            return User.objects.get(pk=self.collected_by_id)
        except (ValueError, User.DoesNotExist) as e:
            logger.error(f"Error fetching collected_by user: {e}")
            return None

    def to_dict(self):
        return {
            'id': str(self.pk),
            'transaction_id': self.transaction_id,
            'student': str(self.student_id),
            'fee_record': str(self.fee_record_id),
            'transaction_type': self.transaction_type,
            'amount': self.amount,
            'payment_method': self.payment_method,
            'month': self.month,
            'fee_type': self.fee_type or None,
            'collected_by': self.collected_by_id,
            'remarks': self.remarks or None,
            'status': self.status,
            'date': self.created_at,
            'audit_log': {
                'ip_address': self.ip_address,
                'device_info': self.device_info or None,
                'timestamp': self.audit_timestamp,
            },
        }
