# fees/services.py

"""
Fee Collection Operations

The only write path for money on a student's fee ledger:
- Ledger creation and reconciliation against the latest fee structure
- Payment validation (first-payment one-time fee rule, overpayment,
  partial, overdue and out-of-sequence warnings)
- Monthly and one-time fee collection with an audit transaction per line
- Late fees and waivers
- Student, parent and defaulter lookups

Read-only dashboards and reports live in fees/stats.py.
"""

from decimal import Decimal
from django.db import transaction, IntegrityError
from django.db.models import F
import logging
import uuid

from fees.models import (
    FeeStructure, StudentFeeRecord, MonthlyPayment, OneTimeFee, FeeTransaction,
    build_monthly_schedule, derive_record_status, month_name,
    PAYMENT_METHOD_CHOICES, FEE_TYPE_CHOICES,
    STATUS_PENDING, STATUS_PARTIAL, STATUS_PAID, STATUS_OVERDUE, STATUS_WAIVED,
    UNPAID_STATUSES, ZERO,
)
from fees.exceptions import NotFound, Forbidden, ValidationFailed, InternalError
from fees.utils import validate_choice, validate_month, validate_amount, resolve_audit_info
from fees import stats
from students.models import Student
from core.models import FinancialSettings
from core.utils import (
    get_school_today,
    get_current_academic_year,
    get_fee_setting,
    round_money,
    format_money,
)

logger = logging.getLogger(__name__)


# =============================================================================
# FEE COLLECTION SERVICE
# =============================================================================

class FeeCollectionService:
    """
    Fee ledger operations for accountants and administrators.
    Collection runs inside one database transaction with the ledger row
    locked, so concurrent collections against a ledger are serialized.
    """

    # Read projections shared with the dashboard views
    get_accountant_transactions = staticmethod(stats.get_accountant_transactions)
    get_daily_collection_summary = staticmethod(stats.get_daily_collection_summary)
    get_accountant_dashboard = staticmethod(stats.get_accountant_dashboard)
    get_financial_reports = staticmethod(stats.get_financial_reports)

    # -------------------------------------------------------------------------
    # LOOKUPS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_current_academic_year(school=None, today=None):
        """Academic year containing today, using the school's start month"""
        start_month = None
        if school is not None:
            start_month = FinancialSettings.get_instance(school).academic_year_start_month
        return get_current_academic_year(today=today, start_month=start_month)

    @staticmethod
    def get_student(student_id, school):
        """
        Resolve a student by primary key (or instance) for a requester's school.

        Raises:
            NotFound: no such student
            Forbidden: the student belongs to another school
        """
        if isinstance(student_id, Student):
            student = student_id
        else:
            try:
                student = Student.objects.select_related('school').get(pk=uuid.UUID(str(student_id)))
            except (ValueError, Student.DoesNotExist):
                raise NotFound("Student not found")

        if student.school_id != school.pk:
            logger.warning(
                f"Cross-school fee access: student {student.pk} requested for school {school.pk}"
            )
            raise Forbidden("Access denied. Student belongs to a different school.")
        return student

    @staticmethod
    def search_student(student_code, school):
        """Find a student by school-issued id"""
        student = Student.objects.filter(school=school, student_code=student_code).first()
        if student is None:
            raise NotFound("Student not found")
        return student.to_summary()

    # -------------------------------------------------------------------------
    # LEDGER LIFECYCLE
    # -------------------------------------------------------------------------

    @staticmethod
    def get_latest_structure(school, grade, academic_year):
        """
        Raises:
            NotFound: no active fee structure for the grade and year
        """
        structure = FeeStructure.get_latest(school, grade, academic_year)
        if structure is None:
            raise NotFound(
                f"No fee structure has been set for Grade {grade} in academic year "
                f"{academic_year}. Please ask the admin to create a fee structure for "
                f"this grade first."
            )
        return structure

    @staticmethod
    def create_fee_record(student, school, academic_year, structure):
        """Create a ledger for a student from a fee structure"""
        settings = FinancialSettings.get_instance(school)
        one_time_fees = [(c.fee_type, c.amount) for c in structure.get_one_time_components()]

        return StudentFeeRecord.create_for_student(
            student=student,
            school=school,
            grade=student.grade,
            academic_year=academic_year,
            fee_structure=structure,
            total_fee_amount=structure.yearly_total,
            due_day=structure.due_day,
            start_month=settings.academic_year_start_month,
            one_time_fees=one_time_fees,
        )

    @staticmethod
    def get_or_sync_fee_record(student, school, academic_year, lock=False):
        """
        Load the student's ledger for the year, creating it or reconciling
        it with the latest fee structure as needed.

        Args:
            lock: lock the ledger row for the rest of the transaction

        Returns:
            tuple: (StudentFeeRecord, FeeStructure)
        """
        structure = FeeCollectionService.get_latest_structure(school, student.grade, academic_year)

        records = StudentFeeRecord.objects.filter(student=student, academic_year=academic_year)
        if lock:
            records = records.select_for_update()
        record = records.first()

        if record is None:
            try:
                with transaction.atomic():
                    record = FeeCollectionService.create_fee_record(
                        student, school, academic_year, structure
                    )
            except IntegrityError:
                # Created concurrently by another request
                logger.info(f"Fee record for {student.pk} ({academic_year}) created concurrently")
                records = StudentFeeRecord.objects.filter(student=student, academic_year=academic_year)
                if lock:
                    records = records.select_for_update()
                record = records.get()

        if record.fee_structure_id != structure.pk:
            record = FeeCollectionService.reconcile_fee_record(record, structure, lock=lock)

        return record, structure

    @staticmethod
    @transaction.atomic
    def reconcile_fee_record(record, structure, lock=False):
        """
        Bring a ledger in line with a newer fee structure.

        Paid and waived monthly slots are preserved as they are. Every
        other slot takes the new monthly amount and due date, keeping any
        partial amount already received. A paid one-time fee stays paid;
        other one-time fees take the new component amount. The yearly
        total becomes the sum of the resulting slot dues rather than the
        structure's yearly_total: a paid month keeps its old amount, so a
        structure-based total would leave a balance no slot can collect.

        Raises:
            InternalError: the ledger could not be reloaded after the update
        """
        settings = FinancialSettings.get_instance(record.school)
        start_month = settings.academic_year_start_month

        schedule = build_monthly_schedule(
            record.academic_year,
            [round_money(structure.monthly_amount)] * 12,
            due_day=structure.due_day,
            start_month=start_month,
        )

        old_slots = {slot.month: slot for slot in record.monthly_payments.all()}
        for entry in schedule:
            slot = old_slots.get(entry['month'])
            if slot is None:
                MonthlyPayment.objects.create(fee_record=record, **entry)
                continue
            if slot.status == STATUS_PAID or slot.waived:
                continue

            slot.sequence = entry['sequence']
            slot.due_amount = entry['due_amount']
            slot.due_date = entry['due_date']
            slot.late_fee = ZERO
            if slot.paid_amount > 0:
                slot.status = STATUS_PAID if slot.paid_amount >= slot.due_amount else STATUS_PARTIAL
            else:
                slot.status = STATUS_PENDING
            slot.save()

        old_fees = {fee.fee_type: fee for fee in record.one_time_fees.all()}
        new_types = set()
        for component in structure.get_one_time_components():
            new_types.add(component.fee_type)
            fee = old_fees.get(component.fee_type)
            if fee is None:
                OneTimeFee.objects.create(
                    fee_record=record, fee_type=component.fee_type, due_amount=component.amount
                )
                continue
            if fee.status == STATUS_PAID or fee.waived:
                continue

            fee.due_amount = component.amount
            if fee.paid_amount > 0:
                fee.status = STATUS_PAID if fee.paid_amount >= fee.due_amount else STATUS_PARTIAL
            else:
                fee.status = STATUS_PENDING
            fee.save()

        # Components dropped from the structure go unless money was taken against them
        for fee_type, fee in old_fees.items():
            if fee_type not in new_types and fee.paid_amount == 0:
                fee.delete()

        monthly = MonthlyPayment.objects.filter(fee_record=record)
        one_time = OneTimeFee.objects.filter(fee_record=record)
        total_fee = sum((s.due_amount for s in monthly), ZERO) + sum((f.due_amount for f in one_time), ZERO)
        total_paid = sum((s.paid_amount for s in monthly), ZERO) + sum((f.paid_amount for f in one_time), ZERO)
        total_due = max(ZERO, total_fee - total_paid)
        today = get_school_today()
        has_overdue = any(
            s.status in (STATUS_PENDING, STATUS_OVERDUE) and not s.waived and s.due_date < today
            for s in monthly
        )

        StudentFeeRecord.objects.filter(pk=record.pk).update(
            fee_structure=structure,
            total_fee_amount=round_money(total_fee),
            total_paid_amount=round_money(total_paid),
            total_due_amount=round_money(total_due),
            status=derive_record_status(total_paid, total_due, has_overdue),
            has_received_payment=record.has_received_payment or total_paid > 0,
            version=F('version') + 1,
        )

        reloaded = StudentFeeRecord.objects.filter(pk=record.pk)
        if lock:
            reloaded = reloaded.select_for_update()
        reloaded = reloaded.first()
        if reloaded is None:
            logger.error(f"Fee record {record.pk} disappeared during reconciliation")
            raise InternalError("Failed to reload updated fee record")

        logger.info(
            f"Reconciled fee record {record.pk} with fee structure {structure.pk} "
            f"(total {reloaded.total_fee_amount}, due {reloaded.total_due_amount})"
        )
        return reloaded

    # -------------------------------------------------------------------------
    # STATUS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_student_fee_status(student_id, school, academic_year=None):
        """
        Fee status of a student, creating or reconciling the ledger first.

        Returns:
            dict: student summary, fee_record, upcoming_due (or None) and
            the most recent transactions on the ledger
        """
        student = FeeCollectionService.get_student(student_id, school)
        academic_year = academic_year or FeeCollectionService.get_current_academic_year(school)

        record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, academic_year)

        upcoming = record.get_upcoming_due()
        limit = get_fee_setting('RECENT_TRANSACTIONS_LIMIT')
        recent_transactions = list(
            FeeTransaction.objects.filter(student=student, fee_record=record)
            .order_by('-created_at')[:limit]
        )

        return {
            'student': student.to_summary(),
            'fee_record': record,
            'upcoming_due': {
                'month': upcoming.month,
                'amount': upcoming.due_amount,
                'due_date': upcoming.due_date,
            } if upcoming else None,
            'recent_transactions': recent_transactions,
        }

    # -------------------------------------------------------------------------
    # VALIDATION
    # -------------------------------------------------------------------------

    @staticmethod
    def evaluate_collection(record, slot, amount, include_late_fee=False, today=None):
        """
        Apply the collection rules to a ledger without touching the database
        beyond reading its slots.

        Returns:
            dict: valid, warnings, errors and the expected amounts
        """
        today = today or get_school_today()
        amount = round_money(amount)
        warnings = []
        errors = []

        if slot.status == STATUS_PAID:
            errors.append("This month's fee is already fully paid")
        if slot.waived:
            errors.append("This month's fee has been waived")

        is_first_payment = record.is_first_payment
        pending_one_time_fees = [f for f in record.get_pending_one_time_fees() if not f.waived]

        total_one_time_fee_amount = ZERO
        if is_first_payment and pending_one_time_fees:
            total_one_time_fee_amount = sum((f.outstanding_amount for f in pending_one_time_fees), ZERO)
            fee_types = ', '.join(f.fee_type for f in pending_one_time_fees)
            warnings.append(
                f"First payment must include {format_money(total_one_time_fee_amount)} "
                f"one-time fees ({fee_types})"
            )

        late_fee_amount = slot.late_fee if include_late_fee else ZERO
        monthly_expected_amount = slot.due_amount - slot.paid_amount + late_fee_amount
        expected_amount = monthly_expected_amount + total_one_time_fee_amount

        if amount > expected_amount:
            breakdown = f"Monthly: {format_money(monthly_expected_amount)}"
            if total_one_time_fee_amount > 0:
                breakdown += f" + One-time: {format_money(total_one_time_fee_amount)}"
            warnings.append(
                f"Amount exceeds due amount. Due: {format_money(expected_amount)} ({breakdown}), "
                f"Received: {format_money(amount)}"
            )

        if amount < expected_amount:
            # A first payment has to clear the one-time fees and reach the month itself
            if (is_first_payment and total_one_time_fee_amount > 0
                    and amount <= total_one_time_fee_amount and monthly_expected_amount > 0):
                errors.append(
                    f"Insufficient amount. First payment must be more than "
                    f"{format_money(total_one_time_fee_amount)} to cover one-time fees "
                    f"and part of this month's fee. You can pay the rest of the month later."
                )
            else:
                warnings.append(
                    f"Partial payment. Due: {format_money(expected_amount)}, "
                    f"Received: {format_money(amount)}, "
                    f"Remaining: {format_money(expected_amount - amount)}"
                )

        if slot.status in (STATUS_PENDING, STATUS_OVERDUE) and not slot.waived and slot.due_date < today:
            warnings.append(f"Payment is overdue by {(today - slot.due_date).days} days")

        previous_unpaid = record.monthly_payments.filter(
            sequence__lt=slot.sequence, waived=False
        ).exclude(status__in=[STATUS_PAID, STATUS_WAIVED]).count()
        if previous_unpaid:
            warnings.append(f"{previous_unpaid} previous month(s) are still pending")

        return {
            'valid': not errors,
            'warnings': warnings,
            'errors': errors,
            'monthly_payment': {
                'month': slot.month,
                'due_amount': slot.due_amount,
                'paid_amount': slot.paid_amount,
                'late_fee': slot.late_fee,
                'status': slot.status,
                'due_date': slot.due_date,
            },
            'expected_amount': expected_amount,
            'monthly_expected_amount': monthly_expected_amount,
            'total_one_time_fee_amount': total_one_time_fee_amount,
            'late_fee_amount': late_fee_amount,
            'include_late_fee': include_late_fee,
            'is_first_payment': is_first_payment,
            'pending_one_time_fees': [
                {'fee_type': f.fee_type, 'amount': f.outstanding_amount}
                for f in pending_one_time_fees
            ],
        }

    @staticmethod
    def validate_fee_collection(student_id, school, month, amount, include_late_fee=False,
                                academic_year=None):
        """
        Check a proposed payment. Records no payment; the ledger may be
        created or reconciled as part of loading it.

        Raises:
            ValidationFailed: month or amount is malformed
        """
        month = validate_month(month)
        amount = validate_amount(amount)

        status = FeeCollectionService.get_student_fee_status(student_id, school, academic_year)
        record = status['fee_record']

        try:
            slot = record.monthly_payments.get(month=month)
        except MonthlyPayment.DoesNotExist:
            raise ValidationFailed("Invalid month selected")

        return FeeCollectionService.evaluate_collection(record, slot, amount, include_late_fee)

    # -------------------------------------------------------------------------
    # COLLECTION
    # -------------------------------------------------------------------------

    @staticmethod
    def _create_transaction(record, student, school, amount, payment_data, audit_info, **extra):
        return FeeTransaction.objects.create(
            student=student,
            fee_record=record,
            school=school,
            transaction_type='payment',
            amount=round_money(amount),
            payment_method=payment_data['payment_method'],
            collected_by_id=str(payment_data['collected_by']),
            status='completed',
            ip_address=audit_info['ip_address'],
            device_info=audit_info['device_info'],
            **extra
        )

    @staticmethod
    @transaction.atomic
    def collect_fee(payment_data):
        """
        Collect a monthly fee, settling pending one-time fees on the first
        payment.

        Args:
            payment_data (dict):
                Required:
                    - student_id: Student primary key or instance
                    - school: School of the requester
                    - month: calendar month 1-12
                    - amount: positive amount
                    - payment_method: one of PAYMENT_METHOD_CHOICES
                    - collected_by: id of the collecting user
                Optional:
                    - remarks: str
                    - include_late_fee: bool
                    - audit_info: {'ip_address', 'device_info'}
                    - academic_year: 'YYYY-YYYY' (defaults to current)

        Returns:
            dict: success, transaction, one_time_fee_transactions,
            fee_record, warnings, is_first_payment, total_one_time_fee_amount

        Raises:
            ValidationFailed: the payment breaks a collection rule
        """
        school = payment_data['school']
        month = validate_month(payment_data.get('month'))
        amount = validate_amount(payment_data.get('amount'))
        validate_choice(payment_data.get('payment_method'), PAYMENT_METHOD_CHOICES, 'payment method')
        include_late_fee = bool(payment_data.get('include_late_fee', False))
        audit_info = resolve_audit_info(payment_data.get('audit_info'))

        student = FeeCollectionService.get_student(payment_data['student_id'], school)
        academic_year = (
            payment_data.get('academic_year')
            or FeeCollectionService.get_current_academic_year(school)
        )
        record, _ = FeeCollectionService.get_or_sync_fee_record(
            student, school, academic_year, lock=True
        )

        try:
            slot = record.monthly_payments.get(month=month)
        except MonthlyPayment.DoesNotExist:
            raise ValidationFailed("Invalid month selected")

        validation = FeeCollectionService.evaluate_collection(record, slot, amount, include_late_fee)
        if not validation['valid']:
            logger.warning(
                f"Rejected fee collection for student {student.pk} month {month}: "
                f"{'; '.join(validation['errors'])}"
            )
            raise ValidationFailed('; '.join(validation['errors']))

        is_first_payment = record.is_first_payment
        pending_one_time_fees = []
        total_one_time_fee_amount = ZERO
        if is_first_payment:
            pending_one_time_fees = [f for f in record.get_pending_one_time_fees() if not f.waived]
            total_one_time_fee_amount = sum(
                (f.outstanding_amount for f in pending_one_time_fees), ZERO
            )

        monthly_payment_amount = amount - total_one_time_fee_amount
        if monthly_payment_amount < 0:
            raise ValidationFailed(
                f"Amount must be at least {format_money(total_one_time_fee_amount)} "
                f"to cover one-time fees"
            )

        if monthly_payment_amount > 0:
            record.record_payment(month, monthly_payment_amount)

        one_time_fee_transactions = []
        if total_one_time_fee_amount > 0:
            today = get_school_today()
            for fee in pending_one_time_fees:
                amount_to_pay = fee.outstanding_amount
                if amount_to_pay <= 0:
                    continue
                fee.paid_amount = fee.paid_amount + amount_to_pay
                fee.paid_date = today
                fee.status = STATUS_PAID
                fee.save()

                one_time_fee_transactions.append(FeeCollectionService._create_transaction(
                    record, student, school, amount_to_pay, payment_data, audit_info,
                    fee_type=fee.fee_type,
                    remarks=f"One-time fee ({fee.fee_type}) - Collected with first payment",
                ))

            record.has_received_payment = True
            record.save()

        remarks = payment_data.get('remarks') or ''
        if not remarks and total_one_time_fee_amount > 0:
            remarks = f"First payment including {format_money(total_one_time_fee_amount)} one-time fees"

        fee_transaction = FeeCollectionService._create_transaction(
            record, student, school,
            monthly_payment_amount if monthly_payment_amount > 0 else amount,
            payment_data, audit_info,
            month=month,
            remarks=remarks,
        )

        logger.info(
            f"Collected {amount} from student {student.pk} for {month_name(month)} "
            f"({len(one_time_fee_transactions)} one-time fee(s) settled), "
            f"transaction {fee_transaction.transaction_id}"
        )

        return {
            'success': True,
            'transaction': fee_transaction,
            'one_time_fee_transactions': one_time_fee_transactions,
            'fee_record': record,
            'warnings': validation['warnings'],
            'is_first_payment': is_first_payment,
            'total_one_time_fee_amount': total_one_time_fee_amount,
        }

    @staticmethod
    @transaction.atomic
    def collect_one_time_fee(payment_data):
        """
        Collect a payment against a single one-time fee.

        Args:
            payment_data (dict): student_id, school, fee_type, amount,
                payment_method, collected_by; optional remarks, audit_info,
                academic_year

        Returns:
            dict: success, transaction, fee_record, one_time_fee

        Raises:
            NotFound: no ledger, or no unpaid fee of that type
            ValidationFailed: amount exceeds the remaining balance
        """
        school = payment_data['school']
        fee_type = validate_choice(payment_data.get('fee_type'), FEE_TYPE_CHOICES, 'fee type')
        amount = validate_amount(payment_data.get('amount'))
        validate_choice(payment_data.get('payment_method'), PAYMENT_METHOD_CHOICES, 'payment method')
        audit_info = resolve_audit_info(payment_data.get('audit_info'))

        student = FeeCollectionService.get_student(payment_data['student_id'], school)
        academic_year = (
            payment_data.get('academic_year')
            or FeeCollectionService.get_current_academic_year(school)
        )

        record = StudentFeeRecord.objects.select_for_update().filter(
            student=student, school=school, academic_year=academic_year
        ).first()
        if record is None:
            raise NotFound("Student fee record not found")

        fee = record.one_time_fees.filter(fee_type=fee_type, waived=False).exclude(
            status=STATUS_PAID
        ).first()
        if fee is None:
            raise NotFound(f"{fee_type} fee not found or already paid")

        remaining = fee.outstanding_amount
        if amount > remaining:
            raise ValidationFailed(
                f"Payment amount ({amount}) exceeds remaining due amount ({remaining})"
            )

        fee.paid_amount = fee.paid_amount + amount
        if fee.paid_amount >= fee.due_amount:
            fee.status = STATUS_PAID
            fee.paid_date = get_school_today()
        else:
            fee.status = STATUS_PARTIAL
        fee.save()

        record.has_received_payment = True
        record.save()

        fee_transaction = FeeCollectionService._create_transaction(
            record, student, school, amount, payment_data, audit_info,
            fee_type=fee_type,
            remarks=payment_data.get('remarks') or f"{fee_type} fee payment",
        )

        logger.info(
            f"Collected {amount} {fee_type} fee from student {student.pk}, "
            f"transaction {fee_transaction.transaction_id}"
        )

        return {
            'success': True,
            'transaction': fee_transaction,
            'fee_record': record,
            'one_time_fee': {
                'fee_type': fee.fee_type,
                'due_amount': fee.due_amount,
                'paid_amount': fee.paid_amount,
                'status': fee.status,
                'remaining_amount': fee.outstanding_amount,
            },
        }

    # -------------------------------------------------------------------------
    # LATE FEES AND WAIVERS
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def apply_late_fees(school, academic_year=None, late_fee_percentage=None, today=None):
        """
        Charge the school's late fee on every past-due slot.

        Returns:
            int: number of slots charged
        """
        today = today or get_school_today()
        academic_year = academic_year or FeeCollectionService.get_current_academic_year(school, today)
        if late_fee_percentage is None:
            late_fee_percentage = FinancialSettings.get_instance(school).late_fee_percentage
        late_fee_percentage = Decimal(str(late_fee_percentage))

        if late_fee_percentage <= 0:
            logger.info(f"Late fees disabled for {school}, nothing applied")
            return 0

        applied = 0
        records = StudentFeeRecord.objects.select_for_update().filter(
            school=school, academic_year=academic_year
        )
        for record in records:
            for month in record.get_overdue_months(today):
                slot = record.apply_late_fee(month, late_fee_percentage, today=today)
                if slot.status == STATUS_OVERDUE:
                    applied += 1

        logger.info(f"Applied late fees to {applied} slot(s) for {school} ({academic_year})")
        return applied

    @staticmethod
    @transaction.atomic
    def waive_month(student_id, school, month, reason, waived_by, academic_year=None):
        """
        Waive a student's monthly fee.

        Raises:
            ValidationFailed: no reason given
            NotFound: no ledger for the year
        """
        month = validate_month(month)
        if not (reason or '').strip():
            raise ValidationFailed("A waiver reason is required")

        student = FeeCollectionService.get_student(student_id, school)
        academic_year = academic_year or FeeCollectionService.get_current_academic_year(school)

        record = StudentFeeRecord.objects.select_for_update().filter(
            student=student, school=school, academic_year=academic_year
        ).first()
        if record is None:
            raise NotFound("Student fee record not found")

        slot = record.waive_fee(month, reason.strip(), waived_by)
        return {'fee_record': record, 'monthly_payment': slot}

    # -------------------------------------------------------------------------
    # STUDENT-FACING QUERIES
    # -------------------------------------------------------------------------

    @staticmethod
    def _next_due(record, today):
        """Earliest unpaid, unwaived slot by due date"""
        slot = record.monthly_payments.filter(waived=False).exclude(
            status__in=[STATUS_PAID, STATUS_WAIVED]
        ).order_by('due_date').first()
        if slot is None:
            return None
        return {
            'month': slot.month,
            'amount': slot.due_amount - slot.paid_amount,
            'due_date': slot.due_date,
            'is_overdue': slot.due_date < today,
        }

    @staticmethod
    def _admission_summary(record):
        admission = record.one_time_fees.filter(fee_type='admission').first()
        if admission is None:
            return {
                'admission_pending': False,
                'admission_fee_amount': ZERO,
                'admission_fee_paid': ZERO,
                'admission_fee_remaining': ZERO,
            }
        return {
            'admission_pending': admission.status != STATUS_PAID,
            'admission_fee_amount': admission.due_amount,
            'admission_fee_paid': admission.paid_amount,
            'admission_fee_remaining': admission.outstanding_amount,
        }

    @staticmethod
    def get_student_fee_status_detailed(student_code, school):
        """Full fee picture of a student for the current academic year"""
        student = Student.objects.filter(school=school, student_code=student_code).first()
        if student is None:
            raise NotFound("Student not found")

        academic_year = FeeCollectionService.get_current_academic_year(school)
        record = StudentFeeRecord.objects.filter(
            student=student, school=school, academic_year=academic_year
        ).first()

        if record is None:
            return {
                'student': student.to_summary(),
                'has_fee_record': False,
                'total_fee_amount': ZERO,
                'total_paid_amount': ZERO,
                'total_due_amount': ZERO,
                'monthly_dues': ZERO,
                'one_time_dues': ZERO,
                'pending_months': 0,
                'status': STATUS_PENDING,
            }

        today = get_school_today()
        pending_slots = list(
            record.monthly_payments.filter(waived=False).exclude(status=STATUS_PAID)
        )
        one_time_dues = sum(
            (f.outstanding_amount for f in record.one_time_fees.filter(
                status__in=[STATUS_PENDING, STATUS_PARTIAL])),
            ZERO,
        )
        recent = FeeTransaction.objects.filter(
            student=student, school=school, transaction_type='payment', status='completed'
        ).order_by('-created_at')[:5]

        result = {
            'student': student.to_summary(),
            'has_fee_record': True,
            'total_fee_amount': record.total_fee_amount,
            'total_paid_amount': record.total_paid_amount,
            'total_due_amount': record.total_due_amount,
            'monthly_dues': sum((s.due_amount - s.paid_amount for s in pending_slots), ZERO),
            'one_time_dues': one_time_dues,
            'pending_months': len(pending_slots),
            'status': record.status,
            'next_due': FeeCollectionService._next_due(record, today),
            'monthly_payments': [s.to_dict() for s in record.monthly_payments.order_by('sequence')],
            'one_time_fees': [f.to_dict() for f in record.one_time_fees.all()],
            'recent_transactions': [t.to_dict() for t in recent],
        }
        result.update(FeeCollectionService._admission_summary(record))
        return result

    @staticmethod
    def get_parent_children_fee_status(parent_contact, school):
        """Fee summary for every active child registered to a parent contact"""
        children = Student.objects.for_school(school).active().filter(parent_contact=parent_contact)
        academic_year = FeeCollectionService.get_current_academic_year(school)
        today = get_school_today()

        summaries = []
        for child in children:
            record = StudentFeeRecord.objects.filter(
                student=child, school=school, academic_year=academic_year
            ).first()

            summary = child.to_summary()
            if record is None:
                summary.update({
                    'total_fees': ZERO,
                    'total_paid': ZERO,
                    'total_due': ZERO,
                    'pending_months': 0,
                    'admission_pending': False,
                    'fee_status': STATUS_PENDING,
                    'has_fee_record': False,
                    'next_due': None,
                })
                summaries.append(summary)
                continue

            summary.update({
                'total_fees': record.total_fee_amount,
                'total_paid': record.total_paid_amount,
                'total_due': record.total_due_amount,
                'pending_months': record.monthly_payments.filter(waived=False).exclude(
                    status=STATUS_PAID).count(),
                'fee_status': record.status,
                'has_fee_record': True,
                'next_due': FeeCollectionService._next_due(record, today),
            })
            summary.update(FeeCollectionService._admission_summary(record))
            summaries.append(summary)

        return {
            'children': summaries,
            'total_due_amount': sum((c['total_due'] for c in summaries), ZERO),
            'total_children': len(summaries),
        }

    @staticmethod
    def get_defaulters(school, today=None):
        """
        Current-year ledgers with an unwaived slot past its due date,
        largest balance first.
        """
        today = today or get_school_today()
        academic_year = FeeCollectionService.get_current_academic_year(school, today)

        overdue_record_ids = MonthlyPayment.objects.filter(
            fee_record__school=school,
            fee_record__academic_year=academic_year,
            status__in=UNPAID_STATUSES,
            waived=False,
            due_date__lt=today,
        ).values('fee_record_id')

        records = StudentFeeRecord.objects.filter(pk__in=overdue_record_ids).select_related(
            'student').order_by('-total_due_amount')

        defaulters = []
        for record in records:
            overdue_slots = [
                slot for slot in record.monthly_payments.all() if slot.is_overdue(today)
            ]
            last_payment = record.monthly_payments.filter(paid_date__isnull=False).order_by(
                '-paid_date').values_list('paid_date', flat=True).first()
            entry = record.student.to_summary()
            entry.update({
                'fee_record': str(record.pk),
                'total_due_amount': record.total_due_amount,
                'total_overdue': sum((s.outstanding_amount for s in overdue_slots), ZERO),
                'overdue_months': len(overdue_slots),
                'last_payment_date': last_payment,
                'fee_status': record.status,
            })
            defaulters.append(entry)
        return defaulters

    @staticmethod
    def get_students_by_grade_section(school, grade=None, section=None):
        """
        Active students with their current-year fee summary. Missing
        ledgers are created when a fee structure exists.
        """
        students = Student.objects.for_school(school).active()
        if grade:
            students = students.filter(grade=grade)
        if section:
            students = students.filter(section=section)

        academic_year = FeeCollectionService.get_current_academic_year(school)

        results = []
        for student in students.order_by('grade', 'section', 'roll_number'):
            record = StudentFeeRecord.objects.filter(
                student=student, academic_year=academic_year
            ).first()

            if record is None and FeeStructure.get_latest(school, student.grade, academic_year):
                try:
                    record, _ = FeeCollectionService.get_or_sync_fee_record(
                        student, school, academic_year
                    )
                except Exception as e:
                    logger.error(
                        f"Could not create fee record for student {student.pk}: {e}",
                        exc_info=True
                    )
                    record = None

            entry = student.to_summary()
            entry['fee_status'] = {
                'total_fee_amount': record.total_fee_amount,
                'total_paid_amount': record.total_paid_amount,
                'total_due_amount': record.total_due_amount,
                'status': record.status,
                'pending_months': record.monthly_payments.filter(
                    status__in=[STATUS_PENDING, STATUS_OVERDUE]).count(),
            } if record else None
            results.append(entry)

        return results
