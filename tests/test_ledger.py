from datetime import date
from decimal import Decimal

import pytest

from fees.exceptions import InvalidState, NotFound, ValidationFailed, Forbidden
from fees.models import (
    FeeStructure, StudentFeeRecord, MonthlyPayment, FeeTransaction, derive_record_status,
)
from fees.services import FeeCollectionService
from tests.conftest import ACADEMIC_YEAR


def test_ledger_splits_yearly_total_into_twelve_months(fee_record):
    slots = list(fee_record.monthly_payments.order_by('sequence'))

    assert len(slots) == 12
    assert fee_record.total_fee_amount == Decimal('12000.00')
    assert all(slot.due_amount == Decimal('1000.00') for slot in slots)
    assert [slot.month for slot in slots] == [4, 5, 6, 7, 8, 9, 10, 11, 12, 1, 2, 3]
    assert slots[0].due_date == date(2024, 4, 10)
    assert slots[-1].due_date == date(2025, 3, 10)


def test_new_ledger_totals_and_status(fee_record):
    assert fee_record.total_paid_amount == Decimal('0.00')
    assert fee_record.total_due_amount == Decimal('12000.00')
    # Every due date of a past year has gone by
    assert fee_record.status == 'overdue'
    assert fee_record.is_first_payment


def test_one_time_components_become_one_time_fees(student, school, structure_with_admission):
    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    assert record.total_fee_amount == Decimal('12500.00')
    assert record.monthly_payments.first().due_amount == Decimal('1000.00')
    fee = record.one_time_fees.get()
    assert (fee.fee_type, fee.due_amount, fee.status) == ('admission', Decimal('500.00'), 'pending')


def test_create_rejects_malformed_academic_year(student, school, structure):
    with pytest.raises(ValidationFailed):
        StudentFeeRecord.create_for_student(
            student, school, '5', '2024', structure, Decimal('12000')
        )


@pytest.mark.parametrize('due_day', [40, 0])
def test_out_of_range_due_day_falls_back_to_the_10th(student, school, structure, due_day):
    record = StudentFeeRecord.create_for_student(
        student, school, '5', ACADEMIC_YEAR, structure, Decimal('12000'), due_day=due_day
    )

    slots = list(record.monthly_payments.order_by('sequence'))
    assert len(slots) == 12
    assert all(slot.due_date.day == 10 for slot in slots)


def test_get_or_sync_reuses_existing_ledger(fee_record, student, school):
    again, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    assert again.pk == fee_record.pk
    assert StudentFeeRecord.objects.filter(student=student).count() == 1


def test_missing_structure_is_not_found(student, school):
    with pytest.raises(NotFound) as excinfo:
        FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    assert 'No fee structure has been set for Grade 5' in str(excinfo.value)


def test_latest_active_structure_wins(school, structure):
    newer = FeeStructure.objects.create(
        school=school, grade='5', academic_year=ACADEMIC_YEAR, monthly_amount=Decimal('1100.00')
    )
    FeeStructure.objects.create(
        school=school, grade='5', academic_year=ACADEMIC_YEAR,
        monthly_amount=Decimal('900.00'), is_active=False,
    )
    assert FeeStructure.get_latest(school, '5', ACADEMIC_YEAR) == newer


def test_record_payment_partial_then_paid(fee_record):
    slot = fee_record.record_payment(4, Decimal('400'))
    assert slot.status == 'partial'
    assert fee_record.status == 'partial'

    slot = fee_record.record_payment(4, Decimal('600'))
    assert slot.status == 'paid'
    assert slot.paid_amount == Decimal('1000.00')
    assert fee_record.total_paid_amount == Decimal('1000.00')
    assert fee_record.total_due_amount == Decimal('11000.00')


def test_record_payment_on_paid_month_is_rejected(fee_record):
    fee_record.record_payment(4, Decimal('1000'))
    with pytest.raises(InvalidState):
        fee_record.record_payment(4, Decimal('1'))


def test_version_increases_on_every_save(fee_record):
    before = fee_record.version
    fee_record.record_payment(5, Decimal('100'))
    assert fee_record.version > before


def test_waived_month_is_not_overdue(fee_record):
    fee_record.waive_fee(4, 'Scholarship', waived_by='7')
    slot = fee_record.get_monthly_slot(4)

    assert slot.status == 'waived'
    assert slot.waived_by_id == '7'
    assert 4 not in fee_record.get_overdue_months(date(2024, 6, 1))
    assert fee_record.get_overdue_months(date(2024, 6, 1)) == [5]
    assert not slot.is_overdue(date(2024, 6, 1))


def test_late_fee_is_recomputed_not_accumulated(fee_record):
    today = date(2024, 6, 1)
    fee_record.apply_late_fee(4, Decimal('5'), today=today)
    slot = fee_record.apply_late_fee(4, Decimal('5'), today=today)

    assert slot.late_fee == Decimal('50.00')
    assert slot.status == 'overdue'
    assert slot.outstanding_amount == Decimal('1050.00')


def test_late_fee_skips_future_months(fee_record):
    slot = fee_record.apply_late_fee(9, Decimal('5'), today=date(2024, 6, 1))
    assert slot.late_fee == Decimal('0.00')
    assert slot.status == 'pending'


def test_apply_late_fees_for_school(fee_record, school):
    applied = FeeCollectionService.apply_late_fees(
        school, academic_year=ACADEMIC_YEAR, late_fee_percentage=Decimal('2'), today=date(2024, 6, 1)
    )
    assert applied == 2
    assert MonthlyPayment.objects.filter(fee_record=fee_record, late_fee=Decimal('20.00')).count() == 2


def test_apply_late_fees_disabled_by_zero_percentage(fee_record, school):
    assert FeeCollectionService.apply_late_fees(
        school, academic_year=ACADEMIC_YEAR, today=date(2024, 6, 1)
    ) == 0


def test_waive_month_requires_reason(fee_record, student, school):
    with pytest.raises(ValidationFailed):
        FeeCollectionService.waive_month(student.pk, school, 4, '  ', waived_by=1, academic_year=ACADEMIC_YEAR)


def test_student_of_another_school_is_forbidden(student, other_school):
    with pytest.raises(Forbidden):
        FeeCollectionService.get_student(student.pk, other_school)


def test_unknown_student_is_not_found(school):
    with pytest.raises(NotFound):
        FeeCollectionService.get_student('not-a-uuid', school)


def test_transactions_are_append_only(fee_record, student, school, accountant):
    fee_transaction = FeeTransaction.objects.create(
        student=student, fee_record=fee_record, school=school,
        amount=Decimal('100'), payment_method='cash', collected_by_id=str(accountant.pk), month=4,
    )
    assert fee_transaction.transaction_id.startswith('TXN-')
    assert fee_transaction.audit_timestamp is not None

    fee_transaction.remarks = 'edited'
    with pytest.raises(InvalidState):
        fee_transaction.save()
    with pytest.raises(InvalidState):
        fee_transaction.delete()


@pytest.mark.parametrize('paid, due, overdue, expected', [
    (Decimal('0'), Decimal('0'), False, 'paid'),
    (Decimal('100'), Decimal('-100'), False, 'paid'),
    (Decimal('100'), Decimal('50'), True, 'partial'),
    (Decimal('0'), Decimal('50'), True, 'overdue'),
    (Decimal('0'), Decimal('50'), False, 'pending'),
])
def test_derive_record_status(paid, due, overdue, expected):
    assert derive_record_status(paid, due, overdue) == expected
