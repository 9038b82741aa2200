from decimal import Decimal
from unittest.mock import patch

import pytest

from fees.exceptions import NotFound, ValidationFailed, InvalidState
from fees.models import FeeTransaction, StudentFeeRecord
from fees.services import FeeCollectionService
from tests.conftest import ACADEMIC_YEAR, payment


def test_first_payment_must_exceed_one_time_fees(student, school, structure_with_admission):
    result = FeeCollectionService.validate_fee_collection(
        student.pk, school, 4, '500', academic_year=ACADEMIC_YEAR
    )

    assert not result['valid']
    assert result['is_first_payment']
    assert result['total_one_time_fee_amount'] == Decimal('500.00')
    assert 'Insufficient amount' in result['errors'][0]


def test_first_payment_covering_one_time_fees_is_valid(student, school, structure_with_admission):
    result = FeeCollectionService.validate_fee_collection(
        student.pk, school, 4, '1500', academic_year=ACADEMIC_YEAR
    )

    assert result['valid']
    assert result['is_first_payment']
    assert result['total_one_time_fee_amount'] == Decimal('500.00')
    assert result['expected_amount'] == Decimal('1500.00')
    assert result['pending_one_time_fees'] == [{'fee_type': 'admission', 'amount': Decimal('500.00')}]


def test_validation_does_not_record_payment(student, school, structure):
    FeeCollectionService.validate_fee_collection(student.pk, school, 4, '1000', academic_year=ACADEMIC_YEAR)

    record = StudentFeeRecord.objects.get(student=student)
    assert record.total_paid_amount == Decimal('0.00')
    assert not FeeTransaction.objects.exists()


def test_validation_warns_about_earlier_unpaid_months(student, school, structure):
    result = FeeCollectionService.validate_fee_collection(
        student.pk, school, 6, '1000', academic_year=ACADEMIC_YEAR
    )
    assert result['valid']
    assert '2 previous month(s) are still pending' in result['warnings']
    assert any(w.startswith('Payment is overdue by') for w in result['warnings'])


def test_first_payment_settles_one_time_fees(student, school, accountant, structure_with_admission):
    result = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1500'))

    record = result['fee_record']
    assert result['is_first_payment']
    assert result['total_one_time_fee_amount'] == Decimal('500.00')
    assert result['transaction'].amount == Decimal('1000.00')
    assert result['transaction'].month == 4
    assert [t.fee_type for t in result['one_time_fee_transactions']] == ['admission']
    assert result['one_time_fee_transactions'][0].amount == Decimal('500.00')

    assert record.get_monthly_slot(4).status == 'paid'
    assert record.one_time_fees.get().status == 'paid'
    assert record.total_paid_amount == Decimal('1500.00')
    assert record.total_due_amount == Decimal('11000.00')
    assert not record.is_first_payment
    assert FeeTransaction.objects.filter(fee_record=record).count() == 2


def test_second_payment_does_not_charge_one_time_fees(student, school, accountant, structure_with_admission):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1500'))
    result = FeeCollectionService.collect_fee(payment(student, school, accountant, 5, '1000'))

    assert not result['is_first_payment']
    assert result['total_one_time_fee_amount'] == Decimal('0.00')
    assert result['one_time_fee_transactions'] == []


def test_insufficient_first_payment_is_rejected(student, school, accountant, structure_with_admission):
    with pytest.raises(ValidationFailed) as excinfo:
        FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '500'))

    assert 'Insufficient amount' in str(excinfo.value)
    assert not FeeTransaction.objects.exists()


def test_overpayment_is_accepted_with_warning(student, school, accountant, structure):
    result = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1200'))

    slot = result['fee_record'].get_monthly_slot(4)
    assert slot.status == 'paid'
    assert slot.paid_amount == Decimal('1200.00')
    assert FeeTransaction.objects.count() == 1
    assert any(w.startswith('Amount exceeds due amount') for w in result['warnings'])


def test_partial_payment_then_remainder(student, school, accountant, structure):
    first = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '300'))
    assert any(w.startswith('Partial payment') for w in first['warnings'])
    assert first['fee_record'].get_monthly_slot(4).status == 'partial'

    second = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '700'))
    assert second['fee_record'].get_monthly_slot(4).status == 'paid'
    assert second['fee_record'].total_paid_amount == Decimal('1000.00')


def test_paid_month_cannot_be_collected_again(student, school, accountant, structure):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))
    with pytest.raises(ValidationFailed) as excinfo:
        FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '100'))
    assert "already fully paid" in str(excinfo.value)


def test_waived_month_cannot_be_collected(student, school, accountant, fee_record):
    fee_record.waive_fee(4, 'Sibling discount', waived_by=accountant.pk)
    with pytest.raises(ValidationFailed):
        FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))


def test_unknown_payment_method_is_rejected(student, school, accountant, structure):
    with pytest.raises(ValidationFailed):
        FeeCollectionService.collect_fee(
            payment(student, school, accountant, 4, '1000', payment_method='barter')
        )


def test_transaction_records_audit_details(student, school, accountant, structure):
    result = FeeCollectionService.collect_fee(
        payment(student, school, accountant, 4, '1000', remarks='April fee')
    )
    fee_transaction = result['transaction']

    assert fee_transaction.collected_by_id == str(accountant.pk)
    assert fee_transaction.ip_address == '10.0.0.5'
    assert fee_transaction.device_info == 'pytest'
    assert fee_transaction.remarks == 'April fee'
    assert fee_transaction.get_collected_by_user() == accountant


def test_collected_payment_is_written_to_audit_log(student, school, accountant, structure):
    with patch('fees.signals.log_financial_activity') as mock_log:
        FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))

    mock_log.assert_called_once()
    assert mock_log.call_args.kwargs['action'] == 'FEE_COLLECTED'
    assert mock_log.call_args.kwargs['amount'] == Decimal('1000.00')


def test_collect_one_time_fee_partially(student, school, accountant, structure_with_admission):
    FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    result = FeeCollectionService.collect_one_time_fee({
        'student_id': student.pk,
        'school': school,
        'fee_type': 'admission',
        'amount': '200',
        'payment_method': 'upi',
        'collected_by': accountant.pk,
        'academic_year': ACADEMIC_YEAR,
    })

    assert result['one_time_fee']['status'] == 'partial'
    assert result['one_time_fee']['remaining_amount'] == Decimal('300.00')
    assert result['transaction'].fee_type == 'admission'
    assert result['transaction'].remarks == 'admission fee payment'
    assert result['fee_record'].has_received_payment


def test_collect_one_time_fee_over_balance_is_rejected(student, school, accountant, structure_with_admission):
    FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    with pytest.raises(ValidationFailed):
        FeeCollectionService.collect_one_time_fee({
            'student_id': student.pk,
            'school': school,
            'fee_type': 'admission',
            'amount': '600',
            'payment_method': 'cash',
            'collected_by': accountant.pk,
            'academic_year': ACADEMIC_YEAR,
        })


def test_collect_one_time_fee_without_ledger(student, school, accountant, structure_with_admission):
    with pytest.raises(NotFound):
        FeeCollectionService.collect_one_time_fee({
            'student_id': student.pk,
            'school': school,
            'fee_type': 'admission',
            'amount': '100',
            'payment_method': 'cash',
            'collected_by': accountant.pk,
            'academic_year': ACADEMIC_YEAR,
        })


def test_totals_stay_consistent_across_payments(student, school, accountant, structure_with_admission):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1500'))
    FeeCollectionService.collect_fee(payment(student, school, accountant, 5, '250'))
    FeeCollectionService.collect_fee(payment(student, school, accountant, 6, '1000'))

    record = StudentFeeRecord.objects.get(student=student)
    slots_paid = sum(s.paid_amount for s in record.monthly_payments.all())
    fees_paid = sum(f.paid_amount for f in record.one_time_fees.all())
    transactions_total = sum(t.amount for t in record.transactions.all())

    assert record.total_paid_amount == slots_paid + fees_paid == transactions_total == Decimal('2750.00')
    assert record.total_due_amount == record.total_fee_amount - record.total_paid_amount
    assert record.status == 'partial'


def test_slot_lookup_for_missing_month_raises(fee_record):
    fee_record.monthly_payments.filter(month=4).delete()
    with pytest.raises(InvalidState):
        fee_record.get_monthly_slot(4)
