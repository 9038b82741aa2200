from decimal import Decimal

from fees.models import FeeStructure, FeeComponent
from fees.services import FeeCollectionService
from tests.conftest import ACADEMIC_YEAR, payment


def _new_structure(school, monthly_amount, components=()):
    structure = FeeStructure.objects.create(
        school=school, grade='5', academic_year=ACADEMIC_YEAR,
        monthly_amount=Decimal(monthly_amount), due_day=15,
    )
    for fee_type, amount in components:
        FeeComponent.objects.create(
            structure=structure, fee_type=fee_type, amount=Decimal(amount), is_one_time=True
        )
    return structure


def test_paid_months_survive_a_new_structure(student, school, accountant, structure):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))
    newer = _new_structure(school, '1200')

    record, used = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    assert used == newer
    assert record.fee_structure_id == newer.pk
    april = record.get_monthly_slot(4)
    assert (april.due_amount, april.paid_amount, april.status) == (
        Decimal('1000.00'), Decimal('1000.00'), 'paid'
    )
    for slot in record.monthly_payments.exclude(month=4):
        assert slot.due_amount == Decimal('1200.00')
        assert slot.due_date.day == 15
    assert record.total_fee_amount == Decimal('14200.00')
    assert record.total_paid_amount == Decimal('1000.00')
    assert record.total_due_amount == Decimal('13200.00')


def test_partial_amount_is_carried_forward(student, school, accountant, structure):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '400'))
    _new_structure(school, '1200')

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    april = record.get_monthly_slot(4)

    assert april.due_amount == Decimal('1200.00')
    assert april.paid_amount == Decimal('400.00')
    assert april.status == 'partial'


def test_waived_month_is_preserved(student, school, fee_record):
    fee_record.waive_fee(5, 'Fee concession', waived_by=1)
    _new_structure(school, '1200')

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    may = record.get_monthly_slot(5)

    assert may.waived
    assert may.due_amount == Decimal('1000.00')


def test_one_time_fees_follow_the_new_structure(student, school, accountant, structure_with_admission):
    FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    _new_structure(school, '1000', components=[('admission', '800'), ('exam', '300')])

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    fees = {fee.fee_type: fee.due_amount for fee in record.one_time_fees.all()}

    assert fees == {'admission': Decimal('800.00'), 'exam': Decimal('300.00')}
    assert record.total_fee_amount == Decimal('13100.00')


def test_paid_one_time_fee_is_kept_when_dropped(student, school, accountant, structure_with_admission):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1500'))
    _new_structure(school, '1000')

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    admission = record.one_time_fees.get(fee_type='admission')

    assert admission.status == 'paid'
    assert admission.paid_amount == Decimal('500.00')


def test_unpaid_dropped_component_is_removed(student, school, structure_with_admission):
    FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    _new_structure(school, '1000')

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    assert not record.one_time_fees.exists()
    assert record.total_fee_amount == Decimal('12000.00')


def test_reconciliation_bumps_version(student, school, fee_record):
    before = fee_record.version
    _new_structure(school, '1200')

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    assert record.version == before + 1


def test_collection_after_structure_change_uses_new_amounts(student, school, accountant, fee_record):
    _new_structure(school, '1200')

    result = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1200'))

    slot = result['fee_record'].get_monthly_slot(4)
    assert slot.status == 'paid'
    assert not any(w.startswith('Amount exceeds') for w in result['warnings'])


def test_reconciled_total_follows_the_slots_not_the_structure(student, school, accountant, structure):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))
    newer = _new_structure(school, '1200', components=[('exam', '300')])

    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)

    slot_dues = sum(s.due_amount for s in record.monthly_payments.all())
    slot_dues += sum(f.due_amount for f in record.one_time_fees.all())
    assert record.total_fee_amount == slot_dues == Decimal('14500.00')
    # April was settled at the old rate, so the structure total is never reached
    assert newer.yearly_total == Decimal('14700.00')
    assert record.total_due_amount == record.total_fee_amount - record.total_paid_amount
