from datetime import date
from decimal import Decimal

import pytest

from fees.models import FeeDefaulter, StudentFeeRecord
from fees.services import FeeCollectionService
from students.models import Student
from tests.conftest import ACADEMIC_YEAR, payment

TODAY = date(2024, 6, 1)


def test_sync_lists_months_past_grace_period(school, fee_record):
    result = FeeDefaulter.sync_defaulters_for_school(school, grace_period_days=7, today=TODAY)

    assert result == {'synced': 1, 'removed': 0}
    defaulter = FeeDefaulter.objects.get()
    assert defaulter.fee_record == fee_record
    assert defaulter.overdue_months == [4, 5]
    assert defaulter.total_due_amount == Decimal('2000.00')
    assert defaulter.days_since_first_due == (TODAY - date(2024, 4, 10)).days
    assert defaulter.notification_count == 0


def test_grace_period_holds_back_recent_months(school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, grace_period_days=30, today=TODAY)
    assert FeeDefaulter.objects.get().overdue_months == [4]


def test_sync_is_idempotent(school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    first = FeeDefaulter.objects.get()

    result = FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    second = FeeDefaulter.objects.get()

    assert result == {'synced': 1, 'removed': 0}
    assert second.pk == first.pk
    assert second.updated_at == first.updated_at


def test_sync_keeps_reminder_history(school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    FeeDefaulter.objects.get().record_reminder()

    FeeDefaulter.sync_defaulters_for_school(school, 7, today=date(2024, 7, 1))
    defaulter = FeeDefaulter.objects.get()

    assert defaulter.notification_count == 1
    assert defaulter.overdue_months == [4, 5, 6]


def test_sync_removes_students_who_caught_up(school, student, accountant, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    for month in (4, 5):
        FeeCollectionService.collect_fee(payment(student, school, accountant, month, '1000'))

    result = FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)

    assert result == {'synced': 0, 'removed': 1}
    assert not FeeDefaulter.objects.exists()


def test_waived_months_do_not_make_a_defaulter(school, fee_record):
    fee_record.waive_fee(4, 'Scholarship', waived_by=1)
    fee_record.waive_fee(5, 'Scholarship', waived_by=1)

    result = FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    assert result['synced'] == 0


def test_sync_is_scoped_to_school(school, other_school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    result = FeeDefaulter.sync_defaulters_for_school(other_school, 7, today=TODAY)

    assert result == {'synced': 0, 'removed': 0}
    assert FeeDefaulter.objects.filter(school=school).count() == 1


def test_find_defaulters_matches_sync(school, fee_record):
    assert list(StudentFeeRecord.find_defaulters(school, 7, today=TODAY)) == [fee_record]
    assert not StudentFeeRecord.find_defaulters(school, 7, today=date(2024, 4, 15)).exists()


@pytest.mark.parametrize('days, amount, level', [
    (61, '100', 'critical'),
    (10, '60000', 'critical'),
    (31, '100', 'high'),
    (15, '100', 'medium'),
    (3, '100', 'low'),
])
def test_severity_level(days, amount, level):
    assert FeeDefaulter(days_since_first_due=days, total_due_amount=Decimal(amount)).severity_level == level


def test_reminder_due_after_interval(school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)
    defaulter = FeeDefaulter.objects.get()
    assert defaulter.is_reminder_due(7)

    defaulter.record_reminder()
    assert not defaulter.is_reminder_due(7)
    assert FeeDefaulter.get_defaulters_needing_reminders(school, 7) == []


def test_defaulters_by_grade(school, student, structure, fee_record):
    classmate = Student.objects.create(school=school, student_code='GW-002', first_name='Dev', grade='5')
    FeeCollectionService.get_or_sync_fee_record(classmate, school, ACADEMIC_YEAR)
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=TODAY)

    rows = FeeDefaulter.get_defaulters_by_grade(school)

    assert len(rows) == 1
    assert rows[0]['grade'] == '5'
    assert rows[0]['count'] == 2
    assert rows[0]['total_due_amount'] == Decimal('4000.00')


def test_live_defaulter_list(school, fee_record):
    defaulters = FeeCollectionService.get_defaulters(school, today=date(2024, 6, 1))

    assert len(defaulters) == 1
    entry = defaulters[0]
    assert entry['student_code'] == 'GW-001'
    assert entry['overdue_months'] == 2
    assert entry['total_overdue'] == Decimal('2000.00')
    assert entry['last_payment_date'] is None
