from decimal import Decimal

from core.utils import get_school_today
from fees import stats
from fees.services import FeeCollectionService
from tests.conftest import payment


def _collect(student, school, accountant):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))
    FeeCollectionService.collect_fee(payment(student, school, accountant, 5, '500', payment_method='upi'))


def test_daily_collection_summary(student, school, accountant, structure):
    _collect(student, school, accountant)

    summary = stats.get_daily_collection_summary(accountant.pk, school, get_school_today())

    assert summary['total_collected'] == Decimal('1500.00')
    assert summary['total_transactions'] == 2
    methods = {row['payment_method']: row['total_amount'] for row in summary['by_payment_method']}
    assert methods == {'cash': Decimal('1000.00'), 'upi': Decimal('500.00')}


def test_accountant_transactions(student, school, accountant, structure):
    _collect(student, school, accountant)
    today = get_school_today()

    rows = stats.get_accountant_transactions(accountant.pk, school, today, today)

    assert [row['month'] for row in rows] == [5, 4]
    assert rows[0]['student_code'] == 'GW-001'
    assert stats.get_accountant_transactions('someone-else', school, today, today) == []


def test_financial_report(student, school, accountant, structure):
    _collect(student, school, accountant)

    report = stats.get_financial_reports(school, 'daily')

    assert report['summary'] == {
        'total_amount': Decimal('1500.00'),
        'total_transactions': 2,
        'average_transaction': Decimal('750.00'),
    }
    assert report['by_grade'] == [{'grade': '5', 'total_amount': Decimal('1500.00'), 'count': 2}]
    assert report['top_collectors'][0]['name'] == 'Ravi Kumar'
    assert len(report['daily_breakdown']) == 1


def test_unknown_report_type_falls_back_to_monthly(school):
    report = stats.get_financial_reports(school, 'fortnightly')
    assert report['report_type'] == 'monthly'
    assert report['summary']['total_transactions'] == 0


def test_dashboard_counts(student, school, accountant, structure):
    _collect(student, school, accountant)

    dashboard = FeeCollectionService.get_accountant_dashboard(accountant.pk, school)

    assert dashboard['today_collections'] == Decimal('1500.00')
    assert dashboard['today_transactions'] == 2
    assert len(dashboard['recent_transactions']) == 2
