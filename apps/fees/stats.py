# fees/stats.py

"""
Statistics and report queries over fee transactions and ledgers.
Read-only projections for accountant dashboards and financial reports.
"""

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db.models import Count, Sum
from django.db.models.functions import TruncDate
from decimal import Decimal
from datetime import date
import calendar
import logging

from core.utils import (
    get_school_today,
    get_current_academic_year,
    get_period_range,
    start_of_day,
    end_of_day,
    round_money,
)

logger = logging.getLogger(__name__)

REPORT_TYPES = ('daily', 'weekly', 'monthly', 'yearly')


# =============================================================================
# HELPERS
# =============================================================================

def _completed_payments(school, start, end):
    """Completed payment transactions of a school between two dates (inclusive)"""
    from .models import FeeTransaction

    return FeeTransaction.objects.filter(
        school=school,
        transaction_type='payment',
        status='completed',
        created_at__gte=start_of_day(start),
        created_at__lte=end_of_day(end),
    )


def _totals(queryset):
    result = queryset.aggregate(total_amount=Sum('amount'), count=Count('id'))
    return {
        'total_amount': result['total_amount'] or Decimal('0.00'),
        'count': result['count'] or 0,
    }


def _by_payment_method(queryset):
    return list(
        queryset.values('payment_method')
        .annotate(total_amount=Sum('amount'), count=Count('id'))
        .order_by('-total_amount')
    )


def _transaction_row(fee_transaction):
    student = fee_transaction.student
    return {
        'id': str(fee_transaction.pk),
        'transaction_id': fee_transaction.transaction_id,
        'student_code': student.student_code,
        'student_name': student.get_full_name(),
        'grade': student.grade,
        'section': student.section,
        'amount': fee_transaction.amount,
        'payment_method': fee_transaction.payment_method,
        'date': fee_transaction.created_at,
        'month': fee_transaction.month,
        'fee_type': fee_transaction.fee_type or None,
        'status': fee_transaction.status,
        'remarks': fee_transaction.remarks or None,
    }


def _user_names(user_ids):
    """Map user id strings to display names, skipping ids that do not resolve"""
    User = get_user_model()
    names = {}
    try:
        for user in User.objects.filter(pk__in=list(user_ids)):
            names[str(user.pk)] = user.get_full_name() or user.get_username()
    except (ValueError, ValidationError) as e:
        logger.warning(f"Could not resolve collector names: {e}")
    return names


def _current_academic_year(school, today):
    from core.models import FinancialSettings
    start_month = FinancialSettings.get_instance(school).academic_year_start_month
    return get_current_academic_year(today=today, start_month=start_month)


# =============================================================================
# ACCOUNTANT STATISTICS
# =============================================================================

def get_accountant_transactions(accountant_id, school, start_date, end_date):
    """
    Transactions collected by an accountant between two dates, newest first.
    """
    from .models import FeeTransaction

    transactions = FeeTransaction.objects.filter(
        school=school,
        collected_by_id=str(accountant_id),
        created_at__gte=start_of_day(start_date),
        created_at__lte=end_of_day(end_date),
    ).select_related('student').order_by('-created_at')

    return [_transaction_row(t) for t in transactions]


def get_daily_collection_summary(accountant_id, school, day=None):
    """
    An accountant's completed collections for one day, grouped by payment
    method.
    """
    day = day or get_school_today()
    payments = _completed_payments(school, day, day).filter(collected_by_id=str(accountant_id))
    by_method = _by_payment_method(payments)

    return {
        'date': day,
        'total_collected': sum((m['total_amount'] for m in by_method), Decimal('0.00')),
        'total_transactions': sum(m['count'] for m in by_method),
        'by_payment_method': by_method,
    }


def get_accountant_dashboard(accountant_id, school, today=None):
    """
    Dashboard figures for the fee desk.

    Returns:
        dict: today's and this month's collections, pending dues and
        defaulter count for the current academic year, the ten latest
        payments and this month's collections by payment method
    """
    from .models import StudentFeeRecord, MonthlyPayment, FeeTransaction, UNPAID_STATUSES

    today = today or get_school_today()
    month_start = date(today.year, today.month, 1)
    month_end = date(today.year, today.month, calendar.monthrange(today.year, today.month)[1])
    academic_year = _current_academic_year(school, today)

    today_totals = _totals(_completed_payments(school, today, today))
    month_payments = _completed_payments(school, month_start, month_end)
    month_totals = _totals(month_payments)

    pending = StudentFeeRecord.objects.filter(
        school=school, academic_year=academic_year
    ).aggregate(total_due=Sum('total_due_amount'), count=Count('id'))

    defaulters_count = MonthlyPayment.objects.filter(
        fee_record__school=school,
        fee_record__academic_year=academic_year,
        status__in=UNPAID_STATUSES,
        waived=False,
        due_date__lt=today,
    ).values('fee_record_id').distinct().count()

    recent = FeeTransaction.objects.filter(
        school=school, transaction_type='payment', status='completed'
    ).select_related('student').order_by('-created_at')[:10]

    return {
        'accountant_id': str(accountant_id),
        'academic_year': academic_year,
        'today_collections': today_totals['total_amount'],
        'today_transactions': today_totals['count'],
        'month_collections': month_totals['total_amount'],
        'month_transactions': month_totals['count'],
        'pending_dues': pending['total_due'] or Decimal('0.00'),
        'fee_records': pending['count'] or 0,
        'total_defaulters': defaulters_count,
        'recent_transactions': [_transaction_row(t) for t in recent],
        'monthly_breakdown': _by_payment_method(month_payments),
    }


# =============================================================================
# FINANCIAL REPORTS
# =============================================================================

def get_financial_reports(school, report_type='monthly', start_date=None, end_date=None, today=None):
    """
    Collection report for a period.

    Args:
        report_type: 'daily', 'weekly', 'monthly' or 'yearly'; anything
            else is treated as monthly
        start_date, end_date: optional explicit bounds (inclusive)

    Returns:
        dict: summary, by payment method, daily breakdown, by grade and
        the five collectors with the highest totals
    """
    if report_type not in REPORT_TYPES:
        report_type = 'monthly'
    start, end = get_period_range(report_type, start_date, end_date, today)
    payments = _completed_payments(school, start, end)

    totals = _totals(payments)
    average = (
        round_money(totals['total_amount'] / totals['count']) if totals['count'] else Decimal('0.00')
    )

    daily = list(
        payments.annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(total_amount=Sum('amount'), count=Count('id'))
        .order_by('day')
    )

    by_grade = list(
        payments.values('student__grade')
        .annotate(total_amount=Sum('amount'), count=Count('id'))
        .order_by('student__grade')
    )

    collectors = list(
        payments.values('collected_by_id')
        .annotate(total_amount=Sum('amount'), count=Count('id'))
        .order_by('-total_amount')[:5]
    )
    names = _user_names(c['collected_by_id'] for c in collectors)

    logger.debug(f"Built {report_type} fee report for {school}: {start} to {end}")

    return {
        'report_type': report_type,
        'period': {'start': start, 'end': end},
        'summary': {
            'total_amount': totals['total_amount'],
            'total_transactions': totals['count'],
            'average_transaction': average,
        },
        'by_payment_method': _by_payment_method(payments),
        'daily_breakdown': daily,
        'by_grade': [
            {'grade': g['student__grade'], 'total_amount': g['total_amount'], 'count': g['count']}
            for g in by_grade
        ],
        'top_collectors': [
            {
                'collected_by': c['collected_by_id'],
                'name': names.get(c['collected_by_id'], 'Unknown'),
                'total_amount': c['total_amount'],
                'count': c['count'],
            }
            for c in collectors
        ],
    }
