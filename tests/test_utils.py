from datetime import date
from decimal import Decimal

import pytest

from core.utils import (
    get_current_academic_year,
    academic_month_order,
    due_date_for_month,
    parse_academic_year,
    split_evenly,
    round_money,
    get_period_range,
)
from fees.exceptions import ValidationFailed, NotFound
from fees.utils import validate_amount, validate_month, validate_choice
from fees.models import PAYMENT_METHOD_CHOICES


def test_academic_year_rolls_over_on_start_month():
    assert get_current_academic_year(date(2024, 4, 1), 4) == '2024-2025'
    assert get_current_academic_year(date(2024, 3, 31), 4) == '2023-2024'
    assert get_current_academic_year(date(2024, 1, 15), 1) == '2024-2025'


def test_academic_month_order_starts_at_start_month():
    assert academic_month_order(4) == [4, 5, 6, 7, 8, 9, 10, 11, 12, 1, 2, 3]


def test_due_dates_cross_the_calendar_year():
    assert due_date_for_month('2024-2025', 4, 10, 4) == date(2024, 4, 10)
    assert due_date_for_month('2024-2025', 3, 10, 4) == date(2025, 3, 10)


def test_due_day_clamped_to_short_month():
    assert due_date_for_month('2024-2025', 2, 31, 4) == date(2025, 2, 28)
    assert due_date_for_month('2023-2024', 2, 31, 4) == date(2024, 2, 29)


@pytest.mark.parametrize('value', ['2024', '2024-2026', '24-25', None])
def test_malformed_academic_year_rejected(value):
    with pytest.raises(ValueError):
        parse_academic_year(value)


def test_split_evenly_puts_remainder_on_last_installment():
    parts = split_evenly(Decimal('1000'), 12)
    assert parts[:11] == [Decimal('83.33')] * 11
    assert parts[11] == Decimal('83.37')
    assert sum(parts) == Decimal('1000.00')


def test_round_money_half_up():
    assert round_money('2.345') == Decimal('2.35')


def test_weekly_report_range_reaches_back_seven_days():
    start, end = get_period_range('weekly', today=date(2024, 6, 15))
    assert start == date(2024, 6, 8)
    assert end == date(2024, 6, 15)


def test_input_validators():
    assert validate_month('4') == 4
    assert validate_amount('1500') == Decimal('1500.00')
    assert validate_choice('upi', PAYMENT_METHOD_CHOICES, 'payment method') == 'upi'
    with pytest.raises(ValidationFailed):
        validate_month(13)
    with pytest.raises(ValidationFailed):
        validate_amount('-5')
    with pytest.raises(ValidationFailed):
        validate_amount('abc')
    with pytest.raises(ValidationFailed):
        validate_choice('bitcoin', PAYMENT_METHOD_CHOICES, 'payment method')


def test_errors_carry_status_codes():
    assert ValidationFailed('bad').status_code == 400
    assert NotFound('gone').to_dict() == {'success': False, 'error': 'gone'}
