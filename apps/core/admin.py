# core/admin.py

from django.contrib import admin
from .models import FinancialSettings


@admin.register(FinancialSettings)
class FinancialSettingsAdmin(admin.ModelAdmin):
    list_display = [
        'school', 'school_currency', 'academic_year_start_month',
        'default_due_day', 'late_fee_percentage', 'grace_period_days',
    ]
    fieldsets = (
        ('School', {'fields': ('school', 'school_currency')}),
        ('Academic Calendar', {'fields': ('academic_year_start_month', 'default_due_day')}),
        ('Late Fees & Defaulters', {'fields': ('late_fee_percentage', 'grace_period_days', 'reminder_interval_days')}),
        ('Numbering', {'fields': ('transaction_prefix',)}),
    )
