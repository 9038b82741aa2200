# fees/admin.py

from django.contrib import admin
from .models import (
    FeeStructure, FeeComponent, StudentFeeRecord, MonthlyPayment,
    OneTimeFee, FeeDefaulter, FeeTransaction,
)


# =============================================================================
# FEE STRUCTURES
# =============================================================================

class FeeComponentInline(admin.TabularInline):
    model = FeeComponent
    extra = 1
    fields = ('fee_type', 'amount', 'is_one_time')


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'school', 'grade', 'academic_year', 'monthly_amount', 'due_day', 'is_active', 'created_at']
    list_filter = ['school', 'academic_year', 'grade', 'is_active']
    inlines = [FeeComponentInline]


# =============================================================================
# LEDGERS
# =============================================================================

class MonthlyPaymentInline(admin.TabularInline):
    model = MonthlyPayment
    extra = 0
    can_delete = False
    fields = ('month', 'due_amount', 'paid_amount', 'late_fee', 'status', 'due_date', 'paid_date', 'waived')
    readonly_fields = fields


class OneTimeFeeInline(admin.TabularInline):
    model = OneTimeFee
    extra = 0
    can_delete = False
    fields = ('fee_type', 'due_amount', 'paid_amount', 'status', 'paid_date', 'waived')
    readonly_fields = fields


@admin.register(StudentFeeRecord)
class StudentFeeRecordAdmin(admin.ModelAdmin):
    """Ledgers change only through the collection service"""
    list_display = ['student', 'academic_year', 'grade', 'total_fee_amount', 'total_paid_amount', 'total_due_amount', 'status']
    list_filter = ['school', 'academic_year', 'status', 'grade']
    search_fields = ['student__student_code', 'student__first_name', 'student__last_name']
    readonly_fields = [
        'student', 'school', 'grade', 'academic_year', 'fee_structure',
        'total_fee_amount', 'total_paid_amount', 'total_due_amount',
        'status', 'has_received_payment', 'version',
    ]
    inlines = [MonthlyPaymentInline, OneTimeFeeInline]

    def has_add_permission(self, request):
        return False


@admin.register(FeeDefaulter)
class FeeDefaulterAdmin(admin.ModelAdmin):
    list_display = ['student', 'grade', 'total_due_amount', 'days_since_first_due', 'notification_count', 'last_reminder_date']
    list_filter = ['school', 'grade']
    search_fields = ['student__student_code', 'student__first_name', 'student__last_name']

    def has_add_permission(self, request):
        return False


# =============================================================================
# TRANSACTIONS
# =============================================================================

@admin.register(FeeTransaction)
class FeeTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_id', 'student', 'amount', 'payment_method', 'month', 'fee_type', 'collected_by_id', 'created_at']
    list_filter = ['school', 'payment_method', 'transaction_type', 'status']
    search_fields = ['transaction_id', 'student__student_code']
    date_hierarchy = 'created_at'

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        # Transactions are written by the collection service only
        return False

    def has_delete_permission(self, request, obj=None):
        return False
