# fees/urls.py

from django.urls import path
from . import views

app_name = 'fees'

urlpatterns = [
    # =============================================================================
    # STUDENT FEE STATUS
    # =============================================================================
    path('students/', views.students_by_grade_section, name='students_by_grade_section'),
    path('students/search/', views.search_student, name='search_student'),
    path('students/<uuid:student_id>/status/', views.student_fee_status, name='student_fee_status'),
    path('students/<uuid:student_id>/waive/', views.waive_month, name='waive_month'),
    path('students/code/<str:student_code>/', views.student_fee_status_detailed, name='student_fee_status_detailed'),
    path('parents/children/', views.parent_children_fee_status, name='parent_children_fee_status'),


    # =============================================================================
    # COLLECTION
    # =============================================================================
    path('collect/validate/', views.validate_collection, name='validate_collection'),
    path('collect/', views.collect_fee, name='collect_fee'),
    path('collect/one-time/', views.collect_one_time_fee, name='collect_one_time_fee'),
    path('late-fees/apply/', views.apply_late_fees, name='apply_late_fees'),


    # =============================================================================
    # DEFAULTERS
    # =============================================================================
    path('defaulters/', views.defaulters, name='defaulters'),
    path('defaulters/synced/', views.synced_defaulters, name='synced_defaulters'),
    path('defaulters/sync/', views.sync_defaulters, name='sync_defaulters'),
    path('defaulters/export/', views.export_defaulters_excel, name='export_defaulters_excel'),
    path('defaulters/<uuid:defaulter_id>/reminder/', views.record_defaulter_reminder, name='record_defaulter_reminder'),


    # =============================================================================
    # DASHBOARD, REPORTS AND TRANSACTIONS
    # =============================================================================
    path('dashboard/', views.accountant_dashboard, name='dashboard'),
    path('reports/', views.financial_reports, name='financial_reports'),
    path('transactions/', views.accountant_transactions, name='accountant_transactions'),
    path('transactions/daily-summary/', views.daily_collection_summary, name='daily_collection_summary'),
    path('transactions/<str:transaction_id>/receipt/', views.transaction_receipt, name='transaction_receipt'),
]
