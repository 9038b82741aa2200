# fees/views.py

"""
Fee Collection Views

JSON endpoints for the fee desk:
- Student fee status, search and parent overview
- Payment validation and collection (monthly and one-time)
- Late fees and waivers
- Defaulters (live list, synced list, sync job, Excel export)
- Dashboard, reports, transactions and PDF receipts

Every view requires login; fee-desk views also require a fee staff role.
Business-rule failures come back as {"success": false, "error": ...}
with the error's status code.
"""

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST
from functools import wraps
import json
import logging

from core.models import FinancialSettings
from core.utils import get_school_today, parse_date, safe_decimal
from fees.exceptions import FeeServiceError, Forbidden, ValidationFailed
from fees.exports import build_defaulters_workbook, workbook_to_bytes, render_receipt_pdf
from fees.models import FeeDefaulter, FeeTransaction
from fees.services import FeeCollectionService
from utils.context import get_client_ip

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def _get_profile(request):
    profile = getattr(request.user, 'profile', None)
    if profile is None or profile.school is None:
        raise Forbidden("Your account is not linked to a school")
    return profile


def fee_api(staff_only=True):
    """
    Decorator for fee JSON views: resolves the requester's school into
    request.school and turns fee errors into JSON responses.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            try:
                profile = _get_profile(request)
                if staff_only and not profile.can_collect_fees:
                    raise Forbidden("You do not have permission to manage fees")
                request.school = profile.school
                request.profile = profile
                return view_func(request, *args, **kwargs)
            except FeeServiceError as e:
                return JsonResponse(e.to_dict(), status=e.status_code)
            except ValidationError as e:
                return JsonResponse({'success': False, 'error': '; '.join(e.messages)}, status=400)
        return wrapper
    return decorator


def _read_payload(request):
    """JSON body, falling back to form data"""
    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body or b'{}')
        except ValueError:
            raise ValidationFailed("Request body is not valid JSON")
        if not isinstance(payload, dict):
            raise ValidationFailed("Request body must be a JSON object")
        return payload
    return request.POST.dict()


def _read_date(value, label):
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {label} '{value}', expected YYYY-MM-DD")


def _read_int(value, label):
    """Non-negative integer query parameter, or None when absent"""
    if value in (None, ''):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid {label} '{value}', expected a whole number")
    if number < 0:
        raise ValidationFailed(f"{label} must not be negative")
    return number


def _as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('1', 'true', 'yes', 'on')


def _audit_info(request):
    return {
        'ip_address': get_client_ip(request),
        'device_info': request.META.get('HTTP_USER_AGENT', ''),
    }


def _serialize_status(status):
    return {
        'student': status['student'],
        'fee_record': status['fee_record'].to_dict(),
        'upcoming_due': status['upcoming_due'],
        'recent_transactions': [t.to_dict() for t in status['recent_transactions']],
    }


# =============================================================================
# STUDENT FEE STATUS
# =============================================================================

@login_required
@require_GET
@fee_api()
def search_student(request):
    student_code = request.GET.get('student_code', '').strip()
    if not student_code:
        raise ValidationFailed("student_code is required")
    return JsonResponse({'success': True, 'data': FeeCollectionService.search_student(student_code, request.school)})


@login_required
@require_GET
@fee_api()
def student_fee_status(request, student_id):
    status = FeeCollectionService.get_student_fee_status(
        student_id, request.school, request.GET.get('academic_year') or None
    )
    return JsonResponse({'success': True, 'data': _serialize_status(status)})


@login_required
@require_GET
@fee_api()
def student_fee_status_detailed(request, student_code):
    data = FeeCollectionService.get_student_fee_status_detailed(student_code, request.school)
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api(staff_only=False)
def parent_children_fee_status(request):
    """Parents see their own children; fee staff may look up any contact"""
    if request.profile.can_collect_fees:
        parent_contact = request.GET.get('parent_contact', '').strip()
    else:
        parent_contact = request.profile.phone
    if not parent_contact:
        raise ValidationFailed("parent_contact is required")

    data = FeeCollectionService.get_parent_children_fee_status(parent_contact, request.school)
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api()
def students_by_grade_section(request):
    data = FeeCollectionService.get_students_by_grade_section(
        request.school,
        grade=request.GET.get('grade') or None,
        section=request.GET.get('section') or None,
    )
    return JsonResponse({'success': True, 'data': data})


# =============================================================================
# COLLECTION
# =============================================================================

@login_required
@require_POST
@fee_api()
def validate_collection(request):
    payload = _read_payload(request)
    result = FeeCollectionService.validate_fee_collection(
        payload.get('student_id'),
        request.school,
        payload.get('month'),
        payload.get('amount'),
        include_late_fee=_as_bool(payload.get('include_late_fee', False)),
        academic_year=payload.get('academic_year') or None,
    )
    return JsonResponse({'success': True, 'data': result})


@login_required
@require_POST
@fee_api()
def collect_fee(request):
    payload = _read_payload(request)
    result = FeeCollectionService.collect_fee({
        'student_id': payload.get('student_id'),
        'school': request.school,
        'month': payload.get('month'),
        'amount': payload.get('amount'),
        'payment_method': payload.get('payment_method'),
        'collected_by': request.user.pk,
        'remarks': payload.get('remarks'),
        'include_late_fee': _as_bool(payload.get('include_late_fee', False)),
        'academic_year': payload.get('academic_year') or None,
        'audit_info': _audit_info(request),
    })
    return JsonResponse({
        'success': True,
        'data': {
            'transaction': result['transaction'].to_dict(),
            'one_time_fee_transactions': [t.to_dict() for t in result['one_time_fee_transactions']],
            'fee_record': result['fee_record'].to_dict(),
            'warnings': result['warnings'],
            'is_first_payment': result['is_first_payment'],
            'total_one_time_fee_amount': result['total_one_time_fee_amount'],
        },
    }, status=201)


@login_required
@require_POST
@fee_api()
def collect_one_time_fee(request):
    payload = _read_payload(request)
    result = FeeCollectionService.collect_one_time_fee({
        'student_id': payload.get('student_id'),
        'school': request.school,
        'fee_type': payload.get('fee_type'),
        'amount': payload.get('amount'),
        'payment_method': payload.get('payment_method'),
        'collected_by': request.user.pk,
        'remarks': payload.get('remarks'),
        'academic_year': payload.get('academic_year') or None,
        'audit_info': _audit_info(request),
    })
    return JsonResponse({
        'success': True,
        'data': {
            'transaction': result['transaction'].to_dict(),
            'fee_record': result['fee_record'].to_dict(),
            'one_time_fee': result['one_time_fee'],
        },
    }, status=201)


# =============================================================================
# LATE FEES AND WAIVERS
# =============================================================================

@login_required
@require_POST
@fee_api()
def waive_month(request, student_id):
    payload = _read_payload(request)
    result = FeeCollectionService.waive_month(
        student_id,
        request.school,
        payload.get('month'),
        payload.get('reason'),
        waived_by=request.user.pk,
        academic_year=payload.get('academic_year') or None,
    )
    return JsonResponse({'success': True, 'data': result['fee_record'].to_dict()})


@login_required
@require_POST
@fee_api()
def apply_late_fees(request):
    payload = _read_payload(request)
    applied = FeeCollectionService.apply_late_fees(
        request.school, academic_year=payload.get('academic_year') or None
    )
    return JsonResponse({'success': True, 'data': {'applied': applied}})


# =============================================================================
# DEFAULTERS
# =============================================================================

@login_required
@require_GET
@fee_api()
def defaulters(request):
    return JsonResponse({'success': True, 'data': FeeCollectionService.get_defaulters(request.school)})


@login_required
@require_GET
@fee_api()
def synced_defaulters(request):
    """Defaulter index rows, optionally narrowed to critical cases or by grade"""
    grade = request.GET.get('grade') or None
    if _as_bool(request.GET.get('critical', False)):
        min_amount = request.GET.get('min_amount') or None
        if min_amount is not None:
            min_amount = safe_decimal(min_amount, default=None)
            if min_amount is None or not min_amount.is_finite() or min_amount < 0:
                raise ValidationFailed('min_amount must be a non-negative number')
        rows = FeeDefaulter.get_critical_defaulters(
            request.school,
            min_amount=min_amount,
            min_days=_read_int(request.GET.get('min_days'), 'min_days'),
            grade=grade,
        )
    elif _as_bool(request.GET.get('needs_reminder', False)):
        interval = FinancialSettings.get_instance(request.school).reminder_interval_days
        rows = FeeDefaulter.get_defaulters_needing_reminders(request.school, interval, grade=grade)
    else:
        rows = FeeDefaulter.objects.filter(school=request.school).select_related('student')
        if grade:
            rows = rows.filter(grade=grade)

    return JsonResponse({
        'success': True,
        'data': {
            'defaulters': [d.to_dict() for d in rows],
            'by_grade': FeeDefaulter.get_defaulters_by_grade(request.school, grade),
        },
    })


@login_required
@require_POST
@fee_api()
def sync_defaulters(request):
    grace_days = FinancialSettings.get_instance(request.school).grace_period_days
    result = FeeDefaulter.sync_defaulters_for_school(request.school, grace_days)
    return JsonResponse({'success': True, 'data': result})


@login_required
@require_POST
@fee_api()
def record_defaulter_reminder(request, defaulter_id):
    defaulter = get_object_or_404(FeeDefaulter, pk=defaulter_id, school=request.school)
    defaulter.record_reminder()
    return JsonResponse({'success': True, 'data': defaulter.to_dict()})


@login_required
@require_GET
@fee_api()
def export_defaulters_excel(request):
    rows = FeeDefaulter.objects.filter(school=request.school).select_related('student')
    wb = build_defaulters_workbook(request.school, rows)

    response = HttpResponse(
        workbook_to_bytes(wb),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    filename = f"fee_defaulters_{request.school.code}_{get_school_today():%Y%m%d}.xlsx"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


# =============================================================================
# DASHBOARD, REPORTS AND TRANSACTIONS
# =============================================================================

@login_required
@require_GET
@fee_api()
def accountant_dashboard(request):
    data = FeeCollectionService.get_accountant_dashboard(request.user.pk, request.school)
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api()
def financial_reports(request):
    data = FeeCollectionService.get_financial_reports(
        request.school,
        report_type=request.GET.get('type', 'monthly'),
        start_date=_read_date(request.GET.get('start_date'), 'start_date'),
        end_date=_read_date(request.GET.get('end_date'), 'end_date'),
    )
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api()
def accountant_transactions(request):
    today = get_school_today()
    start = _read_date(request.GET.get('start_date'), 'start_date') or today
    end = _read_date(request.GET.get('end_date'), 'end_date') or today
    data = FeeCollectionService.get_accountant_transactions(request.user.pk, request.school, start, end)
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api()
def daily_collection_summary(request):
    day = _read_date(request.GET.get('date'), 'date') or get_school_today()
    data = FeeCollectionService.get_daily_collection_summary(request.user.pk, request.school, day)
    return JsonResponse({'success': True, 'data': data})


@login_required
@require_GET
@fee_api()
def transaction_receipt(request, transaction_id):
    fee_transaction = get_object_or_404(
        FeeTransaction.objects.select_related('student', 'school', 'fee_record'),
        transaction_id=transaction_id,
        school=request.school,
    )
    response = HttpResponse(render_receipt_pdf(fee_transaction), content_type='application/pdf')
    response['Content-Disposition'] = f'inline; filename="receipt_{fee_transaction.transaction_id}.pdf"'
    return response
