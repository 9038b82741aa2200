import json
from decimal import Decimal

from django.urls import reverse

from fees.models import FeeDefaulter, FeeStructure, FeeTransaction
from fees.services import FeeCollectionService
from students.models import Student
from tests.conftest import ACADEMIC_YEAR, payment


def _post_json(client, url, data):
    return client.post(url, data=json.dumps(data), content_type='application/json')


def test_login_is_required(client, db):
    response = client.get(reverse('fees:dashboard'))
    assert response.status_code == 302


def test_non_fee_staff_is_forbidden(client, teacher, student, structure):
    client.force_login(teacher)
    response = client.get(reverse('fees:student_fee_status', args=[student.pk]))

    assert response.status_code == 403
    assert response.json() == {'success': False, 'error': 'You do not have permission to manage fees'}


def test_student_fee_status(accountant_client, student, structure):
    response = accountant_client.get(
        reverse('fees:student_fee_status', args=[student.pk]), {'academic_year': ACADEMIC_YEAR}
    )

    assert response.status_code == 200
    data = response.json()['data']
    assert data['student']['student_code'] == 'GW-001'
    assert len(data['fee_record']['monthly_payments']) == 12
    assert data['upcoming_due']['month'] == 4
    assert data['recent_transactions'] == []


def test_student_of_other_school_is_forbidden(accountant_client, other_school):
    outsider = Student.objects.create(school=other_school, student_code='RS-9', first_name='Mira', grade='5')
    response = accountant_client.get(reverse('fees:student_fee_status', args=[outsider.pk]))
    assert response.status_code == 403


def test_search_student(accountant_client, student):
    response = accountant_client.get(reverse('fees:search_student'), {'student_code': 'GW-001'})
    assert response.json()['data']['name'] == 'Asha Rao'

    response = accountant_client.get(reverse('fees:search_student'), {'student_code': 'GW-404'})
    assert response.status_code == 404


def test_validate_collection_endpoint(accountant_client, student, structure_with_admission):
    response = _post_json(accountant_client, reverse('fees:validate_collection'), {
        'student_id': str(student.pk), 'month': 4, 'amount': '500', 'academic_year': ACADEMIC_YEAR,
    })

    assert response.status_code == 200
    data = response.json()['data']
    assert data['valid'] is False
    assert data['is_first_payment'] is True


def test_collect_fee_endpoint(accountant_client, accountant, student, structure):
    response = _post_json(accountant_client, reverse('fees:collect_fee'), {
        'student_id': str(student.pk),
        'month': 4,
        'amount': '1000',
        'payment_method': 'upi',
        'academic_year': ACADEMIC_YEAR,
    })

    assert response.status_code == 201
    data = response.json()['data']
    assert Decimal(data['transaction']['amount']) == Decimal('1000')
    assert data['transaction']['collected_by'] == str(accountant.pk)
    assert data['fee_record']['monthly_payments'][0]['status'] == 'paid'
    assert FeeTransaction.objects.get().ip_address == '127.0.0.1'


def test_collect_fee_rule_violation_returns_400(accountant_client, student, structure_with_admission):
    response = _post_json(accountant_client, reverse('fees:collect_fee'), {
        'student_id': str(student.pk),
        'month': 4,
        'amount': '500',
        'payment_method': 'cash',
        'academic_year': ACADEMIC_YEAR,
    })

    assert response.status_code == 400
    assert response.json()['success'] is False
    assert not FeeTransaction.objects.exists()


def test_collect_fee_accepts_form_data(accountant_client, student, structure):
    response = accountant_client.post(reverse('fees:collect_fee'), {
        'student_id': str(student.pk),
        'month': '5',
        'amount': '1000',
        'payment_method': 'cash',
        'academic_year': ACADEMIC_YEAR,
    })
    assert response.status_code == 201


def test_malformed_json_is_rejected(accountant_client, db):
    response = accountant_client.post(
        reverse('fees:collect_fee'), data='{not json', content_type='application/json'
    )
    assert response.status_code == 400


def test_waive_month_endpoint(accountant_client, student, fee_record):
    response = _post_json(accountant_client, reverse('fees:waive_month', args=[student.pk]), {
        'month': 4, 'reason': 'Staff child', 'academic_year': ACADEMIC_YEAR,
    })

    assert response.status_code == 200
    assert response.json()['data']['monthly_payments'][0]['waived'] is True


def test_sync_and_list_defaulters(accountant_client, fee_record):
    response = accountant_client.post(reverse('fees:sync_defaulters'))
    assert response.json()['data'] == {'synced': 1, 'removed': 0}

    response = accountant_client.get(reverse('fees:synced_defaulters'))
    data = response.json()['data']
    assert len(data['defaulters']) == 1
    assert data['by_grade'][0]['grade'] == '5'


def test_record_defaulter_reminder(accountant_client, school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7)
    defaulter = FeeDefaulter.objects.get()

    response = accountant_client.post(reverse('fees:record_defaulter_reminder', args=[defaulter.pk]))

    assert response.json()['data']['notification_count'] == 1


def test_export_defaulters_excel(accountant_client, school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7)
    response = accountant_client.get(reverse('fees:export_defaulters_excel'))

    assert response.status_code == 200
    assert response['Content-Type'].startswith('application/vnd.openxmlformats')
    assert 'fee_defaulters_greenwood-high_' in response['Content-Disposition']


def test_transaction_receipt(accountant_client, accountant, student, school, structure):
    result = FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))

    response = accountant_client.get(
        reverse('fees:transaction_receipt', args=[result['transaction'].transaction_id])
    )

    assert response.status_code == 200
    assert response['Content-Type'] == 'application/pdf'
    assert response.content.startswith(b'%PDF')


def test_parent_sees_only_own_children(client, school, student, structure):
    from django.contrib.auth.models import User
    from accounts.models import UserProfile

    parent = User.objects.create_user('parent', password='secret')
    UserProfile.objects.create(user=parent, school=school, role='PARENT', phone='+919800000001')
    client.force_login(parent)

    response = client.get(reverse('fees:parent_children_fee_status'), {'parent_contact': '+910000000000'})

    data = response.json()['data']
    assert data['total_children'] == 1
    assert data['children'][0]['student_code'] == 'GW-001'


def test_dashboard_and_reports(accountant_client, accountant, student, school, structure):
    FeeCollectionService.collect_fee(payment(student, school, accountant, 4, '1000'))

    dashboard = accountant_client.get(reverse('fees:dashboard')).json()['data']
    assert Decimal(dashboard['today_collections']) == Decimal('1000')

    report = accountant_client.get(reverse('fees:financial_reports'), {'type': 'daily'}).json()['data']
    assert report['summary']['total_transactions'] == 1

    response = accountant_client.get(reverse('fees:financial_reports'), {'start_date': '01-06-2024'})
    assert response.status_code == 400


def test_json_body_must_be_an_object(accountant_client, db):
    response = accountant_client.post(
        reverse('fees:collect_fee'), data='[]', content_type='application/json'
    )

    assert response.status_code == 400
    assert response.json()['error'] == 'Request body must be a JSON object'


def test_defaulter_filters_keep_the_grade(accountant_client, school, fee_record):
    other = Student.objects.create(
        school=school, student_code='GW-002', first_name='Kiran', grade='6', section='B'
    )
    FeeStructure.objects.create(
        school=school, grade='6', academic_year=ACADEMIC_YEAR,
        monthly_amount=Decimal('800'), due_day=10,
    )
    FeeCollectionService.get_or_sync_fee_record(other, school, ACADEMIC_YEAR)
    FeeDefaulter.sync_defaulters_for_school(school, 7)
    url = reverse('fees:synced_defaulters')

    for flag in ('critical', 'needs_reminder'):
        data = accountant_client.get(url, {flag: 'true', 'grade': '6'}).json()['data']
        assert [d['grade'] for d in data['defaulters']] == ['6']
        assert [g['grade'] for g in data['by_grade']] == ['6']


def test_non_numeric_min_days_is_a_bad_request(accountant_client, fee_record):
    response = accountant_client.get(
        reverse('fees:synced_defaulters'), {'critical': 'true', 'min_days': 'abc'}
    )

    assert response.status_code == 400
    assert response.json()['success'] is False
