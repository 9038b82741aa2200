import pytest
from decimal import Decimal

from django.contrib.auth.models import User

from accounts.models import School, UserProfile
from core.models import FinancialSettings
from fees.models import FeeStructure, FeeComponent
from fees.services import FeeCollectionService
from students.models import Student

# A finished academic year: every due date is in the past
ACADEMIC_YEAR = '2024-2025'


@pytest.fixture
def school(db):
    school = School.objects.create(full_name='Greenwood High School', code='greenwood-high')
    FinancialSettings.get_instance(school)
    return school


@pytest.fixture
def other_school(db):
    return School.objects.create(full_name='Riverside Public School', code='riverside')


@pytest.fixture
def student(school):
    return Student.objects.create(
        school=school,
        student_code='GW-001',
        first_name='Asha',
        last_name='Rao',
        grade='5',
        section='A',
        roll_number='1',
        parent_contact='+919800000001',
    )


@pytest.fixture
def structure(school):
    return FeeStructure.objects.create(
        school=school,
        grade='5',
        academic_year=ACADEMIC_YEAR,
        monthly_amount=Decimal('1000.00'),
        due_day=10,
    )


@pytest.fixture
def structure_with_admission(structure):
    FeeComponent.objects.create(
        structure=structure, fee_type='admission', amount=Decimal('500.00'), is_one_time=True
    )
    return structure


@pytest.fixture
def fee_record(student, school, structure):
    record, _ = FeeCollectionService.get_or_sync_fee_record(student, school, ACADEMIC_YEAR)
    return record


@pytest.fixture
def accountant(school):
    user = User.objects.create_user('accountant', password='secret', first_name='Ravi', last_name='Kumar')
    UserProfile.objects.create(user=user, school=school, role='ACCOUNTANT')
    return user


@pytest.fixture
def teacher(school):
    user = User.objects.create_user('teacher', password='secret')
    UserProfile.objects.create(user=user, school=school, role='TEACHER')
    return user


@pytest.fixture
def accountant_client(client, accountant):
    client.force_login(accountant)
    return client


def payment(student, school, accountant, month, amount, **extra):
    """Payment payload for FeeCollectionService.collect_fee"""
    data = {
        'student_id': student.pk,
        'school': school,
        'month': month,
        'amount': amount,
        'payment_method': 'cash',
        'collected_by': accountant.pk,
        'academic_year': ACADEMIC_YEAR,
        'audit_info': {'ip_address': '10.0.0.5', 'device_info': 'pytest'},
    }
    data.update(extra)
    return data
