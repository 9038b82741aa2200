# accounts/models.py

from django.contrib.auth.models import User
from django.db import models
from django_countries.fields import CountryField
from django.core.validators import RegexValidator
import logging
import uuid

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
)


# =============================================================================
# SCHOOL MODEL
# =============================================================================

class School(models.Model):
    """School model to represent the tenants of the system"""

    SCHOOL_TYPE_CHOICES = [
        ('KINDERGARTEN', 'Kindergarten/Nursery School'),
        ('PRIMARY', 'Primary School'),
        ('SECONDARY', 'Secondary School'),
        ('PRIMARY_SECONDARY', 'Primary & Secondary School'),
        ('VOCATIONAL', 'Vocational School'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # -------------------------------------------------------------------------
    # BASIC INFORMATION
    # -------------------------------------------------------------------------

    full_name = models.CharField(
        "Full School Name",
        max_length=191,
        unique=True,
        help_text="Official full name of the school"
    )
    code = models.SlugField(
        "School Code",
        max_length=50,
        unique=True,
        help_text="Short unique code used by scheduled jobs and exports"
    )
    receipt_name = models.CharField(
        "Receipt Name",
        max_length=191,
        blank=True,
        null=True,
        help_text="Name to appear on receipts"
    )
    school_type = models.CharField(
        "School Type",
        max_length=30,
        choices=SCHOOL_TYPE_CHOICES,
        default='PRIMARY_SECONDARY'
    )
    country = CountryField("Country", default='IN')
    phone = models.CharField(
        "Phone",
        max_length=20,
        blank=True,
        validators=[phone_validator]
    )
    is_active = models.BooleanField("Active", default=True, db_index=True)
    created_at = models.DateTimeField("Created At", auto_now_add=True)

    class Meta:
        verbose_name = "School"
        verbose_name_plural = "Schools"
        ordering = ['full_name']

    def __str__(self):
        return self.full_name

    @property
    def display_name(self):
        return self.receipt_name or self.full_name


# =============================================================================
# USER PROFILE MODEL
# =============================================================================

class UserProfile(models.Model):
    """Links an authenticated user to the school they act for"""

    USER_ROLES = [
        ('SUPER_ADMIN', 'Super Administrator'),
        ('ADMINISTRATOR', 'School Administrator'),
        ('FINANCE_MANAGER', 'Finance Manager'),
        ('ACCOUNTANT', 'Accountant'),
        ('TEACHER', 'Teacher'),
        ('PARENT', 'Parent'),
    ]

    # Roles allowed to collect fees and run fee jobs
    FEE_STAFF_ROLES = ('SUPER_ADMIN', 'ADMINISTRATOR', 'FINANCE_MANAGER', 'ACCOUNTANT')

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='staff_profiles'
    )
    role = models.CharField(
        "Role",
        max_length=30,
        choices=USER_ROLES,
        default='TEACHER'
    )
    phone = models.CharField(
        "Phone",
        max_length=20,
        blank=True,
        validators=[phone_validator]
    )

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"
        indexes = [
            models.Index(fields=['school', 'role'], name='idx_profile_school_role'),
        ]

    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} ({self.get_role_display()})"

    @property
    def can_collect_fees(self):
        return self.role in self.FEE_STAFF_ROLES
