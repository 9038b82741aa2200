# students/models.py

from django.db import models
from utils.models import BaseModel

import logging

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT MODEL
# =============================================================================

class StudentQuerySet(models.QuerySet):
    """Tenant-scoped lookups for students"""

    def for_school(self, school):
        return self.filter(school=school)

    def active(self):
        return self.filter(is_active=True)


class Student(BaseModel):
    """Student reference data used by the fee ledger"""

    # -------------------------------------------------------------------------
    # IDENTIFICATION & BASIC INFORMATION
    # -------------------------------------------------------------------------

    school = models.ForeignKey(
        'accounts.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name='students'
    )
    student_code = models.CharField(
        "Student ID",
        max_length=30,
        db_index=True,
        help_text="School-issued student identifier (unique within a school)"
    )
    first_name = models.CharField("First Name", max_length=50)
    last_name = models.CharField("Last Name", max_length=50, blank=True)

    # -------------------------------------------------------------------------
    # ACADEMIC INFORMATION
    # -------------------------------------------------------------------------

    grade = models.CharField("Grade", max_length=20, db_index=True)
    section = models.CharField("Section", max_length=10, blank=True)
    roll_number = models.CharField("Roll Number", max_length=20, blank=True)

    # -------------------------------------------------------------------------
    # CONTACT INFORMATION
    # -------------------------------------------------------------------------

    parent_contact = models.CharField(
        "Parent Contact",
        max_length=20,
        blank=True,
        db_index=True,
        help_text="Phone number of the parent/guardian responsible for fees"
    )
    parent_email = models.EmailField("Parent Email", blank=True)

    is_active = models.BooleanField("Active", default=True, db_index=True)

    objects = StudentQuerySet.as_manager()

    class Meta:
        verbose_name = "Student"
        verbose_name_plural = "Students"
        ordering = ['grade', 'section', 'roll_number']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'student_code'],
                name='uq_student_school_code'
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'grade', 'section'], name='idx_student_school_grade'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.student_code})"

    @property
    def full_name(self):
        """Get student's full name as property"""
        return self.get_full_name()

    def get_full_name(self):
        """Get student's full name"""
        return f"{self.first_name} {self.last_name}".strip() or 'Unknown'

    def to_summary(self):
        """Compact representation returned by fee lookups"""
        return {
            'id': str(self.pk),
            'student_code': self.student_code,
            'name': self.get_full_name(),
            'grade': self.grade,
            'section': self.section,
            'roll_number': self.roll_number,
            'parent_contact': self.parent_contact,
        }
