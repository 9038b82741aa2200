# students/admin.py

from django.contrib import admin
from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['student_code', 'get_full_name', 'school', 'grade', 'section', 'roll_number', 'is_active']
    list_filter = ['school', 'grade', 'section', 'is_active']
    search_fields = ['student_code', 'first_name', 'last_name', 'parent_contact']
    readonly_fields = ['created_at', 'updated_at', 'created_by_id', 'updated_by_id']

    def get_full_name(self, obj):
        return obj.get_full_name()
    get_full_name.short_description = 'Name'
